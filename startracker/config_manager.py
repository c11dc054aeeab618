#!/usr/bin/env python3
"""
Configuration Manager Module for the star tracker frame pipeline

This module provides a centralized configuration management system for
container ingestion, star detection and frame export. It handles loading,
merging, and accessing configuration settings from YAML files with support
for defaults and overrides.

Key Features:
- YAML-based configuration files
- Default configuration with user overrides
- Section-based configuration access
- Dot-notation lookup of nested keys

Dependencies:
- PyYAML for YAML file parsing
- Logging for configuration events
"""

import os
import yaml
import logging
from typing import Dict, Any, Optional

from startracker.exceptions import ConfigurationError


class ConfigManager:
    """
    Manages configuration settings for the star tracker pipeline.

    Settings are read from a YAML file and deep-merged over built-in
    defaults, so a partial user file only needs the keys it overrides.
    A missing or unreadable file leaves the defaults in place.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file. If None, uses config.yaml.
        """
        self.config_path = config_path or "config.yaml"
        self.config: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file with defaults."""
        default_config = self._get_default_config()

        user_config = {}
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as file:
                    user_config = yaml.safe_load(file) or {}
                self.logger.info(f"Configuration loaded from {self.config_path}")
            except (OSError, yaml.YAMLError) as e:
                self.logger.warning(f"Failed to load configuration from {self.config_path}: {e}")
                self.logger.info("Using default configuration")
        else:
            self.logger.debug(f"Configuration file {self.config_path} not found. Using defaults.")

        if not isinstance(user_config, dict):
            raise ConfigurationError(
                f"Configuration root in {self.config_path} must be a mapping",
                {"type": type(user_config).__name__},
            )

        self.config = self._deep_merge(default_config, user_config)

    def _get_default_config(self) -> Dict[str, Any]:
        """Get the default configuration.

        Returns:
            Dict[str, Any]: Default configuration dictionary
        """
        return {
            'detection': {
                'threshold': 2.5,  # Standard deviations above the mean
                'minsize': 2,  # Minimum segment size in pixels
                'legacy_y_centroid': False  # Reproduce the zero y-moment of older releases
            },
            'ingest': {
                'honor_endian_flag': False,  # Many writers set this flag inverted
                'legacy_ns_residual': False  # (ticks % 100) * 10 instead of (ticks % 10) * 100
            },
            'export': {
                'output_dir': 'exported_frames',
                'file_format': 'png'  # png or fits
            },
            'logging': {
                'level': 'INFO',
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'log_to_file': False,
                'log_file': 'startracker.log'
            }
        }

    def _deep_merge(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Deeply merge user configuration with default settings.

        If a key exists in both and both values are mappings, they are merged
        recursively; otherwise the user's value wins.
        """
        result = default.copy()

        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a configuration value by dot notation.

        Args:
            key_path: Path to the value (e.g., 'detection.threshold')
            default: Value to return if the key is not found.

        Returns:
            Any: The value found or the default value.
        """
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_detection_config(self) -> Dict[str, Any]:
        """Get the star detection configuration."""
        return self.config.get('detection', {})

    def get_ingest_config(self) -> Dict[str, Any]:
        """Get the SER container ingestion configuration."""
        return self.config.get('ingest', {})

    def get_export_config(self) -> Dict[str, Any]:
        """Get the frame export configuration."""
        return self.config.get('export', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get the logging configuration."""
        return self.config.get('logging', {})

    def reload(self) -> None:
        """Reload the configuration from the file, re-merging with defaults."""
        self.config = {}
        self._load_config()

    def save_default_config(self, path: Optional[str] = None) -> None:
        """Save the default configuration to a file.

        Args:
            path: Optional path to save to. Defaults to '<config_path>.default'.
        """
        if path is None:
            path = f"{self.config_path}.default"

        with open(path, 'w', encoding='utf-8') as file:
            yaml.dump(self._get_default_config(), file, default_flow_style=False, allow_unicode=True)
        self.logger.info(f"Default configuration saved to {path}")
