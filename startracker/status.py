#!/usr/bin/env python3
"""
Status objects for the star tracker frame pipeline.
Provides structured return values for export operations.
"""

from typing import Optional, Any, Dict, Generic, TypeVar
from dataclasses import dataclass
from enum import Enum
import time


class StatusLevel(Enum):
    """Status levels for operations."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


T = TypeVar('T')


@dataclass
class Status(Generic[T]):
    """Generic status object for operation results."""

    level: StatusLevel
    message: str
    data: Optional[T] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[float] = None

    def __post_init__(self) -> None:
        if self.timestamp is None:
            self.timestamp = time.time()

    @property
    def is_success(self) -> bool:
        """Check if status indicates success."""
        return self.level == StatusLevel.SUCCESS

    @property
    def is_error(self) -> bool:
        """Check if status indicates an error."""
        return self.level == StatusLevel.ERROR

    @property
    def is_warning(self) -> bool:
        """Check if status indicates a warning."""
        return self.level == StatusLevel.WARNING

    def __str__(self) -> str:
        return f"{self.level.value.upper()}: {self.message}"


@dataclass
class ExportStatus(Status[str]):
    """Status object for frame export."""

    output_file: Optional[str] = None
    file_format: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        self.output_file = self.data
        if self.details:
            self.file_format = self.details.get('file_format')


def export_status(level: StatusLevel, message: str, filename: Optional[str] = None,
                  file_format: Optional[str] = None) -> ExportStatus:
    """Create an export status carrying the written filename."""
    return ExportStatus(level, message, filename, {'file_format': file_format})
