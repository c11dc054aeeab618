#!/usr/bin/env python3
"""
Exception hierarchy for the star tracker frame pipeline.
Provides structured error handling across all modules.
"""

from typing import Optional, Any, Dict


class StarTrackerError(Exception):
    """Base exception for all star tracker errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(StarTrackerError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(StarTrackerError):
    """Raised when input validation fails."""
    pass


class FrameError(StarTrackerError):
    """Base exception for frame buffer errors."""
    pass


class FrameIndexError(FrameError, IndexError):
    """Raised by the checked frame accessors for an out-of-range index."""

    def __init__(self, index: Any, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"Index out of bounds: {index}", details)
        self.index = index


class LengthMismatchError(FrameError):
    """Raised when a sample sequence does not match rows * cols."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Sample count {actual} does not match frame size {expected}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class ContainerError(StarTrackerError):
    """Base exception for SER container parsing errors."""
    pass


class SERFileNotFoundError(ContainerError, FileNotFoundError):
    """Raised when the container path does not name a file."""

    def __init__(self, filename: str) -> None:
        super().__init__(f"File does not exist: {filename}", {"filename": filename})
        self.filename = filename


class HeaderMalformedError(ContainerError):
    """Raised when the header magic or text fields are invalid."""
    pass


class UnknownColorIDError(ContainerError):
    """Raised when the header carries an unmapped color id."""

    def __init__(self, value: int) -> None:
        super().__init__(f"Invalid Color ID: {value}", {"color_id": value})
        self.value = value


class UnknownEndianError(ContainerError):
    """Raised when the header endianness flag is neither 0 nor 1."""

    def __init__(self, value: int) -> None:
        super().__init__(f"Invalid Endian in Header: {value}", {"endian": value})
        self.value = value


class ShortReadError(ContainerError):
    """Raised when the header, payload or timestamp trailer is truncated."""

    def __init__(self, section: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Short read in {section}: expected {expected} bytes, got {actual}",
            {"section": section, "expected": expected, "actual": actual},
        )
        self.section = section
        self.expected = expected
        self.actual = actual


class UnsupportedFormatError(ContainerError):
    """Raised when payload samples use a layout that is not decoded into frames."""
    pass
