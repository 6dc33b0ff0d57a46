"""Custom exceptions for the representative-genome database."""

import time
from typing import Optional, Dict, Any, List, Union
from pathlib import Path


class RepGenError(Exception):
    """Base exception for representative-genome errors."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        self.stage = stage
        self.timestamp = time.time()
        super().__init__(message)


class MalformedFeatureIdError(RepGenError, ValueError):
    """A feature ID could not be parsed into a genome ID."""

    def __init__(self, feature_id: str, stage: Optional[str] = None) -> None:
        self.feature_id = feature_id
        super().__init__(f"Invalid feature ID (no genome ID found): {feature_id!r}", stage)


class KmerSizeMismatchError(RepGenError, ValueError):
    """Two k-mer sets built with different k-mer sizes were compared."""

    def __init__(self, expected: int, found: int, stage: Optional[str] = None) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"K-mer size mismatch: expected K={expected}, found K={found}", stage
        )


class IndexFileError(RepGenError):
    """A representative-genome save file is missing, unreadable or corrupt."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 stage: Optional[str] = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message, stage)

    def get_error_details(self) -> Dict[str, Any]:
        """Get structured error details for logging."""
        return {
            "message": str(self),
            "path": str(self.path) if self.path else None,
            "timestamp": self.timestamp,
            "stage": self.stage
        }


class ValidationError(RepGenError):
    """Input validation failed."""

    def __init__(self, message: str, errors: Optional[List[str]] = None,
                 stage: Optional[str] = None) -> None:
        self.errors = errors or []
        super().__init__(message, stage)


class ConfigurationError(RepGenError):
    """Configuration error."""

    def __init__(self, message: str, config_path: Optional[Path] = None,
                 stage: Optional[str] = None) -> None:
        self.config_path = config_path
        super().__init__(message, stage)
