"""Error codes and typed exceptions for drawing preview conversion.

Fatal conditions (missing source, unsupported extension, structurally broken
DXF) are raised as ``PreviewError`` subclasses. External converter problems are
reported through ``ConversionStatus`` on the adapter result and recovered by the
orchestrator, so they only appear here as codes for logs and metrics.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INPUT_ERROR = "INPUT_ERROR"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    PARSE_CORRUPTED = "PARSE_CORRUPTED"
    # Recovered locally (secondary tool, then placeholder)
    EXTERNAL_TOOL_UNAVAILABLE = "EXTERNAL_TOOL_UNAVAILABLE"
    EXTERNAL_TOOL_FAILED = "EXTERNAL_TOOL_FAILED"
    EXTERNAL_TOOL_TIMEOUT = "EXTERNAL_TOOL_TIMEOUT"
    # Best effort; never fails the conversion
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"


class PreviewError(Exception):
    """Base class for fatal preview errors surfaced to callers."""

    code: ErrorCode = ErrorCode.INPUT_ERROR
    stage: str = "preview"

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "stage": self.stage,
        }
        if self.path:
            result["path"] = self.path
        return result


class SourceNotFoundError(PreviewError):
    code = ErrorCode.SOURCE_NOT_FOUND
    stage = "source"


class UnsupportedFormatError(PreviewError):
    code = ErrorCode.UNSUPPORTED_FORMAT
    stage = "source"


class ParseCorruptedError(PreviewError):
    code = ErrorCode.PARSE_CORRUPTED
    stage = "parse"


__all__ = [
    "ErrorCode",
    "PreviewError",
    "SourceNotFoundError",
    "UnsupportedFormatError",
    "ParseCorruptedError",
]
