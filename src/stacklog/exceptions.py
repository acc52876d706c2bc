"""
Exception hierarchy for stacklog.

Malformed attributes are never raised; they are absorbed during extraction.
Only failures that indicate a programming error (an unrepresentable payload)
surface as exceptions. Sink write failures propagate unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class StackLogError(Exception):
    """Base class for all stacklog errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class EncodingError(StackLogError, ValueError):
    """Raised when an entry cannot be rendered to JSON.

    The whole entry is discarded; nothing is written to the sink.
    """

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="ENCODING_FAILED", details=details)
