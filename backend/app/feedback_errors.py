"""Errors raised inside the feedback pipeline. Both are absorbed by the pipeline."""

from __future__ import annotations

from typing import Optional


class RemoteCallError(RuntimeError):
    """The completion proxy was unreachable or answered with an unusable response."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(ValueError):
    """The completion text did not contain a JSON object that could be repaired."""

    def __init__(self, message: str, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


__all__ = ["ParseError", "RemoteCallError"]
