# src/groovy2cs/transpile/errors.py
from __future__ import annotations

from typing import Optional


class TranslationError(Exception):
    """
    Base error for every stage of a translation unit (normalize, parse, transform).

    Each error aborts its unit; the registry turns it into an Anomaly.
    """
    def __init__(
        self,
        code: str,
        message: str,
        *,
        line_start: Optional[int] = None,
        line_end: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.line_start = line_start
        self.line_end = line_end if line_end is not None else line_start
        self.detail = detail or ""

    def describe(self) -> str:
        out = f"{self.code}: {self.message}"
        if self.line_start is not None:
            out += f" (line {self.line_start})"
        if self.detail:
            out += f" | {self.detail}"
        return out


class StructuralError(TranslationError):
    """Unbalanced input detected by the normalizer at end of input."""
    def __init__(self, construct: str, opened_at: Optional[int], message: Optional[str] = None) -> None:
        super().__init__(
            "STRUCTURAL",
            message or f"Unterminated {construct}",
            line_start=opened_at,
            detail=f"construct={construct}",
        )
        self.construct = construct
        self.opened_at = opened_at


class MissingConstructError(TranslationError):
    """A required child of a parse node is absent."""
    def __init__(
        self,
        construct: str,
        missing: str,
        *,
        line_start: Optional[int] = None,
        line_end: Optional[int] = None,
        source: str = "",
    ) -> None:
        super().__init__(
            "MISSING_CONSTRUCT",
            f"{construct} is missing its {missing}",
            line_start=line_start,
            line_end=line_end,
            detail=source,
        )
        self.construct = construct
        self.missing = missing


class UnsupportedConstructError(TranslationError):
    """A construct, operator or literal has no mapping onto C#."""
    def __init__(
        self,
        construct: str,
        *,
        line_start: Optional[int] = None,
        line_end: Optional[int] = None,
        source: str = "",
    ) -> None:
        super().__init__(
            "UNSUPPORTED_CONSTRUCT",
            f"Unsupported construct: {construct}",
            line_start=line_start,
            line_end=line_end,
            detail=source,
        )
        self.construct = construct
        self.source = source


class TypeMismatchError(TranslationError):
    """A child produced a C# node of the wrong category."""
    def __init__(
        self,
        expected: str,
        actual: str,
        *,
        line_start: Optional[int] = None,
        line_end: Optional[int] = None,
        source: str = "",
    ) -> None:
        super().__init__(
            "TYPE_MISMATCH",
            f"Expected {expected}, got {actual}",
            line_start=line_start,
            line_end=line_end,
            detail=source,
        )
        self.expected = expected
        self.actual = actual
