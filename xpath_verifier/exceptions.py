"""
Custom exceptions for the XPath verifier.

Error philosophy:
  - InputError             → FAIL HARD: nothing is evaluated, caller gets the validation problems.
  - DocumentParseError     → ABSORBED: every (expression, that url) pair becomes NoMatch.
  - ExpressionCompileError → ABSORBED: every (that expression, url) pair becomes NoMatch.
  - EvaluationError        → ABSORBED: only the failing pair becomes NoMatch.

Only InputError ever reaches the caller.  The absorbed errors are stored on
cached values and outcomes so operators can still see why a pair failed.
"""

from typing import Optional


class VerifierError(Exception):
    """Base exception for all XPath verifier errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- FAIL HARD: stops the run before any evaluation ---

class InputError(VerifierError):
    """
    Raised when the raw input is malformed or violates the input schema.

    Surfaced before any document is parsed, so no partial output exists.
    """

    def __init__(self, message: str, errors: Optional[list] = None, details: Optional[dict] = None):
        details = dict(details or {})
        details.setdefault("errors", list(errors or []))
        super().__init__(message, details)
        self.errors = details["errors"]

    def to_response(self) -> dict:
        return {
            "error": "InputError",
            "message": self.message,
            "details": self.details
        }


# --- ABSORBED: converted to NoMatch for the affected pairs ---

class DocumentParseError(VerifierError):
    """Raised when a document's markup does not yield a usable tree."""

    def __init__(self, message: str, url: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.url = url


class ExpressionCompileError(VerifierError):
    """Raised when an XPath expression is syntactically invalid."""

    def __init__(self, message: str, expression: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.expression = expression


class EvaluationError(VerifierError):
    """Raised when a compiled query fails against one specific tree."""

    def __init__(self, message: str, expression: str, url: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.expression = expression
        self.url = url
