"""
Pydantic schemas defining the contracts at the verifier's boundaries.

VerificationInput:  what the loader hands to the core (headings + documents)
VerificationReport: what the core hands back for serialization
Outcome:            per-(expression, url) classification, kept internal

Data flow:
  raw JSON → loader → VerificationInput → scheduler/evaluator → Outcome
  Outcome list per expression → aggregator → VerificationReport
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, RootModel, field_validator


# --- Input contract ---

class DocumentPayload(BaseModel):
    """One document: raw markup plus expected target per heading."""
    # A heading missing here means "no expectation registered" for this url
    targets: dict[str, str] = Field(default_factory=dict)
    content: str


class VerificationInput(BaseModel):
    """Headings (named groups of alternative expressions) and documents keyed by url."""
    xpaths: dict[str, list[str]]
    urls: dict[str, DocumentPayload] = Field(default_factory=dict)

    @field_validator("xpaths", mode="before")
    @classmethod
    def _accept_flat_expression_list(cls, value: Union[dict, list]):
        """Older inputs list bare expressions; each becomes a heading named after itself."""
        if isinstance(value, list):
            headings: dict[str, list[str]] = {}
            for expression in value:
                if not isinstance(expression, str):
                    # Leave it to the dict[str, list[str]] validation to report
                    return value
                headings.setdefault(expression, [expression])
            return headings
        return value

    def expression_count(self) -> int:
        return sum(len(expressions) for expressions in self.xpaths.values())


# --- Output contract ---

class ExpressionReport(BaseModel):
    """Public result for one expression string."""
    successful: list[str] = Field(default_factory=list)
    unsuccessful: list[str] = Field(default_factory=list)


class VerificationReport(RootModel[dict[str, ExpressionReport]]):
    """expression string → ExpressionReport, keys and url lists sorted."""

    def to_output(self) -> dict:
        return {
            expression: report.model_dump()
            for expression, report in sorted(self.root.items())
        }


# --- Internal classification ---

class OutcomeReason(str, Enum):
    """Why a pair ended up where it did.  Never part of the public report."""
    MATCH = "match"
    VALUE_MISMATCH = "value_mismatch"
    NON_STRING_RESULT = "non_string_result"    # boolean or numeric XPath result
    MISSING_TARGET = "missing_target"
    PARSE_ERROR = "parse_error"
    COMPILE_ERROR = "compile_error"
    EVALUATION_ERROR = "evaluation_error"
    UNIT_FAULT = "unit_fault"                  # unexpected exception caught at the unit boundary
    EXTRACTED = "extracted"                    # value resolved, no comparison requested


class Outcome(BaseModel):
    """Classification of one (expression, url) pair."""
    expression: str
    heading: str
    url: str
    reason: OutcomeReason
    actual: Optional[str] = None    # canonical value, when one was computed
    detail: Optional[str] = None    # error text for diagnostics

    @property
    def matched(self) -> bool:
        return self.reason is OutcomeReason.MATCH
