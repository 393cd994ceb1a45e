"""
XPath Verifier

Checks, for a batch of HTML documents, whether content selected by XPath
expressions equals the value each document expects for the expression's
heading (a named group of alternative expressions).
- Document Parser:      lenient HTML → lxml tree, once per url per run
- Expression Compiler:  XPath text → lxml query, once per expression per run
- Match Evaluator:      canonical string value vs. expected target
- Scheduler:            concurrent units per (expression, document), joined per expression
- Aggregator:           expression → successful / unsuccessful urls

Public API surface:
  Orchestration: XPathVerifier, verify_xpaths, extract_values
  Configuration: VerifierConfig, ParserBackend
  Data models: VerificationInput, DocumentPayload, VerificationReport, ExpressionReport
  Error types: InputError (fatal); the others are absorbed into NoMatch
"""

# --- Orchestration ---
from .main import XPathVerifier, VerificationRun, verify_xpaths, extract_values

# --- Configuration ---
from .config import VerifierConfig, ParserBackend

# --- Data models ---
from .schemas import (
    VerificationInput,
    DocumentPayload,
    VerificationReport,
    ExpressionReport,
    Outcome,
    OutcomeReason,
)

# --- Input / output helpers ---
from .loader import load_input, load_input_file, dump_report

# --- Exceptions (callers only ever see InputError) ---
from .exceptions import (
    VerifierError,
    InputError,
    DocumentParseError,
    ExpressionCompileError,
    EvaluationError,
)

__version__ = "0.1.0"
__all__ = [
    "XPathVerifier",
    "VerificationRun",
    "verify_xpaths",
    "extract_values",
    "VerifierConfig",
    "ParserBackend",
    "VerificationInput",
    "DocumentPayload",
    "VerificationReport",
    "ExpressionReport",
    "Outcome",
    "OutcomeReason",
    "load_input",
    "load_input_file",
    "dump_report",
    "VerifierError",
    "InputError",
    "DocumentParseError",
    "ExpressionCompileError",
    "EvaluationError",
]
