"""
Input deserialization and report serialization.

This is the only place raw JSON is touched.  Anything wrong with the input
surfaces here as InputError, before a single document is parsed.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .schemas import VerificationInput
from .exceptions import InputError
from .logger import get_module_logger

logger = get_module_logger("loader")


def _reject_duplicate_keys(pairs: list) -> dict:
    """object_pairs_hook: urls and headings are unique keys, so a repeat is an input error."""
    result = {}
    for key, value in pairs:
        if key in result:
            raise InputError(f"Duplicate key in input: {key!r}", errors=[f"duplicate key: {key}"])
        result[key] = value
    return result


def _format_validation_errors(error: ValidationError) -> list[str]:
    problems = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location or '<root>'}: {err.get('msg', 'invalid value')}")
    return problems


def load_input(data: Union[str, bytes, Mapping]) -> VerificationInput:
    """
    Deserialize and validate verifier input.

    Args:
        data: JSON text/bytes, or an already-decoded mapping

    Returns:
        VerificationInput

    Raises:
        InputError: on malformed JSON, duplicate keys or schema violations
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as e:
            raise InputError(f"Input is not valid JSON: {e}", errors=[str(e)])
        except UnicodeDecodeError as e:
            raise InputError(f"Input is not valid UTF-8: {e}", errors=[str(e)])

    if not isinstance(data, Mapping):
        raise InputError(
            "Input must be a JSON object with 'xpaths' and 'urls'",
            errors=[f"<root>: got {type(data).__name__}"]
        )

    try:
        request = VerificationInput.model_validate(dict(data))
    except ValidationError as e:
        problems = _format_validation_errors(e)
        raise InputError(f"Input failed validation: {len(problems)} problem(s)", errors=problems)

    logger.debug(
        f"Loaded {len(request.xpaths)} headings, {request.expression_count()} expressions, "
        f"{len(request.urls)} documents"
    )
    return request


def load_input_file(path: Union[str, Path]) -> VerificationInput:
    """Read and validate an input file.  I/O errors propagate as OSError."""
    return load_input(Path(path).read_bytes())


def dump_report(output: Mapping) -> str:
    """Serialize a report mapping; keys are sorted so output is stable across runs."""
    # ensure_ascii=False keeps non-ASCII urls and values readable
    return json.dumps(output, indent=2, ensure_ascii=False, sort_keys=True)
