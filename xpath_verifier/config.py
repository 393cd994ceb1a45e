"""
Run configuration for the XPath verifier.

Values come from explicit arguments first, then XPATH_VERIFIER_* environment
variables (the CLI loads a .env file into the environment beforehand), then
the defaults below.
"""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import InputError

ENV_PREFIX = "XPATH_VERIFIER_"


class ParserBackend(str, Enum):
    """Tree builders available to the document parser.  All produce lxml trees."""
    LXML = "lxml"
    HTML5LIB = "html5lib"
    BEAUTIFULSOUP = "beautifulsoup"


class VerifierConfig(BaseModel):
    """Settings for one verification run."""
    max_workers: Optional[int] = Field(default=None, ge=1)   # None → executor default
    parser_backend: ParserBackend = ParserBackend.LXML
    sanitize_markup: bool = True
    # Diagnostic mode: evaluate pairs with no registered target and log the
    # value they would have produced.  The pair is still NoMatch.
    evaluate_missing_targets: bool = False
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides) -> "VerifierConfig":
        """
        Build a config from environment variables.

        Args:
            prefix: Environment variable prefix
            **overrides: Explicit values; None means "not given"

        Returns:
            VerifierConfig

        Raises:
            InputError: if a value cannot be validated
        """
        values = {}
        for field_name in cls.model_fields:
            raw = os.getenv(f"{prefix}{field_name.upper()}")
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise InputError(
                f"Invalid verifier configuration: {e.error_count()} problem(s)",
                errors=[_describe(err) for err in e.errors()]
            )


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', 'invalid value')}"
