"""
String-level markup sanitization ahead of tree building.

lxml refuses strings that are not XML-compatible (NULL bytes, most C0
control characters, lone surrogates) instead of recovering from them.  The
sanitizer removes exactly those, so one bad character never turns a whole
document into a parse error.

Design principle: NEVER FAIL. Always return usable markup.
"""

import re

from .logger import get_module_logger

logger = get_module_logger("preprocessor")

# C0 controls other than tab, LF and CR.  Never valid in HTML text content.
CONTROL_CHARS = ''.join(chr(c) for c in range(32) if c not in (9, 10, 13))
_CONTROL_TABLE = str.maketrans('', '', CONTROL_CHARS)

_SURROGATE_PATTERN = re.compile('[\ud800-\udfff]')


class MarkupSanitizer:
    """Rule-based markup sanitizer.  Only removes what the parser cannot accept."""

    def sanitize(self, markup: str) -> tuple[str, list[str]]:
        """
        Sanitize raw markup.

        Args:
            markup: Raw markup string

        Returns:
            Tuple of (sanitized markup, list of warnings)
        """
        warnings = []
        sanitized = markup

        # 1. Lone surrogates cannot be encoded to UTF-8 for the parser
        if _SURROGATE_PATTERN.search(sanitized):
            sanitized = _SURROGATE_PATTERN.sub('\ufffd', sanitized)
            warnings.append("Replaced lone surrogates")

        # 2. NULL bytes
        if '\x00' in sanitized:
            sanitized = sanitized.replace('\x00', '')
            warnings.append("Removed NULL bytes")

        # 3. Normalize line endings to \n so every backend sees the same text
        if '\r' in sanitized:
            sanitized = sanitized.replace('\r\n', '\n').replace('\r', '\n')

        # 4. Remaining control characters
        if any(c in sanitized for c in CONTROL_CHARS):
            sanitized = sanitized.translate(_CONTROL_TABLE)
            warnings.append("Removed control characters")

        logger.debug(f"Sanitization complete. {len(warnings)} fixes applied.")
        return sanitized, warnings


def sanitize(markup: str) -> str:
    """Convenience function returning only the sanitized markup."""
    return MarkupSanitizer().sanitize(markup)[0]
