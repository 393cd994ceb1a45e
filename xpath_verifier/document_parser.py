"""
Document Parser: raw markup → lenient HTML tree.

Every backend produces an lxml element tree, so the same compiled XPath
queries run against documents regardless of which tree builder made them:

  lxml          libxml2's HTML parser in recover mode (default, fastest)
  html5lib      WHATWG parsing algorithm, i.e. what a browser builds
  beautifulsoup BeautifulSoup (html5lib features) converted to lxml

All three tolerate unclosed tags, unknown element names and decode numeric
and named character references.  Element names are lower-cased, as HTML
element names are case-insensitive.

Parsing is pure: a failure is returned as a value on ParsedDocument and
never raised, so one broken document cannot affect the others.
"""

from dataclasses import dataclass, field
from typing import Optional

import html5lib
from lxml import etree
from lxml.html import soupparser

from .config import ParserBackend
from .preprocessor import MarkupSanitizer
from .exceptions import DocumentParseError
from .logger import get_module_logger

logger = get_module_logger("document_parser")


@dataclass(frozen=True)
class ParsedDocument:
    """Parsed tree for one url, or the reason there is none."""
    url: str
    tree: Optional[etree._Element] = None
    error: Optional[DocumentParseError] = None
    warnings: tuple = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.tree is not None


def _parse_lxml(markup: str) -> Optional[etree._Element]:
    # Feed UTF-8 bytes with the encoding pinned: str input carrying an XML
    # encoding declaration is rejected by lxml, and a <meta charset> must not
    # override what the caller already decoded.  A fresh parser per call
    # because parser instances are not shared across threads.
    parser = etree.HTMLParser(encoding="utf-8", recover=True)
    return etree.fromstring(markup.encode("utf-8"), parser)


def _parse_html5lib(markup: str) -> Optional[etree._Element]:
    document = html5lib.parse(markup, treebuilder="lxml", namespaceHTMLElements=False)
    return document.getroot()


def _parse_beautifulsoup(markup: str) -> Optional[etree._Element]:
    return soupparser.fromstring(markup, features="html5lib")


_BACKENDS = {
    ParserBackend.LXML: _parse_lxml,
    ParserBackend.HTML5LIB: _parse_html5lib,
    ParserBackend.BEAUTIFULSOUP: _parse_beautifulsoup,
}


def parse_document(
    url: str,
    markup: str,
    backend: ParserBackend = ParserBackend.LXML,
    sanitize: bool = True
) -> ParsedDocument:
    """
    Parse one document.

    Args:
        url: Document key, used in diagnostics
        markup: Raw markup
        backend: Tree builder to use
        sanitize: Strip characters the tree builder rejects before parsing

    Returns:
        ParsedDocument with either tree or error set
    """
    warnings: list[str] = []
    if sanitize:
        markup, warnings = MarkupSanitizer().sanitize(markup)

    try:
        root = _BACKENDS[ParserBackend(backend)](markup)
    except (etree.LxmlError, ValueError, RecursionError) as e:
        # UnicodeEncodeError is a ValueError: unsanitized surrogates end up here.
        # soupparser converts the tree recursively, so very deep nesting overflows
        error = DocumentParseError(
            f"Failed to parse document: {e}",
            url=url,
            details={"backend": ParserBackend(backend).value}
        )
        logger.warning(f"Failed to parse content for URL '{url}': {e}")
        return ParsedDocument(url=url, error=error, warnings=tuple(warnings))

    if root is None:
        error = DocumentParseError("Document is empty", url=url)
        logger.warning(f"Parsed content for URL '{url}' has no root element")
        return ParsedDocument(url=url, error=error, warnings=tuple(warnings))

    return ParsedDocument(url=url, tree=root, warnings=tuple(warnings))
