"""
Document Renderer.

Renders EOB documents with the export formatters.
"""

from claimflow.core.enums import EOBFormat
from claimflow.schemas.eob import EOBDocument
from claimflow.services.adapters.base import AdapterMode, DocumentRenderer
from claimflow.utils.export_formatters import format_as_html, format_as_json, format_as_text


class FormattedDocumentRenderer(DocumentRenderer):
    """Renders documents as JSON, HTML or plain text."""

    FORMATTERS = {
        EOBFormat.JSON: format_as_json,
        EOBFormat.HTML: format_as_html,
        EOBFormat.TEXT: format_as_text,
    }

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        super().__init__(mode)

    def render(self, document: EOBDocument, fmt: EOBFormat) -> str:
        return self.FORMATTERS[fmt](document)
