"""
Rendering Context

Responsibilities:
- Launches and owns the headless browser used for PDF export
- Loads HTML markup into a page and exports it as PDF

Owns: The browser process and page, PDF export options
Never: Reads input files or writes output files
"""

from pme.contexts.rendering.document_renderer import DocumentRenderer, encode_html

__all__ = ["DocumentRenderer", "encode_html"]
