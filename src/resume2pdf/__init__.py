#!/usr/bin/env python3
"""
resume2pdf
==========

Exports the static résumé and portfolio pages to PDF with headless Chromium.

Pipeline per target:
- Static file server: serves the site root over local HTTP
- Preparation: request filtering, fonts, Mermaid diagram readiness
- Normalization: pins responsive/collapsible UI into its print state
- Emission: A4 (CSS @page) or explicit-size PDF, written atomically

Usage:
    from resume2pdf import PDFExporter, load_config

    summary = PDFExporter(load_config()).run()
"""

__version__ = "1.0.0"

from .exporter import ExportSummary, PDFExporter
from .targets import PageMode, Target
from .utils import load_config

__all__ = [
    'PDFExporter',
    'ExportSummary',
    'Target',
    'PageMode',
    'load_config',
]
