#!/usr/bin/env python3
"""
PDF Emission Stage

Asks the browser for one paginated document from the prepared tab, checks
that the bytes are a readable PDF, and only then moves it into place. A
failed target never leaves a partial or corrupt file at its output path.
"""

import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .exceptions import PDFWriteError
from .targets import PageMode, Target
from .utils import format_file_size

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b'%PDF-'
POINTS_PER_MM = 72 / 25.4


@dataclass
class PdfInfo:
    """Geometry of a produced PDF."""
    pages: int
    width_mm: float
    height_mm: float
    size_bytes: int


def build_pdf_options(target: Target, pdf_config: Dict[str, Any]) -> Dict[str, Any]:
    """Keyword arguments for ``Page.pdf`` according to the target's page mode."""
    margins = pdf_config.get('margins', {})
    options = {
        'print_background': pdf_config.get('print_background', True),
        'display_header_footer': False,
        'margin': {side: str(margins.get(side, '12mm')) for side in ('top', 'right', 'bottom', 'left')},
    }

    if target.page_mode is PageMode.EXPLICIT:
        options.update({
            'width': f"{target.width_mm:g}mm",
            'height': f"{target.height_mm:g}mm",
            'prefer_css_page_size': False,
            # One continuous sheet; anything past the declared height is cut
            'page_ranges': '1',
        })
    else:
        options.update({
            'format': pdf_config.get('format', 'A4'),
            'prefer_css_page_size': True,
            'landscape': target.landscape,
        })
    return options


def inspect_pdf(data: bytes, target_name: str = 'pdf') -> PdfInfo:
    """Validate the signature and read page count and first-page size."""
    if not data or not data.startswith(PDF_SIGNATURE):
        raise PDFWriteError(target_name, "Browser returned data without a PDF signature")
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = len(reader.pages)
        if pages < 1:
            raise PDFWriteError(target_name, "Browser returned a PDF with no pages")
        box = reader.pages[0].mediabox
    except (PdfReadError, ValueError) as e:
        raise PDFWriteError(target_name, f"Browser returned an unreadable PDF: {e}") from e

    return PdfInfo(
        pages=pages,
        width_mm=round(float(box.width) / POINTS_PER_MM, 1),
        height_mm=round(float(box.height) / POINTS_PER_MM, 1),
        size_bytes=len(data),
    )


def write_atomically(data: bytes, output: Path, target_name: str = 'pdf') -> Path:
    """Write to a sibling ``.part`` file and rename it over ``output``."""
    output = Path(output)
    if not output.parent.is_dir():
        raise PDFWriteError(target_name, f"Output directory does not exist: {output.parent}")

    partial = output.with_name(output.name + '.part')
    try:
        with open(partial, 'wb') as f:
            f.write(data)
        os.replace(partial, output)
    except OSError as e:
        raise PDFWriteError(target_name, f"Could not write {output}: {e}") from e
    finally:
        if partial.exists():
            partial.unlink()
    return output


class PDFEmitter:
    """Renders the current DOM of a tab into the target's PDF file."""

    def __init__(self, config: Dict[str, Any]):
        self.pdf_config = config.get('pdf', {})

    async def emit(self, page: Page, target: Target) -> PdfInfo:
        options = build_pdf_options(target, self.pdf_config)
        logger.debug(f"[{target.name}] PDF options: {options}")

        try:
            data = await page.pdf(**options)
        except PlaywrightError as e:
            raise PDFWriteError(target.name, f"Browser could not print page: {e}") from e

        info = inspect_pdf(data, target.name)
        write_atomically(data, target.output, target.name)
        logger.info(
            f"[{target.name}] Wrote {target.output} "
            f"({info.pages} page(s), {info.width_mm:g}x{info.height_mm:g}mm, {format_file_size(info.size_bytes)})"
        )
        return info
