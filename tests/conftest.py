"""
Test configuration and shared fixtures for resume2pdf tests
"""
import io
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Dict, Optional
from unittest.mock import AsyncMock, Mock

from pypdf import PdfWriter

from resume2pdf.utils import get_default_config

POINTS_PER_MM = 72 / 25.4

RESUME_HTML = """
<html><body>
  <aside class="sidebar" style="height: 100vh; overflow-y: auto">
    <div class="profile-section" style="max-height: 320px">Profile</div>
    <div class="skills-section">
      <div class="skill-bar"><div class="skill-level" data-level="85" style="width: 0"></div></div>
      <div class="skill-bar"><div class="skill-level" data-level=""></div></div>
    </div>
  </aside>
  <main>
    <section class="content-card collapsible collapsed">
      <h2 class="card-title">Project</h2>
      <div class="card-content" style="display: none">Details</div>
    </section>
    <div class="mermaid"><svg><text x="0">Node</text></svg></div>
    <button class="print-btn pdf-exclude">PDF</button>
    <section class="page-break">Portfolio</section>
  </main>
</body></html>
"""


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def site_root(temp_dir):
    """Static site with the pages the default targets point at"""
    root = temp_dir / 'site'
    (root / 'css').mkdir(parents=True)
    (root / 'img').mkdir()
    (root / 'resume.html').write_text(
        '<html><head><link rel="stylesheet" href="css/style.css"></head>'
        '<body><div class="sidebar">Profile</div><main>이력서</main></body></html>',
        encoding='utf-8'
    )
    (root / 'portfolio.html').write_text(
        '<html><body><div class="mermaid">graph TD; A-->B;</div></body></html>',
        encoding='utf-8'
    )
    (root / 'index.html').write_text('<html><body>Home</body></html>', encoding='utf-8')
    (root / 'css' / 'style.css').write_text('body { margin: 0; }', encoding='utf-8')
    (root / 'img' / 'profile.png').write_bytes(b'\x89PNG\r\n\x1a\n fake')
    (root / 'site.webmanifest').write_text('{"name": "resume"}', encoding='utf-8')
    (root / 'notes.xyz').write_bytes(b'binary')
    return root


@pytest.fixture
def sample_config(temp_dir, site_root):
    """Default configuration tuned for fast tests"""
    config = get_default_config()
    config['server']['root'] = str(site_root)
    config['server']['port'] = 0
    config['export']['output_dir'] = str(temp_dir / 'dist')
    config['preparation']['settle_delay'] = 0
    config['preparation']['poll_interval'] = 0.01
    config['preparation']['font_timeout'] = 0.2
    config['preparation']['navigation_retries'] = 1
    config['preparation']['diagram']['timeout'] = 0.2
    config['preparation']['diagram']['library_timeout'] = 0.2
    return config


def build_pdf(width_mm: float = 210, height_mm: float = 297, pages: int = 1) -> bytes:
    """Blank PDF with the given page geometry"""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width_mm * POINTS_PER_MM, height=height_mm * POINTS_PER_MM)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes():
    """Factory for fixture PDFs"""
    return build_pdf


def make_page(evaluate_results: Optional[Dict[str, object]] = None, pdf_data: Optional[bytes] = None):
    """
    Mock Playwright page.

    ``evaluate_results`` maps a script string to a value or a callable taking
    the evaluate argument; unknown scripts evaluate to None.
    """
    results = evaluate_results or {}
    page = AsyncMock()

    async def evaluate(script, arg=None):
        value = results.get(script)
        return value(arg) if callable(value) else value

    page.evaluate.side_effect = evaluate
    response = Mock()
    response.ok = True
    response.status = 200
    page.goto.return_value = response
    if pdf_data is not None:
        page.pdf.return_value = pdf_data
    return page


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def resume_html():
    """Résumé markup carrying every class the print ruleset targets"""
    return RESUME_HTML
