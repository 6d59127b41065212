#!/usr/bin/env python3
"""
Page Preparation Stage

Brings one browser tab to a state where a capture is visually complete:
requests are filtered, the viewport is fixed, the page is loaded, Korean
web fonts are injected and awaited, and every Mermaid diagram has finished
rendering into inline SVG.

Only navigation is fatal. Font and diagram waits are bounded and degrade:
a slow diagram yields a PDF with an unrendered diagram rather than no PDF.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route

from .exceptions import NavigationError
from .targets import JobState, Target
from .waiting import poll_until, settle

logger = logging.getLogger(__name__)

FONTS_READY_JS = "() => document.fonts ? document.fonts.status === 'loaded' : true"

COUNT_PLACEHOLDERS_JS = "(selector) => document.querySelectorAll(selector).length"

LIBRARY_READY_JS = "(name) => typeof window[name] !== 'undefined' && window[name] !== null"

DIAGRAMS_READY_JS = """
({selector, minWidth, minHeight, minElements}) => {
  const nodes = Array.from(document.querySelectorAll(selector));
  if (nodes.length === 0) return true;
  return nodes.every((node) => {
    const svg = node.querySelector('svg');
    if (!svg) return false;
    const box = svg.getBoundingClientRect();
    return box.width >= minWidth
      && box.height >= minHeight
      && svg.querySelectorAll('*').length >= minElements;
  });
}
"""


def compile_patterns(patterns: Iterable[str]) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def should_block_request(resource_type: str, url: str, allow_patterns: Iterable[Pattern]) -> bool:
    """Images are dropped unless the URL is on the allow-list."""
    if resource_type != 'image':
        return False
    return not any(p.search(url) for p in allow_patterns)


def build_font_css(stylesheets: Iterable[str], families: Iterable[str]) -> str:
    """CSS importing the web-font stylesheets and pinning the Korean fallback stack."""
    imports = [f"@import url('{url}');" for url in stylesheets]
    stack = ', '.join(f"'{f}'" if ' ' in f else f for f in families)
    rule = (
        "body, .mermaid, .mermaid svg, .mermaid svg text "
        f"{{ font-family: {stack} !important; }}"
    )
    return '\n'.join(imports + [rule])


@dataclass
class PreparationReport:
    """Which waits finished and which degraded for one page."""
    url: str
    placeholders: int = 0
    blocked_requests: int = 0
    degraded: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.degraded


class PagePreparer:
    """Runs the preparation steps for one tab, in a fixed order."""

    def __init__(self, config: Dict[str, Any]):
        self.prep_config = config.get('preparation', {})
        self.diagram_config = self.prep_config.get('diagram', {})
        self.viewport = config.get('browser', {}).get('viewport', {})
        self.allow_patterns = compile_patterns(self.prep_config.get('image_allow_patterns', []))
        self.poll_interval = float(self.prep_config.get('poll_interval', 0.2))

    async def prepare(self, page: Page, target: Target, url: str,
                      on_stage: Optional[Callable[[JobState], None]] = None) -> PreparationReport:
        """
        Run every preparation step against ``page``.

        Args:
            page: the job's exclusive tab
            target: target being exported (used in log lines and errors)
            url: absolute page URL on the static server
            on_stage: called with each JobState reached

        Returns:
            PreparationReport listing degraded waits

        Raises:
            NavigationError: the page could not be loaded
        """
        report = PreparationReport(url=url)
        advance = on_stage or (lambda state: None)

        if self.prep_config.get('block_images', True):
            await self._install_request_filter(page, report)

        if self.viewport:
            await page.set_viewport_size({
                'width': int(self.viewport.get('width', 1200)),
                'height': int(self.viewport.get('height', 1600)),
            })

        await self.navigate(page, target, url)
        advance(JobState.NAVIGATED)

        media = self.prep_config.get('emulate_media')
        if media:
            await page.emulate_media(media=media)

        await self.inject_fonts(page)

        if not await self.wait_for_fonts(page):
            report.degraded.append('fonts')
        advance(JobState.FONTS_READY)

        report.placeholders = await page.evaluate(
            COUNT_PLACEHOLDERS_JS, self.diagram_config.get('selector', '.mermaid')
        )
        report.degraded.extend(await self.wait_for_diagrams(page, report.placeholders))

        await settle(float(self.prep_config.get('settle_delay', 1.0)))
        advance(JobState.DIAGRAMS_READY)

        if report.degraded:
            logger.warning(f"[{target.name}] Proceeding with degraded page: {', '.join(report.degraded)}")
        else:
            logger.info(f"[{target.name}] Page ready ({report.placeholders} diagram(s))")
        return report

    async def _install_request_filter(self, page: Page, report: PreparationReport):
        async def handle_route(route: Route):
            request = route.request
            if should_block_request(request.resource_type, request.url, self.allow_patterns):
                report.blocked_requests += 1
                logger.debug(f"Blocked image request: {request.url}")
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", handle_route)

    async def navigate(self, page: Page, target: Target, url: str):
        """Load the page; raises NavigationError once retries are exhausted."""
        timeout_ms = float(self.prep_config.get('navigation_timeout', 30)) * 1000
        attempts = 1 + max(int(self.prep_config.get('navigation_retries', 0)), 0)
        last_error: Optional[str] = None

        for attempt in range(1, attempts + 1):
            try:
                logger.debug(f"[{target.name}] Navigating to {url} (attempt {attempt}/{attempts})")
                response = await page.goto(url, wait_until='load', timeout=timeout_ms)
                if response is not None and not response.ok:
                    last_error = f"HTTP {response.status} for {url}"
                    logger.warning(f"[{target.name}] {last_error}")
                    continue
                await page.wait_for_load_state('domcontentloaded', timeout=timeout_ms)
                break
            except PlaywrightError as e:
                last_error = str(e).splitlines()[0] if str(e) else repr(e)
                logger.warning(f"[{target.name}] Navigation attempt {attempt} failed: {last_error}")
        else:
            raise NavigationError(target.name, f"Could not load {url}: {last_error}")

        if self.prep_config.get('wait_for_network_idle', False):
            idle_ms = float(self.prep_config.get('network_idle_timeout', 10)) * 1000
            try:
                await page.wait_for_load_state('networkidle', timeout=idle_ms)
            except PlaywrightError:
                logger.warning(f"[{target.name}] Network did not go idle, continuing")

    async def inject_fonts(self, page: Page):
        css = build_font_css(
            self.prep_config.get('font_stylesheets', []),
            self.prep_config.get('font_families', []),
        )
        try:
            await page.add_style_tag(content=css)
        except PlaywrightError as e:
            logger.warning(f"Could not inject font CSS: {e}")

    async def wait_for_fonts(self, page: Page) -> bool:
        return await poll_until(
            lambda: page.evaluate(FONTS_READY_JS),
            timeout=float(self.prep_config.get('font_timeout', 15)),
            interval=self.poll_interval,
            description="web fonts",
        )

    async def wait_for_diagrams(self, page: Page, placeholders: int) -> List[str]:
        """Wait for the diagram library, then for every placeholder; returns degraded waits."""
        if placeholders == 0:
            return []

        degraded = []
        library = self.diagram_config.get('library_global')
        if library:
            ready = await poll_until(
                lambda: page.evaluate(LIBRARY_READY_JS, library),
                timeout=float(self.diagram_config.get('library_timeout', 10)),
                interval=self.poll_interval,
                description=f"diagram library '{library}'",
            )
            if not ready:
                degraded.append('diagram_library')

        args = {
            'selector': self.diagram_config.get('selector', '.mermaid'),
            'minWidth': self.diagram_config.get('min_width', 10),
            'minHeight': self.diagram_config.get('min_height', 10),
            'minElements': self.diagram_config.get('min_elements', 3),
        }
        rendered = await poll_until(
            lambda: page.evaluate(DIAGRAMS_READY_JS, args),
            timeout=float(self.diagram_config.get('timeout', 20)),
            interval=self.poll_interval,
            description=f"{placeholders} diagram(s) to render",
        )
        if not rendered:
            degraded.append('diagrams')
        return degraded
