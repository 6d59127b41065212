#!/usr/bin/env python3
"""
Browser Session

Owns the single headless Chromium instance of an export run. Every export
job gets its own tab from here; tab creation is serialized so jobs started
together never race on the shared browser.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserSession:
    """Async context manager around one Playwright Chromium browser."""

    def __init__(self, config: Dict[str, Any]):
        self.browser_config = config.get('browser', {})
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        # Created in start() so it belongs to the loop that runs the session
        self._page_lock: Optional[asyncio.Lock] = None

    @property
    def viewport(self) -> Dict[str, int]:
        viewport = self.browser_config.get('viewport', {})
        return {
            'width': int(viewport.get('width', 1200)),
            'height': int(viewport.get('height', 1600)),
        }

    def launch_options(self) -> Dict[str, Any]:
        options = {
            'headless': self.browser_config.get('headless', True),
            'args': list(self.browser_config.get('args', [])),
        }
        executable_path = self.browser_config.get('executable_path')
        if executable_path:
            options['executable_path'] = executable_path
        return options

    async def start(self) -> 'BrowserSession':
        if self.browser:
            logger.debug("Browser already started")
            return self

        options = self.launch_options()
        source = options.get('executable_path', 'bundled Chromium')
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(**options)
        except (PlaywrightError, OSError) as e:
            await self.stop()
            raise BrowserLaunchError(f"Could not launch browser ({source}): {e}") from e

        self._page_lock = asyncio.Lock()
        logger.info(f"Browser started ({source}, version {self.browser.version})")
        return self

    async def new_page(self) -> Page:
        """Open a fresh tab with the export viewport."""
        if not self.browser or self._page_lock is None:
            raise BrowserLaunchError("Browser is not running")

        device_scale_factor = self.browser_config.get('viewport', {}).get('device_scale_factor', 1)
        async with self._page_lock:
            return await self.browser.new_page(
                viewport=self.viewport,
                device_scale_factor=device_scale_factor,
            )

    async def stop(self):
        """Close the browser and the Playwright driver; safe to call twice."""
        browser, self.browser = self.browser, None
        playwright, self._playwright = self._playwright, None
        self._page_lock = None
        if browser:
            try:
                await browser.close()
                logger.info("Browser stopped")
            except PlaywrightError as e:
                logger.warning(f"Error stopping browser: {e}")
        if playwright:
            try:
                await playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping Playwright: {e}")

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
