"""
Unit tests for the browser session
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, Mock, patch

from playwright.async_api import Error as PlaywrightError

from resume2pdf.browser import BrowserSession
from resume2pdf.exceptions import BrowserLaunchError


def fake_playwright(launch_side_effect=None):
    """async_playwright() replacement whose chromium.launch can be scripted"""
    playwright = Mock()
    playwright.stop = AsyncMock()
    browser = Mock(version='120.0.6099.0')
    browser.close = AsyncMock()
    browser.new_page = AsyncMock(return_value=Mock(name='page'))
    playwright.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_side_effect)

    context_manager = Mock()
    context_manager.start = AsyncMock(return_value=playwright)
    return Mock(return_value=context_manager), playwright, browser


class TestLaunchOptions:
    """Test how configuration maps onto launch arguments"""

    def test_bundled_browser(self, sample_config):
        options = BrowserSession(sample_config).launch_options()

        assert options['headless'] is True
        assert '--no-sandbox' in options['args']
        assert '--disable-dev-shm-usage' in options['args']
        assert 'executable_path' not in options

    def test_executable_override(self, sample_config):
        sample_config['browser']['executable_path'] = '/usr/bin/chromium'
        options = BrowserSession(sample_config).launch_options()
        assert options['executable_path'] == '/usr/bin/chromium'

    def test_viewport(self, sample_config):
        sample_config['browser']['viewport'] = {'width': 1440, 'height': 900}
        assert BrowserSession(sample_config).viewport == {'width': 1440, 'height': 900}


class TestBrowserSession:
    """Test the session lifecycle"""

    def test_start_and_stop(self, sample_config):
        factory, playwright, browser = fake_playwright()

        async def scenario():
            with patch('resume2pdf.browser.async_playwright', factory):
                async with BrowserSession(sample_config) as session:
                    await session.new_page()
                    return session

        session = asyncio.run(scenario())

        browser.new_page.assert_awaited_once_with(
            viewport={'width': 1200, 'height': 1600}, device_scale_factor=1
        )
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert session.browser is None

    def test_launch_failure(self, sample_config):
        sample_config['browser']['executable_path'] = '/missing/chrome'
        factory, playwright, _ = fake_playwright(
            launch_side_effect=PlaywrightError("Failed to launch chromium because executable doesn't exist")
        )

        with patch('resume2pdf.browser.async_playwright', factory):
            with pytest.raises(BrowserLaunchError, match='/missing/chrome'):
                asyncio.run(BrowserSession(sample_config).start())

        playwright.stop.assert_awaited_once()

    def test_new_page_requires_running_browser(self, sample_config):
        with pytest.raises(BrowserLaunchError, match='not running'):
            asyncio.run(BrowserSession(sample_config).new_page())

    def test_stop_is_idempotent(self, sample_config):
        factory, playwright, browser = fake_playwright()
        session = BrowserSession(sample_config)

        async def scenario():
            with patch('resume2pdf.browser.async_playwright', factory):
                await session.start()
            await session.stop()
            await session.stop()

        asyncio.run(scenario())

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()


class TestConcurrentTabs:
    """Test tab creation from several jobs at once"""

    @pytest.fixture
    def slow_playwright(self):
        factory, playwright, browser = fake_playwright()
        state = {'inside': 0, 'max_inside': 0}

        async def new_page(**kwargs):
            state['inside'] += 1
            state['max_inside'] = max(state['max_inside'], state['inside'])
            await asyncio.sleep(0.01)
            state['inside'] -= 1
            return Mock(name='page')

        browser.new_page = AsyncMock(side_effect=new_page)
        return factory, browser, state

    def test_gathered_new_page_calls_are_serialized(self, sample_config, slow_playwright):
        factory, browser, state = slow_playwright
        # Built outside any event loop, as PDFExporter does
        session = BrowserSession(sample_config)

        async def scenario():
            with patch('resume2pdf.browser.async_playwright', factory):
                await session.start()
            try:
                return await asyncio.gather(*(session.new_page() for _ in range(3)))
            finally:
                await session.stop()

        pages = asyncio.run(scenario())

        assert len(pages) == 3
        assert browser.new_page.await_count == 3
        assert state['max_inside'] == 1

    def test_session_restarts_in_a_new_event_loop(self, sample_config, slow_playwright):
        factory, browser, _ = slow_playwright
        session = BrowserSession(sample_config)

        async def scenario():
            with patch('resume2pdf.browser.async_playwright', factory):
                async with session:
                    return await asyncio.gather(*(session.new_page() for _ in range(3)))

        assert len(asyncio.run(scenario())) == 3
        assert len(asyncio.run(scenario())) == 3
        assert browser.new_page.await_count == 6
