"""
Browser lifecycle around a discovery run: launch, navigate, clear overlays,
optionally click through to the application form.
"""

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright, Page
from undetected_playwright import stealth_async

from .config import BrowserConfig
from .logging_config import get_log_dir

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-web-security',
    '--disable-features=VizDisplayCompositor',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding'
]

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'

COOKIE_SELECTORS = [
    '[data-testid="accept-all-cookies"]',
    '[data-testid="cookie-accept-all"]',
    '#accept-all-cookies',
    '#cookie-accept-all',
    '.cookie-accept-all',
    '.accept-all-cookies',
    'button:has-text("Accept All")',
    'button:has-text("Accept Cookies")',
    'button:has-text("Accept")',
    'button:has-text("I Agree")',
    'button:has-text("Got it")',
    'button:has-text("OK")',
    '[id*="cookie"] button',
    '[class*="cookie"] button',
    '[id*="consent"] button',
    '[class*="consent"] button',
    '.cc-compliance button',
    '.gdpr-banner button',
    '.privacy-banner button'
]

CLOSE_SELECTORS = [
    '[aria-label="close"]',
    '[aria-label="Close"]',
    'button[aria-label*="close"]',
    '.modal-close',
    '.dialog-close'
]

APPLY_SELECTORS = [
    'input[type="submit"][value="Apply"]',
    'input[type="submit"][value="Apply Now"]',
    'input[value="Apply"]',
    'input[value="Apply Now"]',
    'button:has-text("Apply Now")',
    'button:has-text("Apply")',
    'a:has-text("Apply Now")',
    'a:has-text("Apply")',
    '.apply-button',
    '.apply-now-button',
    'a[href*="apply"]'
]

NAVIGATION_RETRIES = 3


class BrowserSession:
    """
    Async context manager owning one Chromium instance and one page.

    The page is exclusively driven by this session; callers must not share
    it between concurrent discovery runs.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.logger = logger
        self.session_ts = datetime.now().strftime('%Y%m%d_%H%M%S')
        self._playwright = None
        self.browser = None
        self.context = None
        self.page: Optional[Page] = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self) -> Page:
        self.logger.info("Launching browser...")
        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=LAUNCH_ARGS
        )
        self.context = await self.browser.new_context(
            viewport={'width': 1366, 'height': 960},
            user_agent=USER_AGENT,
            extra_http_headers={
                'Accept-Language': 'en-US,en;q=0.9'
            }
        )
        self.page = await self.context.new_page()

        # Apply stealth mode to make the browser undetectable
        await stealth_async(self.page)
        self._attach_debug_listeners(self.page)
        self.logger.info("Browser initialized successfully")
        return self.page

    async def close(self) -> None:
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self._playwright:
                await self._playwright.stop()
        except Exception as e:
            self.logger.debug(f"Error closing browser: {e}")
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self._playwright = None

    def _attach_debug_listeners(self, page: Page):
        page.on('console', lambda msg: self.logger.debug(f"[console:{msg.type}] {msg.text}"))
        page.on('pageerror', lambda exc: self.logger.debug(f"[pageerror] {exc}"))
        page.on('requestfailed', lambda req: self.logger.debug(f"[requestfailed] {req.url} - {req.failure or 'unknown'}"))

    async def open(self, url: str) -> Page:
        """Navigate to ``url`` and prepare the page for field extraction."""
        if not self.page:
            raise RuntimeError("Browser not started. Use 'async with BrowserSession()' or call start() first.")
        page = self.page

        self.logger.info(f"Navigating to: {url}")
        for attempt in range(NAVIGATION_RETRIES):
            try:
                response = await page.goto(url, timeout=self.config.navigation_timeout, wait_until='domcontentloaded')
                if response and response.status >= 400:
                    self.logger.warning(f"HTTP {response.status} response, but proceeding")
                break
            except Exception as nav_error:
                self.logger.warning(f"Navigation attempt {attempt + 1} failed: {nav_error}")
                if attempt == NAVIGATION_RETRIES - 1:
                    raise
                await asyncio.sleep(0.35)

        await self._wait_for_form_content(page)

        if self.config.dismiss_overlays:
            await self.dismiss_overlays(page)

        if self.config.click_apply_button:
            await self.click_apply_button(page)

        if self.config.wait_for_selector:
            self.logger.info(f"Waiting for selector: {self.config.wait_for_selector}")
            try:
                await page.wait_for_selector(self.config.wait_for_selector, timeout=10000)
            except Exception:
                self.logger.info(f"Selector {self.config.wait_for_selector} not found, continuing...")

        if self.config.scroll_to_bottom:
            self.logger.info("Scrolling to bottom to load dynamic content...")
            await page.evaluate('window.scrollTo(0, document.body.scrollHeight)')
            await page.wait_for_timeout(2000)

        if self.config.wait_time_ms:
            await page.wait_for_timeout(self.config.wait_time_ms)

        await self.save_debug_artifact(page, 'ready_for_discovery')
        return page

    async def _wait_for_form_content(self, page: Page) -> None:
        await page.wait_for_load_state('domcontentloaded', timeout=8000)
        for selector in ['.loading', '.spinner', '.loader']:
            try:
                await page.wait_for_selector(selector, state='detached', timeout=800)
            except Exception:
                pass  # Not found or didn't disappear
        try:
            await page.wait_for_selector('input, textarea, select', timeout=1500)
        except Exception:
            self.logger.debug("No form elements found quickly")

    async def dismiss_overlays(self, page: Page) -> bool:
        """Click away cookie banners and close modals. Returns True if anything was dismissed."""
        self.logger.debug("Attempting to dismiss overlays/cookie banners")
        for frame in page.frames:
            for selector in COOKIE_SELECTORS:
                try:
                    buttons = await frame.query_selector_all(selector)
                except Exception:
                    continue
                for button in buttons:
                    try:
                        box = await button.bounding_box()
                        if not box or box['width'] <= 0 or box['height'] <= 0:
                            continue
                        button_text = await button.text_content() or ""
                        # Skip reject/decline buttons, prefer accept/dismiss
                        if any(word in button_text.lower() for word in ['reject', 'decline', 'deny']):
                            continue
                        await button.click(timeout=1500)
                        self.logger.info(f"Dismissed overlay: {button_text.strip() or selector}")
                        await page.wait_for_timeout(1000)
                        return True
                    except Exception:
                        continue

        for selector in CLOSE_SELECTORS:
            try:
                close_buttons = await page.query_selector_all(selector)
            except Exception:
                continue
            for button in close_buttons:
                try:
                    box = await button.bounding_box()
                    if box and box['width'] > 0 and box['height'] > 0:
                        await button.click(timeout=1000)
                        await page.wait_for_timeout(350)
                        return True
                except Exception:
                    continue
        return False

    async def click_apply_button(self, page: Page) -> bool:
        """Click through to the application form when the posting hides it behind "Apply"."""
        self.logger.info("Looking for Apply button...")
        for selector in APPLY_SELECTORS:
            try:
                button = await page.query_selector(selector)
                if not button or not await button.is_visible():
                    continue
                self.logger.info(f"Found Apply button with selector: {selector}")
                await button.click(timeout=3000)
                await page.wait_for_load_state('domcontentloaded', timeout=self.config.navigation_timeout)
                await page.wait_for_timeout(2000)
                return True
            except Exception as e:
                self.logger.debug(f"Apply button selector {selector} failed: {e}")
                continue
        self.logger.info("No Apply button found")
        return False

    async def save_debug_artifact(self, page: Page, label: str) -> Optional[Path]:
        if not self.config.debug_artifacts:
            return None
        base = get_log_dir() / 'artifacts' / self.session_ts
        base.mkdir(parents=True, exist_ok=True)
        safe = re.sub(r'[^a-zA-Z0-9_.-]+', '_', label)[:80]
        try:
            await page.screenshot(path=str(base / f'{safe}.png'), full_page=True)
            html = await page.content()
            with open(base / f'{safe}.html', 'w', encoding='utf-8') as f:
                f.write(html)
            self.logger.debug(f"Saved debug artifacts: {base / safe}")
        except Exception as e:
            self.logger.debug(f"Debug artifact capture failed: {e}")
        return base
