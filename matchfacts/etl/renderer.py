"""
Browser renderer: degraded alternate page source.

Used only when static fetching of a FotMob page is blocked. The pipeline
depends on the `PageRenderer` protocol; `PlaywrightRenderer` is the
production implementation and needs the optional "browser" extra
(playwright is imported lazily in `start()`).
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from matchfacts.config import Settings, get_settings

logger = logging.getLogger(__name__)

CONSENT_BUTTON_NAMES = [
    re.compile(r"Accept.*", re.I),
    re.compile(r"Agree.*", re.I),
    re.compile(r"Allow all.*", re.I),
    re.compile(r"Got it.*", re.I),
    re.compile(r"I understand.*", re.I),
    re.compile(r"Continue.*", re.I),
]

VIEWPORT = {"width": 1360, "height": 2000}
BLOCKED_RESOURCES = {"image", "media", "font"}


@dataclass
class RenderedPage:
    url: str
    final_url: str
    html: str
    text: str


class PageRenderer(Protocol):
    async def render(self, url: str, scrolls: int = 0) -> RenderedPage:
        ...

    async def close(self) -> None:
        ...


class PlaywrightRenderer:
    """Headless Chromium renderer that waits for hydration and dismisses consent dialogs."""

    def __init__(self, settings: Optional[Settings] = None, headless: bool = True):
        self._settings = settings or get_settings()
        self._headless = headless
        self._pw = None
        self._browser = None
        self._context = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Launch browser (idempotent)."""
        async with self._lock:
            if self._browser is not None:
                return
            from playwright.async_api import async_playwright

            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=self._headless,
                args=["--disable-blink-features=AutomationControlled", "--no-sandbox"],
            )
            self._context = await self._browser.new_context(viewport=VIEWPORT, locale="en-US")
            logger.info("[RENDER] Browser started")

    async def _block_resources(self, route):
        if route.request.resource_type in BLOCKED_RESOURCES:
            await route.abort()
        else:
            await route.continue_()

    async def _dismiss_consent(self, page) -> None:
        """Click the first consent button found on the page or any of its frames."""
        for frame in page.frames:
            for name in CONSENT_BUTTON_NAMES:
                button = frame.get_by_role("button", name=name)
                try:
                    if await button.count() > 0:
                        await button.first.click(timeout=2000)
                        logger.debug("[RENDER] Dismissed consent via %s", name.pattern)
                        return
                except Exception as e:
                    logger.debug("[RENDER] Consent click failed (%s): %s", name.pattern, e)

    async def render(self, url: str, scrolls: int = 0) -> RenderedPage:
        """
        Load `url`, dismiss consent, wait for dynamic content, optionally
        scroll `scrolls` times to trigger lazy lists, and return HTML + text.
        """
        await self.start()
        timeout_ms = int(self._settings.RENDERER_TIMEOUT_SECONDS * 1000)
        page = await self._context.new_page()
        await page.route("**/*", self._block_resources)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            await self._dismiss_consent(page)
            try:
                await page.wait_for_load_state("networkidle", timeout=7000)
            except Exception as e:
                logger.debug("[RENDER] networkidle not reached for %s: %s", url, type(e).__name__)
            for _ in range(scrolls):
                await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
                await page.wait_for_timeout(600)
            html = await page.content()
            text = await page.evaluate("() => document.body ? document.body.innerText : ''")
            return RenderedPage(url=url, final_url=page.url, html=html, text=text or "")
        finally:
            await page.close()

    async def close(self) -> None:
        """Clean up browser resources."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._pw:
            await self._pw.stop()
        self._pw = self._browser = self._context = None
        logger.info("[RENDER] Browser closed")
