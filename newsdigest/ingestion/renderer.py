"""Page renderers: fetch or browser-render a URL into markup."""

import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

import httpx

from ..config import RendererConfig
from ..config.models import DEFAULT_USER_AGENT
from ..errors import ConfigurationError, RenderError

logger = logging.getLogger(__name__)

_SCROLL_SCRIPT = """async ([distance, maxScrolls]) => {
    await new Promise((resolve) => {
        let total = 0;
        let scrolls = 0;
        const timer = setInterval(() => {
            window.scrollBy(0, distance);
            total += distance;
            scrolls += 1;
            if (scrolls >= maxScrolls || total >= document.body.scrollHeight - window.innerHeight) {
                clearInterval(timer);
                resolve();
            }
        }, 150);
    });
}"""


class Renderer(ABC):
    """Turns a URL into rendered page markup."""

    @abstractmethod
    def render(self, url: str, extension_paths: Optional[Sequence[str]] = None) -> str:
        """
        Render a page.

        Raises:
            RenderError: The page could not be loaded or captured
        """

    def render_and_persist(
        self,
        url: str,
        path: Path,
        extension_paths: Optional[Sequence[str]] = None,
    ) -> bool:
        """Render a page and write its markup to ``path``. Returns success."""
        try:
            markup = self.render(url, extension_paths)
        except RenderError as e:
            logger.warning("Render failed for %s: %s", url, e)
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(markup, encoding="utf-8")
        logger.info("Saved raw HTML: %s", path.name)
        return True


class HttpRenderer(Renderer):
    """Plain HTTP fetch. No script execution, extensions are ignored."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml",
            },
        )

    def render(self, url: str, extension_paths: Optional[Sequence[str]] = None) -> str:
        if extension_paths:
            logger.debug("HttpRenderer ignores %d extension(s)", len(extension_paths))
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                message = "Page not found (404)"
            elif status == 403:
                message = "Access forbidden (403)"
            elif status >= 500:
                message = f"Server error ({status})"
            else:
                message = f"HTTP {status}"
            raise RenderError(message, url=url, status=status)
        except httpx.TimeoutException:
            raise RenderError("Request timed out", url=url)
        except httpx.HTTPError as e:
            raise RenderError(f"Request failed: {e}", url=url)

        if not response.text.strip():
            raise RenderError("Empty response body", url=url)
        return response.text


class BrowserRenderer(Renderer):
    """
    Chromium via Playwright, with unpacked extensions loaded.

    Each render launches a fresh persistent context, navigates, waits for the
    page to settle, scrolls to trigger lazy content and captures the DOM.
    Extensions need a headful browser.
    """

    def __init__(self, config: RendererConfig) -> None:
        self.config = config

    def _launch_args(self, extension_paths: Sequence[str]) -> list:
        args = ["--no-sandbox", "--disable-setuid-sandbox", "--window-size=1366,768"]
        if extension_paths:
            joined = ",".join(str(Path(p).expanduser()) for p in extension_paths)
            args.append(f"--disable-extensions-except={joined}")
            args.append(f"--load-extension={joined}")
        return args

    @staticmethod
    def _find_target_page(context, url: str, fallback):
        """The tab showing ``url``'s origin; extensions may open their own tabs."""
        origin = "{0.scheme}://{0.netloc}".format(urlparse(url))
        for page in reversed(context.pages):
            if page.url.startswith(origin):
                return page
        return fallback

    def render(self, url: str, extension_paths: Optional[Sequence[str]] = None) -> str:
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError:
            raise ConfigurationError(
                "The browser renderer needs Playwright: pip install 'newsdigest[browser]'"
            )

        if extension_paths is None:
            extension_paths = self.config.extension_paths

        logger.info("Rendering %s", url)
        try:
            with tempfile.TemporaryDirectory(prefix="newsdigest-profile-") as profile_dir:
                with sync_playwright() as p:
                    context = p.chromium.launch_persistent_context(
                        profile_dir,
                        headless=self.config.headless,
                        args=self._launch_args(extension_paths),
                        user_agent=self.config.user_agent,
                        viewport={"width": 1366, "height": 768},
                    )
                    try:
                        page = context.pages[0] if context.pages else context.new_page()
                        page.goto(
                            url,
                            wait_until="networkidle",
                            timeout=self.config.timeout_s * 1000,
                        )
                        page.wait_for_timeout(self.config.settle_ms)

                        page = self._find_target_page(context, url, page)
                        if self.config.max_scrolls:
                            page.evaluate(_SCROLL_SCRIPT, [150, self.config.max_scrolls])
                            page.wait_for_timeout(3000)

                        return page.content()
                    finally:
                        context.close()
        except PlaywrightError as e:
            raise RenderError(f"Browser render failed: {e}", url=url)


def create_renderer(config: RendererConfig) -> Renderer:
    """Build the configured renderer."""
    if config.kind == "http":
        return HttpRenderer(timeout=config.timeout_s, user_agent=config.user_agent)
    return BrowserRenderer(config)
