"""
Browser Session Manager for the product page monitor.
Owns the lifecycle of a headless Chromium instance and guarantees cleanup.
"""
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
)

from pagewatch.config import Config
from pagewatch.errors import LaunchError
from pagewatch.models.monitoring import MonitoringTarget
from pagewatch.utils.logger import LayerLogger


@dataclass(frozen=True)
class LaunchConfig:
    """How the headless browser is started."""
    args: List[str] = field(default_factory=lambda: [
        "--no-sandbox",
        "--disable-gpu",
        "--disable-dev-shm-usage",
    ])
    viewport_width: int = 1920
    viewport_height: int = 1080
    executable_path: Optional[str] = None
    headless: bool = True

    @classmethod
    def from_config(cls, cfg: Config) -> "LaunchConfig":
        return cls(
            args=list(cfg.BROWSER_ARGS),
            viewport_width=cfg.VIEWPORT_WIDTH,
            viewport_height=cfg.VIEWPORT_HEIGHT,
            executable_path=cfg.CHROMIUM_EXECUTABLE_PATH,
        )


class BrowserSession:
    """
    One launched browser with a single context.

    Pages opened here belong to the step that opened them; that step
    closes them before the session is released.
    """

    def __init__(self, playwright: Playwright, browser: Browser, context: BrowserContext):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.released = False

    async def new_page(self) -> Page:
        if self.released:
            raise LaunchError("Browser session already released")
        return await self.context.new_page()


class BrowserSessionManager:
    """
    Acquires and releases browser sessions.

    `session()` is the scoped form used by the pipeline: release runs on
    every exit path, including cancellation.
    """

    def __init__(self, playwright_factory: Callable = async_playwright):
        self.logger = LayerLogger("browser_session")
        self._playwright_factory = playwright_factory

    async def acquire(
        self,
        launch_config: LaunchConfig,
        target: Optional[MonitoringTarget] = None,
    ) -> BrowserSession:
        """
        Launch the browser and open a context for the target.

        Raises:
            LaunchError: the browser process or its context could not start
        """
        self.logger.log_action(
            "launch_browser",
            "started",
            executable_path=launch_config.executable_path,
            args=launch_config.args,
        )
        started = time.perf_counter()

        playwright = None
        browser = None
        try:
            playwright = await self._playwright_factory().start()
            launch_kwargs = {"headless": launch_config.headless, "args": launch_config.args}
            if launch_config.executable_path:
                launch_kwargs["executable_path"] = launch_config.executable_path
            browser = await playwright.chromium.launch(**launch_kwargs)
            context = await browser.new_context(**self._context_options(launch_config, target))
            if target is not None and target.cookies:
                await context.add_cookies([
                    {"name": name, "value": value, "url": target.url}
                    for name, value in target.cookies.items()
                ])
        except (PlaywrightError, OSError) as e:
            self.logger.log_error(
                f"Browser launch failed: {str(e)}",
                error_type="launch_error",
            )
            await self._close_quietly(browser=browser, playwright=playwright)
            raise LaunchError(f"Browser launch failed: {str(e)}") from e

        self.logger.log_timing("launch_browser", (time.perf_counter() - started) * 1000)
        return BrowserSession(playwright, browser, context)

    async def release(self, session: Optional[BrowserSession]) -> None:
        """Close the session. Safe to call more than once."""
        if session is None or session.released:
            return
        session.released = True
        await self._close_quietly(
            context=session.context,
            browser=session.browser,
            playwright=session.playwright,
        )
        self.logger.log_action("release_browser", "completed")

    @asynccontextmanager
    async def session(
        self,
        launch_config: LaunchConfig,
        target: Optional[MonitoringTarget] = None,
    ) -> AsyncIterator[BrowserSession]:
        session = None
        try:
            session = await self.acquire(launch_config, target)
            yield session
        finally:
            await self.release(session)

    async def close_page(self, page: Optional[Page]) -> None:
        """Close a page, tolerating a browser that is already gone."""
        if page is None:
            return
        try:
            await page.close()
        except PlaywrightError as e:
            self.logger.log_error(
                f"Page close failed: {str(e)}",
                error_type="cleanup_error",
            )

    def _context_options(
        self,
        launch_config: LaunchConfig,
        target: Optional[MonitoringTarget],
    ) -> dict:
        options = {
            "viewport": {
                "width": launch_config.viewport_width,
                "height": launch_config.viewport_height,
            },
        }
        if target is not None:
            if target.user_agent:
                options["user_agent"] = target.user_agent
            if target.headers:
                options["extra_http_headers"] = dict(target.headers)
        return options

    async def _close_quietly(self, context=None, browser=None, playwright=None) -> None:
        for resource, closer in (
            (context, "close"),
            (browser, "close"),
            (playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except PlaywrightError as e:
                self.logger.log_error(
                    f"Cleanup step failed: {str(e)}",
                    error_type="cleanup_error",
                    resource=type(resource).__name__,
                )
