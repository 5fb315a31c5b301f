"""
Navigation Controller for the product page monitor.
Drives a page to the target URL and validates the HTTP outcome.
"""
import time
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple
from urllib.parse import urlparse

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    Route,
    TimeoutError as PlaywrightTimeoutError,
)

from pagewatch.config import WAIT_CONDITIONS, Config
from pagewatch.errors import NavigationError, UnexpectedStatusError
from pagewatch.models.monitoring import MonitoringTarget
from pagewatch.utils.logger import LayerLogger


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


@dataclass(frozen=True)
class RequestFilterPolicy:
    """
    Declarative allow/deny rules for sub-resource requests.

    Resource types in `blocked_resource_types` are always aborted. When
    `allowed_origins` is non-empty, only those origins (plus the target's
    own origin) are let through.
    """
    blocked_resource_types: FrozenSet[str] = frozenset({"image", "stylesheet", "font"})
    allowed_origins: Tuple[str, ...] = ()

    def allows(self, resource_type: str, url: str, target_origin: Optional[str] = None) -> bool:
        if resource_type in self.blocked_resource_types:
            return False
        if not self.allowed_origins:
            return True
        origin = origin_of(url)
        return origin == target_origin or origin in self.allowed_origins


@dataclass(frozen=True)
class NavigationPolicy:
    """Load-completion condition, timeout and optional page setup."""
    wait_until: str = "domcontentloaded"
    timeout_ms: int = 30000
    request_filter: Optional[RequestFilterPolicy] = None
    overlay_dismiss_selectors: Tuple[str, ...] = ()
    overlay_timeout_ms: int = 3000

    def __post_init__(self):
        if self.wait_until not in WAIT_CONDITIONS:
            raise ValueError(
                f"wait_until must be one of {', '.join(WAIT_CONDITIONS)}, got {self.wait_until}"
            )

    @classmethod
    def from_config(cls, cfg: Config) -> "NavigationPolicy":
        request_filter = None
        if cfg.BLOCK_RESOURCES:
            request_filter = RequestFilterPolicy(
                blocked_resource_types=frozenset(cfg.BLOCKED_RESOURCE_TYPES),
                allowed_origins=tuple(origin_of(o) for o in cfg.ALLOWED_ORIGINS),
            )
        return cls(
            wait_until=cfg.NAVIGATION_WAIT_UNTIL,
            timeout_ms=cfg.NAVIGATION_TIMEOUT_MS,
            request_filter=request_filter,
            overlay_dismiss_selectors=tuple(cfg.OVERLAY_DISMISS_SELECTORS),
            overlay_timeout_ms=cfg.OVERLAY_TIMEOUT_MS,
        )


@dataclass
class PageLoadResult:
    """Outcome of a successful navigation. Valid only while the page is open."""
    status_code: int
    page: Page = field(repr=False)
    duration_ms: float
    final_url: str


class NavigationController:
    """Loads the target page under a NavigationPolicy."""

    def __init__(self):
        self.logger = LayerLogger("navigation")

    async def prepare(self, page: Page, target: MonitoringTarget, policy: NavigationPolicy) -> None:
        """
        Install the request filter on a fresh page.

        Called once per page, before the first navigation attempt.
        """
        request_filter = policy.request_filter
        if request_filter is None:
            return

        target_origin = origin_of(target.url)

        async def _apply_filter(route: Route):
            request = route.request
            if request_filter.allows(request.resource_type, request.url, target_origin):
                await route.continue_()
            else:
                await route.abort()

        await page.route("**/*", _apply_filter)
        self.logger.log_decision(
            decision="request_filter_installed",
            reason="resource blocking enabled",
            url=target.url,
            blocked_resource_types=sorted(request_filter.blocked_resource_types),
            allowed_origins=list(request_filter.allowed_origins),
        )

    async def navigate(
        self,
        page: Page,
        target: MonitoringTarget,
        policy: NavigationPolicy,
    ) -> PageLoadResult:
        """
        Navigate to the target URL.

        Raises:
            NavigationError: transport failure, timeout, or no response
            UnexpectedStatusError: the document answered with a status other than 200
        """
        self.logger.log_action(
            "navigate",
            "started",
            url=target.url,
            wait_until=policy.wait_until,
            timeout_ms=policy.timeout_ms,
        )
        started = time.perf_counter()

        try:
            response = await page.goto(
                target.url,
                wait_until=policy.wait_until,
                timeout=policy.timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(
                f"Navigation timed out after {policy.timeout_ms}ms: {target.url}"
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation failed for {target.url}: {str(e)}") from e

        duration_ms = (time.perf_counter() - started) * 1000
        if response is None:
            raise NavigationError(f"Navigation returned no response: {target.url}")

        status_code = response.status
        self.logger.log_timing("navigate", duration_ms, url=target.url, status_code=status_code)

        if status_code != 200:
            raise UnexpectedStatusError(status_code, target.url)

        await self.dismiss_overlays(page, policy)

        return PageLoadResult(
            status_code=status_code,
            page=page,
            duration_ms=duration_ms,
            final_url=response.url,
        )

    async def dismiss_overlays(self, page: Page, policy: NavigationPolicy) -> int:
        """
        Click known consent/age-gate dismiss controls if they show up.

        Best effort: a missing or stubborn overlay never fails navigation.
        Returns the number of overlays dismissed.
        """
        if policy.overlay_timeout_ms <= 0:
            return 0

        dismissed = 0
        for selector in policy.overlay_dismiss_selectors:
            try:
                handle = await page.wait_for_selector(
                    selector,
                    state="visible",
                    timeout=policy.overlay_timeout_ms,
                )
                if handle is None:
                    continue
                await handle.click(timeout=policy.overlay_timeout_ms)
                dismissed += 1
                self.logger.log_action("dismiss_overlay", "completed", selector=selector)
            except PlaywrightError as e:
                self.logger.log_decision(
                    decision="overlay_skipped",
                    reason=str(e).splitlines()[0] if str(e) else type(e).__name__,
                    selector=selector,
                )
        return dismissed
