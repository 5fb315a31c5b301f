"""
Extraction Engine for the product page monitor.
Reads structured-data attributes from the loaded document and classifies
availability.
"""
import asyncio
import time
from typing import Tuple

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from pagewatch.config import Config
from pagewatch.errors import MissingFieldError, SelectorTimeoutError
from pagewatch.models.monitoring import (
    CTA_STATE_FIELD,
    AvailabilitySource,
    ExtractedFields,
    MonitoringTarget,
)
from pagewatch.utils.logger import LayerLogger

# Back-ordered items still count as available for monitoring purposes
AVAILABLE_MARKERS = ("instock", "backorder")


def classify_availability(raw: str) -> bool:
    """True if the lower-cased value contains one of AVAILABLE_MARKERS."""
    lowered = raw.lower()
    return any(marker in lowered for marker in AVAILABLE_MARKERS)


class ExtractionEngine:
    """
    Reads one attribute per logical field.

    Fields are independent and read-only, so they are read concurrently.
    Either every field is found or extraction fails as a whole.
    """

    def __init__(self, wait_for_selectors: bool = True, selector_timeout_ms: int = 10000):
        self.wait_for_selectors = wait_for_selectors and selector_timeout_ms > 0
        self.selector_timeout_ms = selector_timeout_ms
        self.logger = LayerLogger("extraction")

    @classmethod
    def from_config(cls, cfg: Config) -> "ExtractionEngine":
        return cls(
            wait_for_selectors=cfg.SELECTOR_TIMEOUT_MS > 0,
            selector_timeout_ms=cfg.SELECTOR_TIMEOUT_MS,
        )

    async def extract(self, page: Page, target: MonitoringTarget) -> ExtractedFields:
        """
        Read every field declared on the target.

        Raises:
            MissingFieldError: a selector matched nothing or the attribute is absent
            SelectorTimeoutError: waiting for a selector exceeded the budget
        """
        self.logger.log_action("extract", "started", fields=sorted(target.fields))
        started = time.perf_counter()

        reads = [
            asyncio.ensure_future(self.read_field(page, name, selector, target.field_attribute))
            for name, selector in target.fields.items()
        ]
        try:
            pairs = await asyncio.gather(*reads)
        except Exception:
            # Stop sibling waits so they cannot overlap the next attempt
            for read in reads:
                read.cancel()
            await asyncio.gather(*reads, return_exceptions=True)
            raise
        values = dict(pairs)

        if "availability" in values:
            is_available = classify_availability(values["availability"])
            source = AvailabilitySource.STRUCTURED_DATA
        elif target.cta_selector:
            cta_state, is_available = await self.read_call_to_action(page, target.cta_selector)
            values[CTA_STATE_FIELD] = cta_state
            source = AvailabilitySource.CALL_TO_ACTION
            self.logger.log_decision(
                decision="use_call_to_action",
                reason="no availability field declared",
                url=target.url,
                cta_state=cta_state,
            )
        else:
            is_available = False
            source = AvailabilitySource.STRUCTURED_DATA

        self.logger.log_timing(
            "extract",
            (time.perf_counter() - started) * 1000,
            availability=values.get("availability"),
            price=values.get("price"),
            is_available=is_available,
        )
        return ExtractedFields(values=values, is_available=is_available, availability_source=source)

    async def read_field(
        self,
        page: Page,
        name: str,
        selector: str,
        attribute: str = "content",
    ) -> Tuple[str, str]:
        """Return (name, raw attribute value) for the first element matching selector."""
        if self.wait_for_selectors:
            try:
                await page.wait_for_selector(
                    selector,
                    state="attached",
                    timeout=self.selector_timeout_ms,
                )
            except PlaywrightTimeoutError as e:
                raise SelectorTimeoutError(name, selector, self.selector_timeout_ms) from e
            except PlaywrightError as e:
                raise MissingFieldError(name, selector, reason=str(e)) from e

        try:
            handle = await page.query_selector(selector)
            if handle is None:
                raise MissingFieldError(name, selector)
            value = await handle.get_attribute(attribute)
        except PlaywrightError as e:
            raise MissingFieldError(name, selector, reason=str(e)) from e

        if value is None:
            raise MissingFieldError(name, selector, reason=f"attribute '{attribute}' absent")
        return name, value

    async def read_call_to_action(self, page: Page, selector: str) -> Tuple[str, bool]:
        """Fallback availability signal: the primary CTA exists and is enabled."""
        try:
            handle = await page.query_selector(selector)
            if handle is None:
                return "absent", False
            enabled = await handle.is_enabled()
        except PlaywrightError as e:
            self.logger.log_error(
                f"Call-to-action check failed: {str(e)}",
                error_type="cta_error",
                selector=selector,
            )
            return "unknown", False
        return ("enabled" if enabled else "disabled"), enabled
