"""
Product Page Monitor - invocation entry point and FastAPI application.
"""
import asyncio
import json
import sys
import time
from typing import Any, Dict, Optional, Protocol

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pagewatch.adapters.browser import BrowserSessionManager, LaunchConfig
from pagewatch.adapters.storage import AppwriteStorageClient
from pagewatch.config import Config, config
from pagewatch.errors import ConfigurationError
from pagewatch.layers.evidence import EvidenceCapture
from pagewatch.layers.extraction import ExtractionEngine
from pagewatch.layers.navigation import NavigationController, NavigationPolicy
from pagewatch.layers.reporting import ResultReporter
from pagewatch.layers.retry import RetryCoordinator, RetryPolicy
from pagewatch.models.monitoring import MonitoringTarget
from pagewatch.pipeline import MonitoringPipeline
from pagewatch.utils.logger import end_run, get_logger, start_run


logger = get_logger("main")


class InvocationContext(Protocol):
    """What the hosting runtime hands to `handle`."""

    def log(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class StructlogContext:
    """Invocation context that writes through structlog."""

    def __init__(self, name: str = "invocation"):
        self.logger = get_logger(name)

    def log(self, message: str) -> None:
        self.logger.info("context_log", message=message)

    def error(self, message: str) -> None:
        self.logger.error("context_error", message=message)


def _pick(override: Optional[str], default: Optional[str]) -> Optional[str]:
    """Use the override when given; an empty override clears the default."""
    if override is None:
        return default
    return override.strip() or None


def build_target(cfg: Config, overrides: Optional["MonitorRequest"] = None) -> MonitoringTarget:
    """
    Build the monitored target from settings plus optional request overrides.

    Without an availability selector the call-to-action selector becomes
    the availability signal.

    Raises:
        ValueError: the resulting target is unusable
    """
    overrides = overrides or MonitorRequest()
    availability_selector = _pick(overrides.availability_selector, cfg.AVAILABILITY_SELECTOR)
    price_selector = _pick(overrides.price_selector, cfg.PRICE_SELECTOR)
    cta_selector = _pick(overrides.cta_selector, cfg.CTA_SELECTOR)
    if not availability_selector and not cta_selector:
        raise ValueError("An availability selector or a call-to-action selector is required")

    fields = {}
    if availability_selector:
        fields["availability"] = availability_selector
    if price_selector:
        fields["price"] = price_selector

    return MonitoringTarget(
        url=overrides.url or cfg.TARGET_URL,
        fields=fields,
        cta_selector=cta_selector,
        cookies=overrides.cookies or {},
        headers=overrides.headers or {},
        user_agent=overrides.user_agent or cfg.USER_AGENT,
    )


def build_pipeline(cfg: Config) -> MonitoringPipeline:
    """
    Wire the pipeline from settings.

    Raises:
        ConfigurationError: settings are missing or invalid
    """
    cfg.validate()
    storage = AppwriteStorageClient.from_config(cfg)
    return MonitoringPipeline(
        sessions=BrowserSessionManager(),
        navigator=NavigationController(),
        extractor=ExtractionEngine.from_config(cfg),
        evidence=EvidenceCapture(
            storage=storage,
            bucket_id=cfg.APPWRITE_BUCKET_ID,
            screenshot_timeout_ms=cfg.SCREENSHOT_TIMEOUT_MS,
        ),
        reporter=ResultReporter(include_stack=cfg.DEBUG),
        retry=RetryCoordinator(RetryPolicy.from_config(cfg)),
        launch_config=LaunchConfig.from_config(cfg),
        navigation_policy=NavigationPolicy.from_config(cfg),
    )


async def handle(
    context: Optional[InvocationContext] = None,
    target: Optional[MonitoringTarget] = None,
    cfg: Optional[Config] = None,
    pipeline: Optional[MonitoringPipeline] = None,
) -> Dict[str, Any]:
    """
    Run one monitoring pass.

    Returns {"status": 200|500, "json": body}. Configuration problems are
    reported the same way as run failures, before any browser starts.
    """
    context = context or StructlogContext()
    cfg = cfg or config
    started = time.perf_counter()
    run_id = start_run(target.url if target is not None else cfg.TARGET_URL)

    try:
        cfg.validate()
        if target is None:
            target = build_target(cfg)
        if pipeline is None:
            pipeline = build_pipeline(cfg)
    except (ConfigurationError, ValueError) as e:
        error = e if isinstance(e, ConfigurationError) else ConfigurationError(
            invalid={"settings": str(e)}
        )
        context.error(f"Configuration error: {error.message}")
        report = ResultReporter(include_stack=cfg.DEBUG).build_failure(
            error, None, (time.perf_counter() - started) * 1000
        )
        end_run()
        return {"status": report.status_code, "json": report.to_body()}

    context.log(f"Starting synthetic monitoring run {run_id} for {target.url}")
    try:
        report = await pipeline.run(target)
    finally:
        end_run()

    if report.succeeded:
        context.log(
            f"Product available for purchase: {report.fields.is_available} "
            f"(availability={report.fields.availability_status}, price={report.fields.price})"
        )
    else:
        context.error(f"Critical error during monitoring process: {report.error}")
    context.log(f"Total execution time: {report.execution_time_ms:.2f}ms")

    return {"status": report.status_code, "json": report.to_body()}


# Initialize FastAPI app
app = FastAPI(
    title="Product Page Monitor",
    description="Synthetic monitoring of a product page's availability and price",
    version="1.0.0",
)


class MonitorRequest(BaseModel):
    """Optional overrides for a single monitoring run."""
    url: Optional[str] = None
    availability_selector: Optional[str] = None
    price_selector: Optional[str] = None
    cta_selector: Optional[str] = None
    user_agent: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    cookies: Optional[Dict[str, str]] = None


def get_config() -> Config:
    return config


def get_pipeline(cfg: Config = Depends(get_config)) -> Optional[MonitoringPipeline]:
    """Pipeline per request; None lets `handle` report configuration errors."""
    try:
        return build_pipeline(cfg)
    except (ConfigurationError, ValueError):
        return None


@app.get("/api/health")
async def health_check(cfg: Config = Depends(get_config)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "storage_configured": cfg.is_storage_configured(),
        "configuration_valid": cfg.is_valid(),
    }


@app.post("/api/monitor")
async def run_monitor(
    request: Optional[MonitorRequest] = None,
    cfg: Config = Depends(get_config),
    pipeline: Optional[MonitoringPipeline] = Depends(get_pipeline),
):
    """
    Run one monitoring pass and return the report.

    Status code is 200 on success and 500 on any monitoring failure.
    """
    # With broken settings `handle` reports the configuration error as a 500
    target = None
    if cfg.is_valid():
        try:
            target = build_target(cfg, request)
        except ValueError as e:
            logger.error("invalid_monitor_request", error=str(e))
            raise HTTPException(status_code=400, detail=str(e))

    result = await handle(StructlogContext("api"), target=target, cfg=cfg, pipeline=pipeline)
    return JSONResponse(status_code=result["status"], content=result["json"])


def cli() -> int:
    """Run a single pass and print the JSON body; exit code 0 on success."""
    result = asyncio.run(handle())
    print(json.dumps(result["json"], indent=2))
    return 0 if result["status"] == 200 else 1


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "run":
        sys.exit(cli())
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
