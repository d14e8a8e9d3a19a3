import logging
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp
from uvicorn.importer import import_from_string

from cookie_path_filter.config import Config, load_config
from cookie_path_filter.middleware import CookiePathReplacementMiddleware
from cookie_path_filter.replacement import compile_replacements
from cookie_path_filter.vars import (
    COOKIE_PATH_FILTER_NAME,
    DOWNSTREAM_APP,
    LOG_LEVEL,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
)

logger = logging.getLogger("uvicorn.error")
logger.setLevel(LOG_LEVEL)


def configure_tracing() -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=OTLP_HEADERS or None,
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(otlp_exporter)
        )


def create_app(
    downstream: Optional[ASGIApp] = None,
    config: Optional[Config] = None,
    name: str = COOKIE_PATH_FILTER_NAME,
    instrument: bool = False,
) -> FastAPI:
    """
    Build the FastAPI host with the cookie path filter installed.

    ``downstream`` is mounted at ``/`` behind the filter. Without it the app
    named by ``DOWNSTREAM_APP`` ("module:attribute") is imported, if set.
    With ``instrument`` the app exposes Prometheus metrics on ``/metrics`` and
    is traced with OpenTelemetry.
    """
    if config is None:
        config = load_config()
    # Starlette builds middleware lazily, validate before serving anything
    compile_replacements(config.replacements)

    app = FastAPI(title=SERVICE_NAME)

    @app.get("/health")
    async def health():
        return {"status": "ok", "replacements": len(config.replacements)}

    if instrument:
        Instrumentator().instrument(app).expose(app)
        FastAPIInstrumentor.instrument_app(app)

    if downstream is None and DOWNSTREAM_APP:
        logger.info(f"[CookiePath] Mounting downstream app {DOWNSTREAM_APP}")
        downstream = import_from_string(DOWNSTREAM_APP)
    if downstream is not None:
        app.mount("/", downstream)

    app.add_middleware(CookiePathReplacementMiddleware, config=config, name=name)
    return app


configure_tracing()
app = create_app(instrument=True)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
