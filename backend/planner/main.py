from __future__ import annotations

from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import plan as plan_routes
from .health import HealthChecker
from .logging_config import SERVICE_NAME, SERVICE_VERSION, configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .settings import Settings, settings
from .synthesizer import PlanSynthesizer
from .utils import add_cors, add_request_id_tracing

logger = get_logger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the API with explicit per-process configuration.

    Required configuration is validated when the app starts serving; a
    ``ConfigError`` there aborts startup.
    """
    cfg = app_settings or settings
    configure_structlog(
        json_logs=not cfg.DEBUG,
        level=cfg.LOG_LEVEL,
        environment=cfg.ENVIRONMENT,
        conference=cfg.CONFERENCE_NAME,
    )

    if cfg.SENTRY_DSN:
        sentry_sdk.init(
            dsn=cfg.SENTRY_DSN,
            environment=cfg.ENVIRONMENT,
            release=cfg.SENTRY_RELEASE or f"{SERVICE_NAME}@{SERVICE_VERSION}",
            integrations=[FastApiIntegration()],
            traces_sample_rate=cfg.SENTRY_TRACES_SAMPLE_RATE,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg.validate_required()
        owned: PlanSynthesizer | None = None
        if getattr(app.state, "synthesizer", None) is None:
            owned = PlanSynthesizer.from_settings(cfg)
            app.state.synthesizer = owned
        logger.info(
            "planner_started",
            model=cfg.PLANNER_MODEL,
            conference=cfg.CONFERENCE_NAME,
            conference_date=str(cfg.CONFERENCE_DATE) if cfg.CONFERENCE_DATE else None,
        )
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.synthesizer = None

    app = FastAPI(
        title="Conference Planner API",
        version=SERVICE_VERSION,
        description="Ranked session recommendations for conference attendees",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.synthesizer = None
    health_checker = HealthChecker(cfg)

    add_cors(app, cfg.allow_origins)
    add_request_id_tracing(app)
    app.add_middleware(PrometheusMiddleware)
    app.include_router(plan_routes.router)

    @app.get("/health")
    async def health():
        """Report whether the planner's collaborators are configured."""
        report = health_checker.check_all()
        status_code = 200 if report.status == "healthy" else 503
        return JSONResponse(content=report.model_dump(), status_code=status_code)

    @app.get("/metrics", include_in_schema=False)
    def metrics():
        """Expose Prometheus metrics."""
        return get_metrics()

    return app


app = create_app()
