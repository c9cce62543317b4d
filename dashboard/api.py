"""
Dashboard - API.

============================================================
RESPONSIBILITY
============================================================
Provides the REST API the dashboard front end talks to.

- Read side: status, smoothed scores, latest-scores table, chart
- Control side: smoothing mode, visibility, manual refresh

The application owns one RefreshCoordinator for its lifetime.
A configuration error does not stop the server; every data
endpoint answers 503 with the configuration-error message.
============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from core.clock import ClockProtocol
from core.exceptions import ConfigurationError
from data_sources.base import BaseSentimentSource
from data_sources.registry import create_source
from smoothing import CUSTOM_PRESET_KEY, series_keys

from .charts import PlotlyChartRenderer
from .config import DashboardConfig
from .controls import SmoothingControl
from .coordinator import RefreshCoordinator
from .events import Activate, Deactivate
from .presentation import ChartRenderer, LatestScoresView
from .schemas import (
    ChartResponse,
    HealthResponse,
    LatestScoresResponse,
    RefreshResponse,
    ScorePoint,
    ScoresResponse,
    SmoothingRequest,
    SmoothingResponse,
    StatusResponse,
    VisibilityRequest,
    VisibilityResponse,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Sentiment Dashboard API"
VERSION = "1.0.0"


# ============================================================
# Application factory
# ============================================================

def create_app(
    config: Optional[DashboardConfig] = None,
    source: Optional[BaseSentimentSource] = None,
    renderer: Optional[ChartRenderer] = None,
    clock: Optional[ClockProtocol] = None,
    auto_activate: bool = True,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Settings (read from the environment at startup if None)
        source: Data source (built from config if None)
        renderer: Chart renderer (Plotly if None)
        clock: Clock for the coordinator and source
        auto_activate: Activate the dashboard at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or DashboardConfig.from_env()
        app.state.config = cfg
        app.state.config_error = None
        app.state.coordinator = None
        app.state.control = SmoothingControl()
        app.state.started_at = datetime.now(timezone.utc)

        data_source = source
        if data_source is None:
            try:
                data_source = create_source(cfg, clock)
            except ConfigurationError as e:
                logger.error(f"Dashboard not started: {e} {e.problems}")
                app.state.config_error = e

        if data_source is not None:
            coordinator = RefreshCoordinator(
                data_source,
                lookback_days=cfg.lookback_days,
                alpha=cfg.default_alpha,
                fallback_poll_seconds=cfg.fallback_poll_seconds,
                alpha_debounce_seconds=cfg.alpha_debounce_ms / 1000,
                clock=clock,
            )
            app.state.coordinator = coordinator
            app.state.control = SmoothingControl(
                mode=_matches_preset(cfg.default_alpha) or CUSTOM_PRESET_KEY,
                custom_alpha=cfg.default_alpha,
            )
            if auto_activate:
                await coordinator.activate()

        try:
            yield
        finally:
            if app.state.coordinator is not None:
                await app.state.coordinator.close()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Smoothed sentiment scores per ticker with live refresh",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.renderer = renderer or PlotlyChartRenderer()
    app.state.latest_view = LatestScoresView()

    _register_routes(app)
    return app


def _matches_preset(alpha: float) -> Optional[str]:
    for option in SmoothingControl.options():
        if option["alpha"] is not None and option["alpha"] == alpha:
            return option["key"]
    return None


# ============================================================
# Dependencies
# ============================================================

def get_coordinator(request: Request) -> RefreshCoordinator:
    """The running coordinator, or 503 when configuration failed."""
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail=ConfigurationError.USER_MESSAGE)
    return coordinator


# ============================================================
# API Endpoints
# ============================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/", tags=["Root"])
    async def root(request: Request):
        """Root endpoint."""
        info = {
            "service": SERVICE_NAME,
            "version": VERSION,
            "docs": "/docs",
        }
        if getattr(request.app.state, "config_error", None) is not None:
            info["error"] = ConfigurationError.USER_MESSAGE
        return info

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        now = datetime.now(timezone.utc)
        started = getattr(request.app.state, "started_at", now)
        return HealthResponse(
            status="healthy",
            timestamp=now.isoformat(),
            version=VERSION,
            uptime_seconds=(now - started).total_seconds(),
            configured=getattr(request.app.state, "config_error", None) is None,
        )

    @app.get("/status", response_model=StatusResponse, tags=["Status"])
    async def get_status(coordinator: RefreshCoordinator = Depends(get_coordinator)):
        """Coordinator and connection status."""
        state = coordinator.state
        return StatusResponse(
            state=state.refresh_state.value,
            connection_state=state.connection_state.value,
            connection_message=state.connection_message,
            subscription_status=state.subscription_status.value if state.subscription_status else None,
            active=state.active,
            alpha=state.alpha,
            points=len(state.smoothed),
            last_error=state.last_error,
            last_updated_at=state.last_updated_at,
            publish_count=state.publish_count,
            source=coordinator.source.name,
            source_health=coordinator.source.get_health().to_dict(),
        )

    @app.get("/scores", response_model=ScoresResponse, tags=["Scores"])
    async def get_scores(coordinator: RefreshCoordinator = Depends(get_coordinator)):
        """Current smoothed dataset."""
        smoothed = coordinator.smoothed
        return ScoresResponse(
            alpha=coordinator.alpha,
            series=series_keys(smoothed),
            data=[ScorePoint(timestamp=p.timestamp, values=dict(p.values)) for p in smoothed],
        )

    @app.get("/latest", response_model=LatestScoresResponse, tags=["Scores"])
    async def get_latest(
        request: Request,
        coordinator: RefreshCoordinator = Depends(get_coordinator),
    ):
        """Latest-scores table."""
        latest = request.app.state.latest_view.render(coordinator.smoothed)
        return LatestScoresResponse(
            has_data=latest.has_data,
            title=latest.title,
            message=latest.message,
            as_of=latest.timestamp,
            rows=[row.to_dict() for row in latest.rows],
        )

    @app.get("/chart", response_model=ChartResponse, tags=["Scores"])
    async def get_chart(
        request: Request,
        viewport_width: Optional[int] = Query(default=None, ge=0),
        coordinator: RefreshCoordinator = Depends(get_coordinator),
    ):
        """Chart figure for the current smoothed dataset."""
        result = request.app.state.renderer.render(coordinator.smoothed, viewport_width)
        return ChartResponse(**result.to_dict())

    @app.get("/smoothing", response_model=SmoothingResponse, tags=["Controls"])
    async def get_smoothing(
        request: Request,
        coordinator: RefreshCoordinator = Depends(get_coordinator),
    ):
        """Smoothing options and current selection."""
        return _smoothing_response(request.app.state.control)

    @app.post("/smoothing", response_model=SmoothingResponse, tags=["Controls"])
    async def set_smoothing(
        body: SmoothingRequest,
        request: Request,
        apply_now: bool = False,
        coordinator: RefreshCoordinator = Depends(get_coordinator),
    ):
        """Select a preset or a custom alpha; the re-smooth is debounced."""
        control: SmoothingControl = request.app.state.control
        try:
            event = control.select(body.mode, body.alpha)
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown smoothing mode: {body.mode}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        await coordinator.dispatch(event)
        if apply_now:
            await coordinator.flush_alpha()
        return _smoothing_response(control)

    @app.post("/visibility", response_model=VisibilityResponse, tags=["Controls"])
    async def set_visibility(
        body: VisibilityRequest,
        coordinator: RefreshCoordinator = Depends(get_coordinator),
    ):
        """Dashboard shown or hidden."""
        await coordinator.dispatch(Activate() if body.visible else Deactivate())
        return VisibilityResponse(
            active=coordinator.active,
            connection_state=coordinator.connection_state.value,
        )

    @app.post("/refresh", response_model=RefreshResponse, tags=["Controls"])
    async def refresh(coordinator: RefreshCoordinator = Depends(get_coordinator)):
        """Manual refresh."""
        await coordinator.refresh()
        state = coordinator.state
        return RefreshResponse(
            success=state.last_error is None,
            message=state.last_error,
            state=state.refresh_state.value,
            points=len(state.smoothed),
            last_updated_at=state.last_updated_at,
        )


def _smoothing_response(control: SmoothingControl) -> SmoothingResponse:
    return SmoothingResponse(options=SmoothingControl.options(), **control.to_dict())


# Module-level application for ``uvicorn dashboard.api:app``
app = create_app()
