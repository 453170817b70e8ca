from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from api.routes import analysis as analysis_routes
from api.services.analysis import context_from_env
from gaitscope import __version__
from gaitscope.models.session import AnalysisContext
from gaitscope.quality.failures import InferenceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if app.state.context is None:
        app.state.context = context_from_env()
    context: Optional[AnalysisContext] = app.state.context
    if context is not None:
        try:
            await context.load()
        except InferenceError as exc:
            # Sessions stay FAILED; routes answer 503 until a restart.
            logger.error("model loading failed: %s", exc)
    yield
    if context is not None:
        context.dispose()


def create_app(context: Optional[AnalysisContext] = None) -> FastAPI:
    app = FastAPI(
        title="Gait Analysis API",
        description="REST API wrapping gaitscope anomaly scoring and SEI classification.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context
    app.include_router(analysis_routes.router)

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health() -> dict:
        ctx: Optional[AnalysisContext] = app.state.context
        if ctx is None:
            return {"autoencoder": "unconfigured", "classifier": "unconfigured"}
        return {"autoencoder": ctx.autoencoder.state.value, "classifier": ctx.classifier.state.value}

    return app


app = create_app()
