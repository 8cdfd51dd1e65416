import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .context import PdfContext, build_default_context
from .core.config import settings
from .pdf_api import configure_pdf_api, router as pdf_router
from .pdf_metrics import get_pdf_metrics

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(context: Optional[PdfContext] = None) -> FastAPI:
    """
    Build the API app.

    A context passed in (tests) is used as-is; otherwise collaborators are
    built from settings on startup.
    """
    app = FastAPI(title=settings.app_name)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Key"],
    )

    if context is not None:
        configure_pdf_api(app, context)

    @app.on_event("startup")
    async def startup_event():
        if getattr(app.state, "pdf_context", None) is None:
            configure_pdf_api(app, build_default_context())
        if settings.env == "prod" and settings.auth_secret == "dev-secret":
            logger.critical("AUTH_SECRET is the development default in prod")
        logger.info(f"[PDF-API] Started, env={settings.env}, render_backend={settings.pdf_render_backend}")

    # ── Prometheus Metrics Endpoint ───────────────────────────────────────
    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics():
        """
        GET /metrics — Prometheus text exposition format.
        No authentication required (standard for metrics scraping).
        """
        return Response(
            content=get_pdf_metrics().generate_metrics(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(pdf_router)
    return app


app = create_app()
