from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .errors import install_error_handlers
from .logging import install_app_logging, setup_logging
from .routers.health import router as health_router
from .routers.refine import router as refine_router
from .services.refine import is_ollama_available, selected_provider

log = logging.getLogger("app")


def _announce_provider(settings: Settings) -> None:
    provider = selected_provider(settings)
    if provider == "deepseek":
        log.info(f"using DeepSeek engine, model={settings.deepseek_model}")
        return
    if is_ollama_available(settings):
        log.info(f"using local Ollama at {settings.ollama_base}, model={settings.ollama_model}")
        return
    log.warning(
        "no DEEPSEEK_API_KEY configured and Ollama is not reachable at "
        f"{settings.ollama_base}; set DEEPSEEK_API_KEY or start Ollama "
        f"(e.g. `ollama run {settings.ollama_model}`)"
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging()

    app = FastAPI(title="Podcast Outline Worker", version="1.0.0")
    app.state.settings = settings

    # CORS
    allow = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow or ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    install_app_logging(app)
    install_error_handlers(app)

    app.include_router(refine_router, prefix="/api")
    app.include_router(health_router, prefix="/api")

    @app.on_event("startup")
    def _log_provider() -> None:  # pragma: no cover - network probe
        _announce_provider(settings)

    # Basic liveness endpoint
    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return {"status": "ok"}
    return app


# Convenience for `uvicorn outline_worker.app:app`
app = create_app()
