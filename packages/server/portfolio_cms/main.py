"""
Portfolio CMS API Server

Entry point for the FastAPI application and the `portfolio-cms` CLI.
"""

from __future__ import annotations

import argparse
import sys

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio_cms import __version__
from portfolio_cms.api.v1 import router as api_router
from portfolio_cms.core.config import Settings, get_settings, load_settings
from portfolio_cms.core.errors import register_error_handlers
from portfolio_cms.core.logging import configure_logging
from portfolio_cms.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from portfolio_cms.core.sandbox import PathSandbox
from portfolio_cms.services.catalog_store import CatalogStore
from portfolio_cms.services.media import MediaMaterializer
from portfolio_cms.services.projects import ProjectService
from portfolio_cms.services.translation import TranslationClient

log = structlog.get_logger()


def check_configured_paths(settings: Settings, sandbox: PathSandbox) -> None:
    """Every configured path must stay inside the portfolio root (PathEscape otherwise)."""
    for relative in [
        *settings.catalog_files.values(),
        settings.projects_assets_dir,
        settings.projects_thumbs_dir,
        settings.icons_file_path,
    ]:
        sandbox.resolve(relative)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    sandbox = PathSandbox(settings.portfolio_root)
    check_configured_paths(settings, sandbox)

    store = CatalogStore(sandbox, settings.catalog_files)
    media = MediaMaterializer(sandbox, settings)

    app = FastAPI(
        title="Portfolio CMS",
        description="Local editor for the localized project catalogs of a portfolio site.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.projects = ProjectService(settings, sandbox, store, media)
    app.state.translator = TranslationClient(
        settings.ollama_url,
        model=settings.ollama_model,
        timeout=settings.ollama_timeout_seconds,
        max_retries=settings.ollama_max_retries,
        models_cache_seconds=settings.ollama_models_cache_seconds,
        allow_inline_style=settings.enable_inline_style,
    )

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    register_error_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        log.info("portfolio_cms.starting", root=str(sandbox.root), locales=store.locales)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("portfolio_cms.shutting_down")
        await store.drain()
        await app.state.translator.close()

    return app


app = create_app()


def run() -> None:
    """CLI entry point for the server."""
    parser = argparse.ArgumentParser(description="Portfolio CMS catalog editor API")
    parser.add_argument("-c", "--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--host", default=None, help="Bind address (default from settings)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings)")
    args = parser.parse_args()

    try:
        settings = load_settings(args.config, host=args.host, port=args.port)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_format)
    log.info("portfolio_cms.config_loaded", config_path=args.config, root=str(settings.portfolio_root))

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    run()
