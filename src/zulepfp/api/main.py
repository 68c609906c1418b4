"""Zule PFP - FastAPI Application.

This module defines the FastAPI ``app`` instance, all REST API routes, and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`zulepfp.core.config.config`.
- **Image generation** goes through a :class:`RetryController` that rotates
  a pool of API credentials around a single-attempt
  :class:`GenerationClient`.
- **Watermarking** composites the configured logo onto every image.
- **Publishing** copies finished images into the uploads directory, which
  is served by ``StaticFiles`` at ``/uploads``.
- **Gallery and newsletter** records live in a SQLite file.

Every error response has the shape ``{"error": "<message>"}``.

Endpoints
---------
========  ========================  ==========================================
Method    Path                      Purpose
========  ========================  ==========================================
GET       ``/``                     Welcome message
POST      ``/api/generate-image``   Generate, watermark, publish, record
POST      ``/api/newsletter``       Newsletter sign-up
GET       ``/api/gallery``          Paginated gallery, one item per username
========  ========================  ==========================================

Usage
-----
CLI (installed entry point)::

    zule-pfp

Direct invocation::

    python -m zulepfp.api.main
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from zulepfp import __version__
from zulepfp.api.models import GenerateImageRequest, NewsletterRequest
from zulepfp.api.pipeline import PfpPipeline
from zulepfp.api.prompt_builder import build_avatar_prompt, build_traits_prompt, resolve_inscription
from zulepfp.core.asset_store import LocalAssetStore
from zulepfp.core.config import ZulePfpConfig, config
from zulepfp.core.errors import MissingAssetError
from zulepfp.core.gallery_db import GalleryDB
from zulepfp.core.generation_client import GenerationClient
from zulepfp.core.key_pool import Credential, KeyPool, load_credentials
from zulepfp.core.retry import RetryController, SleepFn
from zulepfp.core.watermark import WatermarkSpec

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Failed to generate, watermark, or save image."
LOGO_MISSING = "Logo file not found."


@dataclass
class Services:
    """Long-lived collaborators shared by all requests."""

    pool: KeyPool
    client: GenerationClient
    gallery: GalleryDB
    pipeline: PfpPipeline


def build_services(
    cfg: ZulePfpConfig,
    *,
    credentials: Iterable[Credential] | None = None,
    http_client: httpx.AsyncClient | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> Services:
    """Construct the credential pool, clients, stores and pipeline.

    Args:
        cfg: Service configuration.
        credentials: Explicit credentials; loaded from the environment when
            omitted.
        http_client: Optional HTTP client for the generation API.
        sleep: Sleep function used between retry attempts.
    """
    if credentials is None:
        credentials = load_credentials(cfg.credential_prefix, cfg.env_file)
    pool = KeyPool(credentials, shuffle=cfg.shuffle_keys)
    if len(pool) == 0:
        logger.warning("No generation API keys configured; generation requests will fail.")

    client = GenerationClient(cfg, http_client=http_client)
    retry = RetryController.from_config(cfg, pool, client, sleep=sleep)
    gallery = GalleryDB(cfg.database_path)
    pipeline = PfpPipeline(
        retry,
        logo_path=cfg.logo_path,
        watermark=WatermarkSpec.from_config(cfg),
        assets=LocalAssetStore(cfg.uploads_dir, cfg.public_base_url),
        gallery=gallery,
        temp_dir=cfg.temp_dir,
        upload_folder=cfg.upload_folder,
    )
    return Services(pool=pool, client=client, gallery=gallery, pipeline=pipeline)


def create_app(
    cfg: ZulePfpConfig = config,
    *,
    credentials: Iterable[Credential] | None = None,
    http_client: httpx.AsyncClient | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> FastAPI:
    """Build the FastAPI application for *cfg*.

    Services are created in the lifespan handler, so nothing touches the
    network or the database until the server starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # --- Startup -------------------------------------------------------
        services = build_services(
            cfg, credentials=credentials, http_client=http_client, sleep=sleep
        )
        app.state.services = services
        logger.info(f"Zule PFP API ready with {len(services.pool)} API key(s).")

        yield

        # --- Shutdown ------------------------------------------------------
        await services.client.aclose()
        logger.info("Generation client closed on shutdown.")

    app = FastAPI(
        title="Zule PFP",
        description="Profile picture generation API with watermarking and a community gallery.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Published images are served straight from the uploads directory.
    app.mount("/uploads", StaticFiles(directory=str(cfg.uploads_dir)), name="uploads")

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ---------------------------------------------------------------------------
# Error shape.
# ---------------------------------------------------------------------------


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {field}: {first.get('msg')}" if field else "Invalid request."
        else:
            message = "Invalid request."
        return JSONResponse(status_code=400, content={"error": message})


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


def _register_routes(app: FastAPI) -> None:
    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        """Welcome message, handy as a liveness check."""
        logger.info("API accessed")
        return "Welcome to the ZULE PFP image generation API!"

    @app.post("/api/generate-image")
    async def generate_image(req: GenerateImageRequest) -> dict:
        """Generate a watermarked profile picture and add it to the gallery.

        The prompt comes from ``traits`` when present, otherwise from the
        structured avatar fields.

        Returns:
            Dictionary with ``imageUrl``, ``message`` and ``galleryItem``.

        Raises:
            HTTPException: 400 when neither traits nor an inscription is
                given; 500 when generation, watermarking, upload or
                persistence fails.
        """
        if req.uses_traits():
            traits = req.trait_dicts()
            prompt = build_traits_prompt(traits)
            inscription = resolve_inscription(traits)
        elif req.inscription and req.inscription.strip():
            prompt = build_avatar_prompt(
                req.inscription,
                req.hat_color or "black",
                req.gender or "neutral",
                req.description or "",
                custom_color=req.custom_color,
            )
            inscription = req.inscription.strip()
        else:
            raise HTTPException(status_code=400, detail="Invalid or missing traits array.")

        services: Services = app.state.services
        try:
            result = await services.pipeline.run(
                prompt, username=req.username, inscription=inscription
            )
        except MissingAssetError:
            raise HTTPException(status_code=500, detail=LOGO_MISSING)
        except Exception as e:
            logger.error(f"Generation pipeline failed: {e}")
            raise HTTPException(status_code=500, detail=GENERATION_FAILED)

        return {
            "imageUrl": result.image_url,
            "message": "Image generated, watermarked, and saved.",
            "galleryItem": result.gallery_item,
        }

    @app.post("/api/newsletter", status_code=201)
    async def subscribe_newsletter(req: NewsletterRequest) -> dict:
        """Subscribe an email address to the newsletter.

        Raises:
            HTTPException: 400 for a missing or malformed address, 409 when
                already subscribed, 500 on storage failure.
        """
        if not req.email or not req.email.strip():
            raise HTTPException(status_code=400, detail="Email is required.")
        if not req.is_valid_email():
            raise HTTPException(status_code=400, detail="Please enter a valid email address.")

        services: Services = app.state.services
        try:
            added = await asyncio.to_thread(services.gallery.subscribe, req.email)
        except Exception as e:
            logger.error(f"Newsletter Error: {e}")
            raise HTTPException(status_code=500, detail="Failed to subscribe. Please try again.")

        if not added:
            raise HTTPException(status_code=409, detail="This email is already subscribed.")
        return {"message": "Successfully subscribed to the newsletter!"}

    @app.get("/api/gallery")
    async def get_gallery(page: str | None = None) -> dict:
        """Return one page of the community gallery.

        Each username appears once (its newest image); items are sorted by
        id descending.  Non-numeric or missing ``page`` values mean page 1.

        Returns:
            Dictionary with ``total`` (distinct usernames) and ``items``.
        """
        try:
            page_number = int(page) if page else 1
        except ValueError:
            page_number = 1

        services: Services = app.state.services
        try:
            return await asyncio.to_thread(
                services.gallery.list_gallery,
                page_number,
                app.state.config.gallery_page_size,
            )
        except Exception as e:
            logger.error(f"Gallery query failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch gallery.")


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Host, port and log level come from :data:`~zulepfp.core.config.config`
    (``ZULE_SERVER_HOST``, ``ZULE_SERVER_PORT``, ``ZULE_LOG_LEVEL``).
    Registered as the ``zule-pfp`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "zulepfp.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
