"""Issuer HTTP service.

RUN:  ISSUER_PRIVATE_KEY=0x... uvicorn entangledu.main:create_app --factory --port 4000

``create_app`` wires one IssuerService (signer + mint log + clock) into the
app state.  A missing or malformed ISSUER_PRIVATE_KEY is a startup fault:
the factory raises ConfigurationError instead of serving with a default key.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from entangledu.api.certificates import router as certificates_router
from entangledu.api.health import router as health_router
from entangledu.api.mint import router as mint_router
from entangledu.core.config import SETTINGS, Settings
from entangledu.core.errors import EntangleduError
from entangledu.core.logging import setup_logging
from entangledu.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)
from entangledu.repos.mint_log import InMemoryMintLog, MintLog
from entangledu.services.issuer_service import Clock, IssuerService, now_millis
from entangledu.services.signing import IssuerSigner

logger = logging.getLogger(__name__)


async def _handle_entangledu_error(
    _request: Request, exc: EntangleduError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _handle_validation_error(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted(
        {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
    )
    message = "Invalid request body"
    if fields:
        message = f"Invalid request body: {', '.join(fields)}"
    logger.warning("Rejected malformed request: %s", message)
    return JSONResponse(status_code=400, content={"error": message})


def create_app(
    settings: Settings | None = None,
    *,
    signer: IssuerSigner | None = None,
    mint_log: MintLog | None = None,
    clock: Clock = now_millis,
) -> FastAPI:
    settings = settings or SETTINGS
    if signer is None:
        signer = IssuerSigner.from_hex(settings.issuer_private_key)

    issuer = IssuerService(
        signer,
        mint_log if mint_log is not None else InMemoryMintLog(),
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.log_level, json_format=settings.log_json)
        install_request_id_filter()
        logger.info(
            "issuer started  env=%s signer=%s port=%d",
            settings.app_env,
            issuer.signer_address,
            settings.port,
        )
        yield
        logger.info("issuer stopped  mints=%d", issuer.health().mints)

    app = FastAPI(
        title="entangledu-issuer",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.state.issuer = issuer
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it runs first and every response carries a request id.
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(EntangleduError, _handle_entangledu_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)

    app.include_router(health_router)
    app.include_router(certificates_router)
    app.include_router(mint_router)

    return app
