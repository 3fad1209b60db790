"""
Svalbard Share Custody API Server

FastAPI server exposing token-gated storage, retrieval and deletion of
secret shares. Requests are form-encoded POSTs; responses are plain text.

Endpoints:
- POST /get_storage_token - Send a storage token to the share owner
- POST /store_share - Store a share using a storage token
- POST /get_retrieval_token - Send a retrieval token to the share owner
- POST /retrieve_share - Retrieve a share using a retrieval token
- POST /get_deletion_token - Send a deletion token to the share owner
- POST /delete_share - Delete a share using a deletion token
- GET /health - Health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from svalbard.auth.token_store import InMemoryTokenStore
from svalbard.backends import LocalShareStore, MemoryShareStore
from svalbard.channels import FileOutboxChannel, LoggingChannel, OutboxChannel
from svalbard.config import ServerConfig
from svalbard.core.contracts import SecondaryChannel, ShareStore
from svalbard.core.custody import ShareCustodyService
from svalbard.core.errors import CustodyError
from svalbard.core.share_id import HashShareIdDeriver

SERVICE_NAME = "svalbard-custody-api"
VERSION = "1.0.0"


# =============================================================================
# Service Construction
# =============================================================================

def build_share_store(config: ServerConfig) -> ShareStore:
    if config.share_backend == "local":
        return LocalShareStore(config.storage_dir)
    return MemoryShareStore()


def build_channel(config: ServerConfig) -> SecondaryChannel:
    if config.channel == "file":
        return FileOutboxChannel(config.outbox_dir)
    if config.channel == "outbox":
        return OutboxChannel()
    return LoggingChannel()


def build_service(config: ServerConfig) -> ShareCustodyService:
    """Assemble the custody service and its collaborators from configuration."""
    return ShareCustodyService(
        share_store=build_share_store(config),
        token_store=InMemoryTokenStore(
            ttl_seconds=config.token_ttl_seconds,
            max_tokens=config.max_tokens,
        ),
        secondary_channel=build_channel(config),
        share_id_deriver=HashShareIdDeriver(
            supported_owner_id_types=config.owner_id_types,
            hash_algorithm=config.hash_algorithm,
        ),
    )


def get_custody(request: Request) -> ShareCustodyService:
    return request.app.state.custody


# =============================================================================
# Custody Endpoints
# =============================================================================

router = APIRouter()


@router.post("/get_storage_token", response_class=PlainTextResponse)
async def get_storage_token(
    request_id: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Send a token that authorizes storing a share to its owner."""
    logger.info("GET_STORAGE_TOKEN req={} owner={}:{} secret={}",
                request_id, owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.request_storage_token, request_id, owner_id_type, owner_id, secret_name
    )


@router.post("/store_share", response_class=PlainTextResponse)
async def store_share(
    token: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    share_value: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Store a share, authorized by a storage token."""
    logger.info("STORE_SHARE owner={}:{} secret={}", owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.store_share, token, owner_id_type, owner_id, secret_name, share_value
    )


@router.post("/get_retrieval_token", response_class=PlainTextResponse)
async def get_retrieval_token(
    request_id: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Send a token that authorizes retrieving a share to its owner."""
    logger.info("GET_RETRIEVAL_TOKEN req={} owner={}:{} secret={}",
                request_id, owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.request_retrieval_token, request_id, owner_id_type, owner_id, secret_name
    )


@router.post("/retrieve_share", response_class=PlainTextResponse)
async def retrieve_share(
    token: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Return a share value, authorized by a retrieval token."""
    logger.info("RETRIEVE_SHARE owner={}:{} secret={}", owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.retrieve_share, token, owner_id_type, owner_id, secret_name
    )


@router.post("/get_deletion_token", response_class=PlainTextResponse)
async def get_deletion_token(
    request_id: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Send a token that authorizes deleting a share to its owner."""
    logger.info("GET_DELETION_TOKEN req={} owner={}:{} secret={}",
                request_id, owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.request_deletion_token, request_id, owner_id_type, owner_id, secret_name
    )


@router.post("/delete_share", response_class=PlainTextResponse)
async def delete_share(
    token: str = Form(""),
    owner_id_type: str = Form(""),
    owner_id: str = Form(""),
    secret_name: str = Form(""),
    custody: ShareCustodyService = Depends(get_custody),
):
    """Delete a share, authorized by a deletion token."""
    logger.info("DELETE_SHARE owner={}:{} secret={}", owner_id_type, owner_id, secret_name)
    return await asyncio.to_thread(
        custody.delete_share, token, owner_id_type, owner_id, secret_name
    )


# =============================================================================
# Health & Status Endpoints
# =============================================================================

@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "custody_initialized": request.app.state.custody is not None,
    }


# =============================================================================
# FastAPI Application
# =============================================================================

async def custody_error_handler(request: Request, exc: CustodyError):
    logger.warning("{} {} -> {} {}", request.method, request.url.path, exc.status_code, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(
    config: Optional[ServerConfig] = None,
    service: Optional[ShareCustodyService] = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        config: Server configuration (default: from environment)
        service: Preassembled custody service; built from config at startup if omitted

    Returns:
        FastAPI application
    """
    config = config or ServerConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if app.state.custody is None:
            app.state.custody = build_service(config)
        logger.info("✅ Svalbard custody service initialized")
        logger.info("   Share backend: {}", config.share_backend)
        logger.info("   Token TTL: {}s", config.token_ttl_seconds)
        logger.info("   Channel: {}", config.channel)
        logger.info("   Owner id types: {}", ", ".join(config.owner_id_types))

        yield

        # Shutdown
        logger.info("✅ Svalbard API server shutdown complete")

    app = FastAPI(
        title="Svalbard Share Custody API",
        description="Token-gated custody of secret shares",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.custody = service
    app.add_exception_handler(CustodyError, custody_error_handler)
    app.include_router(router)
    return app


# =============================================================================
# Main Entry Point
# =============================================================================

class InterceptHandler(logging.Handler):
    """Forward stdlib log records from library modules to loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that issued the record
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(config: ServerConfig):
    """Send loguru output to stderr and the rotating log file, with stdlib logs routed through loguru."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level)
    if config.log_file:
        logger.add(
            config.log_file,
            rotation="1 day",
            retention="30 days",
            level=config.log_level,
        )
    logging.basicConfig(handlers=[InterceptHandler()], level=config.log_level, force=True)


def main():
    """Run API server."""
    config = ServerConfig.from_env()
    configure_logging(config)

    logger.info("🚀 Starting Svalbard custody API server on {}:{}", config.host, config.port)
    logger.info("   Reload: {}", config.reload)
    logger.info("   Workers: {}", config.workers)

    # Run server
    uvicorn.run(
        "svalbard.api_server:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.reload,
        workers=config.workers if not config.reload else 1,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
