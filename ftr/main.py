"""
ftr receiver: FastAPI application factory.

The app checks the passkey on every request, serves the upload route,
and, when given a node name, advertises itself over mDNS for as long as
it runs.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ftr.api.routes import router
from ftr.config import PASSKEY_HEADER
from ftr.discovery.service import PeerDiscovery
from ftr.security.crypto import pass_keys_match
from ftr.transfer.models import ReceiverConfig
from ftr.transfer.receiver import ensure_drop_dir

logger = logging.getLogger(__name__)


def create_app(
    config: ReceiverConfig,
    node_name: str | None = None,
    discovery: PeerDiscovery | None = None,
) -> FastAPI:
    """
    Build the receiver app around an immutable config.

    Args:
        config: Drop dir, passkey and port.
        node_name: Advertise under this name while the app runs; None
            serves without advertising.
        discovery: Discovery service to advertise with.

    Raises:
        ValueError: the passkey is empty.
        OSError: the drop dir cannot be created.
    """
    if not config.pass_key:
        raise ValueError("the passkey is empty")
    ensure_drop_dir(config.drop_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Advertise for the life of the server."""
        if node_name is None:
            yield
            return

        service = discovery or PeerDiscovery()
        try:
            async with service.advertise(node_name, config.port, [config.drop_dir]):
                yield
        except Exception as e:
            logger.error(f"Startup failed: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
            raise
        finally:
            logger.info("Shutting down ftr receiver...")

    app = FastAPI(title="ftr", version="1.0.0", lifespan=lifespan)
    app.state.config = config

    @app.middleware("http")
    async def require_pass_key(request: Request, call_next):
        supplied = request.headers.get(PASSKEY_HEADER)
        if not pass_keys_match(config.pass_key, supplied):
            client = request.client.host if request.client else "?"
            logger.warning(f"Unauthorized {request.method} {request.url.path} from {client}")
            return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def bad_form(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Failed to get the file from form"})

    app.include_router(router)
    return app
