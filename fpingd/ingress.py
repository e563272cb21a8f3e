"""HTTP endpoint through which upstream messages reach the relay."""

from __future__ import annotations

import logging
import threading
import time
from typing import Annotated, Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from .errors import DeliveryFailed, MalformedPayload, UnknownSender
from .service import RelayService
from .util import fmt_token

UPSTREAM_PATH = "/upstream"
STATS_PATH = "/stats"

log = logging.getLogger("fpingd.ingress")


class UpstreamMessage(BaseModel):
    """One upstream message as posted by the push backend bridge."""

    from_: str = Field(alias="from")
    data: dict[str, Any] | None = None


def get_relay(request: Request) -> RelayService:
    return request.app.state.relay


RelayDep = Annotated[RelayService, Depends(get_relay)]

router = APIRouter(tags=["upstream"])


# Plain ``def`` routes run on the threadpool, so upstream messages are
# dispatched concurrently.
@router.post(UPSTREAM_PATH)
def upstream(body: UpstreamMessage, relay: RelayDep) -> dict[str, bool]:
    log.debug("Upstream message from=%s", fmt_token(body.from_))
    relay.on_message(body.from_, body.data)
    return {"ok": True}


@router.get(STATS_PATH)
def stats(relay: RelayDep) -> PlainTextResponse:
    return PlainTextResponse(relay.stats_manager.format_stats())


def create_app(relay: RelayService) -> FastAPI:
    app = FastAPI(title="fpingd", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.relay = relay

    _register_exception_handlers(app)
    app.include_router(router)
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _bad_request(_req: Request, exc: RequestValidationError) -> JSONResponse:
        log.warning("Rejected upstream request: %s", exc.errors())
        return JSONResponse(
            status_code=400,
            content={"error": 'expected {"from": str, "data": object}'},
        )

    @app.exception_handler(MalformedPayload)
    async def _malformed(_req: Request, exc: MalformedPayload) -> JSONResponse:
        log.warning("Malformed message: %s", exc)
        return JSONResponse(status_code=400, content={"error": str(exc), "field": exc.field})

    @app.exception_handler(UnknownSender)
    async def _unknown_sender(_req: Request, exc: UnknownSender) -> JSONResponse:
        log.warning("Failed pinging client sender=%s: %s", fmt_token(exc.address), exc)
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(DeliveryFailed)
    async def _delivery_failed(_req: Request, exc: DeliveryFailed) -> JSONResponse:
        log.warning("Delivery failed: %s", exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})


class UpstreamIngress:
    """
    Serves the upstream app under uvicorn on a background thread.

    uvicorn only installs signal handlers on the main thread, so the
    relay keeps ownership of SIGINT/SIGTERM.
    """

    def __init__(self, relay: RelayService, *, host: str, port: int) -> None:
        self.relay = relay
        self.log = log
        self.app = create_app(relay)
        self._server = uvicorn.Server(
            uvicorn.Config(self.app, host=host, port=port, log_config=None)
        )
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        """Bound address; resolves port 0 once the server has started."""
        cfg = self._server.config
        for server in getattr(self._server, "servers", None) or ():
            for sock in server.sockets:
                host, port = sock.getsockname()[:2]
                return str(host), int(port)
        return cfg.host, cfg.port

    def start(self, *, timeout_s: float = 5.0) -> None:
        self._thread = threading.Thread(
            target=self._server.run,
            name="fpingd-ingress",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + timeout_s
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                raise RuntimeError("upstream listener failed to start")
            time.sleep(0.05)

        host, port = self.address
        self.log.info("Listening for upstream messages on http://%s:%s%s", host, port, UPSTREAM_PATH)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout=5.0)
        self._thread = None
