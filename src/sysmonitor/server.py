"""WebSocket push channel serving snapshots to remote viewers."""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.websockets import WebSocketState

from sysmonitor.config import Settings
from sysmonitor.errors import DeliveryError
from sysmonitor.hub import BroadcastHub

logger = logging.getLogger(__name__)


class WebSocketSubscriber:
    """
    Subscriber backed by a WebSocket connection living on an event loop.

    send() is called from the scheduler thread. It schedules the write on
    the connection's loop and returns the pending future at once; the hub
    bounds how long it waits for it.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self._websocket = websocket
        self._loop = loop
        self._closed = False

    def __repr__(self) -> str:
        client = self._websocket.client
        peer = f"{client.host}:{client.port}" if client else "unknown"
        return f"<WebSocketSubscriber {peer}>"

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and not self._loop.is_closed()
            and self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def close(self) -> None:
        self._closed = True

    def send(self, message: str) -> concurrent.futures.Future:
        """
        Schedule one text frame on the connection's loop.

        Raises:
            DeliveryError: The event loop is no longer running.
        """
        if self._loop.is_closed():
            raise DeliveryError("event loop is closed")

        coro = self._websocket.send_text(message)
        try:
            return asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as exc:
            # Loop closed between the check and the submit
            coro.close()
            raise DeliveryError(f"event loop is closed: {exc}") from exc


def create_app(hub: BroadcastHub, settings: Settings | None = None) -> FastAPI:
    """
    Create the FastAPI application exposing the snapshot endpoint.

    Every connection on the endpoint is registered with hub for as long as it
    stays open. Inbound messages are read and ignored.
    """
    settings = settings or Settings()
    app = FastAPI(title="sysmonitor")
    app.state.hub = hub

    @app.websocket(settings.endpoint)
    async def system_monitor(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket, asyncio.get_running_loop())
        hub.register(subscriber)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            subscriber.close()
            hub.unregister(subscriber)

    return app


class ServerThread:
    """Runs a uvicorn server for the push channel in a daemon thread."""

    def __init__(
        self,
        app: FastAPI,
        host: str,
        port: int,
        on_exit: Callable[[], None] | None = None,
    ) -> None:
        """
        Initialize the ServerThread.

        Args:
            app: ASGI application to serve.
            host: Interface to bind.
            port: TCP port to bind; 0 picks a free port.
            on_exit: Called if the server stops without stop() being called.
        """
        config = uvicorn.Config(app, host=host, port=port, log_config=None, lifespan="off")
        self._server = uvicorn.Server(config)
        self._on_exit = on_exit
        self._thread: threading.Thread | None = None
        self._stopping = False
        self._failed = False

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def started(self) -> bool:
        """True once the server is accepting connections."""
        return self._server.started

    @property
    def failed(self) -> bool:
        """True if the server stopped on its own."""
        return self._failed

    def start(self) -> None:
        if self.is_running:
            return

        self._stopping = False
        self._thread = threading.Thread(target=self._run, daemon=True, name="PushServer")
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopping = True
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        try:
            self._server.run()
        except SystemExit:
            # uvicorn exits this way when it cannot bind
            logger.error("Push server exited during startup")
        except Exception:
            logger.exception("Push server crashed")

        if not self._stopping:
            self._failed = True
            if self._on_exit is not None:
                self._on_exit()
