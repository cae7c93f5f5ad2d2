"""
HTTP server module.

This module serves a WebhookDispatcher over HTTP. Connections are handled on
their own threads, and every dispatch runs on one asyncio event loop shared by all
requests.
"""

import asyncio
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from typing import Optional

from webhook_dns.server.dispatcher import (
    WebhookDispatcher,
    WebhookRequest,
    WebhookResponse,
)


class WebhookRequestHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler forwarding every request to the dispatcher.
    """

    protocol_version = "HTTP/1.1"

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger("webhook-dns.server")
        super().__init__(*args, **kwargs)

    def do_GET(self):
        self._handle()

    def do_POST(self):
        self._handle()

    def do_PUT(self):
        self._handle()

    def do_DELETE(self):
        self._handle()

    def _handle(self):
        """
        Read the request, dispatch it and write the response.
        """
        server: "_DispatchingHTTPServer" = self.server
        dispatcher = server.dispatcher

        body = self._read_body()
        if body is None:
            response = WebhookResponse.error(
                400,
                "decode_failure",
                "request body is shorter than Content-Length",
                content_type=dispatcher.content_type,
            )
            self.close_connection = True
        else:
            request = WebhookRequest(
                method=self.command,
                path=self.path,
                headers=dict(self.headers.items()),
                body=body,
            )
            future = asyncio.run_coroutine_threadsafe(
                dispatcher.dispatch(request), server.loop
            )
            response = future.result()

        self._write_response(response)

    def _read_body(self) -> Optional[bytes]:
        length_header = self.headers.get("Content-Length")
        if not length_header:
            return b""
        try:
            length = int(length_header)
        except ValueError:
            return None
        if length < 0:
            return None
        body = self.rfile.read(length)
        # A short read means the peer went away mid-body
        if len(body) != length:
            return None
        return body

    def _write_response(self, response: WebhookResponse):
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        if response.status != 204:
            self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if response.body:
            self.wfile.write(response.body)

    def log_message(self, format, *args):
        """
        Override log_message to use the application logger.
        """
        self.logger.debug(format % args)


class _DispatchingHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, dispatcher: WebhookDispatcher, loop):
        self.dispatcher = dispatcher
        self.loop = loop
        super().__init__(address, WebhookRequestHandler)


class WebhookServer:
    """
    HTTP server exposing a provider through the webhook protocol.
    """

    def __init__(
        self,
        dispatcher: WebhookDispatcher,
        host: str = "127.0.0.1",
        port: int = 8888,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize a WebhookServer.

        Args:
            dispatcher: Dispatcher handling the requests
            host: Host to bind to
            port: Port to bind to, 0 picks a free port
            loop: Running event loop to dispatch on; a private loop thread is
                started when None
        """
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.loop = loop
        self.server = None
        self.thread = None
        self._loop_thread = None
        self._owns_loop = loop is None
        self.logger = logging.getLogger("webhook-dns.server")

    def start(self):
        """
        Start the server in a background thread.
        """
        if self._owns_loop:
            self.loop = asyncio.new_event_loop()
            self._loop_thread = Thread(target=self.loop.run_forever, daemon=True)
            self._loop_thread.start()

        self.server = _DispatchingHTTPServer(
            (self.host, self.port), self.dispatcher, self.loop
        )
        self.port = self.server.server_address[1]
        self.thread = Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        self.logger.info(f"Webhook server listening on {self.host}:{self.port}")

    def stop(self):
        """
        Stop the server and its private event loop, if any.
        """
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            self.logger.info("Webhook server stopped")
        if self.thread:
            self.thread.join()
            self.thread = None
        if self._owns_loop and self.loop is not None:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._loop_thread.join()
            self.loop.close()
            self.loop = None
            self._loop_thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
