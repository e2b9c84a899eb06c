"""Stdlib HTTP server for the control surface.

Each request is served to completion inside its own ``asyncio.run``; no
state is kept between requests.
"""

import asyncio
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlparse

from loguru import logger

from pickem.api.handlers import ApiResponse, RequestContext, dispatch
from pickem.config.settings import AppSettings, get_settings

MAX_BODY_BYTES = 64 * 1024


class PickemServer(HTTPServer):
    def __init__(self, address, settings: AppSettings):
        super().__init__(address, PickemRequestHandler)
        self.settings = settings


class PickemRequestHandler(BaseHTTPRequestHandler):
    server: PickemServer

    def _send(self, response: ApiResponse) -> None:
        payload = response.encode()
        self.send_response(response.status)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Cache-Control", "no-store")
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(payload)

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(min(length, MAX_BODY_BYTES)) if length > 0 else b""

    def _handle(self, method: str) -> None:
        parsed = urlparse(self.path)
        ctx = RequestContext(
            settings=self.server.settings,
            headers={k.lower(): v for k, v in self.headers.items()},
            query=parse_qs(parsed.query),
            body=self._read_body() if method == "POST" else b"",
        )
        response = asyncio.run(dispatch(method, parsed.path, ctx))
        self._send(response)

    def do_GET(self):
        self._handle("GET")

    def do_POST(self):
        self._handle("POST")

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} - {format % args}")


def run(settings: Optional[AppSettings] = None) -> None:
    settings = settings or get_settings()
    server = PickemServer((settings.api_host, settings.api_port), settings)
    logger.info(f"Pick'em ingestion API at http://{settings.api_host}:{settings.api_port}")
    logger.info("Routes: POST /api/cron/import-schedule, /api/cron/score, /api/cron/tiebreakers, "
                "/api/webhooks/score; GET /api/adapters/nflverse, /api/adapters/espn, /api/health")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        server.server_close()
