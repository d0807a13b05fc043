"""FastAPI application exposing a FileSystem as static files, served by uvicorn."""

from __future__ import annotations

import asyncio
import html
import logging
import mimetypes
import socket
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Mapping, Optional, Tuple
from urllib.parse import quote

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from .exceptions import NotFoundError
from .filesystem import File, FileSystem, clean_path, join_path

log = logging.getLogger(__name__)

SERVICE_NAME = "goblet"
INDEX_FILE = "index.html"
STARTUP_POLL_INTERVAL = 0.01


class RangeNotSatisfiable(Exception):
    """Raised when a byte range lies entirely outside the content."""


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """Parse a single ``bytes=`` range into inclusive ``(start, end)``.

    Returns ``None`` when the header should be ignored (malformed or a
    multi-range request) and raises :class:`RangeNotSatisfiable` when the
    range cannot be served.
    """

    unit, _, spec = header.partition("=")
    if unit.strip().lower() != "bytes" or "," in spec:
        return None
    first, sep, last = spec.strip().partition("-")
    if not sep:
        return None
    try:
        if not first:
            length = int(last)
            # An empty body has no byte a suffix range could select
            if length <= 0 or size == 0:
                raise RangeNotSatisfiable(header)
            return max(size - length, 0), size - 1
        start = int(first)
        end = int(last) if last else size - 1
    except ValueError:
        return None
    if start < 0 or end < start:
        return None
    if start >= size:
        raise RangeNotSatisfiable(header)
    return start, min(end, size - 1)


def _not_modified(record: File, headers: Mapping[str, str]) -> bool:
    value = headers.get("if-modified-since")
    if not value:
        return False
    try:
        since = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return False
    return _utc(record.modified_at).replace(microsecond=0) <= _utc(since)


def _listing(fs: FileSystem, path: str) -> Response:
    names = fs.read_dir(path)
    title = html.escape(path)
    items = []
    for name in names:
        href = quote(join_path(path, name))
        items.append(f'<li><a href="{href}">{html.escape(name)}</a></li>')
    body = (
        f"<!DOCTYPE html>\n<html><head><title>{title}</title></head>\n"
        f"<body><h1>{title}</h1>\n<ul>\n" + "\n".join(items) + "\n</ul></body></html>\n"
    )
    return HTMLResponse(body)


def build_response(fs: FileSystem, path: str, headers: Mapping[str, str]) -> Response:
    """Build the GET response for ``path``. ``headers`` lookups use lower-case names."""
    path = clean_path(path)
    try:
        record = fs.file(path)
        if record.is_dir:
            index = join_path(path, INDEX_FILE)
            if not fs.exists(index):
                return _listing(fs, path)
            path, record = index, fs.file(index)
    except NotFoundError:
        return PlainTextResponse("404 Not Found\n", status_code=404)

    last_modified = format_datetime(_utc(record.modified_at), usegmt=True)
    if _not_modified(record, headers):
        return Response(status_code=304, headers={"Last-Modified": last_modified})

    content_type = mimetypes.guess_type(record.name)[0] or "application/octet-stream"
    resp_headers = {"Last-Modified": last_modified, "Accept-Ranges": "bytes"}

    with fs.open(path) as handle:
        byte_range = None
        if "range" in headers:
            try:
                byte_range = parse_range(headers["range"], handle.size)
            except RangeNotSatisfiable:
                return PlainTextResponse(
                    "416 Range Not Satisfiable\n",
                    status_code=416,
                    headers={"Content-Range": f"bytes */{handle.size}"},
                )
        if byte_range is None:
            return Response(handle.read(), headers=resp_headers, media_type=content_type)
        start, end = byte_range
        handle.seek(start)
        body = handle.read(end - start + 1)
    resp_headers["Content-Range"] = f"bytes {start}-{end}/{record.size}"
    return Response(body, status_code=206, headers=resp_headers, media_type=content_type)


def create_app(fs: FileSystem) -> FastAPI:
    """Return an application serving every path of ``fs`` through one route."""
    app = FastAPI(title="goblet", docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def serve_file(path: str, request: Request) -> Response:
        response = build_response(fs, "/" + path, request.headers)
        log.debug("%s /%s -> %d", request.method, path, response.status_code)
        if request.method == "HEAD":
            # Keep the GET headers, Content-Length included, without the body
            return Response(status_code=response.status_code, headers=dict(response.headers))
        return response

    return app


class StaticFileServer:
    def __init__(self, fs: FileSystem, host: str = "127.0.0.1", port: int = 8080, advertise: bool = False) -> None:
        self._fs = fs
        self._port = port
        self._advertise = advertise
        self.app = create_app(fs)
        self._server = uvicorn.Server(
            uvicorn.Config(self.app, host=host, port=port, log_config=None, lifespan="off")
        )
        self._task: Optional[asyncio.Task[None]] = None
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._service: Optional[ServiceInfo] = None

    @property
    def port(self) -> int:
        """Bound port, which differs from the requested one when that was 0."""
        for server in getattr(self._server, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return self._port

    async def start(self) -> None:
        self._task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise RuntimeError("uvicorn exited during startup")
            await asyncio.sleep(STARTUP_POLL_INTERVAL)
        log.info("Serving static files on port %s", self.port)
        if self._advertise:
            await self._register_service()

    async def _register_service(self) -> None:
        hostname = socket.gethostname()
        try:
            addr_bytes = socket.inet_aton(socket.gethostbyname(hostname))
        except OSError:
            addr_bytes = socket.inet_aton("127.0.0.1")
        info = ServiceInfo(
            type_="_http._tcp.local.",
            name=f"{SERVICE_NAME} on {hostname}._http._tcp.local.",
            addresses=[addr_bytes],
            port=self.port,
            properties={b"path": (self._fs.path_prefix or "/").encode("utf-8")},
        )
        zc: Optional[AsyncZeroconf] = None
        try:
            zc = AsyncZeroconf()
            await (await zc.async_register_service(info))
        except Exception as exc:
            log.warning("Failed to register Zeroconf service: %s", exc)
            if zc is not None:
                await zc.async_close()
            return
        self._zeroconf = zc
        self._service = info
        log.info("Registered Zeroconf service '%s' on port %s", info.name, self.port)

    async def run_forever(self) -> None:
        if self._task is None:
            await self.start()
        assert self._task is not None
        try:
            await self._task
        except asyncio.CancelledError:  # pragma: no cover - shutdown path
            pass

    async def stop(self) -> None:
        if self._zeroconf is not None:
            if self._service is not None:
                await (await self._zeroconf.async_unregister_service(self._service))
            await self._zeroconf.async_close()
            self._zeroconf = None
            self._service = None
        if self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._task = None
        log.info("Static file server stopped")


async def run_server(fs: FileSystem, host: str, port: int, advertise: bool = False) -> None:
    server = StaticFileServer(fs, host=host, port=port, advertise=advertise)
    await server.start()
    try:
        await server.run_forever()
    finally:
        await server.stop()
