"""Static file responder with reload-client injection.

Read-only: nothing in here ever writes to the filesystem. Every failure
while serving turns into a 404 instead of a 500.
"""
import asyncio
import logging
import mimetypes
import os
from html import escape

from aiohttp import web

from .inject import HTML_TYPE, inject
from .listing import render_listing
from .resolver import (
    RedirectToDirectory,
    ServeDirectoryListing,
    ServeFile,
    ServeIndexHtml,
    resolve,
)

logger = logging.getLogger(__name__)

HTML_HEADERS = {
    "Content-Type": HTML_TYPE,
    "Cache-Control": "public, max-age=0",
    "Accept-Ranges": "bytes",
}


def guess_type(path: str):
    return mimetypes.guess_type(path)[0]


def not_found(path: str) -> web.Response:
    return web.Response(status=404, text=f"File {path} not found.")


def redirect(location: str, display_path: str) -> web.Response:
    return web.Response(
        status=301,
        headers={"Location": location},
        text=f"Redirecting to {escape(display_path)}/",
    )


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


async def serve_html(path: str, request_path: str) -> web.Response:
    loop = asyncio.get_running_loop()
    try:
        html = await loop.run_in_executor(None, _read_text, path)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return not_found(request_path)
    return web.Response(body=inject(html).encode("utf-8"), headers=HTML_HEADERS)


async def serve_listing(directory: str, request_path: str) -> web.Response:
    loop = asyncio.get_running_loop()
    try:
        page = await loop.run_in_executor(None, render_listing, directory, request_path)
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return not_found(request_path)
    return web.Response(text=page, content_type=HTML_TYPE)


async def send_file(request: web.Request, path: str) -> web.StreamResponse:
    """Stream a non-HTML file, re-checking it right before sending.

    A path that vanished since resolution gets the usual 404 body and one
    that turned into a directory gets the usual redirect.
    """
    loop = asyncio.get_running_loop()
    if not await loop.run_in_executor(None, os.path.isfile, path):
        if await loop.run_in_executor(None, os.path.isdir, path):
            return redirect(request.rel_url.raw_path.rstrip("/") + "/", request.path.rstrip("/"))
        return not_found(request.path)
    # FileResponse answers Range requests itself.
    return web.FileResponse(path)


def static_handler(root: str):
    """Build the aiohttp handler serving files from ``root``."""

    async def handler(request: web.Request) -> web.StreamResponse:
        request_path = request.path
        disposition = resolve(root, request_path, request.method)

        if isinstance(disposition, RedirectToDirectory):
            return redirect(request.rel_url.raw_path + "/", request_path)
        if isinstance(disposition, ServeDirectoryListing):
            return await serve_listing(disposition.path, request_path)
        if isinstance(disposition, (ServeFile, ServeIndexHtml)):
            if guess_type(disposition.path) == HTML_TYPE:
                return await serve_html(disposition.path, request_path)
            return await send_file(request, disposition.path)
        return not_found(request_path)

    return handler
