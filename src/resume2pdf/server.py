#!/usr/bin/env python3
"""
Static File Server

Serves the site root over plain HTTP so the headless browser loads pages
exactly as a visitor would: same relative asset paths, same MIME types.
One server (the "lease") is shared by every export job in a run.
"""

import logging
import threading
from functools import partial
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlsplit

from .exceptions import ServerStartError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    '.html': 'text/html; charset=utf-8',
    '.css': 'text/css; charset=utf-8',
    '.js': 'application/javascript; charset=utf-8',
    '.json': 'application/json; charset=utf-8',
    '.svg': 'image/svg+xml',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.ico': 'image/x-icon',
    '.webmanifest': 'application/manifest+json; charset=utf-8',
    '.pdf': 'application/pdf',
}
DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def guess_content_type(path: Union[str, Path]) -> str:
    """Pick a MIME type from the file extension."""
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def resolve_request_path(root: Union[str, Path], request_path: str) -> Optional[Path]:
    """
    Map a request path onto a file under ``root``.

    Returns None when the path escapes the root (``..`` segments, encoded
    traversal, symlinks pointing outside) or when no file exists there.
    A directory resolves to its ``index.html``.
    """
    root = Path(root).resolve()
    path = unquote(urlsplit(request_path).path)
    if '\x00' in path:
        return None

    relative = path.lstrip('/')
    candidate = (root / relative).resolve() if relative else root

    try:
        candidate.relative_to(root)
    except ValueError:
        logger.debug(f"Refusing path outside root: {request_path}")
        return None

    if candidate.is_dir():
        candidate = candidate / 'index.html'

    if not candidate.is_file():
        return None
    return candidate


class StaticFileHandler(BaseHTTPRequestHandler):
    """GET/HEAD handler bound to one root directory."""

    server_version = 'resume2pdf'

    def __init__(self, *args, root: Path, **kwargs):
        self.root = root
        super().__init__(*args, **kwargs)

    def do_GET(self):
        self._respond(include_body=True)

    def do_HEAD(self):
        self._respond(include_body=False)

    def _respond(self, include_body: bool):
        file_path = resolve_request_path(self.root, self.path)
        if file_path is None:
            self._send_not_found(include_body)
            return

        try:
            data = file_path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {file_path}: {e}")
            self._send_not_found(include_body)
            return

        self.send_response(200)
        self.send_header('Content-Type', guess_content_type(file_path))
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        if include_body:
            self.wfile.write(data)

    def _send_not_found(self, include_body: bool):
        body = b'Not found'
        self.send_response(404)
        self.send_header('Content-Type', 'text/plain; charset=utf-8')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class StaticFileServer:
    """
    Threaded static server running on a background daemon thread.

    Each request gets its own thread, so a page and its shared assets can be
    fetched by several tabs at once without queueing behind each other.
    """

    def __init__(self, root: Union[str, Path], host: str = '127.0.0.1', port: int = 8080):
        self.root = Path(root).resolve()
        self.host = host
        self.port = port
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def is_running(self) -> bool:
        return self._httpd is not None

    def start(self) -> 'StaticFileServer':
        if self._httpd:
            logger.debug("Static server already running")
            return self

        if not self.root.is_dir():
            raise ServerStartError(f"Server root is not a directory: {self.root}")

        handler = partial(StaticFileHandler, root=self.root)
        try:
            httpd = ThreadingHTTPServer((self.host, self.port), handler)
        except OSError as e:
            raise ServerStartError(f"Could not bind {self.host}:{self.port}: {e}") from e

        httpd.daemon_threads = True
        # Port 0 asks the OS for a free port
        self.port = httpd.server_address[1]
        self._httpd = httpd
        self._thread = threading.Thread(
            target=httpd.serve_forever,
            name=f"static-server-{self.port}",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Serving {self.root} at {self.base_url}")
        return self

    def stop(self):
        if not self._httpd:
            return
        try:
            self._httpd.shutdown()
            self._httpd.server_close()
            logger.info("Static server stopped")
        finally:
            if self._thread:
                self._thread.join(timeout=5)
            self._httpd = None
            self._thread = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
