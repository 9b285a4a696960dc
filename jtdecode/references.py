"""
Locating and fetching JT documents: local paths, ``file:`` URLs and HTTP(S)
URLs.  External partition references are resolved relative to the URL of
the document the user opened, not the one that names them.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def to_url(source: Union[str, Path]) -> str:
    """Turn a local path into a ``file:`` URL; URLs pass through unchanged."""
    text = str(source)
    scheme = urllib.parse.urlparse(text).scheme.lower()
    if scheme in ("file", "http", "https"):
        return text
    return Path(text).expanduser().resolve().as_uri()


def url_to_path(url: str) -> Path:
    parsed = urllib.parse.urlparse(url)
    return Path(urllib.request.url2pathname(parsed.path))


def is_local(url: str) -> bool:
    return urllib.parse.urlparse(url).scheme.lower() == "file"


def resolve_reference(base_url: str, file_name: str) -> str:
    if not file_name:
        raise ValueError("Empty external reference")
    relative = file_name.replace("\\", "/")
    if urllib.parse.urlparse(relative).scheme.lower() in ("file", "http", "https"):
        return relative
    return urllib.parse.urljoin(base_url, urllib.parse.quote(relative))


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def url_exists(url: str, timeout: float = DEFAULT_TIMEOUT) -> bool:
    """File existence for ``file:`` URLs, a HEAD request answered with 200 for HTTP(S)."""

    scheme = urllib.parse.urlparse(url).scheme.lower()
    if scheme == "file":
        return url_to_path(url).is_file()
    if scheme not in ("http", "https"):
        logger.warning("URL scheme %r not supported: %s", scheme, url)
        return False
    opener = urllib.request.build_opener(_NoRedirect)
    request = urllib.request.Request(url, method="HEAD")
    try:
        with opener.open(request, timeout=timeout) as response:
            return response.status == 200
    except (urllib.error.URLError, OSError, ValueError) as exc:
        logger.debug("Probe of %s failed: %s", url, exc)
        return False


def read_source(url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    if is_local(url):
        return url_to_path(url).read_bytes()
    with urllib.request.urlopen(url, timeout=timeout) as response:
        return response.read()
