"""
Server-side image fetch used to get around cross-origin canvas restrictions.

This fetches caller-supplied URLs without authentication and is therefore a
server-side request forgery surface. Set ``PROXY_ALLOWED_HOSTS`` to restrict
it to known image hosts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urlparse

import requests

from shotify.errors import InvalidArgumentError, UpstreamError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds
CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class ProxiedImage:
    response: requests.Response
    content_type: str

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the body and release the upstream connection afterwards."""
        try:
            for chunk in self.response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
        finally:
            self.response.close()

    def close(self) -> None:
        self.response.close()


class ImageProxy:
    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
        allowed_hosts: list[str] | None = None,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.allowed_hosts = {h.lower() for h in (allowed_hosts or [])}

    def _validate(self, url: str) -> None:
        if not url:
            raise InvalidArgumentError("url query parameter is required")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise InvalidArgumentError("only absolute http(s) urls can be proxied")
        if self.allowed_hosts and parsed.hostname.lower() not in self.allowed_hosts:
            raise InvalidArgumentError("host is not allowed")

    def fetch(self, url: str) -> ProxiedImage:
        self._validate(url)
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Proxy fetch of %s failed: %s", url, exc)
            raise UpstreamError("failed to fetch image", message="Failed to fetch image") from exc

        if not response.ok:
            status = response.status_code
            response.close()
            logger.warning("Proxy fetch of %s returned HTTP %s", url, status)
            raise UpstreamError(
                f"upstream returned HTTP {status}", message="Failed to fetch image"
            )

        return ProxiedImage(
            response=response,
            content_type=response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
        )
