"""Fetch remote containers into local storage before they are decoded."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from vimkit.storage.disk import DiskStorage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 20
DEFAULT_TIMEOUT = 60


class DownloadError(Exception):
    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        self.message = f"Download of {url} failed: {message}"
        super().__init__(self.message)


class ServerError(DownloadError):
    """5xx response; worth retrying."""


def download_key(url: str) -> str:
    return "download." + hashlib.sha256(url.encode("utf-8")).hexdigest()


class Downloader:
    """Streams a URL into local storage under a key derived from the URL.

    A URL that was already fetched is served from storage without a
    request.
    """

    def __init__(
        self,
        storage: DiskStorage,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._storage = storage
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def storage(self) -> DiskStorage:
        return self._storage

    def download(
        self,
        url: str,
        on_progress: Callable[[int, int | None], None] | None = None,
        *,
        refresh: bool = False,
    ) -> Path:
        """Download *url* (unless already present) and return the local path."""
        key = download_key(url)
        path = self._storage.base_path / key
        if not refresh and self._storage.exists(key):
            logger.debug("Using cached download of %s", url)
            return path
        written = self._fetch(url, key, on_progress)
        logger.info("Downloaded %s (%d bytes)", url, written)
        return path

    @retry(
        retry=retry_if_exception_type(
            (requests.ConnectionError, requests.Timeout, ServerError)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10, jitter=2),
        reraise=True,
    )
    def _fetch(
        self,
        url: str,
        key: str,
        on_progress: Callable[[int, int | None], None] | None,
    ) -> int:
        with self._session.get(url, stream=True, timeout=self._timeout) as response:
            status = response.status_code
            if status >= 500:
                raise ServerError(url, f"HTTP {status}", status)
            if not 200 <= status < 300:
                raise DownloadError(url, f"HTTP {status}", status)
            length = response.headers.get("Content-Length")
            total = int(length) if length and length.isdigit() else None
            return self._storage.write_stream(
                key, self._chunks(response, total, on_progress)
            )

    @staticmethod
    def _chunks(
        response: requests.Response,
        total: int | None,
        on_progress: Callable[[int, int | None], None] | None,
    ) -> Iterator[bytes]:
        received = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            received += len(chunk)
            if on_progress is not None:
                on_progress(received, total)
            yield chunk
