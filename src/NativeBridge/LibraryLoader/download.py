# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.download",
#   "purpose": "Fetch native library files listed in a remote index into the local cache",
#   "sections": [
#     {"id": "helpers", "name": "Index & Streaming Helpers", "anchor": "HLP", "kind": "helpers"},
#     {"id": "downloader", "name": "Downloader", "anchor": "DWN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Remote acquisition of native libraries for placeholder bundles.

Releases are published under a version-scoped base URL together with a
``files.txt`` index whose lines look like ``cpu/linux/libtorch.so.gz``.  Only
lines under ``<flavor>/<os>/`` are fetched; each file is gunzipped while it
streams into a cache staging directory, and the directory is published only
after every file arrived.  A failed request ends the call: nothing is retried
and no partial cache entry is left behind.
"""

from __future__ import annotations

import logging
import zlib
from pathlib import Path
from typing import List, Optional

import httpx

from .cache import CacheKey, CacheStore
from .descriptor import PlatformDescriptor, normalize_flavor
from .errors import DownloadError
from .net import get_http_client
from .settings import LoaderSettings

__all__ = ["INDEX_FILE", "Downloader", "select_index_lines"]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.download")

INDEX_FILE = "files.txt"
_GZIP_SUFFIX = ".gz"
_CHUNK_SIZE = 1 << 20

# --- Index & Streaming Helpers ---


def select_index_lines(text: str, flavor: str, os_family: str) -> List[str]:
    """Return index entries under ``<flavor>/<os_family>/`` in index order."""

    prefix = f"{flavor}/{os_family}/"
    lines = (line.strip() for line in text.splitlines())
    return [line for line in lines if line.startswith(prefix)]


def _target_name(line: str) -> str:
    name = line.rsplit("/", 1)[-1]
    if name.endswith(_GZIP_SUFFIX):
        return name[: -len(_GZIP_SUFFIX)]
    return name


class _Gunzip:
    """Incremental gunzip that continues across concatenated gzip members."""

    def __init__(self) -> None:
        self._member = zlib.decompressobj(16 + zlib.MAX_WBITS)
        self._pending = False
        self._completed = 0

    def feed(self, chunk: bytes) -> bytes:
        parts = []
        while chunk:
            self._pending = True
            parts.append(self._member.decompress(chunk))
            if not self._member.eof:
                break
            chunk = self._member.unused_data
            self._member = zlib.decompressobj(16 + zlib.MAX_WBITS)
            self._pending = False
            self._completed += 1
        return b"".join(parts)

    def close(self) -> bytes:
        tail = self._member.flush()
        if self._pending or not self._completed:
            raise zlib.error("truncated gzip stream")
        return tail


def _stream_to_file(response: httpx.Response, destination: Path, *, gunzip: bool) -> int:
    decoder = _Gunzip() if gunzip else None
    written = 0
    with destination.open("wb") as stream:
        for chunk in response.iter_bytes(_CHUNK_SIZE):
            if not chunk:
                continue
            data = decoder.feed(chunk) if decoder is not None else chunk
            stream.write(data)
            written += len(data)
        if decoder is not None:
            tail = decoder.close()
            stream.write(tail)
            written += len(tail)
    return written


# --- Downloader ---


class Downloader:
    """Resolve a placeholder descriptor into a populated cache directory."""

    def __init__(
        self,
        settings: LoaderSettings,
        cache: CacheStore,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            return get_http_client(self.settings)
        return self._client

    def base_url(self, placeholder: PlatformDescriptor) -> str:
        """Return the release URL for the placeholder's normalised version."""

        version = placeholder.normalized_version()
        return self.settings.download_base_url.format(version=version).rstrip("/")

    def fetch(self, placeholder: PlatformDescriptor, host: PlatformDescriptor) -> Path:
        """Return the cache directory for ``host``, downloading it when missing."""

        flavor = normalize_flavor(placeholder.flavor or host.flavor)
        key = CacheKey(placeholder.version, flavor, host.classifier)
        hit = self.cache.lookup(key)
        if hit is not None:
            LOGGER.debug("native library cache hit", extra={"stage": "download", "entry": str(hit)})
            return hit

        link = self.base_url(placeholder)
        index_url = f"{link}/{INDEX_FILE}"
        lines = select_index_lines(self._get_text(index_url), flavor, host.os_family)
        if not lines:
            raise DownloadError(
                f"No native files for {flavor}/{host.os_family} in {index_url}", url=index_url
            )

        with self.cache.staging(key) as staging:
            for line in lines:
                url = f"{link}/{line}"
                name = _target_name(line)
                LOGGER.info(
                    "downloading native file",
                    extra={"stage": "download", "file": name, "url": url},
                )
                self._download(url, staging / name, gunzip=line.endswith(_GZIP_SUFFIX))
            if not (staging / self.cache.library_file).is_file():
                raise DownloadError(
                    f"Release index {index_url} does not provide {self.cache.library_file}",
                    url=index_url,
                )
        return self.cache.entry_dir(key).absolute()

    def _get_text(self, url: str) -> str:
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DownloadError(
                f"Failed to fetch {url}: HTTP {exc.response.status_code}",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to fetch {url}: {exc}", url=url) from exc
        return response.text

    def _download(self, url: str, destination: Path, *, gunzip: bool) -> None:
        try:
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                written = _stream_to_file(response, destination, gunzip=gunzip)
        except httpx.HTTPStatusError as exc:
            raise DownloadError(
                f"Failed to download {url}: HTTP {exc.response.status_code}",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download {url}: {exc}", url=url) from exc
        except zlib.error as exc:
            raise DownloadError(f"Corrupt gzip payload from {url}: {exc}", url=url) from exc
        except OSError as exc:
            raise DownloadError(f"Cannot write {destination}: {exc}", url=url) from exc
        LOGGER.debug(
            "native file written",
            extra={"stage": "download", "path": str(destination), "bytes": written},
        )
