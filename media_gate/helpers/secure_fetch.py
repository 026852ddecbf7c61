"""
Secure Fetch: Bounded HTTPS Downloads
=======================================
Downloads remote media referenced by a capture payload or tool call and
writes it to a local file.

Policy:
- Only https URLs are fetched; anything else is rejected before any
  request is made, and so is a redirect that lands on plain http.
- Non-2xx responses are rejected with the status code in the message.
- A declared Content-Length above the limit is rejected without reading
  the body; the streamed byte count is bounded by the same limit.
- An empty 2xx body is rejected.

The body is streamed into a hidden sibling of the destination and
renamed over it only after a complete, flushed write. A failed download
leaves no partial file behind. The destination directory must exist.

No retries and no built-in timeout: wrap the call in asyncio.wait_for()
to bound latency.
"""

import asyncio
import logging
import os
import tempfile
from typing import Optional
from urllib.parse import urlsplit

import aiofiles
import aiofiles.os
import aiohttp

from media_gate.helpers.media_errors import (
    EmptyBodyError,
    SchemeRejected,
    SizeLimitExceeded,
    UpstreamStatusError,
)
from media_gate.helpers.media_settings import get_settings

logger = logging.getLogger("media-gate.secure_fetch")


def _require_https(url: str):
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme != "https":
        logger.warning(f"Rejected non-https fetch target: {url}")
        raise SchemeRejected(url, scheme)


def _declared_length(headers) -> Optional[int]:
    raw = headers.get("Content-Length") if headers is not None else None
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.debug(f"Ignoring unparsable Content-Length: {raw!r}")
        return None
    return value if value >= 0 else None


async def _discard(path: str):
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Failed to remove partial download {path}: {e}")


async def fetch_to_file(
    dest_path: str,
    url: str,
    max_bytes: Optional[int] = None,
    session: Optional[aiohttp.ClientSession] = None,
    chunk_size: Optional[int] = None,
) -> int:
    """
    Download url into dest_path and return the number of bytes written.

    Args:
        dest_path: Destination file; created or replaced. Its directory must exist.
        url: https URL to fetch.
        max_bytes: Size limit. Defaults to MediaSettings.max_fetch_bytes.
        session: Optional shared aiohttp session. A private one is opened
                 and closed when omitted.
        chunk_size: Streaming chunk size. Defaults to MediaSettings.fetch_chunk_size.

    Raises:
        SchemeRejected, UpstreamStatusError, SizeLimitExceeded, EmptyBodyError.
        aiohttp.ClientError propagates for transport failures.
    """
    _require_https(url)

    settings = get_settings()
    if max_bytes is None:
        max_bytes = settings.max_fetch_bytes
    if chunk_size is None:
        chunk_size = settings.fetch_chunk_size

    if session is None:
        async with aiohttp.ClientSession(headers={"User-Agent": settings.user_agent}) as own_session:
            return await _download(own_session, dest_path, url, max_bytes, chunk_size)
    return await _download(session, dest_path, url, max_bytes, chunk_size)


async def _download(session, dest_path: str, url: str, max_bytes: int, chunk_size: int) -> int:
    async with session.get(url) as resp:
        # Redirects are followed by aiohttp; every hop must have stayed on https
        for hop in (*resp.history, resp):
            hop_url = str(hop.url)
            hop_scheme = urlsplit(hop_url).scheme.lower()
            if hop_scheme != "https":
                logger.warning(f"Rejected redirect from {url} to non-https {hop_url}")
                raise SchemeRejected(hop_url, hop_scheme)

        if not 200 <= resp.status < 300:
            logger.warning(f"Fetch of {url} failed with HTTP {resp.status}")
            raise UpstreamStatusError(url, resp.status, resp.reason)

        declared = _declared_length(resp.headers)
        if declared is not None and declared > max_bytes:
            logger.warning(f"Fetch of {url} declares {declared} bytes (max {max_bytes})")
            raise SizeLimitExceeded(declared, max_bytes, declared=True)

        return await _stream_to_file(resp, dest_path, url, max_bytes, chunk_size)


async def _stream_to_file(resp, dest_path: str, url: str, max_bytes: int, chunk_size: int) -> int:
    directory = os.path.dirname(os.path.abspath(dest_path))
    fd, part_path = tempfile.mkstemp(
        prefix=f".{os.path.basename(dest_path)}.",
        suffix=".part",
        dir=directory,
    )
    os.close(fd)

    written = 0
    committed = False
    try:
        async with aiofiles.open(part_path, "wb") as f:
            async for chunk in resp.content.iter_chunked(chunk_size):
                if not chunk:
                    continue
                written += len(chunk)
                if written > max_bytes:
                    logger.warning(f"Fetch of {url} streamed past {max_bytes} bytes")
                    raise SizeLimitExceeded(written, max_bytes, declared=False)
                await f.write(chunk)
            await f.flush()
            await asyncio.to_thread(os.fsync, f.fileno())

        if written == 0:
            raise EmptyBodyError(url)

        await aiofiles.os.replace(part_path, dest_path)
        committed = True
    finally:
        if not committed:
            await _discard(part_path)

    logger.info(f"Fetched {url} -> {dest_path} ({written} bytes)")
    return written
