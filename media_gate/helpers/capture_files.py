"""
Capture Files: Materializing Capture Payloads
===============================================
Writes validated camera/screen payloads to local files.

Usage:
    payload = parse_camera_clip_payload(raw)
    path = await write_camera_clip_payload_to_file(
        payload, facing="front", correlation_id=request_id,
    )

Destination paths come from capture_paths, so retrying a request with the
same correlation id overwrites the same file. Directories are never
created here.
"""

import base64
import binascii
import logging
import re
from typing import Optional

import aiofiles

from media_gate.helpers import secure_fetch
from media_gate.helpers.capture_paths import camera_temp_path, screen_record_temp_path
from media_gate.helpers.capture_payloads import (
    CameraClipPayload,
    CameraSnapPayload,
    ScreenRecordPayload,
)
from media_gate.helpers.media_errors import BadEncoding

logger = logging.getLogger("media-gate.capture_files")

_WHITESPACE_RE = re.compile(r"\s+")


def decode_base64(data: str) -> bytes:
    """
    Strict base64 decode.

    Line breaks and spaces are tolerated, and missing trailing '=' padding
    is restored. Any other non-alphabet character is rejected.
    """
    if not isinstance(data, str):
        raise BadEncoding(f"expected text, got {type(data).__name__}")
    compact = _WHITESPACE_RE.sub("", data)
    compact += "=" * (-len(compact) % 4)
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadEncoding(str(e)) from e


async def write_base64_to_file(path: str, data: str) -> int:
    """Decode base64 text and write the bytes to path. Returns bytes written."""
    raw = decode_base64(data)
    async with aiofiles.open(path, "wb") as f:
        await f.write(raw)
    logger.info(f"Wrote {len(raw)} bytes to {path}")
    return len(raw)


async def write_url_to_file(path: str, url: str) -> int:
    """Fetch an https URL into path (see secure_fetch for the policy)."""
    return await secure_fetch.fetch_to_file(path, url)


async def write_camera_clip_payload_to_file(
    payload: CameraClipPayload,
    facing: str,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    path = camera_temp_path(
        kind="clip",
        facing=facing,
        ext=payload.format,
        tmp_dir=tmp_dir,
        correlation_id=correlation_id,
    )
    await write_base64_to_file(path, payload.base64)
    return path


async def write_camera_snap_payload_to_file(
    payload: CameraSnapPayload,
    facing: str,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    path = camera_temp_path(
        kind="snap",
        facing=facing,
        ext=payload.format,
        tmp_dir=tmp_dir,
        correlation_id=correlation_id,
    )
    await write_base64_to_file(path, payload.base64)
    return path


async def write_screen_record_payload_to_file(
    payload: ScreenRecordPayload,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    """
    Write a screen recording to its temp path.

    Inline base64 wins when both base64 and url are present.
    """
    path = screen_record_temp_path(
        ext=payload.format,
        tmp_dir=tmp_dir,
        correlation_id=correlation_id,
    )
    if payload.base64 is not None:
        await write_base64_to_file(path, payload.base64)
    else:
        await write_url_to_file(path, payload.url)
    return path
