"""
Capture Temp Paths
===================
Deterministic temp filenames for camera and screen captures.

The same (kind, facing, correlation id) always maps to the same file, so a
retried request overwrites its earlier attempt instead of leaking a new
file. Concurrent requests sharing an id write to the same path and the
last writer wins; pass a fresh id when isolation matters.

Inputs are not sanitized here.
"""

import os
import tempfile
import uuid
from typing import Optional


FILE_PREFIX = "openclaw"


def build_temp_path(
    kind: str,
    ext: str,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
    facing: Optional[str] = None,
    domain: Optional[str] = None,
) -> str:
    """
    Build <tmp_dir>/openclaw-<domain>-<kind>[-<facing>]-<id>.<ext>.

    domain defaults to "camera" when a facing is given, "screen" otherwise.
    Without a correlation_id a random one is generated, so the result is
    only deterministic when the caller supplies the id.
    """
    if domain is None:
        domain = "camera" if facing else "screen"
    if tmp_dir is None:
        tmp_dir = tempfile.gettempdir()
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex

    parts = [FILE_PREFIX, domain, kind]
    if facing:
        parts.append(facing)
    parts.append(correlation_id)

    ext = ext[1:] if ext.startswith(".") else ext
    return os.path.join(tmp_dir, f"{'-'.join(parts)}.{ext}")


def camera_temp_path(
    kind: str,
    facing: str,
    ext: str,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    return build_temp_path(
        kind=kind,
        ext=ext,
        tmp_dir=tmp_dir,
        correlation_id=correlation_id,
        facing=facing,
        domain="camera",
    )


def screen_record_temp_path(
    ext: str,
    tmp_dir: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    return build_temp_path(
        kind="record",
        ext=ext,
        tmp_dir=tmp_dir,
        correlation_id=correlation_id,
        domain="screen",
    )
