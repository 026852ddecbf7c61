"""
Capture Payload Validation
===========================
Turns loosely-typed capture records from remote nodes into typed payloads.

Required fields that are missing or mistyped reject the whole record.
Optional fields are best-effort metadata: a malformed value is dropped
and the payload is still delivered.

The base64 body is kept as opaque text; decoding happens when the
payload is written to disk.
"""

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Optional, TypeVar

from media_gate.helpers.media_errors import PayloadValidationError

logger = logging.getLogger("media-gate.payloads")

T = TypeVar("T")

CAMERA_SNAP = "camera.snap"
CAMERA_CLIP = "camera.clip"
SCREEN_RECORD = "screen.record"


class _Payload:
    def to_dict(self) -> Dict[str, Any]:
        """Wire-shaped dict (camelCase keys); absent optional fields are omitted."""
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[f.metadata.get("wire", f.name)] = value
        return out


def _wire(name: str, **kwargs):
    return field(metadata={"wire": name}, **kwargs)


@dataclass(frozen=True)
class CameraSnapPayload(_Payload):
    format: str
    base64: str
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class CameraClipPayload(_Payload):
    format: str
    base64: str
    duration_ms: float = _wire("durationMs")
    has_audio: bool = _wire("hasAudio")


@dataclass(frozen=True)
class ScreenRecordPayload(_Payload):
    format: str
    base64: Optional[str] = None
    url: Optional[str] = None
    duration_ms: Optional[float] = _wire("durationMs", default=None)
    fps: Optional[float] = None
    screen_index: Optional[int] = _wire("screenIndex", default=None)
    has_audio: Optional[bool] = _wire("hasAudio", default=None)


# Field parsers: return the typed value, or None when the raw value does not fit.

def _as_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass, but JSON true is not a number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _as_non_negative_number(value: Any) -> Optional[float]:
    number = _as_number(value)
    if number is None or number < 0:
        return None
    return number


def _as_index(value: Any) -> Optional[int]:
    number = _as_non_negative_number(value)
    if number is None or int(number) != number:
        return None
    return int(number)


def _as_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _required(raw: Dict[str, Any], kind: str, key: str, parse: Callable[[Any], Optional[T]]) -> T:
    if key not in raw:
        raise PayloadValidationError(kind, key, "is missing")
    parsed = parse(raw[key])
    if parsed is None:
        raise PayloadValidationError(kind, key, f"has invalid value {raw[key]!r}")
    return parsed


def _optional(raw: Dict[str, Any], kind: str, key: str, parse: Callable[[Any], Optional[T]]) -> Optional[T]:
    if raw.get(key) is None:
        return None
    parsed = parse(raw[key])
    if parsed is None:
        logger.debug(f"Dropping malformed optional field {kind}.{key}={raw[key]!r}")
    return parsed


def _ensure_record(raw: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise PayloadValidationError(kind, reason=f"expected an object, got {type(raw).__name__}")
    return raw


def parse_camera_snap_payload(raw: Any) -> CameraSnapPayload:
    record = _ensure_record(raw, CAMERA_SNAP)
    return CameraSnapPayload(
        format=_required(record, CAMERA_SNAP, "format", _as_string),
        base64=_required(record, CAMERA_SNAP, "base64", _as_string),
        width=_optional(record, CAMERA_SNAP, "width", _as_non_negative_number),
        height=_optional(record, CAMERA_SNAP, "height", _as_non_negative_number),
    )


def parse_camera_clip_payload(raw: Any) -> CameraClipPayload:
    record = _ensure_record(raw, CAMERA_CLIP)
    return CameraClipPayload(
        format=_required(record, CAMERA_CLIP, "format", _as_string),
        base64=_required(record, CAMERA_CLIP, "base64", _as_string),
        duration_ms=_required(record, CAMERA_CLIP, "durationMs", _as_non_negative_number),
        has_audio=_required(record, CAMERA_CLIP, "hasAudio", _as_bool),
    )


def parse_screen_record_payload(raw: Any) -> ScreenRecordPayload:
    """
    Parse a screen.record result.

    Only format is strictly required, but the record must still carry
    media: inline base64 or a url to fetch it from.
    """
    record = _ensure_record(raw, SCREEN_RECORD)
    fmt = _required(record, SCREEN_RECORD, "format", _as_string)
    b64 = _optional(record, SCREEN_RECORD, "base64", _as_string)
    url = _optional(record, SCREEN_RECORD, "url", _as_string)
    if b64 is None and url is None:
        raise PayloadValidationError(SCREEN_RECORD, "base64", "is missing (no url either)")

    return ScreenRecordPayload(
        format=fmt,
        base64=b64,
        url=url,
        duration_ms=_optional(record, SCREEN_RECORD, "durationMs", _as_non_negative_number),
        fps=_optional(record, SCREEN_RECORD, "fps", _as_non_negative_number),
        screen_index=_optional(record, SCREEN_RECORD, "screenIndex", _as_index),
        has_audio=_optional(record, SCREEN_RECORD, "hasAudio", _as_bool),
    )
