"""
Media Gate Errors
==================
Exceptions raised when untrusted media references or capture payloads
fail a safety check. Messages carry stable substrings ("sandbox",
"only https", "exceeds max", ...) so callers and log filters can match
on them.

None of these are retried internally.
"""

from typing import Optional


class MediaGateError(Exception):
    """Base class for all media-gate failures."""


class SandboxViolation(MediaGateError, PermissionError):
    """A local path resolved outside every trusted root."""

    def __init__(self, media: str, resolved: str = ""):
        self.media = media
        self.resolved = resolved
        detail = f" (resolved: {resolved})" if resolved and resolved != media else ""
        super().__init__(f"Path escapes sandbox root: {media}{detail}")


class InvalidUrl(MediaGateError, ValueError):
    """A file:// reference could not be parsed into a local path."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Invalid file:// URL{suffix}: {url!r}")


class SchemeRejected(MediaGateError, ValueError):
    """A fetch target used a scheme other than https."""

    def __init__(self, url: str, scheme: str):
        self.url = url
        self.scheme = scheme
        super().__init__(f"Refusing to fetch {scheme or '<none>'}:// URL (only https is allowed)")


class UpstreamStatusError(MediaGateError):
    """The remote server answered with a non-2xx status."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        self.url = url
        self.status = status
        self.reason = reason or ""
        text = f" {self.reason}" if self.reason else ""
        super().__init__(f"Failed to download {url}: HTTP {status}{text}")


class SizeLimitExceeded(MediaGateError):
    """A download declared or streamed more bytes than allowed."""

    def __init__(self, size: int, max_bytes: int, declared: bool = True):
        self.size = size
        self.max_bytes = max_bytes
        self.declared = declared
        what = "content-length" if declared else "downloaded size"
        super().__init__(f"Remote {what} {size} exceeds max {max_bytes} bytes")


class EmptyBodyError(MediaGateError):
    """The remote server answered 2xx with no body bytes."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Failed to download {url}: empty response body")


class PayloadValidationError(MediaGateError, ValueError):
    """A required capture payload field was missing or mistyped."""

    def __init__(self, kind: str, field: str = "", reason: str = ""):
        self.kind = kind
        self.field = field
        detail = ""
        if field:
            detail = f": {field} {reason or 'is missing or invalid'}"
        elif reason:
            detail = f": {reason}"
        super().__init__(f"invalid {kind} payload{detail}")


class BadEncoding(MediaGateError, ValueError):
    """Inline media bytes were not valid base64."""

    def __init__(self, reason: str = ""):
        suffix = f": {reason}" if reason else ""
        super().__init__(f"invalid base64 payload{suffix}")
