"""
Media Safety: Path Validation for Media References
====================================================
Resolves untrusted media references (tool-call arguments, capture
results) into either a local path that provably lives inside a trusted
root, or a remote http(s) URL passed through untouched.

Exactly two roots are trusted, in order: the sandbox root the agent is
confined to and the OS temp directory (where captures and downloads are
written). Each root is canonicalized once. Containment is decided on
canonical paths, segment by segment:

- Directory traversal (../../etc/passwd) is collapsed before the check
- Symlink escapes are followed before the check
- /tmp2 is not inside /tmp

Unauthenticated hints (discovery metadata and the like) never add roots.
"""

from __future__ import annotations
import os
import re
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlsplit

from media_gate.helpers.media_errors import InvalidUrl, SandboxViolation

logger = logging.getLogger("media-gate.media_safety")

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_FILE_URL_RE = re.compile(r"^file://", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_FORBIDDEN_ESCAPE_RE = re.compile(r"%(2f|00)", re.IGNORECASE)

LOCAL = "local"
REMOTE = "remote"
EMPTY = "empty"


@dataclass(frozen=True)
class ResolvedLocation:
    """Outcome of resolving a media reference."""
    kind: str  # "local" | "remote" | "empty"
    value: str = ""
    root: Optional[str] = None  # canonical trusted root, for local paths

    @property
    def is_local(self) -> bool:
        return self.kind == LOCAL

    @property
    def is_remote(self) -> bool:
        return self.kind == REMOTE


def canonicalize(path: str) -> Path:
    """Absolute path with symlinks resolved and '..' collapsed; the leaf need not exist."""
    return Path(os.path.realpath(os.path.abspath(path)))


class TrustedRoots:
    """Ordered list of directories local media may resolve into."""

    def __init__(self, roots: Iterable[str]):
        self._roots: List[Path] = []
        for root in roots:
            canonical = canonicalize(root)
            if canonical not in self._roots:
                self._roots.append(canonical)

    @property
    def canonical_roots(self) -> List[str]:
        return [str(c) for c in self._roots]

    def find(self, candidate: str) -> Optional[str]:
        """Return the first canonical root containing candidate, or None."""
        resolved = canonicalize(candidate)
        for canonical in self._roots:
            try:
                resolved.relative_to(canonical)
                return str(canonical)
            except ValueError:
                continue
        return None


def file_url_to_path(url: str) -> str:
    """
    Decode a file:// URL into an absolute local path.

    Raises InvalidUrl for anything that is not a plain local file URL.
    """
    if _CONTROL_RE.search(url):
        raise InvalidUrl(url, "contains control characters")
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidUrl(url, str(e)) from e

    if parts.scheme.lower() != "file":
        raise InvalidUrl(url, "not a file URL")
    if parts.netloc not in ("", "localhost"):
        raise InvalidUrl(url, f"unsupported host {parts.netloc!r}")
    if parts.query or parts.fragment:
        raise InvalidUrl(url, "query and fragment are not allowed")

    raw_path = parts.path
    if _BAD_ESCAPE_RE.search(raw_path):
        raise InvalidUrl(url, "malformed percent escape")
    if _FORBIDDEN_ESCAPE_RE.search(raw_path):
        raise InvalidUrl(url, "must not include encoded / or NUL characters")
    try:
        path = unquote(raw_path, errors="strict")
    except UnicodeDecodeError as e:
        raise InvalidUrl(url, "path is not valid UTF-8") from e

    if not path.startswith("/"):
        raise InvalidUrl(url, "path must be absolute")
    return path


class MediaSafety:
    """
    Resolves media references against a sandbox root and the OS temp root.

    Usage:
        safety = MediaSafety(sandbox_root="/workspace/agent-1")
        safety.resolve("./out/chart.png")         # -> /workspace/agent-1/out/chart.png
        safety.resolve("https://cdn.example/a")   # -> unchanged
        safety.resolve("/etc/passwd")             # -> SandboxViolation
    """

    def __init__(self, sandbox_root: str):
        self.sandbox_root = os.path.abspath(sandbox_root)
        self.roots = TrustedRoots([self.sandbox_root, tempfile.gettempdir()])

    def resolve(self, media: str) -> str:
        """Local path, unchanged http(s) URL, or "" for an empty reference."""
        return self.resolve_location(media).value

    def resolve_location(self, media: str) -> ResolvedLocation:
        raw = (media or "").strip()
        if not raw:
            return ResolvedLocation(EMPTY)

        if _HTTP_URL_RE.match(raw):
            return ResolvedLocation(REMOTE, raw)

        if _FILE_URL_RE.match(raw):
            candidate = file_url_to_path(raw)
        else:
            candidate = raw

        if "\x00" in candidate:
            logger.warning(f"Media path rejected (embedded NUL): {raw!r}")
            raise SandboxViolation(raw)

        if not os.path.isabs(candidate):
            candidate = os.path.join(self.sandbox_root, candidate)
        candidate = os.path.normpath(candidate)

        root = self.roots.find(candidate)
        if root is None:
            resolved = str(canonicalize(candidate))
            logger.warning(
                f"Media path rejected (outside sandbox and temp roots): {raw} "
                f"(resolved: {resolved})"
            )
            raise SandboxViolation(raw, resolved)

        return ResolvedLocation(LOCAL, candidate, root=root)


def resolve_sandboxed_media_source(media: str, sandbox_root: str) -> str:
    """
    Resolve a media reference for a sandboxed agent.

    Returns an absolute local path inside the sandbox root or the OS temp
    directory, the http(s) URL unchanged, or "" for empty input.

    Raises:
        SandboxViolation: the path escapes both trusted roots.
        InvalidUrl: a file:// reference could not be parsed.
    """
    return MediaSafety(sandbox_root).resolve(media)
