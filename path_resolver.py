"""Map request paths onto the served root without letting them escape it."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from errors import NotFound, OutOfScope


class TargetKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    kind: TargetKind
    path: Path

    @property
    def is_file(self) -> bool:
        return self.kind is TargetKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is TargetKind.DIRECTORY


def resolve_target(request_path: str, served_root: Path) -> ResolvedTarget:
    """Resolve a raw (still percent-encoded) request path under ``served_root``.

    ``served_root`` must already be canonical. Containment is checked on the
    fully resolved filesystem path, so symbolic links whose target lies
    outside the root are rejected with ``OutOfScope`` like ``..`` segments.

    Raises ``OutOfScope`` or ``NotFound``; both surface to clients as 404.
    """
    decoded_path = unquote(request_path)
    if "\x00" in decoded_path:
        raise NotFound("Request path contains a NUL byte")

    relative_path = decoded_path.lstrip("/")

    if served_root.is_file():
        if relative_path:
            raise NotFound("Single-file root only serves '/'")
        return ResolvedTarget(kind=TargetKind.FILE, path=served_root)

    try:
        candidate = (served_root / relative_path).resolve()
    except (OSError, RuntimeError) as exc:
        raise NotFound("Request path could not be canonicalized") from exc

    try:
        candidate.relative_to(served_root)
    except ValueError as exc:
        raise OutOfScope("Request path escapes the served root") from exc

    if candidate.is_dir():
        return ResolvedTarget(kind=TargetKind.DIRECTORY, path=candidate)
    if candidate.is_file():
        return ResolvedTarget(kind=TargetKind.FILE, path=candidate)
    raise NotFound("No such entry")
