"""HTML index pages for served directories."""

from __future__ import annotations

import html
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote

from config import AuthCredential


@dataclass(frozen=True, slots=True)
class ListingEntry:
    name: str
    is_directory: bool

    @property
    def display_name(self) -> str:
        return f"{self.name}/" if self.is_directory else self.name


def list_entries(directory: Path, served_root: Path) -> list[ListingEntry]:
    """Immediate children of ``directory``, sorted by name (ordinal, case-sensitive).

    Entries that would only produce 404s when followed are left out: symbolic
    links whose canonical target is missing or outside ``served_root``, and
    anything that is neither a regular file nor a directory (FIFOs, sockets).
    """
    entries: list[ListingEntry] = []
    with os.scandir(directory) as iterator:
        for dir_entry in iterator:
            if dir_entry.is_symlink():
                try:
                    Path(dir_entry.path).resolve(strict=True).relative_to(served_root)
                except (OSError, RuntimeError, ValueError):
                    continue
            try:
                is_directory = dir_entry.is_dir()
                if not is_directory and not dir_entry.is_file():
                    continue
            except OSError:
                continue
            entries.append(ListingEntry(name=dir_entry.name, is_directory=is_directory))
    entries.sort(key=lambda entry: entry.name)
    return entries


def entry_href(request_path: str, entry: ListingEntry, credential: AuthCredential | None) -> str:
    base = request_path if request_path.endswith("/") else f"{request_path}/"
    href = base + quote(entry.name, safe="")
    if entry.is_directory:
        href += "/"
    if credential is not None:
        href += f"?{credential.query_string}"
    return href


def render_listing(
    request_path: str,
    entries: list[ListingEntry],
    credential: AuthCredential | None = None,
) -> str:
    """Render an index page.

    ``request_path`` is the raw path from the request line; it is already
    percent-encoded, so entry names are quoted before being appended.
    """
    title = html.escape(f"Index of {unquote(request_path)}")
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{title}</title>",
        "</head>",
        "<body>",
        f"<h1>{title}</h1>",
        "<hr>",
        "<ul>",
    ]
    for entry in entries:
        href = html.escape(entry_href(request_path, entry, credential), quote=True)
        lines.append(f'<li><a href="{href}">{html.escape(entry.display_name)}</a></li>')
    lines.extend(["</ul>", "<hr>", "</body>", "</html>", ""])
    return "\n".join(lines)
