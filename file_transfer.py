"""Build file responses for resolved targets."""

from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from urllib.parse import quote

from errors import TransferError
from response import HTTPResponse

logger = logging.getLogger(__name__)


def get_content_type(file_path: Path) -> str:
    content_type, encoding = mimetypes.guess_type(file_path.name)
    if content_type is None or encoding is not None:
        return "application/octet-stream"
    if content_type.startswith("text/"):
        return f"{content_type}; charset=utf-8"
    return content_type


def content_disposition(file_path: Path) -> str:
    return f"inline; filename*=UTF-8''{quote(file_path.name, safe='')}"


def open_file_response(file_path: Path, *, as_download_name: bool = False) -> HTTPResponse:
    """Open ``file_path`` now so an unreadable file becomes a 500, not a broken body.

    The returned response owns the open file; the writer closes it.
    """
    try:
        file_obj = file_path.open("rb")
    except OSError as exc:
        logger.error("Could not open %s for transfer: %s", file_path, exc)
        raise TransferError("File became unreadable") from exc

    try:
        file_size = os.fstat(file_obj.fileno()).st_size
    except OSError as exc:
        file_obj.close()
        logger.error("Could not stat %s for transfer: %s", file_path, exc)
        raise TransferError("File became unreadable") from exc

    headers = {"Content-Type": get_content_type(file_path)}
    if as_download_name:
        headers["Content-Disposition"] = content_disposition(file_path)
    return HTTPResponse(
        status_code=200,
        headers=headers,
        file_obj=file_obj,
        content_length_override=file_size,
    )
