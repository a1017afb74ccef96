"""Unit tests for request path resolution under the served root."""

import os
from pathlib import Path

import pytest

from errors import NotFound, OutOfScope
from path_resolver import TargetKind, resolve_target


def test_root_path_is_the_directory(share_root: Path) -> None:
    target = resolve_target("/", share_root)

    assert target.kind is TargetKind.DIRECTORY
    assert target.path == share_root


def test_file_resolves(share_root: Path) -> None:
    target = resolve_target("/a.txt", share_root)

    assert target.is_file
    assert target.path == share_root / "a.txt"


def test_percent_encoding_is_decoded(share_root: Path) -> None:
    target = resolve_target("/sub/c%20d.html", share_root)

    assert target.path == share_root / "sub" / "c d.html"


def test_dot_segments_inside_root_are_collapsed(share_root: Path) -> None:
    target = resolve_target("/sub/./nested/../b.txt", share_root)

    assert target.path == share_root / "sub" / "b.txt"


def test_directory_with_and_without_trailing_slash(share_root: Path) -> None:
    assert resolve_target("/sub/", share_root).is_directory
    assert resolve_target("/sub", share_root).is_directory


@pytest.mark.parametrize(
    "request_path",
    [
        "/../secret.txt",
        "/sub/../../secret.txt",
        "/%2E%2E/secret.txt",
        "/..%2Fsecret.txt",
        "/%2e%2e%2f%2e%2e%2fetc/passwd",
    ],
)
def test_traversal_outside_root_is_out_of_scope(
    share_root: Path, outside_file: Path, request_path: str
) -> None:
    with pytest.raises(OutOfScope):
        resolve_target(request_path, share_root)


def test_out_of_scope_is_a_not_found(share_root: Path) -> None:
    with pytest.raises(NotFound):
        resolve_target("/../../../../etc/passwd", share_root)


def test_missing_entry_is_not_found(share_root: Path) -> None:
    with pytest.raises(NotFound) as exc_info:
        resolve_target("/nope.txt", share_root)

    assert not isinstance(exc_info.value, OutOfScope)


def test_nul_byte_is_not_found(share_root: Path) -> None:
    with pytest.raises(NotFound):
        resolve_target("/a.txt%00.png", share_root)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_escaping_root_is_out_of_scope(share_root: Path, outside_file: Path) -> None:
    (share_root / "escape").symlink_to(outside_file)

    with pytest.raises(OutOfScope):
        resolve_target("/escape", share_root)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_inside_root_is_followed(share_root: Path) -> None:
    (share_root / "alias.txt").symlink_to(share_root / "sub" / "b.txt")

    target = resolve_target("/alias.txt", share_root)

    assert target.path == share_root / "sub" / "b.txt"


def test_single_file_root_only_serves_slash(share_root: Path) -> None:
    file_root = share_root / "a.txt"

    target = resolve_target("/", file_root)

    assert target.is_file
    assert target.path == file_root
    with pytest.raises(NotFound):
        resolve_target("/a.txt", file_root)
    with pytest.raises(NotFound):
        resolve_target("/../sub/b.txt", file_root)
