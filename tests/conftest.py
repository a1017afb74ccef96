"""Shared fixtures: a small served tree under pytest's tmp_path."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def share_root(tmp_path: Path) -> Path:
    root = tmp_path / "share"
    root.mkdir()
    (root / "a.txt").write_text("hi", encoding="utf-8")
    (root / "Zeta.bin").write_bytes(b"\x00\x01\x02")
    sub = root / "sub"
    sub.mkdir()
    (sub / "b.txt").write_text("bee", encoding="utf-8")
    (sub / "c d.html").write_text("<p>c</p>", encoding="utf-8")
    (sub / "nested").mkdir()
    return root.resolve()


@pytest.fixture
def outside_file(tmp_path: Path) -> Path:
    secret = tmp_path / "secret.txt"
    secret.write_text("top secret", encoding="utf-8")
    return secret.resolve()
