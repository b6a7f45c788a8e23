# file: tests/test_package.py
from __future__ import annotations

from pathlib import Path

import pytest

import scamshield

ROOT = Path(scamshield.__file__).resolve().parent.parent
SOURCES = sorted(
    p.relative_to(ROOT).as_posix()
    for d in ("scamshield", "tests")
    for p in (ROOT / d).rglob("*.py")
)


@pytest.mark.parametrize("rel", SOURCES)
def test_source_files_start_with_file_header(rel: str) -> None:
    first = (ROOT / rel).read_text(encoding="utf-8").splitlines()[0]
    assert first == f"# file: {rel}"
