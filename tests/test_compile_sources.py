"""Every shipped module must compile, including ones only run as scripts."""

from pathlib import Path

import pytest

from runtime.version import as_string

ROOT = Path(__file__).resolve().parents[1]
SOURCES = sorted(
    path
    for package in ("core", "services", "shared", "runtime", "scripts")
    for path in (ROOT / package).rglob("*.py")
)


@pytest.mark.parametrize("path", SOURCES, ids=lambda p: str(p.relative_to(ROOT)))
def test_module_compiles(path):
    compile(path.read_text(encoding="utf-8"), str(path), "exec")


def test_version_string():
    assert as_string() == "LiveWatch Runtime v0.3.0-alpha (Build 2026.10)"
