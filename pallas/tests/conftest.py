from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

import pytest

from pallas.settings import Settings

BASE_NS = 1_700_000_000 * 1_000_000_000


def touch(path: Path, mtime_ns: int, content: bytes = b"addon") -> Path:
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_bytes(content)
  os.utime(path, ns=(mtime_ns, mtime_ns))
  return path


@pytest.fixture
def settings() -> Settings:
  return Settings(workers=2)


@pytest.fixture
def make_mod(tmp_path):
  def _make(name: str, packages: Dict[str, int], extra: Optional[Dict[str, bytes]] = None) -> Path:
    addons = tmp_path / f"@{name}" / "addons"
    addons.mkdir(parents=True, exist_ok=True)
    for filename, mtime in packages.items():
      touch(addons / filename, mtime, content=f"{name}/{filename}".encode("utf-8"))
    for filename, content in (extra or {}).items():
      touch(addons / filename, BASE_NS, content=content)
    return tmp_path / f"@{name}"

  return _make
