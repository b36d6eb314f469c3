"""Reads addon packages into the byte view that gets signed.

The container layout is opaque here; a package is signed over the SHA-256
digest of its full byte stream.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .errors import PackageError

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class PackageView:
  path: Path
  digest: bytes

  @property
  def checksum(self) -> str:
    return self.digest.hex()


def read_package(handle: BinaryIO, path: Path) -> PackageView:
  h = hashlib.sha256()
  size = 0
  for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
    h.update(chunk)
    size += len(chunk)
  if size == 0:
    raise PackageError(f"Package {path} is empty")
  return PackageView(path=path, digest=h.digest())


def open_package(path: Path) -> PackageView:
  with path.open("rb") as handle:
    return read_package(handle, path)
