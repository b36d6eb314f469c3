"""Parallel signing of addon packages.

Every job reads one package, signs it with its authority's key and writes a
detached signature next to it. Failures are caught per job and returned as
``Failed`` results so sibling jobs keep running.
"""
from __future__ import annotations

import concurrent.futures as cf
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Sequence, Union

from .crypto import SIGNATURE_VERSION, KeyPair
from .package_reader import open_package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignJob:
  package_path: Path
  authority: str


@dataclass(frozen=True)
class Ok:
  package_path: Path
  authority: str
  artifact_path: Path


@dataclass(frozen=True)
class Failed:
  package_path: Path
  authority: str
  error: str


SignResult = Union[Ok, Failed]


class ProgressCounter:
  """Thread-safe count of finished jobs with an optional per-job callback."""

  def __init__(self, on_advance: Optional[Callable[[], None]] = None) -> None:
    self._lock = threading.Lock()
    self._value = 0
    self._on_advance = on_advance

  def increment(self) -> None:
    with self._lock:
      self._value += 1
    if self._on_advance is not None:
      self._on_advance()

  @property
  def value(self) -> int:
    with self._lock:
      return self._value


def artifact_path(package_path: Path, label: str, signature_ext: str) -> Path:
  return package_path.with_name(f"{package_path.stem}.{label}.{signature_ext}")


def _sign_one(job: SignJob, keypair: KeyPair, signature_ext: str) -> SignResult:
  try:
    view = open_package(job.package_path)
    signature = keypair.sign(view, SIGNATURE_VERSION)
    out_path = artifact_path(job.package_path, keypair.label, signature_ext)
    signature.write(out_path)
  except Exception as exc:  # noqa: BLE001 - job boundary, reported as a result
    logger.debug("Signing %s failed", job.package_path, exc_info=True)
    return Failed(package_path=job.package_path, authority=job.authority, error=str(exc) or type(exc).__name__)
  return Ok(package_path=job.package_path, authority=job.authority, artifact_path=out_path)


def sign_all(
  jobs: Sequence[SignJob],
  keys: Mapping[str, KeyPair],
  *,
  signature_ext: str = "bisign",
  workers: int = 4,
  progress: Optional[ProgressCounter] = None,
) -> List[SignResult]:
  frozen_keys = MappingProxyType(dict(keys))
  missing = sorted({job.authority for job in jobs if job.authority not in frozen_keys})
  if missing:
    raise LookupError(f"No signing key resolved for {', '.join(missing)}")

  def _run(job: SignJob) -> SignResult:
    result = _sign_one(job, frozen_keys[job.authority], signature_ext)
    if progress is not None:
      progress.increment()
    return result

  results: List[SignResult] = []
  with cf.ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
    for result in ex.map(_run, jobs):
      results.append(result)
  return results
