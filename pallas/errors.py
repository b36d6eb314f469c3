from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
  from .pipeline import RunReport


class PallasError(RuntimeError):
  pass


class ScanError(PallasError):
  pass


class LedgerError(PallasError):
  """Ledger could not be read or written.

  When raised at the end of a run, ``report`` holds the outcome of the
  signing that already happened.
  """

  def __init__(self, message: str, report: Optional["RunReport"] = None) -> None:
    super().__init__(message)
    self.report = report


class KeyStoreError(PallasError):
  pass


class PackageError(PallasError):
  pass


class VerificationError(PallasError):
  pass
