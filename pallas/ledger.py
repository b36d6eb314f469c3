"""Persisted modification-time ledger, one entry per authority."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from .errors import LedgerError
from .fsutil import atomic_write_text
from .models import LedgerModel


class Ledger:
  """Maps authority names to the latest package mtime (ns) signed for them."""

  def __init__(self, modified: Optional[Dict[str, int]] = None) -> None:
    self._modified: Dict[str, int] = dict(modified or {})

  @classmethod
  def load(cls, path: Path) -> "Ledger":
    if not path.exists():
      return cls()
    try:
      model = LedgerModel.model_validate_json(path.read_bytes())
    except OSError as exc:
      raise LedgerError(f"Can't read ledger {path}: {exc}") from exc
    except (ValidationError, UnicodeDecodeError) as exc:
      raise LedgerError(f"Ledger {path} is malformed: {exc}") from exc
    return cls(model.modified)

  def save(self, path: Path) -> None:
    model = LedgerModel(modified=dict(sorted(self._modified.items())))
    try:
      atomic_write_text(path, model.model_dump_json(indent=2) + "\n")
    except OSError as exc:
      raise LedgerError(f"Can't write ledger {path}: {exc}") from exc

  def modified(self, name: str) -> Optional[int]:
    return self._modified.get(name)

  def update(self, name: str, modified: int) -> None:
    self._modified[name] = modified

  @property
  def entries(self) -> Dict[str, int]:
    return dict(self._modified)
