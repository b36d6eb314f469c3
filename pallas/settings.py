from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

KEY_MODES = ("ephemeral", "persisted")


@dataclass(frozen=True)
class Settings:
  key_mode: str = "ephemeral"
  key_store_dir: Optional[Path] = None
  workers: int = 4
  label_prefix: str = "pallas"
  mod_prefix: str = "@"
  package_dir: str = "addons"
  package_ext: str = "pbo"
  legacy_ext: str = "ebo"
  signature_ext: str = "bisign"
  public_key_ext: str = "bikey"
  key_dir: str = "keys"
  ledger_name: str = "pallas.state"

  def __post_init__(self) -> None:
    if self.key_mode not in KEY_MODES:
      raise ValueError(f"Unknown key mode {self.key_mode!r}; expected one of {KEY_MODES}")
    if self.workers < 1:
      raise ValueError("workers must be at least 1")

  def key_store_for(self, root: Path) -> Path:
    return self.key_store_dir or (root / ".pallas" / "keys")

  @classmethod
  def from_env(cls) -> "Settings":
    key_mode = os.getenv("PALLAS_KEY_MODE", "ephemeral").strip().lower()
    key_store = os.getenv("PALLAS_KEY_STORE")
    workers = os.getenv("PALLAS_WORKERS")
    label_prefix = os.getenv("PALLAS_LABEL_PREFIX")
    package_dir = os.getenv("PALLAS_PACKAGE_DIR")
    return cls(
      key_mode=key_mode,
      key_store_dir=Path(key_store).expanduser() if key_store else None,
      workers=int(workers) if workers else (os.cpu_count() or 4),
      label_prefix=label_prefix or "pallas",
      package_dir=package_dir or "addons",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  return Settings.from_env()
