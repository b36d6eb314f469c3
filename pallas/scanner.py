"""Discovers mods under a root directory and the addons each one carries."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import ScanError
from .settings import Settings

logger = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Authority:
  name: str
  label: str

  @classmethod
  def from_dir_name(cls, dir_name: str, settings: Settings) -> "Authority":
    name = dir_name[len(settings.mod_prefix):] if dir_name.startswith(settings.mod_prefix) else dir_name
    if not name.strip():
      raise ScanError(f"Mod directory {dir_name!r} has an empty name")
    slug = _SLUG_PATTERN.sub("_", name.lower()).strip("_")
    if not slug:
      raise ScanError(f"Mod directory {dir_name!r} has no usable characters for a key label")
    return cls(name=name, label=f"{settings.label_prefix}_{slug}")


@dataclass(frozen=True)
class Mod:
  authority: Authority
  path: Path
  package_paths: Tuple[Path, ...]
  latest_modified: int
  has_legacy_marker: bool = False
  signature_paths: Tuple[Path, ...] = field(default=())
  legacy_key_dir: Optional[Path] = None

  @property
  def name(self) -> str:
    return self.authority.name

  @property
  def label(self) -> str:
    return self.authority.label


def _scan_mod(mod_dir: Path, settings: Settings) -> Optional[Mod]:
  authority = Authority.from_dir_name(mod_dir.name, settings)
  addons_dir = mod_dir / settings.package_dir
  if not addons_dir.is_dir():
    logger.warning("Skipping %s: no %s directory", mod_dir.name, settings.package_dir)
    return None

  packages: List[Path] = []
  signatures: List[Path] = []
  latest = 0
  has_legacy = False
  legacy_key_dir: Optional[Path] = None
  try:
    for entry in sorted(addons_dir.iterdir()):
      if entry.is_dir():
        if entry.name == settings.key_dir:
          legacy_key_dir = entry
        continue
      suffix = entry.suffix[1:]
      if suffix == settings.package_ext:
        packages.append(entry)
        latest = max(latest, entry.stat().st_mtime_ns)
      elif suffix == settings.legacy_ext:
        has_legacy = True
      elif suffix == settings.signature_ext:
        signatures.append(entry)
  except OSError as exc:
    raise ScanError(f"Can't read {addons_dir}: {exc}") from exc

  if not packages:
    logger.info("Skipping %s: no .%s packages", mod_dir.name, settings.package_ext)
    return None
  return Mod(
    authority=authority,
    path=mod_dir,
    package_paths=tuple(packages),
    latest_modified=latest,
    has_legacy_marker=has_legacy,
    signature_paths=tuple(signatures),
    legacy_key_dir=legacy_key_dir,
  )


def scan(root: Path, settings: Settings) -> List[Mod]:
  """Return every mod under ``root`` that has at least one package to sign.

  Any unreadable entry aborts the scan; a mod that silently drops out would
  never be signed.
  """
  if not root.is_dir():
    raise ScanError(f"Source directory {root} does not exist")
  mods: List[Mod] = []
  seen_labels: Dict[str, str] = {}
  try:
    entries = sorted(root.iterdir())
  except OSError as exc:
    raise ScanError(f"Can't read root directory {root}: {exc}") from exc
  for entry in entries:
    if not entry.name.startswith(settings.mod_prefix):
      continue
    try:
      if not entry.is_dir():
        continue
    except OSError as exc:
      raise ScanError(f"Can't read {entry}: {exc}") from exc
    mod = _scan_mod(entry, settings)
    if mod is None:
      continue
    other = seen_labels.get(mod.label)
    if other is not None:
      raise ScanError(f"Mods {other!r} and {mod.name!r} both map to key label {mod.label!r}")
    seen_labels[mod.label] = mod.name
    mods.append(mod)
  return mods
