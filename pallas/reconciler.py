"""Filesystem reconciliation for authorities that are being re-signed."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, Sequence, Set

from .crypto import KeyPair
from .engine import Failed, SignResult
from .ledger import Ledger
from .planner import Plan
from .scanner import Mod
from .settings import Settings

logger = logging.getLogger(__name__)


def key_dir(mod: Mod, settings: Settings) -> Path:
  return mod.path / settings.key_dir


def public_key_path(mod: Mod, settings: Settings) -> Path:
  return key_dir(mod, settings) / f"{mod.label}.{settings.public_key_ext}"


def remove_stale_signatures(mod: Mod, settings: Settings) -> int:
  suffix = f".{mod.label}.{settings.signature_ext}"
  removed = 0
  for path in mod.signature_paths:
    if path.name.endswith(suffix):
      path.unlink(missing_ok=True)
      removed += 1
  return removed


def reset_key_dir(mod: Mod, settings: Settings) -> Path:
  target = key_dir(mod, settings)
  if mod.legacy_key_dir is not None and mod.legacy_key_dir.exists():
    shutil.rmtree(mod.legacy_key_dir)
  if not mod.has_legacy_marker and target.exists():
    shutil.rmtree(target)
  target.mkdir(parents=True, exist_ok=True)
  return target


def prepare(mod: Mod, keypair: KeyPair, settings: Settings) -> Path:
  """Clear this authority's old artifacts and publish its public key.

  Signatures from other authorities and the key directory of a mod that
  ships legacy packages are left alone.
  """
  removed = remove_stale_signatures(mod, settings)
  if removed:
    logger.debug("Removed %d stale signatures for %s", removed, mod.name)
  reset_key_dir(mod, settings)
  path = public_key_path(mod, settings)
  keypair.public_key().write(path)
  return path


def commit(plan: Plan, results: Sequence[SignResult], failed_authorities: Iterable[str], ledger: Ledger) -> Set[str]:
  """Record fully signed authorities in the ledger and return their names."""
  blocked = set(failed_authorities)
  blocked.update(result.authority for result in results if isinstance(result, Failed))
  committed: Set[str] = set()
  for mod in plan.to_resign:
    if mod.name in blocked:
      logger.warning("Not recording %s in the ledger; it will be retried next run", mod.name)
      continue
    ledger.update(mod.name, mod.latest_modified)
    committed.add(mod.name)
  return committed
