from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from .ledger import Ledger
from .scanner import Mod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plan:
  to_resign: Tuple[Mod, ...]
  unchanged: Tuple[Mod, ...]


def is_stale(mod: Mod, ledger: Ledger) -> bool:
  # The ledger is an inclusive high-water mark: equal mtimes are up to date.
  previous = ledger.modified(mod.name)
  return previous is None or mod.latest_modified > previous


def plan(mods: Sequence[Mod], ledger: Ledger, force: Iterable[str] = ()) -> Plan:
  forced = set(force)
  unknown = forced - {mod.name for mod in mods}
  for name in sorted(unknown):
    logger.warning("Can't force %s: no such mod with packages", name)

  to_resign = []
  unchanged = []
  for mod in mods:
    if mod.name in forced or is_stale(mod, ledger):
      to_resign.append(mod)
    else:
      unchanged.append(mod)
  return Plan(to_resign=tuple(to_resign), unchanged=tuple(unchanged))
