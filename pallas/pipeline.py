"""Incremental re-signing run over a tree of mods."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from . import reconciler
from .crypto import KeyPair
from .engine import Failed, Ok, ProgressCounter, SignJob, SignResult, sign_all
from .errors import LedgerError, PallasError
from .key_store import AuthorityKeyStore
from .ledger import Ledger
from .planner import Plan, plan
from .scanner import Mod, scan
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
  plan: Plan
  results: List[SignResult] = field(default_factory=list)
  authority_failures: Dict[str, str] = field(default_factory=dict)
  committed: Set[str] = field(default_factory=set)

  @property
  def signed(self) -> List[Ok]:
    return [result for result in self.results if isinstance(result, Ok)]

  @property
  def failures(self) -> List[Failed]:
    return [result for result in self.results if isinstance(result, Failed)]

  @property
  def unchanged(self) -> List[str]:
    return [mod.name for mod in self.plan.unchanged]

  @property
  def ok(self) -> bool:
    return not self.failures and not self.authority_failures


def _resolve_keys(mods: Iterable[Mod], store: AuthorityKeyStore, settings: Settings, failures: Dict[str, str]) -> Dict[str, KeyPair]:
  keys: Dict[str, KeyPair] = {}
  for mod in mods:
    try:
      keypair = store.resolve(mod)
      reconciler.prepare(mod, keypair, settings)
    except (PallasError, OSError) as exc:
      logger.error("Can't prepare authority %s: %s", mod.name, exc)
      failures[mod.name] = str(exc)
      continue
    keys[mod.name] = keypair
  return keys


def run(
  root: Path,
  force: Iterable[str] = (),
  settings: Optional[Settings] = None,
  on_plan: Optional[Callable[[Plan, int], None]] = None,
  progress: Optional[ProgressCounter] = None,
) -> RunReport:
  """Scan ``root``, re-sign stale mods and persist the ledger.

  The ledger is written last and only carries authorities whose key was
  published and whose packages all signed.
  """
  settings = settings or get_settings()
  ledger_path = root / settings.ledger_name
  ledger = Ledger.load(ledger_path)
  mods = scan(root, settings)
  run_plan = plan(mods, ledger, force)
  report = RunReport(plan=run_plan)

  store = AuthorityKeyStore(settings.key_mode, settings.key_store_for(root))
  keys = _resolve_keys(run_plan.to_resign, store, settings, report.authority_failures)
  jobs = [
    SignJob(package_path=path, authority=mod.name)
    for mod in run_plan.to_resign
    if mod.name in keys
    for path in mod.package_paths
  ]
  if on_plan is not None:
    on_plan(run_plan, len(jobs))

  report.results = sign_all(
    jobs,
    keys,
    signature_ext=settings.signature_ext,
    workers=settings.workers,
    progress=progress,
  )
  for failure in report.failures:
    logger.error("Failed to sign %s: %s", failure.package_path, failure.error)

  report.committed = reconciler.commit(run_plan, report.results, report.authority_failures, ledger)
  try:
    ledger.save(ledger_path)
  except LedgerError as exc:
    raise LedgerError(str(exc), report=report) from exc
  return report
