from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from pallas.engine import ProgressCounter
from pallas.errors import LedgerError, ScanError
from pallas.key_store import AuthorityKeyStore
from pallas.ledger import Ledger
from pallas.pipeline import run
from pallas.scanner import scan
from pallas.verify import verify_signature

from conftest import BASE_NS, touch


def test_second_run_is_a_no_op(tmp_path, make_mod, settings):
  make_mod("Alpha", {"a.pbo": BASE_NS, "b.pbo": BASE_NS})

  first = run(tmp_path, settings=settings)
  second = run(tmp_path, settings=settings)

  assert len(first.signed) == 2
  assert first.committed == {"Alpha"}
  assert second.results == []
  assert second.unchanged == ["Alpha"]
  assert second.ok


def test_two_mod_scenario(tmp_path, make_mod, settings):
  alpha_dir = make_mod("Alpha", {f"a{i}.pbo": BASE_NS - 10 for i in range(3)})
  bravo_dir = make_mod("Bravo", {"b0.pbo": BASE_NS - 10, "b1.pbo": BASE_NS + 10})
  Ledger({"Alpha": BASE_NS, "Bravo": BASE_NS}).save(tmp_path / settings.ledger_name)
  planned = []

  report = run(tmp_path, settings=settings, on_plan=lambda p, jobs: planned.append(jobs))

  assert planned == [2]
  assert {result.authority for result in report.signed} == {"Bravo"}
  assert len(report.signed) == 2
  assert not (alpha_dir / "keys").exists()
  assert not list((alpha_dir / "addons").glob("*.bisign"))
  public_path = bravo_dir / "keys" / "pallas_bravo.bikey"
  assert public_path.exists()
  for result in report.signed:
    assert verify_signature(result.package_path, result.artifact_path, public_path)
  ledger = Ledger.load(tmp_path / settings.ledger_name)
  assert ledger.entries == {"Alpha": BASE_NS, "Bravo": BASE_NS + 10}


def test_newer_content_triggers_resign(tmp_path, make_mod, settings):
  mod_dir = make_mod("Alpha", {"a.pbo": BASE_NS})
  run(tmp_path, settings=settings)
  touch(mod_dir / "addons" / "a.pbo", BASE_NS + 1, content=b"rebuilt")

  report = run(tmp_path, settings=settings)

  assert [result.package_path.name for result in report.signed] == ["a.pbo"]
  assert Ledger.load(tmp_path / settings.ledger_name).modified("Alpha") == BASE_NS + 1


def test_force_resigns_unchanged_mod(tmp_path, make_mod, settings):
  make_mod("Alpha", {"a.pbo": BASE_NS})
  run(tmp_path, settings=settings)

  report = run(tmp_path, ["Alpha"], settings=settings)

  assert len(report.signed) == 1


def test_corrupt_package_blocks_ledger_update(tmp_path, make_mod, settings):
  make_mod("Alpha", {"a.pbo": BASE_NS, "b.pbo": BASE_NS})
  make_mod("Bravo", {"c.pbo": BASE_NS})
  touch(tmp_path / "@Alpha" / "addons" / "broken.pbo", BASE_NS, content=b"")
  progress = ProgressCounter()

  report = run(tmp_path, settings=settings, progress=progress)

  assert len(report.signed) == 3
  assert [failure.package_path.name for failure in report.failures] == ["broken.pbo"]
  assert progress.value == 4
  assert not report.ok
  assert Ledger.load(tmp_path / settings.ledger_name).entries == {"Bravo": BASE_NS}
  assert run(tmp_path, settings=settings).plan.to_resign[0].name == "Alpha"


def test_rotation_leaves_one_signature_per_package(tmp_path, make_mod, settings):
  mod_dir = make_mod("Alpha", {"a.pbo": BASE_NS}, extra={"a.legacy.bisign": b"keep"})
  run(tmp_path, settings=settings)

  run(tmp_path, ["Alpha"], settings=settings)

  signatures = sorted(path.name for path in (mod_dir / "addons").glob("*.bisign"))
  assert signatures == ["a.legacy.bisign", "a.pallas_alpha.bisign"]
  assert verify_signature(
    mod_dir / "addons" / "a.pbo",
    mod_dir / "addons" / "a.pallas_alpha.bisign",
    mod_dir / "keys" / "pallas_alpha.bikey",
  )


def test_persisted_keys_survive_unchanged_runs(tmp_path, make_mod, settings):
  persisted = dataclasses.replace(settings, key_mode="persisted")
  make_mod("Alpha", {"a.pbo": BASE_NS})
  run(tmp_path, settings=persisted)
  mod = scan(tmp_path, persisted)[0]
  key_path = AuthorityKeyStore("persisted", persisted.key_store_for(tmp_path)).key_path(mod)
  before = key_path.read_bytes()
  before_mtime = key_path.stat().st_mtime_ns

  report = run(tmp_path, settings=persisted)

  assert report.results == []
  assert key_path.read_bytes() == before
  assert key_path.stat().st_mtime_ns == before_mtime


def test_key_failure_is_isolated_to_its_authority(tmp_path, make_mod, settings):
  persisted = dataclasses.replace(settings, key_mode="persisted")
  alpha_dir = make_mod("Alpha", {"a.pbo": BASE_NS})
  make_mod("Bravo", {"b.pbo": BASE_NS})
  key_dir = persisted.key_store_for(tmp_path)
  key_dir.mkdir(parents=True)
  (key_dir / "pallas_alpha.ed25519").write_text("not-a-key", encoding="utf-8")

  report = run(tmp_path, settings=persisted)

  assert set(report.authority_failures) == {"Alpha"}
  assert {result.authority for result in report.signed} == {"Bravo"}
  assert not (alpha_dir / "keys").exists()
  assert Ledger.load(tmp_path / persisted.ledger_name).entries == {"Bravo": BASE_NS}


def test_binary_key_file_is_isolated_to_its_authority(tmp_path, make_mod, settings):
  persisted = dataclasses.replace(settings, key_mode="persisted")
  make_mod("Alpha", {"a.pbo": BASE_NS})
  make_mod("Bravo", {"b.pbo": BASE_NS})
  key_dir = persisted.key_store_for(tmp_path)
  key_dir.mkdir(parents=True)
  (key_dir / "pallas_alpha.ed25519").write_bytes(b"\xff" * 32)

  report = run(tmp_path, settings=persisted)

  assert set(report.authority_failures) == {"Alpha"}
  assert {result.authority for result in report.signed} == {"Bravo"}
  assert Ledger.load(tmp_path / persisted.ledger_name).entries == {"Bravo": BASE_NS}


def test_ledger_save_failure_is_fatal_and_keeps_report(tmp_path, make_mod, settings, monkeypatch):
  make_mod("Alpha", {"a.pbo": BASE_NS}, extra={"broken.pbo": b""})

  def _refuse(path, content):
    raise PermissionError("read-only")

  monkeypatch.setattr("pallas.ledger.atomic_write_text", _refuse)

  with pytest.raises(LedgerError) as exc:
    run(tmp_path, settings=settings)

  assert exc.value.report is not None
  assert [failure.package_path.name for failure in exc.value.report.failures] == ["broken.pbo"]
  assert not (tmp_path / settings.ledger_name).exists()


def test_unreadable_addons_dir_aborts_the_run(tmp_path, make_mod, settings, monkeypatch):
  make_mod("Alpha", {"a.pbo": BASE_NS})
  make_mod("Bravo", {"b.pbo": BASE_NS})
  original_iterdir = Path.iterdir

  def _iterdir(self):
    if self.parent.name == "@Bravo" and self.name == "addons":
      raise PermissionError(f"denied: {self}")
    return original_iterdir(self)

  monkeypatch.setattr(Path, "iterdir", _iterdir)

  with pytest.raises(ScanError):
    run(tmp_path, settings=settings)
  assert not (tmp_path / settings.ledger_name).exists()
  assert not list((tmp_path / "@Alpha" / "addons").glob("*.bisign"))
