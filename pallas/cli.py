"""Command line entry point: ``pallas <source> [mod ...]``."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from .engine import ProgressCounter
from .errors import LedgerError, PallasError
from .pipeline import RunReport, run
from .planner import Plan
from .settings import get_settings

__version__ = "0.1.0"

console = Console(soft_wrap=True)


class _ArgumentParser(argparse.ArgumentParser):

  def error(self, message: str) -> NoReturn:
    self.print_usage(sys.stderr)
    self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
  parser = _ArgumentParser(prog="pallas", description="Incrementally re-sign addons, one key per mod")
  parser.add_argument("-v", "--version", action="version", version=f"pallas {__version__}")
  parser.add_argument("source", type=Path, help="Directory containing @mod folders")
  parser.add_argument("force", nargs="*", default=[], help="Mod names to re-sign even if unchanged")
  return parser


def _setup_logging() -> None:
  logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=console, show_path=False)],
  )


def _print_failures(report: RunReport) -> None:
  for failure in report.failures:
    console.print(f"[red]Failed[/red] {escape(str(failure.package_path))}: {escape(failure.error)}")
  for name, error in sorted(report.authority_failures.items()):
    console.print(f"[red]Failed[/red] authority {escape(name)}: {escape(error)}")


def main(argv: Optional[Sequence[str]] = None) -> int:
  args = build_parser().parse_args(argv)
  _setup_logging()

  try:
    settings = get_settings()
  except ValueError as exc:
    console.print(f"[red]Invalid configuration: {escape(str(exc))}[/red]")
    return 1

  with Progress(
    TextColumn("[progress.description]{task.description}"),
    BarColumn(),
    MofNCompleteColumn(),
    TimeElapsedColumn(),
    console=console,
    transient=True,
  ) as bar:
    task = bar.add_task("Signing", total=0)

    def on_plan(run_plan: Plan, jobs: int) -> None:
      console.print(f"Signing {jobs} addons ({len(run_plan.unchanged)} mods unchanged)")
      bar.update(task, total=jobs)

    counter = ProgressCounter(on_advance=lambda: bar.advance(task))
    try:
      report = run(args.source, args.force, settings=settings, on_plan=on_plan, progress=counter)
    except PallasError as exc:
      if isinstance(exc, LedgerError) and exc.report is not None:
        _print_failures(exc.report)
      console.print(f"[red]{escape(str(exc))}[/red]")
      return 1

  _print_failures(report)
  if not report.ok:
    console.print(f"[red]{len(report.failures)} addons and {len(report.authority_failures)} mods failed[/red]")
    return 1
  console.print(f"Done, signed {len(report.signed)} addons for {len(report.committed)} mods")
  return 0


if __name__ == "__main__":
  sys.exit(main())
