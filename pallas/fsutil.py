from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write_text(path: Path, content: str) -> None:
  """Write ``content`` next to ``path`` and rename it into place."""
  path.parent.mkdir(parents=True, exist_ok=True)
  fd, tmp = tempfile.mkstemp(prefix=".tmp.", dir=path.parent, text=True)
  try:
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
      handle.write(content)
    os.replace(tmp, path)
  except BaseException:
    try:
      os.remove(tmp)
    except FileNotFoundError:
      pass
    raise
