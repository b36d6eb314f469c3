"""Resolves one signing keypair per authority.

``ephemeral`` mode generates a fresh keypair on every call and never touches
disk. ``persisted`` mode keeps the private key under the key store directory
and reuses it while it is at least as new as the mod's packages.
"""
from __future__ import annotations

import logging
from pathlib import Path

from .crypto import KEY_BITS, KeyPair, generate
from .errors import KeyStoreError
from .scanner import Mod

logger = logging.getLogger(__name__)


class AuthorityKeyStore:

  def __init__(self, mode: str, directory: Path) -> None:
    if mode not in ("ephemeral", "persisted"):
      raise ValueError(f"Unknown key mode {mode!r}")
    self._mode = mode
    self._directory = directory

  def key_path(self, mod: Mod) -> Path:
    return self._directory / f"{mod.label}.ed25519"

  def resolve(self, mod: Mod) -> KeyPair:
    if self._mode == "ephemeral":
      logger.debug("Generating ephemeral key %s", mod.label)
      return generate(KEY_BITS, mod.label)

    path = self.key_path(mod)
    try:
      if path.exists() and path.stat().st_mtime_ns >= mod.latest_modified:
        logger.debug("Reusing stored key %s", path)
        return KeyPair.read(path, mod.label)
      keypair = generate(KEY_BITS, mod.label)
      keypair.write(path)
    except OSError as exc:
      raise KeyStoreError(f"Can't persist key for {mod.name} at {path}: {exc}") from exc
    logger.info("Generated new key %s", path)
    return keypair
