"""Verifies a detached addon signature against a published public key."""
from __future__ import annotations

from pathlib import Path

from .crypto import PublicKey, Signature
from .errors import KeyStoreError, VerificationError
from .package_reader import open_package


def verify_signature(package_path: Path, signature_path: Path, public_key_path: Path) -> bool:
  if not package_path.exists():
    raise VerificationError(f"Package not found at {package_path}")
  if not signature_path.exists():
    raise VerificationError(f"Signature not found at {signature_path}")

  signature = Signature.read(signature_path)
  try:
    public_key = PublicKey.read(public_key_path, public_key_path.stem)
  except KeyStoreError as exc:
    raise VerificationError(str(exc)) from exc
  public_key.verify(open_package(package_path), signature)
  return True
