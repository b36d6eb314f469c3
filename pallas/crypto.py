"""Ed25519 key material and detached signatures backed by PyNaCl."""
from __future__ import annotations

import binascii
from dataclasses import dataclass
from pathlib import Path

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey
from pydantic import ValidationError

from .errors import KeyStoreError, VerificationError
from .fsutil import atomic_write_text
from .models import SignatureModel
from .package_reader import PackageView

KEY_BITS = 256
SIGNATURE_VERSION = 3


def _read_hex_key(path: Path, kind: str) -> bytes:
  if not path.exists():
    raise KeyStoreError(f"{kind} key not found at {path}")
  try:
    key_bytes = binascii.unhexlify(path.read_bytes().strip())
  except (binascii.Error, ValueError) as exc:
    raise KeyStoreError(f"{kind} key at {path} must be hex encoded") from exc
  if len(key_bytes) != 32:
    raise KeyStoreError(f"Ed25519 {kind.lower()} keys must be 32 bytes")
  return key_bytes


@dataclass(frozen=True)
class Signature:
  authority: str
  checksum: str
  signature: bytes
  version: int = SIGNATURE_VERSION

  def write(self, path: Path) -> None:
    model = SignatureModel(
      version=self.version,
      authority=self.authority,
      checksum=self.checksum,
      signature=self.signature.hex(),
    )
    path.write_text(model.model_dump_json(indent=2) + "\n", encoding="utf-8")

  @classmethod
  def read(cls, path: Path) -> "Signature":
    try:
      model = SignatureModel.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
      raise VerificationError(f"Signature {path} is malformed") from exc
    return cls(
      authority=model.authority,
      checksum=model.checksum,
      signature=bytes.fromhex(model.signature),
      version=model.version,
    )


@dataclass(frozen=True)
class PublicKey:
  label: str
  verify_key: VerifyKey

  def write(self, path: Path) -> None:
    path.write_text(self.verify_key.encode().hex(), encoding="utf-8")

  @classmethod
  def read(cls, path: Path, label: str) -> "PublicKey":
    return cls(label=label, verify_key=VerifyKey(_read_hex_key(path, "Public")))

  def verify(self, view: PackageView, signature: Signature) -> None:
    if signature.authority != self.label:
      raise VerificationError(f"Signature was made by {signature.authority}, not {self.label}")
    if signature.checksum != view.checksum:
      raise VerificationError(f"Checksum mismatch for {view.path}")
    try:
      self.verify_key.verify(view.digest, signature.signature)
    except BadSignatureError as exc:
      raise VerificationError("Signature verification failed") from exc


@dataclass(frozen=True)
class KeyPair:
  label: str
  signing_key: SigningKey

  def public_key(self) -> PublicKey:
    return PublicKey(label=self.label, verify_key=self.signing_key.verify_key)

  def sign(self, view: PackageView, version: int = SIGNATURE_VERSION) -> Signature:
    signature = self.signing_key.sign(view.digest).signature
    return Signature(authority=self.label, checksum=view.checksum, signature=signature, version=version)

  def write(self, path: Path) -> None:
    atomic_write_text(path, self.signing_key.encode().hex())

  @classmethod
  def read(cls, path: Path, label: str) -> "KeyPair":
    return cls(label=label, signing_key=SigningKey(_read_hex_key(path, "Private")))


def generate(bits: int, label: str) -> KeyPair:
  if bits != KEY_BITS:
    raise KeyStoreError(f"Ed25519 keys are {KEY_BITS} bits, got {bits}")
  if not label:
    raise KeyStoreError("Key label must not be empty")
  return KeyPair(label=label, signing_key=SigningKey.generate())
