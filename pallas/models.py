"""On-disk documents written by the signer."""
from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

LEDGER_VERSION = 0


class LedgerModel(BaseModel):
  version: int = LEDGER_VERSION
  modified: Dict[str, int] = Field(default_factory=dict)

  @field_validator("version")
  @classmethod
  def validate_version(cls, value: int) -> int:
    if value != LEDGER_VERSION:
      raise ValueError(f"unsupported ledger version {value}")
    return value


class SignatureModel(BaseModel):
  version: int
  authority: str
  checksum: str
  signature: str

  model_config = ConfigDict(frozen=True)

  @field_validator("checksum", "signature")
  @classmethod
  def validate_hex(cls, value: str) -> str:
    try:
      bytes.fromhex(value)
    except ValueError as exc:
      raise ValueError("value must be hex encoded") from exc
    return value
