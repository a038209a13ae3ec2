"""Sérialisation des enregistrements de cache (JSON UTF-8 versionné)."""

from __future__ import annotations

import json

from pydantic import ValidationError

from natal_backend.domain.entities import CacheRecord
from natal_backend.domain.errors import PersistenceError

SCHEMA_VERSION = 1


def encode_record(record: CacheRecord) -> bytes:
    """Encode un `CacheRecord` en octets JSON (`PersistenceError` en cas d'échec)."""
    try:
        body = record.model_dump(mode="json")
        body["schema_version"] = SCHEMA_VERSION
        return json.dumps(body, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as err:
        raise PersistenceError(f"cannot encode cache record {record.id}: {err}") from err


def decode_record(payload: bytes | str) -> CacheRecord:
    """Décode un enregistrement produit par `encode_record`.

    Lève `PersistenceError` pour un JSON invalide, une version de schéma inconnue ou un thème
    qui ne respecte plus les invariants (aucun corps, maisons incomplètes...).
    """
    try:
        body = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as err:
        raise PersistenceError(f"cache record is not valid JSON: {err}") from err
    if not isinstance(body, dict):
        raise PersistenceError("cache record must be a JSON object")
    version = body.pop("schema_version", None)
    if version != SCHEMA_VERSION:
        raise PersistenceError(f"unsupported cache schema version: {version!r}")
    try:
        return CacheRecord.model_validate(body)
    except ValidationError as err:
        raise PersistenceError(f"invalid cache record: {err}") from err
