"""
Aggregate persistence on top of a key-value store.

DESIGN DECISION: Reading never fails.
Missing or malformed data is treated as "absent" and yields a default
aggregate. The unreadable payload is kept under "<key>.corrupt" so nothing
already durable is thrown away.

Forward compatibility is a shallow merge with defaults:
- top-level fields missing (or null) in the stored document take defaults
- the objects-of-arrays sections (study, records, settings) merge key by key,
  so an array introduced by a later version is never silently dropped
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError

from organizer.models.aggregate import STORAGE_VERSION, OrganizerData
from organizer.services.storage.interface import (
    ImportValidationError,
    KeyValueStoreInterface,
    LocalStoreError,
)


logger = structlog.get_logger(__name__)

# Sections whose keys are merged one by one with the defaults
NESTED_SECTIONS = ("study", "records", "settings")


def merge_defaults(raw: Any) -> dict[str, Any]:
    """
    Prepare a stored/imported document for validation.

    Null values are dropped so the model defaults apply to them, both at the
    top level and inside the nested sections. The version is stamped to the
    current one.

    Raises:
        ImportValidationError: If the document is not a JSON object
    """
    if not isinstance(raw, dict):
        raise ImportValidationError(
            f"Expected a JSON object, got {type(raw).__name__}"
        )

    merged: dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if key in NESTED_SECTIONS and isinstance(value, dict):
            value = {k: v for k, v in value.items() if v is not None}
        merged[key] = value

    merged["version"] = STORAGE_VERSION
    return merged


def parse_document(raw: Any) -> OrganizerData:
    """
    Validate a raw document into an aggregate, filling defaults.

    Accepts either a decoded JSON object or a JSON string.

    Raises:
        ImportValidationError: If the document cannot be used
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ImportValidationError(f"Invalid JSON: {e}")

    try:
        return OrganizerData.model_validate(merge_defaults(raw))
    except ValidationError as e:
        raise ImportValidationError(
            f"Document does not match schema ({e.error_count()} errors)"
        )


def export_document(data: OrganizerData, indent: int = 2) -> str:
    """Serialize the aggregate to the portable JSON format."""
    return json.dumps(data.to_document(), ensure_ascii=False, indent=indent)


class AggregateStore:
    """
    Durable local mirror of the aggregate.

    write() is synchronous from the caller's point of view and atomic in the
    underlying key-value store.
    """

    def __init__(self, kv_store: KeyValueStoreInterface, key: str):
        self._kv = kv_store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def corrupt_key(self) -> str:
        return f"{self._key}.corrupt"

    def read(self) -> OrganizerData:
        """
        Load the last written aggregate.

        Returns a default aggregate if nothing is stored or the stored value
        cannot be parsed.
        """
        try:
            raw = self._kv.get(self._key)
        except LocalStoreError as e:
            logger.error("local_store_read_failed", key=self._key, error=str(e))
            return OrganizerData()

        if raw is None:
            return OrganizerData()

        try:
            return parse_document(raw)
        except ImportValidationError as e:
            logger.warning(
                "local_store_parse_failed",
                key=self._key,
                error=str(e),
            )
            self._stash_corrupt(raw)
            return OrganizerData()

    def write(self, data: OrganizerData) -> bool:
        """
        Persist the full aggregate.

        Returns:
            True if the write is durable. Failures are logged, never raised.
        """
        try:
            self._kv.set(self._key, export_document(data, indent=None))
            return True
        except LocalStoreError as e:
            logger.error("local_store_write_failed", key=self._key, error=str(e))
            return False

    def clear(self) -> None:
        """Remove the stored aggregate (and any stashed corrupt copy)."""
        for key in (self._key, self.corrupt_key):
            try:
                self._kv.delete(key)
            except LocalStoreError as e:
                logger.error("local_store_delete_failed", key=key, error=str(e))

    def _stash_corrupt(self, raw: str) -> None:
        try:
            self._kv.set(self.corrupt_key, raw)
        except LocalStoreError as e:
            logger.error(
                "local_store_corrupt_stash_failed",
                key=self.corrupt_key,
                error=str(e),
            )
