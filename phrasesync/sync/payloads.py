from __future__ import annotations

from collections.abc import Iterable
from typing import Any, NamedTuple

from ..errors import MalformedDataError
from ..store.types import PhraseRecord
from ..store.utils import coerce_frequency, coerce_text, coerce_timestamp


class ServerItem(NamedTuple):
    text: str
    frequency: int
    updated_at: int


def encode_changes(records: Iterable[PhraseRecord]) -> list[list[str | int]]:
    return [record.as_triple() for record in records]


def build_sync_body(
    user_id: str, records: Iterable[PhraseRecord], last_synced_at: int
) -> dict[str, Any]:
    return {
        "userId": user_id,
        "changes": encode_changes(records),
        "lastSyncedAt": last_synced_at,
    }


def decode_triples(payload: object) -> list[ServerItem]:
    """Parse ``[[text, frequency, updatedAt], ...]`` into server items."""
    if not isinstance(payload, list):
        raise MalformedDataError(f"expected a JSON array of triples, got {type(payload).__name__}")
    items: list[ServerItem] = []
    for entry in payload:
        if not isinstance(entry, list) or len(entry) != 3:
            raise MalformedDataError(f"expected [text, frequency, updatedAt], got {entry!r}")
        text, frequency, updated_at = entry
        items.append(
            ServerItem(
                text=coerce_text(text),
                frequency=coerce_frequency(frequency),
                updated_at=coerce_timestamp(updated_at),
            )
        )
    return items
