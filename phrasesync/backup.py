from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from .errors import MalformedDataError
from .index import Suggestion
from .store.utils import coerce_frequency, coerce_text


def dump_snapshot(entries: Iterable[Suggestion], *, pretty: bool = False) -> str:
    """Serialize to the compact backup form ``[[text, frequency], ...]``."""
    minified = [[entry.text, entry.frequency] for entry in entries]
    if pretty:
        return json.dumps(minified, ensure_ascii=False, indent=2)
    return json.dumps(minified, ensure_ascii=False)


def parse_snapshot(raw: str) -> list[Suggestion]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedDataError("invalid snapshot json") from exc
    if not isinstance(data, list):
        raise MalformedDataError("snapshot must be a JSON array")
    entries: list[Suggestion] = []
    for item in data:
        if not isinstance(item, list) or len(item) != 2:
            raise MalformedDataError(f"snapshot entry must be [text, frequency], got {item!r}")
        entries.append(Suggestion(text=coerce_text(item[0]), frequency=coerce_frequency(item[1])))
    return entries


def write_snapshot(path: Path | str, entries: Iterable[Suggestion], *, pretty: bool = False) -> Path:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f"{target.name}.tmp")
    tmp.write_text(dump_snapshot(entries, pretty=pretty) + "\n", encoding="utf-8")
    tmp.replace(target)
    return target


def read_snapshot(path: Path | str) -> list[Suggestion]:
    return parse_snapshot(Path(path).expanduser().read_text(encoding="utf-8"))
