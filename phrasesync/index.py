from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Suggestion:
    text: str
    frequency: int


def _rank_key(item: Suggestion) -> tuple[int, str]:
    # Higher frequency first, then lexicographic text.
    return -item.frequency, item.text


class IndexNode:
    __slots__ = ("children", "terminal", "frequency", "phrase")

    def __init__(self) -> None:
        self.children: dict[str, IndexNode] = {}
        self.terminal = False
        self.frequency = 0
        self.phrase: str | None = None


class RankedPrefixIndex:
    """
    Character trie of phrases ranked by usage frequency.

    Terminal nodes cache the full phrase so collection never rebuilds paths.
    The tree is a derived view: it can always be rebuilt from the replica's
    records with ``rebuild_from``.
    """

    def __init__(self) -> None:
        self._root = IndexNode()
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __contains__(self, phrase: object) -> bool:
        if not isinstance(phrase, str) or not phrase:
            return False
        node = self._walk(phrase)
        return node is not None and node.terminal

    def _walk(self, prefix: str) -> IndexNode | None:
        node = self._root
        for char in prefix:
            child = node.children.get(char)
            if child is None:
                return None
            node = child
        return node

    def _descend(self, phrase: str) -> IndexNode:
        node = self._root
        for char in phrase:
            child = node.children.get(char)
            if child is None:
                child = IndexNode()
                node.children[char] = child
            node = child
        if not node.terminal:
            node.terminal = True
            node.phrase = phrase
            self._size += 1
        return node

    def insert_or_increment(self, phrase: str) -> int:
        """Record one use of ``phrase``; returns its new frequency (0 for empty input)."""
        if not phrase:
            return 0
        node = self._descend(phrase)
        node.frequency += 1
        return node.frequency

    def restore(self, phrase: str, frequency: int) -> None:
        """Set ``phrase`` to ``frequency`` without counting a use."""
        if not phrase:
            return
        node = self._descend(phrase)
        node.frequency = frequency

    def frequency_of(self, phrase: str) -> int:
        node = self._walk(phrase) if phrase else None
        if node is None or not node.terminal:
            return 0
        return node.frequency

    @staticmethod
    def _terminals(start: IndexNode) -> Iterator[IndexNode]:
        stack = [start]
        while stack:
            node = stack.pop()
            if node.terminal:
                yield node
            stack.extend(node.children.values())

    def suggest(self, prefix: str, *, limit: int | None = None) -> list[Suggestion]:
        node = self._walk(prefix)
        if node is None:
            return []
        results = [
            Suggestion(text=n.phrase or "", frequency=n.frequency) for n in self._terminals(node)
        ]
        results.sort(key=_rank_key)
        if limit is not None:
            return results[: max(limit, 0)]
        return results

    def best_match(self, prefix: str) -> Suggestion | None:
        node = self._walk(prefix)
        if node is None:
            return None
        best: IndexNode | None = None
        for candidate in self._terminals(node):
            if best is None or candidate.frequency > best.frequency:
                best = candidate
            elif candidate.frequency == best.frequency and (candidate.phrase or "") < (
                best.phrase or ""
            ):
                best = candidate
        if best is None:
            return None
        return Suggestion(text=best.phrase or "", frequency=best.frequency)

    def rebuild_from(self, records: Iterable[Any]) -> None:
        """Replace the tree with one holding exactly ``records``.

        Accepts ``(text, frequency)`` pairs or objects with ``text`` and
        ``frequency`` attributes. The new tree is restored aside and swapped
        in, so concurrent readers see either the old or the new tree.
        """
        fresh = RankedPrefixIndex()
        for item in records:
            text, frequency = _entry(item)
            fresh.restore(text, frequency)
        self._root, self._size = fresh._root, fresh._size

    def reset(self) -> None:
        self._root = IndexNode()
        self._size = 0

    def export_flat(self) -> list[Suggestion]:
        return [
            Suggestion(text=n.phrase or "", frequency=n.frequency)
            for n in self._terminals(self._root)
        ]


def _entry(item: Any) -> tuple[str, int]:
    if isinstance(item, tuple | list):
        text, frequency = item[0], item[1]
    else:
        text = getattr(item, "text")
        frequency = getattr(item, "frequency")
    return str(text), int(frequency)
