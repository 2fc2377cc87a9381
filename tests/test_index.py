from phrasesync.index import RankedPrefixIndex, Suggestion


def _index(*phrases: str) -> RankedPrefixIndex:
    index = RankedPrefixIndex()
    for phrase in phrases:
        index.insert_or_increment(phrase)
    return index


def test_insert_counts_cumulatively() -> None:
    index = RankedPrefixIndex()
    assert index.insert_or_increment("hello") == 1
    assert index.insert_or_increment("hello") == 2
    assert index.insert_or_increment("help") == 1
    assert index.frequency_of("hello") == 2
    assert index.frequency_of("hel") == 0
    assert len(index) == 2


def test_empty_phrase_is_ignored() -> None:
    index = RankedPrefixIndex()
    assert index.insert_or_increment("") == 0
    assert len(index) == 0
    assert index.suggest("") == []


def test_suggest_orders_by_frequency_then_text() -> None:
    index = _index("hello", "help", "help", "helm", "hero", "hero")
    assert index.suggest("hel") == [
        Suggestion("help", 2),
        Suggestion("hello", 1),
        Suggestion("helm", 1),
    ]
    assert [s.text for s in index.suggest("he")] == ["help", "hero", "hello", "helm"]


def test_suggest_includes_exact_phrase_and_longer_ones() -> None:
    index = _index("hi", "hi there", "hi there")
    assert index.suggest("hi") == [Suggestion("hi there", 2), Suggestion("hi", 1)]


def test_suggest_empty_prefix_returns_everything() -> None:
    index = _index("a", "b", "b", "c")
    assert [s.text for s in index.suggest("")] == ["b", "a", "c"]


def test_suggest_unknown_prefix_and_limit() -> None:
    index = _index("apple", "apricot", "avocado")
    assert index.suggest("x") == []
    assert index.suggest("applesauce") == []
    assert len(index.suggest("a", limit=2)) == 2
    assert index.suggest("a", limit=0) == []


def test_best_match_uses_same_ranking() -> None:
    index = _index("cat", "car", "cart", "cart")
    assert index.best_match("ca") == Suggestion("cart", 2)
    index.insert_or_increment("car")
    assert index.best_match("ca") == Suggestion("car", 2)
    assert index.best_match("dog") is None
    assert index.best_match("ca") == index.suggest("ca")[0]


def test_restore_overwrites_without_counting() -> None:
    index = _index("note")
    index.restore("note", 7)
    index.restore("new", 3)
    assert index.frequency_of("note") == 7
    assert index.frequency_of("new") == 3
    assert index.insert_or_increment("note") == 8


def test_rebuild_replaces_contents() -> None:
    index = _index("old", "older")
    index.rebuild_from([("fresh", 4), ("frost", 2)])
    assert "old" not in index
    assert "fresh" in index
    assert len(index) == 2
    assert index.suggest("fr") == [Suggestion("fresh", 4), Suggestion("frost", 2)]


def test_rebuild_from_export_is_idempotent() -> None:
    index = _index("one", "two", "two", "three", "three", "three")
    exported = sorted(index.export_flat(), key=lambda s: s.text)
    index.rebuild_from(exported)
    index.rebuild_from(index.export_flat())
    assert sorted(index.export_flat(), key=lambda s: s.text) == exported


def test_reset_empties_index() -> None:
    index = _index("x", "y")
    index.reset()
    assert len(index) == 0
    assert index.suggest("") == []


def test_unicode_phrases() -> None:
    index = _index("café", "cafétéria", "café")
    assert index.suggest("caf") == [Suggestion("café", 2), Suggestion("cafétéria", 1)]
