"""Unit tests for resident name normalization and roster matching."""

import pytest

from carelog.services.extraction.name_matcher import (
    RosterEntry,
    build_roster,
    name_similarity,
    normalize_name,
    pick_resident,
)


class TestNormalizeName:

    def test_strips_digits_spaces_and_punctuation(self):
        assert normalize_name(" 山田 太郎 (3) ") == "山田太郎"
        assert normalize_name("佐藤・花子-2") == "佐藤花子"

    def test_none_becomes_empty(self):
        assert normalize_name(None) == ""


class TestNameSimilarity:

    def test_containment_scores_length_ratio(self):
        assert name_similarity("山田", "山田太郎") == pytest.approx(0.5)

    def test_identical_names_score_one(self):
        assert name_similarity("山田 太郎", "山田太郎") == 1.0

    def test_character_overlap(self):
        # {山,田,次,郎} vs {山,田,太,郎}
        assert name_similarity("山田次郎", "山田太郎") == pytest.approx(0.75)

    def test_empty_scores_zero(self):
        assert name_similarity("", "山田太郎") == 0.0


class TestPickResident:

    def test_exact_match(self, roster):
        entry = pick_resident(roster, "山田太郎")
        assert entry is not None
        assert entry.display_name == "山田太郎"

    def test_spaced_and_numbered_name_resolves(self, roster):
        entry = pick_resident(roster, "佐藤 花子 1")
        assert entry.display_name == "佐藤花子"

    def test_below_threshold_returns_none(self, roster):
        assert pick_resident(roster, "高橋") is None

    def test_stopwords_never_match(self, roster):
        assert pick_resident(roster, "名前") is None
        assert pick_resident(roster, "合計") is None

    def test_empty_name_returns_none(self, roster):
        assert pick_resident(roster, "") is None
        assert pick_resident(roster, None) is None

    def test_first_entry_wins_ties(self):
        roster = [
            RosterEntry.from_resident(1, "田中一"),
            RosterEntry.from_resident(2, "田中一"),
        ]
        assert pick_resident(roster, "田中一").id == "1"

    def test_threshold_is_configurable(self, roster):
        assert pick_resident(roster, "山田", threshold=0.6) is None
        assert pick_resident(roster, "山田", threshold=0.5).display_name == "山田太郎"


def test_build_roster_uses_id_and_full_name():
    class Resident:
        def __init__(self, id, full_name):
            self.id = id
            self.full_name = full_name

    roster = build_roster([Resident(7, "鈴木 一郎")])
    assert roster == [RosterEntry(id="7", display_name="鈴木 一郎", candidate="鈴木一郎")]
