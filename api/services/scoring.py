"""Score scaling and formatting helpers."""
from typing import Protocol

from api.config import SCALED_SCORE_MAX
from api.models.db.catalog import TestType

# Official NMT conversion: test points -> 100..200 scale
NMT_TABLES: dict[str, dict[int, int]] = {
    "ukrainian-language": {
        8: 100, 9: 105, 10: 110, 11: 120, 12: 125, 13: 130, 14: 134, 15: 136,
        16: 138, 17: 140, 18: 142, 19: 143, 20: 144, 21: 145, 22: 146, 23: 148,
        24: 149, 25: 150, 26: 152, 27: 154, 28: 156, 29: 157, 30: 159, 31: 160,
        32: 162, 33: 163, 34: 165, 35: 167, 36: 170, 37: 172, 38: 175, 39: 177,
        40: 180, 41: 183, 42: 186, 43: 191, 44: 195, 45: 200,
    },
    "mathematics": {
        5: 100, 6: 108, 7: 115, 8: 123, 9: 131, 10: 134, 11: 137, 12: 140,
        13: 143, 14: 145, 15: 147, 16: 148, 17: 149, 18: 150, 19: 151, 20: 152,
        21: 155, 22: 159, 23: 163, 24: 167, 25: 170, 26: 173, 27: 176, 28: 180,
        29: 184, 30: 189, 31: 194, 32: 200,
    },
    "history-ukraine": {
        9: 100, 10: 105, 11: 110, 12: 115, 13: 120, 14: 125, 15: 130, 16: 132,
        17: 134, 18: 136, 19: 138, 20: 140, 21: 141, 22: 142, 23: 143, 24: 144,
        25: 145, 26: 146, 27: 147, 28: 148, 29: 149, 30: 150, 31: 151, 32: 152,
        33: 154, 34: 156, 35: 158, 36: 160, 37: 163, 38: 166, 39: 168, 40: 169,
        41: 170, 42: 172, 43: 173, 44: 175, 45: 177, 46: 179, 47: 181, 48: 183,
        49: 185, 50: 188, 51: 191, 52: 194, 53: 197, 54: 200,
    },
    "english-language": {
        5: 100, 6: 109, 7: 118, 8: 125, 9: 131, 10: 134, 11: 137, 12: 140,
        13: 143, 14: 145, 15: 147, 16: 148, 17: 149, 18: 150, 19: 151, 20: 152,
        21: 153, 22: 155, 23: 157, 24: 159, 25: 162, 26: 166, 27: 169, 28: 173,
        29: 179, 30: 185, 31: 191, 32: 200,
    },
}


class ScalePolicy(Protocol):
    """Maps a raw score onto the scaled score stored with a result."""

    def scale(
        self,
        raw_score: int,
        max_score: int,
        subject_slug: str | None,
        test_type: str | None,
    ) -> int: ...


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class LinearScalePolicy:
    """raw / max projected onto 0..top."""

    def __init__(self, top: int = SCALED_SCORE_MAX):
        self.top = top

    def scale(
        self,
        raw_score: int,
        max_score: int,
        subject_slug: str | None = None,
        test_type: str | None = None,
    ) -> int:
        if max_score <= 0:
            return 0
        ratio = max(0.0, min(1.0, raw_score / max_score))
        return _round_half_up(ratio * self.top)


class NmtScalePolicy(LinearScalePolicy):
    """Official conversion tables for past NMT papers, linear otherwise."""

    def __init__(
        self,
        tables: dict[str, dict[int, int]] | None = None,
        top: int = SCALED_SCORE_MAX,
    ):
        super().__init__(top)
        self.tables = NMT_TABLES if tables is None else tables

    def scale(
        self,
        raw_score: int,
        max_score: int,
        subject_slug: str | None = None,
        test_type: str | None = None,
    ) -> int:
        table = self.tables.get(subject_slug or "")
        if test_type != TestType.PAST_NMT.value or not table:
            return super().scale(raw_score, max_score)
        return convert_with_table(raw_score, table)


def convert_with_table(raw_score: int, table: dict[int, int]) -> int:
    """Look up a raw score, falling back to the nearest lower key."""
    keys = sorted(table)
    if raw_score < keys[0]:
        return 0
    if raw_score in table:
        return table[raw_score]
    for key in reversed(keys):
        if raw_score >= key:
            return table[key]
    return 0


def calculate_percentage(correct: int, total: int) -> float:
    """Share of correct answers in percent."""
    if total == 0:
        return 0.0
    return round(correct / total * 100, 2)

