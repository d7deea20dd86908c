"""Heuristic output quality scoring.

The score is a proxy built from output length relative to a per-use-case
target, markdown structure, and the presence of technical vocabulary. It never
judges whether the output is correct.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

MIN_SCORE = 1.0
MAX_SCORE = 5.0

LONG_FORM_USE_CASES = ("devlog", "blog")
SHORT_FORM_USE_CASES = ("capture", "summary", "social")

HEADER_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s", re.MULTILINE)
BULLET_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\S", re.MULTILINE)


@dataclass(frozen=True)
class QualityTables:
    """Lookup tables driving the scorer."""

    expected_lengths: dict = field(default_factory=lambda: {
        "capture": 100,
        "summary": 200,
        "social": 150,
        "devlog": 400,
        "blog": 600,
    })
    default_expected_length: int = 200
    # (upper ratio bound, inclusive bound, score), checked in order
    length_bands: tuple = (
        (0.3, False, 1.0),
        (0.7, False, 2.5),
        (1.5, True, 4.0),
        (2.0, True, 3.0),
    )
    overlong_score: float = 2.0
    structure_bonus: float = 0.5
    structure_penalty: float = 0.5
    vocabulary_bonus: float = 0.5
    technical_terms: tuple = (
        "api", "database", "server", "client", "service", "system",
        "performance", "optimization", "cache", "latency", "deploy",
        "architecture", "microservice", "kubernetes", "docker", "http",
        "json", "sql", "rest",
    )


DEFAULT_TABLES = QualityTables()


def has_markdown_structure(output: str) -> bool:
    """True when the text contains markdown headers or list bullets."""
    return bool(HEADER_PATTERN.search(output) or BULLET_PATTERN.search(output))


def has_markdown_headers(output: str) -> bool:
    return bool(HEADER_PATTERN.search(output))


class QualityAssessor:
    """Scores raw output text in the range [1, 5]. Stateless and pure."""

    def __init__(self, tables: QualityTables = DEFAULT_TABLES):
        self.tables = tables

    def expected_length(self, use_case: str, hint: Optional[int] = None) -> int:
        if hint:
            return hint
        return self.tables.expected_lengths.get(use_case, self.tables.default_expected_length)

    def length_score(self, length: int, expected: int) -> float:
        ratio = length / expected if expected > 0 else 0.0
        for bound, inclusive, score in self.tables.length_bands:
            if ratio < bound or (inclusive and ratio == bound):
                return score
        return self.tables.overlong_score

    def check_format_compliance(self, output: str, use_case: str) -> bool:
        """Long-form output should be structured, short-form output should not.

        Use cases outside both groups are always compliant.
        """
        if use_case in LONG_FORM_USE_CASES:
            return has_markdown_structure(output)
        if use_case in SHORT_FORM_USE_CASES:
            return not has_markdown_headers(output)
        return True

    def has_technical_vocabulary(self, output: str) -> bool:
        words = set(re.findall(r"[a-z0-9]+", output.lower()))
        return any(term in words or term + "s" in words for term in self.tables.technical_terms)

    def score(self, output: str, use_case: str, expected_length: Optional[int] = None) -> float:
        text = output.strip()
        score = self.length_score(len(text), self.expected_length(use_case, expected_length))

        if use_case in LONG_FORM_USE_CASES or use_case in SHORT_FORM_USE_CASES:
            if self.check_format_compliance(text, use_case):
                score += self.tables.structure_bonus
            else:
                score -= self.tables.structure_penalty

        if self.has_technical_vocabulary(text):
            score += self.tables.vocabulary_bonus

        return max(MIN_SCORE, min(MAX_SCORE, score))
