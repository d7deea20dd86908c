import pytest

from lowspec_bench.quality import QualityAssessor, QualityTables, has_markdown_structure


@pytest.fixture
def assessor():
    return QualityAssessor()


@pytest.mark.parametrize("length,expected", [
    (10, 1.0),     # ratio 0.1
    (50, 2.5),     # ratio 0.5
    (70, 4.0),     # ratio 0.7 starts the ideal band
    (150, 4.0),    # ratio 1.5 still ideal
    (200, 3.0),    # ratio 2.0
    (250, 2.0),    # overlong
])
def test_length_score_bands(assessor, length, expected):
    assert assessor.length_score(length, 100) == expected


def test_expected_length_hint_overrides_table(assessor):
    assert assessor.expected_length("capture") == 100
    assert assessor.expected_length("capture", 300) == 300
    assert assessor.expected_length("unknown-use-case") == 200


def test_ideal_capture_scores_with_structure_bonus(assessor):
    # 100 plain characters: ideal length, no headers
    assert assessor.score("a" * 100, "capture") == 4.5


def test_short_form_with_headers_is_penalized(assessor):
    output = "# Title\n" + "a" * 92
    assert not assessor.check_format_compliance(output, "social")
    assert assessor.score(output, "capture") == 3.5


def test_long_form_needs_structure(assessor):
    plain = "word " * 80
    structured = "## Overview\n- " + "word " * 78
    assert not assessor.check_format_compliance(plain, "devlog")
    assert assessor.check_format_compliance(structured, "blog")


def test_other_use_cases_are_always_compliant(assessor):
    assert assessor.check_format_compliance("# anything", "translation")


def test_technical_vocabulary(assessor):
    assert assessor.has_technical_vocabulary("We tuned the Database indexes")
    assert assessor.has_technical_vocabulary("Two new APIs shipped")
    assert not assessor.has_technical_vocabulary("A lovely day at the beach")


def test_score_is_clamped(assessor):
    # Ideal length, compliant, technical: 4.0 + 0.5 + 0.5
    output = ("api " * 25).strip()
    assert assessor.score(output, "capture", expected_length=len(output)) == 5.0
    assert assessor.score("", "devlog") == 1.0


def test_score_strips_whitespace(assessor):
    assert assessor.score("   " + "a" * 100 + "\n\n", "capture") == assessor.score("a" * 100, "capture")


def test_markdown_structure_detection():
    assert has_markdown_structure("1. first\n2. second")
    assert has_markdown_structure("### Heading")
    assert not has_markdown_structure("plain text with a #hashtag")


USE_CASES = ("capture", "summary", "social", "devlog", "blog", "translation")
BODIES = {
    "plain": "word",
    "headed": "# Heading\nword",
    "bulleted": "- item\nword",
    "technical": "api server cache",
}


@pytest.mark.parametrize("use_case", USE_CASES)
@pytest.mark.parametrize("length", [0, 1, 30, 99, 150, 400, 900, 5000])
@pytest.mark.parametrize("body", sorted(BODIES))
def test_score_always_in_range_and_repeatable(assessor, use_case, length, body):
    text = BODIES[body]
    output = (text + " ") * (length // (len(text) + 1)) if length else ""

    score = assessor.score(output, use_case)

    assert 1.0 <= score <= 5.0
    assert assessor.score(output, use_case) == score


def test_upper_clamp_applies():
    # Generous bonuses push the raw score past 5
    tables = QualityTables(structure_bonus=1.0, vocabulary_bonus=1.0)
    output = ("api " * 25).strip()
    assert QualityAssessor(tables).score(output, "capture", expected_length=len(output)) == 5.0
