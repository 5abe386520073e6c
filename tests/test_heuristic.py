import pytest

from factify.models import AnalysisRequest
from factify.providers.heuristic import (
    HeuristicClaimClassifier,
    categorize,
    detect_red_flags,
    score_for,
)


def test_miracle_cure_is_health_with_three_flags():
    text = "They don't want you to know this secret miracle cure, 100% proven, act now!"
    result = HeuristicClaimClassifier().classify(text)

    assert result["category"] == "health"
    assert result["red_flags"] == ["Conspiracy language", "Absolute claims", "Urgency tactics"]
    assert result["score"] == 5
    assert result["confidence"] == 0.7


def test_peer_reviewed_study_is_science_without_flags():
    text = "A new peer-reviewed study from a university research team..."
    result = HeuristicClaimClassifier().classify(text)

    assert result["category"] == "science"
    assert result["red_flags"] == []
    assert result["score"] == 75
    assert result["confidence"] == 0.8


@pytest.mark.parametrize(
    "text, expected",
    [
        ("The vaccine rollout starts at the hospital", "health"),
        ("The election results were certified by the senate", "politics"),
        ("Climate research published in a journal", "science"),
        ("The moon landing was a hoax", "conspiracy"),
        ("Local bakery opens a second shop", "general"),
        ("", "general"),
    ],
)
def test_categories(text, expected):
    assert categorize(text) == expected


def test_health_wins_over_conspiracy():
    assert categorize("The cancer cure cover-up") == "health"


def test_keywords_need_a_leading_boundary():
    # "secure" must not read as "cure"
    assert categorize("Secure your account settings") == "general"


@pytest.mark.parametrize(
    "text",
    [
        "This nasal spray trick clears your sinuses",
        "The studyroom is booked until noon",
        "Curettage tools on display",
    ],
)
def test_keywords_need_a_trailing_boundary(text):
    assert categorize(text) == "general"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Doctors say this cures everything", "health"),
        ("Researchers studying the data", "science"),
        ("New studies on sleep", "science"),
        ("Voters head to the polls", "politics"),
        ("A healthy breakfast", "health"),
    ],
)
def test_inflected_keywords_still_match(text, expected):
    assert categorize(text) == expected


def test_classifier_is_pure():
    classifier = HeuristicClaimClassifier()
    text = "SHOCKING!!! Big pharma is hiding the hidden truth, share before it's deleted"
    assert classifier.classify(text) == classifier.classify(text)


def test_extra_red_flag_never_raises_score():
    base = "The government announced a new transport policy"
    flagged = base + ", urgent"
    more_flagged = flagged + ", wake up"

    scores = [HeuristicClaimClassifier().classify(t)["score"] for t in (base, flagged, more_flagged)]
    assert scores[0] > scores[1] > scores[2]


def test_score_floor_and_ceiling():
    assert score_for("conspiracy", 6) == 5
    assert score_for("science", 0) == 75
    assert score_for("unknown", 0) == 50
    assert score_for("general", 10) == 5


def test_curly_apostrophe_still_matches():
    assert "Conspiracy language" in detect_red_flags("They don’t want you to know")


@pytest.mark.asyncio
async def test_analyze_reads_request_text():
    classifier = HeuristicClaimClassifier()
    request = AnalysisRequest(text="Act now, limited time offer")
    output = await classifier.analyze(request)
    assert output["red_flags"] == ["Urgency tactics"]
    assert output["category"] == "general"
    assert output["score"] == 40


def test_empty_text_is_not_handled():
    assert HeuristicClaimClassifier().handles(AnalysisRequest(text="   ")) is False
