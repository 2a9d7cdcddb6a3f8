import pytest

from statement_importer.matching.rules import LearnedRuleMatcher
from statement_importer.models import Category, ImportMerchantRule


@pytest.fixture
def rules():
    return {
        "UBER RIDE": ImportMerchantRule(
            merchant_key="UBER RIDE",
            workspace_id="ws",
            preferred_name="Uber",
            preferred_category=Category(name="Transport"),
        ),
        "BLUE BOTTLE COFFEE": ImportMerchantRule(
            merchant_key="BLUE BOTTLE COFFEE",
            workspace_id="ws",
            preferred_category=Category(name="Coffee"),
        ),
    }

def test_exact_on_source_key(rules):
    match = LearnedRuleMatcher(rules).match("UBER RIDE", "SOMETHING ELSE")
    assert match.matched_key == "UBER RIDE"
    assert match.confidence == 1.0
    assert match.source == "exact"

def test_exact_falls_back_to_description_key(rules):
    match = LearnedRuleMatcher(rules).match("BLUE BOTTLE CAFE", "BLUE BOTTLE COFFEE")
    assert match.matched_key == "BLUE BOTTLE COFFEE"
    assert match.source == "exact"

def test_fuzzy_disabled_by_default(rules):
    assert LearnedRuleMatcher(rules).match("UBER RIDE XL", "UBER RIDE XL") is None

def test_fuzzy_match_above_threshold(rules):
    match = LearnedRuleMatcher(rules, fuzzy_threshold=80).match("UBER RIDE XL", "UBER RIDE XL")
    assert match is not None
    assert match.matched_key == "UBER RIDE"
    assert match.source == "fuzzy"
    assert 0.8 <= match.confidence < 1.0

def test_fuzzy_below_threshold(rules):
    assert LearnedRuleMatcher(rules, fuzzy_threshold=95).match("UBER RIDE XL", "") is None

def test_exact_beats_fuzzy_on_other_key(rules):
    matcher = LearnedRuleMatcher(rules, fuzzy_threshold=50)
    match = matcher.match("UBER RIDES", "BLUE BOTTLE COFFEE")
    assert match.matched_key == "BLUE BOTTLE COFFEE"
    assert match.source == "exact"

def test_blank_keys_never_match(rules):
    assert LearnedRuleMatcher(rules, fuzzy_threshold=10).match("", "  ") is None
