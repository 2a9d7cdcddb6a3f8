from dataclasses import dataclass

from rapidfuzz import fuzz, process

from statement_importer.models import ImportMerchantRule

EXACT_CONFIDENCE = 1.0


@dataclass(frozen=True)
class RuleMatch:
    rule: ImportMerchantRule
    matched_key: str
    confidence: float # 0.0 to 1.0
    source: str # "exact" or "fuzzy"


class LearnedRuleMatcher:
    """Looks merchant keys up in a snapshot of the workspace's learned rules.

    Exact keys always win. With ``fuzzy_threshold`` > 0 (rapidfuzz 0-100
    scale) a miss falls back to the closest stored key by token sort ratio.
    """

    def __init__(self, rules: dict[str, ImportMerchantRule], fuzzy_threshold: float = 0.0):
        self.rules = rules
        self.fuzzy_threshold = fuzzy_threshold

    def exact(self, key: str) -> RuleMatch | None:
        key = key.strip()
        if not key:
            return None
        rule = self.rules.get(key)
        if rule is None:
            return None
        return RuleMatch(rule=rule, matched_key=key, confidence=EXACT_CONFIDENCE, source="exact")

    def fuzzy(self, key: str) -> RuleMatch | None:
        key = key.strip()
        if not key or not self.rules or self.fuzzy_threshold <= 0:
            return None

        result = process.extractOne(
            key,
            self.rules.keys(),
            scorer=fuzz.token_sort_ratio,
            score_cutoff=self.fuzzy_threshold,
        )
        if not result:
            return None
        matched_key, score, _ = result
        return RuleMatch(
            rule=self.rules[matched_key],
            matched_key=matched_key,
            confidence=min(score / 100.0, EXACT_CONFIDENCE),
            source="fuzzy",
        )

    def match(self, source_key: str, description_key: str) -> RuleMatch | None:
        """Source key first, then description key; exact before fuzzy."""
        keys = [source_key]
        if description_key != source_key:
            keys.append(description_key)

        for key in keys:
            hit = self.exact(key)
            if hit:
                return hit
        for key in keys:
            hit = self.fuzzy(key)
            if hit:
                return hit
        return None
