import re
from dataclasses import dataclass

from statement_importer.models import Category

# Concept buckets used to line up export category labels ("Food & Drink")
# with workspace category names ("Dining"). Keys need not be category names.
SYNONYMS: dict[str, tuple[str, ...]] = {
    "dining": ("dining", "restaurant", "restaurants", "food", "eat", "drink", "fooddrink", "cafe"),
    "transportation": ("transportation", "fuel", "gas", "gasoline", "uber", "lyft", "transit", "parking"),
    "groceries": ("grocery", "groceries", "supermarket", "supermarkets", "market"),
    "coffee": ("coffee", "coffeeshop", "starbucks"),
    "shopping": ("retail", "shop", "shopping", "merchandise"),
    "health": ("health", "medical", "pharmacy", "doctor", "dental"),
    "utilities": ("utility", "utilities", "electric", "power", "water", "internet"),
    "entertainment": ("entertainment", "movies", "music", "streaming"),
    "travel": ("travel", "hotel", "air", "airline", "airlines", "rideshare"),
    "subscriptions": ("subscription", "subscriptions", "membership"),
}

EXACT_CONFIDENCE = 1.0
PLURAL_CONFIDENCE = 0.95
SYNONYM_CONFIDENCE = 0.90
CONTAINS_CONFIDENCE = 0.74
TOKEN_FLOOR = 0.55
TOKEN_CEILING = 0.70

_NON_ALNUM_RE = re.compile(r"[^0-9a-z]+")


@dataclass(frozen=True)
class CategorySuggestion:
    category: Category | None
    confidence: float
    reason: str


def normalize_name(value: str) -> str:
    return _NON_ALNUM_RE.sub("", value.strip().lower().replace("&", "and"))


def strip_trailing_s(value: str) -> str:
    if len(value) > 3 and value.endswith("s"):
        return value[:-1]
    return value


def tokenize(value: str) -> set[str]:
    return {part for part in _NON_ALNUM_RE.split(value.lower()) if len(part) > 2}


def concept_for(normalized: str) -> str | None:
    for concept, words in SYNONYMS.items():
        if any(normalize_name(word) == normalized for word in words):
            return concept
    return None


def suggest_category(csv_category: str | None, categories: list[Category]) -> CategorySuggestion | None:
    """Match an export's category label against the workspace categories.

    Returns ``None`` when the label is blank or nothing lines up.
    """
    raw = (csv_category or "").strip()
    key = normalize_name(raw)
    if not key or not categories:
        return None

    named = [(category, normalize_name(category.name)) for category in categories]

    for category, name_key in named:
        if name_key == key:
            return CategorySuggestion(category, EXACT_CONFIDENCE, "Exact category match")

    singular = strip_trailing_s(key)
    for category, name_key in named:
        if strip_trailing_s(name_key) == singular:
            return CategorySuggestion(category, PLURAL_CONFIDENCE, "Singular/plural category match")

    concept = concept_for(key)
    if concept is not None:
        for category, name_key in named:
            if concept_for(name_key) == concept:
                return CategorySuggestion(category, SYNONYM_CONFIDENCE, f"Synonym bucket: {concept}")

    for category, name_key in named:
        if name_key and (name_key in key or key in name_key):
            return CategorySuggestion(category, CONTAINS_CONFIDENCE, "Category name contains match")

    raw_tokens = tokenize(raw)
    best: CategorySuggestion | None = None
    for category in categories:
        tokens = tokenize(category.name)
        if not tokens or not raw_tokens:
            continue
        overlap = len(raw_tokens & tokens)
        if overlap == 0:
            continue
        ratio = overlap / max(len(raw_tokens), len(tokens))
        score = min(TOKEN_CEILING, max(TOKEN_FLOOR, ratio + 0.35))
        if best is None or score > best.confidence:
            best = CategorySuggestion(category, score, "Category token overlap")
    return best
