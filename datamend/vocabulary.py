"""Canonical label lists used to snap categorical values onto known spellings."""

from __future__ import annotations

import math
import re
import unicodedata
from typing import Any

import jellyfish

from datamend.normalizer import name_tokens, strip_invisible, to_text

COUNTRIES = [
    "India",
    "United States",
    "United Kingdom",
    "Canada",
    "Australia",
    "Germany",
    "France",
    "Spain",
    "Italy",
]
GENDERS = ["Male", "Female", "Other", "Unknown"]

COUNTRY_ALIASES = {
    "us": "United States",
    "usa": "United States",
    "unitedstates": "United States",
    "unitedstatesofamerica": "United States",
    "uk": "United Kingdom",
    "gb": "United Kingdom",
    "greatbritain": "United Kingdom",
    "india": "India",
    "bharat": "India",
    "ind": "India",
}

GENDER_ALIASES = {
    "m": "Male",
    "male": "Male",
    "man": "Male",
    "f": "Female",
    "female": "Female",
    "woman": "Female",
}

CATEGORY_LOOKUP = {
    **GENDER_ALIASES,
    "yes": "Yes",
    "y": "Yes",
    "no": "No",
    "n": "No",
    "unknown": "Unknown",
    "unk": "Unknown",
}

GENDER_KEYWORDS = {"gender", "sex"}
COUNTRY_KEYWORDS = {"country", "nation", "location"}

NON_KEY_RE = re.compile(r"[^a-z0-9]")


def keyify(value: Any) -> str:
    """Accent-free lower-case alphanumerics: "Côte d'Ivoire" -> "cotedivoire"."""
    text = unicodedata.normalize("NFKD", to_text(value))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return NON_KEY_RE.sub("", text.lower())


def best_match(value: Any, candidates: list[str], ratio: float = 0.5) -> str | None:
    """Closest candidate by keyified Levenshtein distance, within ``ratio`` of the longer key."""
    key = keyify(value)
    if not key:
        return None
    best, best_dist = None, math.inf
    for candidate in candidates:
        dist = jellyfish.levenshtein_distance(key, keyify(candidate))
        if dist < best_dist:
            best, best_dist = candidate, dist
    if best is None:
        return None
    max_len = max(len(key), len(keyify(best)), 1)
    return best if best_dist <= math.ceil(max_len * ratio) else None


def vocabulary_for(column: str) -> tuple[list[str], dict[str, str]]:
    tokens = set(name_tokens(column))
    if tokens & GENDER_KEYWORDS:
        return GENDERS, GENDER_ALIASES
    if tokens & COUNTRY_KEYWORDS:
        return COUNTRIES, COUNTRY_ALIASES
    return [], {}


def canonical_label(value: Any) -> str | None:
    """Known canonical spelling for a value, or None when it is not a known label."""
    key = keyify(strip_invisible(to_text(value)))
    if not key:
        return None
    if key in CATEGORY_LOOKUP:
        return CATEGORY_LOOKUP[key]
    if key in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[key]
    for label in COUNTRIES + GENDERS:
        if keyify(label) == key:
            return label
    return None


def distinct_known_labels(a: Any, b: Any) -> bool:
    """True for pairs like Male/Female that look alike but are different known labels."""
    first, second = canonical_label(a), canonical_label(b)
    return first is not None and second is not None and first != second
