"""
Field similarity for record linkage.

A mapped column pair is given a *kind* from its column name (email, phone,
identifier, name, address, geo or default). The kind picks both the
similarity function and the field's weight in the row score.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

import jellyfish
from rapidfuzz import fuzz

from datamend.normalizer import extract_domain, is_empty, name_tokens, normalize, strip_invisible, to_text, token_sort

MODES = ("basic", "advanced", "strict")

NON_DIGIT_RE = re.compile(r"\D")

# order matters: "phone_number" is a phone, not an identifier
FIELD_RULES: tuple[tuple[str, Callable[[list[str]], bool]], ...] = (
    ("email", lambda tokens: any("email" in t for t in tokens) or "mail" in tokens),
    ("phone", lambda tokens: any("phone" in t for t in tokens) or bool({"mobile", "tel", "telephone", "cell", "fax"} & set(tokens))),
    ("identifier", lambda tokens: bool({"id", "uid", "uuid", "guid", "code", "ssn", "account", "number", "num", "no", "sku", "zip", "postcode", "pin"} & set(tokens))),
    ("name", lambda tokens: any(t.endswith("name") for t in tokens) or bool({"first", "last", "surname", "customer", "person", "company", "vendor", "supplier", "contact"} & set(tokens))),
    ("address", lambda tokens: any(t.startswith("addr") for t in tokens) or bool({"street", "road", "line1", "line2"} & set(tokens))),
    ("geo", lambda tokens: bool({"city", "state", "country", "region", "province", "county", "location", "lat", "lng", "lon", "latitude", "longitude"} & set(tokens))),
)

FIELD_WEIGHTS = {
    "email": 5.0,
    "identifier": 4.0,
    "phone": 3.0,
    "name": 2.0,
    "address": 1.5,
    "geo": 1.0,
    "default": 1.0,
}


def field_kind(column: str) -> str:
    tokens = name_tokens(column)
    for kind, matches in FIELD_RULES:
        if matches(tokens):
            return kind
    return "default"


@dataclass(frozen=True)
class FieldSpec:
    column_a: str
    column_b: str
    kind: str
    weight: float


def build_field_specs(mapping: dict[str, str]) -> list[FieldSpec]:
    """One spec per mapped pair; the A-side name decides the kind, the B-side name is the fallback."""
    specs = []
    for column_a, column_b in mapping.items():
        kind = field_kind(column_a)
        if kind == "default":
            kind = field_kind(column_b)
        specs.append(FieldSpec(column_a, column_b, kind, FIELD_WEIGHTS[kind]))
    return specs


# ══════════════════════════════════════════════════════════════════════════
# ALGORITHMS (all take already-normalized strings)
# ══════════════════════════════════════════════════════════════════════════

def levenshtein_ratio(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return 1.0 - jellyfish.levenshtein_distance(a, b) / max(len(a), len(b))


def jaro_winkler(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return jellyfish.jaro_winkler_similarity(a, b)


def token_sort_ratio(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return fuzz.token_sort_ratio(a, b) / 100.0


def cosine(a: str, b: str) -> float:
    """Cosine similarity of token-frequency vectors."""
    va, vb = Counter(a.split()), Counter(b.split())
    if not va or not vb:
        return 0.0
    dot = sum(va[t] * vb[t] for t in va.keys() & vb.keys())
    norm = math.sqrt(sum(n * n for n in va.values())) * math.sqrt(sum(n * n for n in vb.values()))
    return dot / norm if norm else 0.0


def jaccard(a: str, b: str) -> float:
    sa, sb = set(a.split()), set(b.split())
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def phonetic(a: str, b: str) -> float:
    """Jaccard overlap of per-token Metaphone codes."""
    ca = {code for code in (jellyfish.metaphone(t) for t in a.split()) if code}
    cb = {code for code in (jellyfish.metaphone(t) for t in b.split()) if code}
    if not ca or not cb:
        return 0.0
    return len(ca & cb) / len(ca | cb)


def name_blend(a: str, b: str) -> float:
    """Order-insensitive blend: 0.30 JW + 0.25 Levenshtein + 0.20 token-sort + 0.15 cosine + 0.10 phonetic."""
    sa, sb = token_sort(a), token_sort(b)
    if not sa or not sb:
        return 0.0
    if sa == sb:
        return 1.0
    return (
        0.30 * jaro_winkler(sa, sb)
        + 0.25 * levenshtein_ratio(sa, sb)
        + 0.20 * token_sort_ratio(sa, sb)
        + 0.15 * cosine(sa, sb)
        + 0.10 * phonetic(sa, sb)
    )


# ══════════════════════════════════════════════════════════════════════════
# PER-KIND SCORERS
# ══════════════════════════════════════════════════════════════════════════

def _email_score(a: Any, b: Any, mode: str) -> float:
    ea, eb = strip_invisible(to_text(a)).lower(), strip_invisible(to_text(b)).lower()
    if ea == eb:
        return 1.0
    domain = extract_domain(ea)
    if domain and domain == extract_domain(eb):
        return 0.9
    return name_blend(ea, eb)


def _digit_score(a: Any, b: Any, mode: str) -> float:
    da, db = NON_DIGIT_RE.sub("", to_text(a)), NON_DIGIT_RE.sub("", to_text(b))
    if not da or not db:
        na, nb = normalize(a), normalize(b)
        return 1.0 if na == nb else levenshtein_ratio(na, nb)
    if da == db:
        return 1.0
    return levenshtein_ratio(da, db)


def _name_score(a: Any, b: Any, mode: str) -> float:
    return name_blend(normalize(a), normalize(b))


def _address_score(a: Any, b: Any, mode: str) -> float:
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    return max(cosine(na, nb), token_sort_ratio(na, nb), name_blend(na, nb))


def _default_score(a: Any, b: Any, mode: str) -> float:
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    if mode == "strict":
        return levenshtein_ratio(na, nb)
    if mode == "advanced":
        return name_blend(na, nb)
    return jaccard(na, nb)


SCORERS: dict[str, Callable[[Any, Any, str], float]] = {
    "email": _email_score,
    "phone": _digit_score,
    "identifier": _digit_score,
    "name": _name_score,
    "address": _address_score,
    "geo": _default_score,
    "default": _default_score,
}


def field_score(kind: str, value_a: Any, value_b: Any, mode: str = "basic") -> float:
    """0..1 similarity of two cells; 0 when either side is empty."""
    if is_empty(value_a) or is_empty(value_b):
        return 0.0
    score = SCORERS.get(kind, _default_score)(value_a, value_b, mode)
    return max(0.0, min(1.0, score))


def column_score(column: str, value_a: Any, value_b: Any, mode: str = "basic") -> float:
    """``field_score`` with the kind taken from the column name."""
    return field_score(field_kind(column), value_a, value_b, mode)
