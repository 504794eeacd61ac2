"""Query heuristics for the catalog search.

Everything here is data plus small pure functions so the tables can be tested
and extended without touching the search control flow:

    * :data:`PRODUCT_CODE_RE` and :func:`extract_product_codes` find catalog
      codes such as ``JB02HR`` or ``JB10.600LJS`` in free text.
    * :func:`normalize_query` lowercases and ASCII-folds user input, and
      :func:`fuzzy_terms` turns it into contains-terms after applying the
      domain :data:`SYNONYMS` and dropping :data:`STOP_WORDS`.
    * :data:`CATEGORY_PATTERNS`, :data:`FEATURE_PATTERNS` and
      :func:`detect_spec_tokens` decide which supplemental browse passes run.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from unidecode import unidecode

logger = logging.getLogger(__name__)

# Two or three letters, a digit, then digits/dots, optional suffix letters and
# an optional hyphenated variant (``jb02hr-mk2``).
PRODUCT_CODE_RE = re.compile(r"\b[A-Za-z]{2,3}\d[\d.]*[A-Za-z0-9]*(?:-[A-Za-z0-9]+)?\b")
# IP ratings share the code shape but are specification values.
_IP_RATING_RE = re.compile(r"^ip\d{2}[a-z]?$", re.IGNORECASE)
_IP_TOKEN_RE = re.compile(r"\bip\s?-?(\d{2}[a-z]?)\b")
_IP_SPACED_RE = re.compile(r"\bip[\s-]+(\d)")
_KEEP_CHARS_RE = re.compile(r"[^0-9a-z.\- ]+")
_WORD_RE = re.compile(r"[0-9a-z]+")

META_QUERY_RE = re.compile(
    r"\bcategor(?:y|ies)\b|\blist of\b|\bwhat classes\b|\bhow many\b|\boverview\b"
    r"|\bwhat (?:products|ranges?|types) do you\b"
)

# (pattern, canonical term) applied to the normalized query.
SYNONYMS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\blife\s*-?\s*jackets?\b"), "lifejacket"),
    (re.compile(r"\bbreathing apparatus\b|\bscba\b|\bself[\s-]contained\b"), "ba"),
    (re.compile(r"\bfire extinguishers?\b"), "extinguisher"),
    (re.compile(r"\bemergency\b"), "sos"),
    (re.compile(r"\bhose\s*pipes?\b|\bfire hoses?\b"), "hose"),
    (re.compile(r"\blife\s*(?:buoy|ring)s?\b"), "lifebuoy"),
    (re.compile(r"\b(?:survival|immersion) suits?\b"), "immersion"),
    (re.compile(r"\blife\s*rafts?\b"), "liferaft"),
    (re.compile(r"\bfire blankets?\b"), "blanket"),
    (re.compile(r"\bwash\s*-?\s*down\b"), "washdown"),
)

STOP_WORDS = frozenset(
    {
        "a", "about", "all", "an", "and", "any", "are", "can", "cabinet", "cabinets",
        "could", "did", "do", "does", "for", "from", "get", "give", "got", "has",
        "have", "how", "i", "in", "is", "it", "its", "looking", "me", "need", "of",
        "on", "or", "our", "please", "product", "products", "recommend", "show",
        "some", "suitable", "tell", "that", "the", "their", "them", "there", "these",
        "this", "those", "to", "use", "want", "was", "we", "what", "whats", "when",
        "where", "which", "who", "why", "will", "with", "would", "you", "your",
    }
)


@dataclass(frozen=True)
class BrowsePattern:
    """A detection regex and the contains-terms it broadens the search with."""

    name: str
    pattern: re.Pattern[str]
    terms: tuple[str, ...]


CATEGORY_PATTERNS: tuple[BrowsePattern, ...] = (
    BrowsePattern("life jacket", re.compile(r"life\s*-?\s*jacket|\bpfds?\b"), ("lifejacket", "life jacket")),
    BrowsePattern("fire hose", re.compile(r"\bhose|hose\s*reel"), ("hose",)),
    BrowsePattern("fire extinguisher", re.compile(r"extinguisher"), ("extinguisher",)),
    BrowsePattern(
        "breathing apparatus",
        re.compile(r"breathing apparatus|\bscba\b|\bba (?:sets?|cabinets?|cylinders?)\b"),
        ("breathing apparatus", "ba set", "scba"),
    ),
    BrowsePattern("lifebuoy", re.compile(r"life\s*(?:buoy|ring)"), ("lifebuoy", "life buoy", "life ring")),
    BrowsePattern("immersion suit", re.compile(r"immersion|survival suit"), ("immersion", "survival suit")),
    BrowsePattern("wash-down", re.compile(r"wash\s*-?\s*down"), ("wash down", "washdown", "wash-down")),
    BrowsePattern("first aid", re.compile(r"first\s*-?\s*aid|\bmedical\b"), ("first aid", "medical")),
    BrowsePattern("electrical/ppe", re.compile(r"electrical|\bppe\b"), ("electrical", "ppe")),
    BrowsePattern("general purpose", re.compile(r"general\s*-?\s*purpose|general storage"), ("general purpose",)),
    BrowsePattern("stretcher", re.compile(r"stretcher"), ("stretcher",)),
    BrowsePattern("sos/rescue", re.compile(r"\bsos\b|rescue"), ("sos", "rescue")),
    BrowsePattern("descent device", re.compile(r"descent|evacuation device"), ("descent",)),
    BrowsePattern("ev/fire blanket", re.compile(r"fire\s*blanket|\bev\b|electric vehicle"), ("blanket", "ev fire")),
    BrowsePattern("liferaft", re.compile(r"life\s*raft"), ("liferaft", "life raft")),
    BrowsePattern("foam", re.compile(r"\bfoam\b"), ("foam",)),
)

FEATURE_PATTERNS: tuple[BrowsePattern, ...] = (
    BrowsePattern("colour", re.compile(r"\bcolou?rs?\b|\bral\b"), ("colour", "color", "ral")),
    BrowsePattern("heater", re.compile(r"\bheat(?:er|ers|ed|ing)\b|anti-?condensation"), ("heater", "heating")),
    BrowsePattern("insulation", re.compile(r"insulat"), ("insulation", "insulated")),
    BrowsePattern("lock", re.compile(r"\block(?:s|able|ing)?\b|padlock"), ("lock", "padlock")),
    BrowsePattern("optional extras", re.compile(r"\boptional\b|\bextras?\b|\baccessor"), ("optional", "option")),
    BrowsePattern("mounting", re.compile(r"\bmount|bracket|wall\s*-?\s*fix"), ("mount", "bracket")),
    BrowsePattern("window", re.compile(r"\bwindows?\b|vision panel"), ("window", "vision panel")),
    BrowsePattern("shelving", re.compile(r"\bshel(?:f|ves|ving)\b"), ("shelf", "shelves", "shelving")),
    BrowsePattern("arctic rating", re.compile(r"arctic|cold climate|sub-?zero|winteri[sz]"), ("arctic", "winteri")),
    BrowsePattern("door/seal", re.compile(r"\bdoors?\b|\bseals?\b|gasket|hinge"), ("door", "seal", "gasket")),
)

# (pattern, token searched for in the specification text)
MATERIAL_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"stainless(?: steel)?"), "stainless"),
    (re.compile(r"\bgrp\b|glass reinforced"), "grp"),
    (re.compile(r"galvani[sz]ed"), "galvani"),
    (re.compile(r"alumini?um"), "alumin"),
    (re.compile(r"polyethylene|\bmdpe\b"), "polyethylene"),
)


def normalize_query(text: str) -> str:
    """Lowercase, ASCII-fold and compact free-form input."""
    folded = unidecode(text or "").lower()
    cleaned = _KEEP_CHARS_RE.sub(" ", folded)
    compact = " ".join(cleaned.split())
    logger.debug("normalize_query raw=%r normalized=%r", text, compact)
    return compact


def extract_product_codes(text: str) -> list[str]:
    """Return every distinct code-shaped token in ``text``, lowercased, in order.

    IP ratings share the code shape but are left out.
    """
    codes: list[str] = []
    for match in PRODUCT_CODE_RE.finditer(text or ""):
        code = match.group(0).rstrip(".").lower()
        if _IP_RATING_RE.match(code) or code in codes:
            continue
        codes.append(code)
    return codes


def is_product_code(token: str) -> bool:
    token = (token or "").rstrip(".")
    return bool(PRODUCT_CODE_RE.fullmatch(token)) and not _IP_RATING_RE.match(token)


def has_product_code(text: str) -> bool:
    """True when anything in ``text`` has the code shape, IP ratings included."""
    return bool(PRODUCT_CODE_RE.search(text or ""))


def is_meta_query(text: str) -> bool:
    return bool(META_QUERY_RE.search((text or "").lower()))


def apply_synonyms(normalized: str) -> tuple[str, list[str]]:
    """Rewrite synonyms in place and report the canonical terms that fired."""
    rewritten = normalized
    canonical: list[str] = []
    for pattern, replacement in SYNONYMS:
        if pattern.search(rewritten):
            rewritten = pattern.sub(replacement, rewritten)
            if replacement not in canonical:
                canonical.append(replacement)
    return rewritten, canonical


def _stem(word: str) -> str:
    if len(word) > 4 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def fuzzy_terms(query: str) -> list[str]:
    """Contains-terms for the fuzzy strategy.

    Canonical synonym terms are always kept; ordinary words must be longer
    than two characters and not stop words.
    """
    rewritten, canonical = apply_synonyms(normalize_query(query))
    terms = list(canonical)
    for word in _WORD_RE.findall(rewritten):
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        stemmed = _stem(word)
        if stemmed not in terms:
            terms.append(stemmed)
    return terms


def _matching(patterns: Iterable[BrowsePattern], query: str) -> list[BrowsePattern]:
    lowered = normalize_query(query)
    return [entry for entry in patterns if entry.pattern.search(lowered)]


def detect_categories(query: str) -> list[BrowsePattern]:
    return _matching(CATEGORY_PATTERNS, query)


def detect_features(query: str) -> list[BrowsePattern]:
    return _matching(FEATURE_PATTERNS, query)


def detect_spec_tokens(query: str) -> list[str]:
    """Spec values worth scanning for: IP ratings first, then materials."""
    lowered = normalize_query(query)
    tokens = [f"ip{rating}" for rating in _IP_TOKEN_RE.findall(lowered)]
    for pattern, token in MATERIAL_PATTERNS:
        if pattern.search(lowered) and token not in tokens:
            tokens.append(token)
    return tokens


def spec_text_matches(text: str, token: str) -> bool:
    """Case-insensitive containment that treats ``IP 56`` and ``IP56`` alike."""
    haystack = _IP_SPACED_RE.sub(r"ip\1", (text or "").lower())
    return token in haystack
