"""Text processing utilities for GeoMapAgent.

Pure functions for evidence-span location, keyword extraction, and name
normalization. All functions are stateless with no I/O or external calls.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import FrozenSet, List, Tuple

# ── Keyword extraction constants ──────────────────────────────────────────────
# Characters outside CJK ideographs, a-z, digits, whitespace, hyphen and apostrophe
_KEYWORD_STRIP_RE = re.compile(r"[^一-龥a-z0-9\s\-']")
_DIGITS_RE = re.compile(r"^\d+$")

STOP_WORDS: FrozenSet[str] = frozenset({
    # English
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "from", "as", "is", "was", "are", "were", "been", "be", "being", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "may", "might", "must",
    "this", "that", "these", "those", "it", "its", "they", "them", "their", "there",
    "what", "which", "who", "when", "where", "why", "how", "can", "said", "say", "says",
    # Chinese
    "是", "的", "在", "有", "和", "就", "不", "人", "都", "一", "一個", "上", "也", "很", "到",
    "說", "要", "去", "你", "會", "著", "沒有", "看", "好", "自己", "這", "那", "他", "她",
    "它", "我們", "你們", "他們", "它們", "什麼", "怎麼", "如何", "為何", "因為", "所以",
    "如果", "但是", "而且", "或者", "以及", "並且", "關於", "根據", "來自", "來自於",
    # Newsroom vocabulary
    "news", "report", "reported", "according", "told", "tells",
    "新聞", "報導", "報道", "表示", "指出", "稱", "據", "透露",
})


def tokenize_keywords(text: str) -> List[str]:
    """Lowercase and split text into keyword tokens, stop words removed.

    Args:
        text: Free-form text.

    Returns:
        Tokens in document order (duplicates retained).
    """
    if not text or not text.strip():
        return []
    cleaned = _KEYWORD_STRIP_RE.sub(" ", text.lower())
    return [
        word
        for word in cleaned.split()
        if len(word) > 1 and not _DIGITS_RE.match(word) and word not in STOP_WORDS
    ]


def extract_keywords(text: str, limit: int = 30) -> List[str]:
    """Rank keywords by frequency and keep the top ``limit``.

    Ties keep first-occurrence order, so the result is deterministic.

    Args:
        text: Free-form text.
        limit: Maximum number of keywords.

    Returns:
        Distinct keywords, most frequent first.
    """
    counts = Counter(tokenize_keywords(text))
    return [word for word, _ in counts.most_common(limit)]


def locate_evidence(
    source: str,
    evidence: str,
    prefix_chars: int = 20,
    prefix_min_length: int = 10,
) -> Tuple[int, int]:
    """Find the offsets of an evidence quote inside the source text.

    Tries, in order: the exact quote, the whitespace-trimmed quote, and the
    first ``prefix_chars`` characters of the quote (only when the quote is
    longer than ``prefix_min_length``). A prefix hit reports the end offset
    as start plus the full quote length, clipped to the source.

    Args:
        source: Full source text.
        evidence: Quote returned by the extraction service.
        prefix_chars: Prefix length for the last-resort match.
        prefix_min_length: Minimum quote length before a prefix match is tried.

    Returns:
        ``(start, end)`` offsets, or ``(-1, -1)`` if the quote cannot be located.
    """
    if not evidence or not evidence.strip() or not source:
        return -1, -1

    start = source.find(evidence)
    if start >= 0:
        return start, start + len(evidence)

    trimmed = evidence.strip()
    start = source.find(trimmed)
    if start >= 0:
        return start, start + len(trimmed)

    if len(evidence) > prefix_min_length:
        start = source.find(evidence[:prefix_chars])
        if start >= 0:
            return start, min(len(source), start + len(evidence))

    return -1, -1


def normalize_name(name: str) -> str:
    """Collapse whitespace and strip a place or region name."""
    return re.sub(r"\s+", " ", name or "").strip()


def contains_word(haystack: str, needle: str) -> bool:
    """Case-insensitive whole-word containment check.

    Falls back to plain substring matching for needles that contain CJK
    characters, which have no word boundaries.
    """
    if not needle or not haystack:
        return False
    if re.search(r"[一-鿿]", needle):
        return needle.lower() in haystack.lower()
    pattern = r"(?<![\w])" + re.escape(needle.lower()) + r"(?![\w])"
    return re.search(pattern, haystack.lower()) is not None
