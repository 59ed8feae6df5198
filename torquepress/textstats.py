"""
Text analysis utilities (pure Python, no NLTK).

HTML/markdown scanning, syllable counting, Flesch reading ease and the
similarity measures the QC engine uses for duplicate and originality checks.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional, Set, Tuple

_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$", re.MULTILINE)
_MD_LINK_RE = re.compile(r"(!?)\[([^\]]*)\]\(([^)\s]+)[^)]*\)")


# ---------------------------------------------------------------------------
# HTML Scanning
# ---------------------------------------------------------------------------


@dataclass
class ScannedElement:
    """A start tag of interest with its attributes and inner text."""

    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""


class _HTMLScanner(HTMLParser):
    """Strip tags while recording headings, links, buttons, images and classed elements."""

    _BLOCK_TAGS = {
        "p", "div", "h1", "h2", "h3", "h4", "h5", "h6",
        "li", "blockquote", "tr", "br", "hr", "section", "table",
    }
    _TRACKED = {"h1", "h2", "h3", "h4", "h5", "h6", "a", "button"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.pieces: List[str] = []
        self.headings: List[Tuple[int, str]] = []
        self.links: List[ScannedElement] = []
        self.buttons: List[ScannedElement] = []
        self.images: List[ScannedElement] = []
        self.classed: List[ScannedElement] = []
        self._open: List[ScannedElement] = []

    def handle_starttag(self, tag: str, attrs: list) -> None:
        tag = tag.lower()
        attr_map = {k.lower(): (v or "") for k, v in attrs}
        if tag in self._BLOCK_TAGS:
            self.pieces.append("\n")
        element = ScannedElement(tag=tag, attrs=attr_map)
        if tag == "img":
            self.images.append(element)
            return
        if attr_map.get("class"):
            self.classed.append(element)
        if tag in self._TRACKED:
            self._open.append(element)

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        if tag in self._BLOCK_TAGS:
            self.pieces.append("\n")
        for idx in range(len(self._open) - 1, -1, -1):
            element = self._open[idx]
            if element.tag != tag:
                continue
            del self._open[idx]
            element.text = " ".join(element.text.split())
            if tag == "a":
                self.links.append(element)
            elif tag == "button":
                self.buttons.append(element)
            else:
                self.headings.append((int(tag[1]), element.text))
            break

    def handle_data(self, data: str) -> None:
        self.pieces.append(data)
        for element in self._open:
            element.text += data


def scan_html(html: str) -> _HTMLScanner:
    """Parse an HTML fragment and return the populated scanner."""
    scanner = _HTMLScanner()
    scanner.feed(html or "")
    scanner.close()
    return scanner


def markdown_headings(md: str) -> List[Tuple[int, str]]:
    """Return ``(level, text)`` for every ATX heading in a markdown string."""
    return [(len(m.group(1)), m.group(2).strip()) for m in _MD_HEADING_RE.finditer(md or "")]


def markdown_links(md: str) -> List[Tuple[str, str]]:
    """Return ``(text, href)`` for markdown links (images excluded)."""
    return [(m.group(2), m.group(3)) for m in _MD_LINK_RE.finditer(md or "") if not m.group(1)]


def strip_markup(text: str) -> str:
    """Remove HTML tags and common markdown syntax, normalising whitespace per line."""
    plain = "".join(scan_html(text).pieces)
    plain = _MD_LINK_RE.sub(lambda m: m.group(2), plain)
    plain = re.sub(r"^\s{0,3}(#{1,6}|[-*+]|\d+\.|>)\s+", "", plain, flags=re.MULTILINE)
    plain = re.sub(r"(\*\*|__|\*|_|`)", "", plain)
    lines = [" ".join(line.split()) for line in plain.split("\n")]
    return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Readability
# ---------------------------------------------------------------------------


def count_syllables(word: str) -> int:
    """Count syllables in a word using a vowel-group heuristic (minimum 1)."""
    word = re.sub(r"[^a-z]", "", word.lower())
    if not word:
        return 0

    vowels = set("aeiouy")
    count = 0
    prev_vowel = False
    for char in word:
        is_vowel = char in vowels
        if is_vowel and not prev_vowel:
            count += 1
        prev_vowel = is_vowel

    # Silent e
    if word.endswith("e") and len(word) > 2 and word[-2] not in vowels:
        count -= 1
    if len(word) > 2 and word.endswith("le") and word[-3] not in vowels and count == 0:
        count += 1
    if word.endswith("ed") and len(word) > 3 and word[-3] not in "dt" and count > 1:
        count -= 1

    return max(1, count)


def split_sentences(text: str) -> List[str]:
    """Split text into sentences, keeping common abbreviations intact."""
    abbreviations = ["Mr.", "Mrs.", "Dr.", "vs.", "etc.", "i.e.", "e.g.", "U.S.", "approx.", "est."]
    protected = text
    for i, abbr in enumerate(abbreviations):
        protected = protected.replace(abbr, f"__ABBR{i}__")

    sentences = []
    for raw in re.split(r"(?<=[.!?])\s+|\n+", protected):
        for i, abbr in enumerate(abbreviations):
            raw = raw.replace(f"__ABBR{i}__", abbr)
        raw = raw.strip()
        if raw:
            sentences.append(raw)
    return sentences


def split_words(text: str) -> List[str]:
    """Split text into words, stripping punctuation."""
    return re.findall(r"[A-Za-z0-9']+", text)


def word_count(text: str) -> int:
    return len(text.split())


def flesch_reading_ease(text: str) -> float:
    """Flesch Reading Ease (0-100, higher is easier).

    FRE = 206.835 - 1.015 * (words/sentences) - 84.6 * (syllables/words)
    """
    words = split_words(text)
    sentences = split_sentences(text)
    if not words or not sentences:
        return 0.0
    syllables = sum(count_syllables(w) for w in words)
    ease = 206.835 - 1.015 * (len(words) / len(sentences)) - 84.6 * (syllables / len(words))
    return max(0.0, min(100.0, ease))


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def word_set(text: str) -> Set[str]:
    """Whitespace-delimited, lowercased word set."""
    return set(text.lower().split())


def jaccard_similarity(set_a: Set[str], set_b: Set[str]) -> float:
    """|A & B| / |A | B|; 0.0 when both are empty."""
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def term_vector(text: str) -> Counter:
    return Counter(w.lower() for w in split_words(text))


def cosine_similarity(vec_a: Counter, vec_b: Counter, vocab: Optional[Set[str]] = None) -> float:
    """Cosine similarity of two term-frequency vectors."""
    keys = vocab if vocab is not None else set(vec_a) | set(vec_b)
    dot = sum(vec_a.get(k, 0) * vec_b.get(k, 0) for k in keys)
    norm_a = math.sqrt(sum(v * v for v in vec_a.values()))
    norm_b = math.sqrt(sum(v * v for v in vec_b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)
