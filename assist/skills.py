"""Skill normalization using taxonomy + rapidfuzz.

Resolves free-form skill names to canonical base skills (splitting compound
entries such as "React/Next.js"), and extracts taxonomy skills mentioned in
free text with evidence spans.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rapidfuzz import fuzz, process

from forge.config import settings
from taxonomy.skill_taxonomy import AMBIGUOUS_SYNONYMS, SKILL_CATEGORIES, SKILL_TAXONOMY

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "OTHER"

# Pieces separated by these are always distinct skills
_STRONG_SEPARATORS = ",;|"
# These only split when the whole piece is not itself a known skill ("CI/CD")
_WEAK_SPLIT_RE = re.compile(r"\s*/\s*|\s*&\s*|\s+and\s+", re.IGNORECASE)
_PAREN_RE = re.compile(r"^(?P<base>.*?)\s*\((?P<detail>[^)]*)\)\s*$")
_VERSION_RE = re.compile(r"^(?P<base>.*?[A-Za-z+#])(?:[\s-]+v?|v)\d+(?:\.\d+)*(?:\.x)?\+?$", re.IGNORECASE)


@dataclass
class NormalizedSkill:
    """A skill name resolved to its base skill."""
    base_name: str
    category: str = DEFAULT_CATEGORY
    detailed_variant: str | None = None
    raw_text: str = ""
    method: str = "exact"  # exact, synonym, fuzzy, new


@dataclass
class ExtractedSkill:
    """A taxonomy skill found in free text, with evidence."""
    canonical_skill: str
    raw_text: str
    evidence_text: str = ""
    span_start: int = -1
    span_end: int = -1


@dataclass
class SkillTaxonomy:
    """Skill taxonomy entry with synonyms."""
    canonical_skill: str
    synonyms: list[str] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY


def _clean(name: str) -> str:
    name = re.sub(r"\s+", " ", name or "")
    name = name.strip().lstrip("-*\u2022 ").strip(";,:").rstrip(".")
    return name.strip()


def _split_top_level(text: str, separators: str) -> list[str]:
    """Split on separators that are not inside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        if char in separators and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [p for p in (_clean(p) for p in parts) if p]


class SkillNormalizer:
    """Taxonomy-backed skill normalizer.

    Supports:
    - Exact and synonym matching
    - Compound splitting ("React/Next.js", "Python, SQL")
    - Version and parenthetical variants ("Python 3.11", "AWS (Lambda)")
    - Fuzzy matching via rapidfuzz for misspellings
    - Free-text extraction with evidence spans
    """

    def __init__(
        self,
        taxonomy: list[SkillTaxonomy] | None = None,
        *,
        fuzzy_threshold: int | None = None,
    ) -> None:
        """Initialize skill normalizer.

        Args:
            taxonomy: List of SkillTaxonomy objects. If None, loads default taxonomy.
            fuzzy_threshold: Minimum rapidfuzz ratio (0-100) for a fuzzy hit
        """
        self.taxonomy = taxonomy or self._load_default_taxonomy()
        self.fuzzy_threshold = (
            settings.matching.fuzzy_skill_threshold if fuzzy_threshold is None else fuzzy_threshold
        )

        # Build lookup structures
        self._synonym_map: dict[str, str] = {}  # lowercased term -> canonical
        self._categories: dict[str, str] = {}  # canonical -> category
        self._patterns: dict[str, list[re.Pattern]] = {}  # canonical -> free-text patterns

        self._build_indices()

        logger.debug(f"Loaded {len(self.taxonomy)} skills with {len(self._synonym_map)} synonyms")

    def _load_default_taxonomy(self) -> list[SkillTaxonomy]:
        return [
            SkillTaxonomy(entry["canonical_skill"], list(entry["synonyms"]), entry["category"])
            for entry in SKILL_TAXONOMY
        ]

    def _build_indices(self) -> None:
        """Build internal lookup structures."""
        for tax in self.taxonomy:
            canonical = tax.canonical_skill
            self._categories[canonical] = tax.category
            self._synonym_map[canonical.lower()] = canonical

            for syn in tax.synonyms:
                self._synonym_map[syn.lower()] = canonical

            terms = {canonical.lower(), *(s.lower() for s in tax.synonyms)} - AMBIGUOUS_SYNONYMS
            self._patterns[canonical] = [
                re.compile(rf"(?<![\w+#.]){re.escape(term)}(?![\w+#])", re.IGNORECASE)
                for term in sorted(terms, key=len, reverse=True)
            ]

    def lookup(self, term: str) -> str | None:
        """Exact (case-insensitive) canonical or synonym lookup."""
        return self._synonym_map.get(_clean(term).lower())

    def category_of(self, canonical: str) -> str:
        return self._categories.get(canonical, DEFAULT_CATEGORY)

    def split_compound(self, name: str) -> list[str]:
        """Split a compound skill string into individual skill names."""
        pieces: list[str] = []
        for piece in _split_top_level(_clean(name), _STRONG_SEPARATORS):
            if self.lookup(piece) or "(" in piece:
                pieces.append(piece)
                continue
            pieces.extend(p for p in (_clean(p) for p in _WEAK_SPLIT_RE.split(piece)) if p)
        return pieces

    def _fuzzy_lookup(self, term: str) -> str | None:
        # Short strings produce too many false positives
        if len(term) < 4:
            return None
        match = process.extractOne(
            term.lower(),
            list(self._synonym_map.keys()),
            scorer=fuzz.ratio,
            score_cutoff=self.fuzzy_threshold,
        )
        if match is None:
            return None
        return self._synonym_map[match[0]]

    def _resolve(self, part: str, category: str) -> NormalizedSkill:
        canonical = self.lookup(part)
        if canonical:
            method = "exact" if canonical.lower() == part.lower() else "synonym"
            return NormalizedSkill(canonical, self.category_of(canonical), None, part, method)

        base, variant = part, None
        paren = _PAREN_RE.match(part)
        if paren and paren.group("base"):
            base, variant = _clean(paren.group("base")), part
        else:
            version = _VERSION_RE.match(part)
            if version:
                base, variant = _clean(version.group("base")), part

        canonical = self.lookup(base)
        if canonical:
            return NormalizedSkill(canonical, self.category_of(canonical), variant, part, "synonym")

        canonical = self._fuzzy_lookup(base)
        if canonical:
            return NormalizedSkill(canonical, self.category_of(canonical), variant, part, "fuzzy")

        if category not in SKILL_CATEGORIES:
            logger.debug(f"Unknown skill category {category!r}, using {DEFAULT_CATEGORY}")
            category = DEFAULT_CATEGORY
        return NormalizedSkill(base, category, variant, part, "new")

    def normalize(self, name: str, category: str = DEFAULT_CATEGORY) -> list[NormalizedSkill]:
        """Resolve a skill name to one or more base skills.

        Args:
            name: Free-form skill name, possibly compound
            category: Category for skills that are not in the taxonomy

        Returns:
            Normalized skills in input order, deduplicated by base name
        """
        cleaned = _clean(name)
        if not cleaned:
            return []

        results: list[NormalizedSkill] = []
        seen: set[str] = set()
        for part in self.split_compound(cleaned):
            skill = self._resolve(part, category)
            key = skill.base_name.lower()
            if key in seen:
                continue
            seen.add(key)
            results.append(skill)
        return results

    def normalize_many(self, names: list[str], category: str = DEFAULT_CATEGORY) -> list[NormalizedSkill]:
        """Normalize several names, deduplicating across all of them."""
        results: list[NormalizedSkill] = []
        seen: set[str] = set()
        for name in names:
            if not isinstance(name, str):
                continue
            for skill in self.normalize(name, category):
                key = skill.base_name.lower()
                if key not in seen:
                    seen.add(key)
                    results.append(skill)
        return results

    def extract(self, text: str) -> list[ExtractedSkill]:
        """Find taxonomy skills mentioned in free text.

        Returns:
            One ExtractedSkill per canonical skill, ordered by first mention
        """
        if not text or not text.strip():
            return []

        results: list[ExtractedSkill] = []
        for canonical, patterns in self._patterns.items():
            for pattern in patterns:
                match = pattern.search(text)
                if match:
                    span_start, span_end = match.span()
                    evidence = text[max(0, span_start - 30):min(len(text), span_end + 30)]
                    results.append(ExtractedSkill(
                        canonical_skill=canonical,
                        raw_text=match.group(0),
                        evidence_text=evidence.strip(),
                        span_start=span_start,
                        span_end=span_end,
                    ))
                    break

        results.sort(key=lambda s: s.span_start)
        logger.debug(f"Extracted {len(results)} skills from text of length {len(text)}")
        return results
