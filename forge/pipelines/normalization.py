"""Text normalization utilities for resume and job-posting content.

Handles whitespace, punctuation, HTML and the comparison keys used when
matching companies and deduplicating achievements.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date

logger = logging.getLogger(__name__)


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def normalize_punctuation(text: str) -> str:
    """Normalize common punctuation variations."""
    # Replace smart quotes
    text = text.replace('“', '"').replace('”', '"')
    text = text.replace('‘', "'").replace('’', "'")

    # Normalize dashes
    text = text.replace('–', '-').replace('—', '-')

    # Bullets left over from PDF extraction
    text = re.sub(r'^[•●▪‣⁃]\s*', '- ', text, flags=re.MULTILINE)

    # Remove excessive punctuation
    text = re.sub(r'([!?.]){2,}', r'\1', text)

    return text


def remove_urls(text: str) -> str:
    """Remove URLs from text."""
    url_pattern = r'https?://\S+|www\.\S+'
    return re.sub(url_pattern, '', text)


def clean_html(text: str) -> str:
    """Remove HTML tags from text."""
    html_pattern = re.compile(r'<[^>]+>')
    return html_pattern.sub('', text)


def normalize_text(
    text: str,
    *,
    lowercase: bool = False,
    keep_newlines: bool = True,
    clean_urls: bool = False,
    clean_html_tags: bool = True,
) -> str:
    """Comprehensive text normalization for resume/job-posting text.

    Args:
        text: Input text to normalize
        lowercase: Convert to lowercase
        keep_newlines: Collapse whitespace per line instead of across lines
        clean_urls: Remove URLs
        clean_html_tags: Remove HTML tags

    Returns:
        Normalized text
    """
    if not text or not text.strip():
        return ""

    # Clean HTML first if present
    if clean_html_tags:
        text = clean_html(text)

    if clean_urls:
        text = remove_urls(text)

    # Compose unicode so that equal strings compare equal
    text = unicodedata.normalize('NFC', text)

    text = normalize_punctuation(text)

    if lowercase:
        text = text.lower()

    if keep_newlines:
        lines = [normalize_whitespace(line) for line in text.splitlines()]
        text = "\n".join(line for line in lines if line)
    else:
        text = normalize_whitespace(text)

    return text


def company_key(name: str | None) -> str:
    """Comparison key for company names: lowercase, all whitespace removed."""
    return re.sub(r'\s', '', (name or '').lower())


def achievement_key(description: str) -> str:
    """Comparison key for exact-duplicate achievement detection."""
    return description.strip().lower()


def month_index(value: date) -> int:
    """Months since year 0, so that two dates in the same month compare equal."""
    return value.year * 12 + (value.month - 1)


_PRESENT_WORDS = {"present", "current", "now", "today", "ongoing", "till date", "to date"}
_MONTHS = {
    name: i
    for i, names in enumerate(
        [("jan", "january"), ("feb", "february"), ("mar", "march"), ("apr", "april"),
         ("may",), ("jun", "june"), ("jul", "july"), ("aug", "august"),
         ("sep", "sept", "september"), ("oct", "october"), ("nov", "november"), ("dec", "december")],
        start=1,
    )
    for name in names
}


def parse_partial_date(value: object) -> date | None:
    """Parse resume-style dates.

    Accepts ``date`` objects and strings like ``2021-03-15``, ``2021-03``,
    ``03/2021``, ``Mar 2021`` or ``2021``. Month-only dates resolve to the
    first of the month. "Present" and blanks give ``None``.

    Raises:
        ValueError: If the string is not a recognizable date
    """
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip().lower()
    if not text or text in _PRESENT_WORDS:
        return None

    match = re.fullmatch(r"(\d{4})-(\d{1,2})(?:-(\d{1,2}))?(?:t.*)?", text)
    if match:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3) or 1))

    match = re.fullmatch(r"(\d{1,2})/(\d{4})", text)
    if match:
        return date(int(match.group(2)), int(match.group(1)), 1)

    match = re.fullmatch(r"([a-z]+)\.?,?\s+(\d{4})", text)
    if match and match.group(1) in _MONTHS:
        return date(int(match.group(2)), _MONTHS[match.group(1)], 1)

    match = re.fullmatch(r"\d{4}", text)
    if match:
        return date(int(text), 1, 1)

    raise ValueError(f"Unrecognized date: {value!r}")
