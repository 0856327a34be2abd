"""Text canonicalization for embedding and keyword scoring.

Turns a repository record (plus an optional README) into bounded, cleaned
text. The same cleaning is applied to queries so both sides of a
comparison live in the same vocabulary.
"""

import re

from ..config.defaults import DEFAULT_MAX_TOKENS, README_EXCERPT_WORDS
from .models import Repository

_URL_PATTERN = re.compile(r"https?://\S+")
_MARKDOWN_PATTERN = re.compile(r"[#*`\[\]()_~]")
_SPECIAL_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9\s\-]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# Lines that are README decoration rather than prose
_BADGE_MARKERS = ("shields.io", "badge", "![")
_MIN_CONTENT_LINE_LENGTH = 20


def preprocess_repository(
    repo: Repository,
    readme: str | None = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> str:
    """Build the canonical text for a repository.

    The identity key appears twice so the name dominates short records.

    Args:
        repo: Repository record
        readme: Optional README text
        max_tokens: Word budget for the encoder input

    Returns:
        Lowercased canonical text, possibly empty
    """
    parts = [repo.id, repo.id]

    if repo.language:
        parts.append(repo.language)

    if repo.description:
        parts.append(clean_text(repo.description))

    if repo.topics:
        parts.append(" ".join(repo.topics))

    if readme:
        excerpt = extract_readme_excerpt(readme, README_EXCERPT_WORDS)
        if excerpt:
            parts.append(clean_text(excerpt))

    combined = " ".join(part for part in parts if part).lower()
    return truncate_to_tokens(combined, max_tokens)


def preprocess_query(query: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
    """Clean and truncate a search query."""
    return truncate_to_tokens(clean_text(query), max_tokens)


def clean_text(text: str) -> str:
    """Strip URLs, markdown and punctuation; collapse whitespace; lowercase.

    Idempotent: ``clean_text(clean_text(t)) == clean_text(t)``.
    """
    text = _URL_PATTERN.sub("", text)
    text = _MARKDOWN_PATTERN.sub(" ", text)
    text = _SPECIAL_CHARS_PATTERN.sub(" ", text)
    text = _WHITESPACE_PATTERN.sub(" ", text)
    return text.strip().lower()


def extract_readme_excerpt(readme: str, max_words: int) -> str:
    """Take the first ``max_words`` words of README prose.

    Skips the leading title, badge and image lines. When no line looks like
    prose the excerpt starts at the top of the document.
    """
    lines = readme.splitlines()

    content_start = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if (
            not stripped.startswith("#")
            and not any(marker in stripped for marker in _BADGE_MARKERS)
            and len(stripped) > _MIN_CONTENT_LINE_LENGTH
        ):
            content_start = i
            break

    content = " ".join(lines[content_start:])
    return " ".join(content.split()[:max_words])


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Truncate text to approximately ``max_tokens`` tokens (1 word ~ 1 token)."""
    words = text.split()
    if len(words) <= max_tokens:
        return text
    return " ".join(words[:max_tokens])


def calculate_text_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the word sets of two texts."""
    words1 = set(text1.split())
    words2 = set(text2.split())

    if not words1 and not words2:
        return 1.0

    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)
