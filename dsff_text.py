"""
Text normalisation for the Diccionari de Sinònims de Frases Fetes.

Every function here must produce exactly what the CMS export produced when
it precomputed `title_normalized_wp` / `title_normalized_wpc`, otherwise
searches silently miss entries.

Parentheses are dropped before "..." is folded to "…", so inputs such as
".(.)." normalise differently from older single-pass exports; the loader
reports such entries as having out-of-date search fields.
"""

import re

# ── Brackets ──────────────────────────────────────────────────────────────────
PAREN_RE   = re.compile(r"\([^()]*\)")
BRACKET_RE = re.compile(r"\[[^\[\]]*\]")


def strip_bracketed_content(text: str) -> str:
    """Remove "(...)" and "[...]" spans, innermost first, then tidy spacing.
    "a (b (c)) d [e]" -> "a d"."""
    content = text
    while PAREN_RE.search(content):
        content = PAREN_RE.sub("", content)
    while BRACKET_RE.search(content):
        content = BRACKET_RE.sub("", content)
    content = " ".join(content.split())
    content = content.replace(" , ", ", ")
    return content.strip()


# ── Accents ───────────────────────────────────────────────────────────────────
# Only the Catalan vowels; ç, ñ, etc. are left alone.
ACCENTS = str.maketrans("àèéíïòóúü", "aeeiioouu")


def to_lowercase_no_accents(text: str) -> str:
    return text.lower().translate(ACCENTS)


# ── Search normalisation ──────────────────────────────────────────────────────
# Parentheses go first so that "..()." cannot leave a fresh "..." behind.
SEARCH_REPLACEMENTS = (
    ("(", ""),
    (")", ""),
    ("’", "'"),
    ("...", "…"),
)
EDGE_CHARS = "-, "


def normalize_for_search(text: str) -> str:
    """Canonical form of a query or title: typographic apostrophe and ellipsis
    unified, parenthesis characters dropped (content kept), whitespace
    collapsed, edge "-", "," and spaces trimmed, lowercase without accents."""
    for old, new in SEARCH_REPLACEMENTS:
        text = text.replace(old, new)
    text = " ".join(text.split())
    text = text.strip(EDGE_CHARS)
    return to_lowercase_no_accents(text)
