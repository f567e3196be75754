"""
In-memory dictionary engine: corpus loading, search and concept grouping.

The whole corpus is a few thousand phrases, so every query is a linear scan
over an immutable `Corpus` snapshot.  Nothing here is mutated after load,
which lets the web server read it from any number of threads without locks.
"""

import gzip
import json
import os
import unicodedata
import zlib
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import BinaryIO, Iterable, Union

from pyuca import Collator

from dsff_text import normalize_for_search, strip_bracketed_content, to_lowercase_no_accents


class LoadError(Exception):
    """The corpus source could not be opened, decompressed or decoded."""


# ── Collation ─────────────────────────────────────────────────────────────────
# CLDR's Catalan tailoring leaves the Latin alphabet in root (DUCET) order,
# so the plain Unicode Collation Algorithm sorts the way Catalan readers expect.
COLLATOR = Collator()


@lru_cache(maxsize=None)
def collation_key(text: str) -> tuple:
    return COLLATOR.sort_key(text)


# ── Entry ─────────────────────────────────────────────────────────────────────
BOOL_FIELDS = frozenset({"antonim_concepte", "nova_incorporacio"})


@dataclass(frozen=True)
class Entry:
    """One phrase of the dictionary.  Attribute names are the JSON keys of the
    CMS export and must stay that way for existing data files to load."""
    title:                str
    title_normalized_wp:  str = ""    # lowercase, no accents, "(" ")" removed
    title_normalized_wpc: str = ""    # same, with the parenthesised content removed
    concepte:             str = ""
    antonim_concepte:     bool = False
    accepcio_concepte:    str = ""    # e.g. "1.", "2. fig."
    nova_incorporacio:    bool = False
    categoria:            str = ""
    definicio:            str = ""
    font_definicio:       str = ""
    exemples:             str = ""
    font_exemples:        str = ""
    sinonims:             str = ""
    altres_relacions:     str = ""
    variants_dialectals:  str = ""
    marcatge_dialectal:   str = ""
    observacions:         str = ""

    @classmethod
    def from_json(cls, obj) -> "Entry":
        """Build an entry from one decoded JSON object.  Missing keys and nulls
        take the zero value; wrong types raise ValueError."""
        if not isinstance(obj, dict):
            raise ValueError(f"expected an object, got {type(obj).__name__}")
        values = {}
        for f in fields(cls):
            raw = obj.get(f.name)
            if raw is None:
                raw = False if f.name in BOOL_FIELDS else ""
            expected = bool if f.name in BOOL_FIELDS else str
            if not isinstance(raw, expected):
                raise ValueError(f"field {f.name!r} should be {expected.__name__}, got {type(raw).__name__}")
            values[f.name] = raw
        if not values["concepte"]:
            raise ValueError(f"phrase {values['title']!r} has no concept")
        entry = cls(**values)
        # Older exports may lack the precomputed search fields.
        if not entry.title_normalized_wp:
            entry = replace(entry, title_normalized_wp=computed_wp(entry.title))
        if not entry.title_normalized_wpc:
            entry = replace(entry, title_normalized_wpc=computed_wpc(entry.title))
        return entry

    def to_json(self) -> dict:
        return asdict(self)


def computed_wp(title: str) -> str:
    return normalize_for_search(title)


def computed_wpc(title: str) -> str:
    return normalize_for_search(strip_bracketed_content(title))


def is_consistent(entry: Entry) -> bool:
    """True if the stored search fields match what we would compute today."""
    return (entry.title_normalized_wp == computed_wp(entry.title)
            and entry.title_normalized_wpc == computed_wpc(entry.title))


def first_letter(concept: str) -> str:
    """Browse letter for a concept: "Àvia" -> "A"."""
    return to_lowercase_no_accents(concept[:1]).upper()


# ── Search modes ──────────────────────────────────────────────────────────────
class SearchMode(Enum):
    CONTAINS    = "Conté"
    STARTS_WITH = "Comença per"
    ENDS_WITH   = "Acaba en"
    EXACT_MATCH = "Coincident"

    @classmethod
    def parse(cls, text: str) -> "SearchMode":
        """Mode named by a request parameter; anything unknown means CONTAINS."""
        try:
            return cls(text)
        except ValueError:
            return cls.CONTAINS


def _is_word_char(char: str) -> bool:
    return unicodedata.category(char)[0] in "LM"


def contains_word(field: str, query: str) -> bool:
    """True if `query` occurs in `field` with no letter or combining mark
    immediately before or after it, so "pop" is found in "pop, rock" but not
    in "popular"."""
    if not query:
        return False
    start = field.find(query)
    while start != -1:
        end = start + len(query)
        if ((start == 0 or not _is_word_char(field[start - 1]))
                and (end == len(field) or not _is_word_char(field[end]))):
            return True
        start = field.find(query, start + 1)
    return False


def matches(entry: Entry, query: str, mode: SearchMode) -> bool:
    wp, wpc = entry.title_normalized_wp, entry.title_normalized_wpc
    if mode is SearchMode.STARTS_WITH:
        return wpc.startswith(query) or wp.startswith(query)
    if mode is SearchMode.ENDS_WITH:
        return wpc.endswith(query) or wp.endswith(query)
    if mode is SearchMode.EXACT_MATCH:
        return query in (wpc, wp)
    return contains_word(wpc, query) or (wpc != wp and contains_word(wp, query))


def search_sort_key(query: str, mode: SearchMode):
    promote_exact = mode is SearchMode.CONTAINS
    def key(entry: Entry) -> tuple:
        not_exact = promote_exact and query not in (entry.title_normalized_wpc, entry.title_normalized_wp)
        return (not_exact,
                collation_key(entry.title_normalized_wpc),
                collation_key(entry.title_normalized_wp))
    return key


def concept_sort_key(entry: Entry) -> tuple:
    """Sense label, then non-antonyms before antonyms, then phrase."""
    return (collation_key(entry.accepcio_concepte),
            entry.antonim_concepte,
            collation_key(entry.title_normalized_wpc))


# ── Corpus ────────────────────────────────────────────────────────────────────
class Corpus:
    """Immutable snapshot of the dictionary and its derived indexes.

    entries            -- every Entry, in file order.
    phrases            -- titles without bracketed content, for "is this a
                          phrase of its own?" checks when linking.
    concepts_by_letter -- browse letter -> concept names in collation order.
    """

    def __init__(self, entries: Iterable[Entry]) -> None:
        self.entries = tuple(entries)
        phrases = set()
        letters: dict[str, dict[str, None]] = {}
        for entry in self.entries:
            phrases.add(strip_bracketed_content(entry.title))
            letters.setdefault(first_letter(entry.concepte), {})[entry.concepte] = None
        self.phrases = frozenset(phrases)
        self.concepts_by_letter = MappingProxyType({
            letter: tuple(sorted(concepts, key=collation_key))
            for letter, concepts in letters.items()
        })

    def __len__(self) -> int:
        return len(self.entries)

    def phrase_exists(self, phrase: str) -> bool:
        return strip_bracketed_content(phrase) in self.phrases

    def concepts_for_letter(self, letter: str) -> tuple:
        return self.concepts_by_letter.get(letter, ())

    def search(self, query: str, mode: SearchMode = SearchMode.CONTAINS,
               page: int = 1, page_size: int = 10) -> tuple[list[Entry], int]:
        """
        Return (entries on `page`, total number of matches) for an already
        normalised `query`.  A page past the end is an empty list with the
        true total, so callers can still draw page links.
        """
        if not query:
            return [], 0
        results = [e for e in self.entries if matches(e, query, mode)]
        total = len(results)
        start = (page - 1) * page_size
        if start >= total:
            return [], total
        results.sort(key=search_sort_key(query, mode))
        return results[start:min(start + page_size, total)], total

    def entries_for_concept(self, concept: str) -> list[Entry]:
        """All entries of `concept` (any case), in concept-page order."""
        wanted = concept.casefold()
        records = [e for e in self.entries if e.concepte.casefold() == wanted]
        records.sort(key=concept_sort_key)
        return records

    def inconsistent_entries(self) -> list[Entry]:
        return [e for e in self.entries if not is_consistent(e)]


# ── Loading ───────────────────────────────────────────────────────────────────
def load_corpus(source: Union[str, os.PathLike, BinaryIO]) -> Corpus:
    """Read a gzipped JSON array of entries from a path or binary file object.
    Any failure raises LoadError; an empty array is a failure too."""
    name = getattr(source, "name", source)
    try:
        with gzip.open(source, "rb") as fp:
            data = json.load(fp)
    except (OSError, EOFError, ValueError, zlib.error) as exc:
        raise LoadError(f"failed to read {name}: {exc}") from exc

    if not isinstance(data, list):
        raise LoadError(f"{name}: expected a JSON array of entries, got {type(data).__name__}")

    entries = []
    for i, obj in enumerate(data):
        try:
            entries.append(Entry.from_json(obj))
        except ValueError as exc:
            raise LoadError(f"{name}: entry {i}: {exc}") from exc
    if not entries:
        raise LoadError(f"{name}: no entries")
    return Corpus(entries)
