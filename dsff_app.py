#!/usr/bin/env python3
"""
Diccionari de Sinònims de Frases Fetes: lookup service
=======================================================
Run:   python3 dsff_app.py          (reads ./data.json.gz, see DSFF_DATA_FILE)
Open:  http://localhost:8080/?frase=trencar+el+gel

Every route answers JSON; rendering is left to whatever front end sits on top.
  /?frase=…&mode=…&pagina=…   search; the homepage when `frase` is empty
  /lletra/<A-Z>               concepts starting with a letter
  /concepte/<slug>            every phrase of one concept, in dictionary order
  /frase?text=…               does a phrase exist as an entry of its own?
  /cerca                      legacy search URL, redirects to /
"""

import os
import re
import sys
from pathlib import Path
from urllib.parse import quote
from flask import Flask, abort, jsonify, redirect, request

from dsff_engine import Corpus, Entry, LoadError, SearchMode, load_corpus
from dsff_text import normalize_for_search

# ── Configuration ─────────────────────────────────────────────────────────────
DATA_FILE      = Path(os.environ.get("DSFF_DATA_FILE", Path(__file__).parent / "data.json.gz"))
HOST           = os.environ.get("HOST", "127.0.0.1")
PORT           = int(os.environ.get("PORT", 8080))
PAGE_SIZE      = int(os.environ.get("DSFF_PAGE_SIZE", 10))
BASE_URL       = os.environ.get("DSFF_BASE_URL", "https://dsff.uab.cat")
BUILD_DATE     = os.environ.get("BUILD_DATE", "")
HOMEPAGE_TITLE = "Diccionari de Sinònims de Frases Fetes"

# ── Concept names ─────────────────────────────────────────────────────────────
DIGIT_RE = re.compile(r"(\d)")


def concept_slug(concept: str) -> str:
    """URL token for a concept: "Gel 2" -> "gel_2"."""
    return "_".join(concept.lower().split())


def concept_from_slug(slug: str) -> str:
    return slug.replace("_", " ")


def concept_title(concept: str) -> str:
    """Display form: lowercase, with a space before each digit ("GEL2" -> "gel 2")."""
    return DIGIT_RE.sub(r" \1", concept).lower()


def entry_json(entry: Entry) -> dict:
    return {**entry.to_json(), "concepte_slug": concept_slug(entry.concepte)}


def parse_page(value) -> int:
    """1-based page number from a query parameter; junk and values < 1 give 1."""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


# ── Loading ───────────────────────────────────────────────────────────────────
def load(path=DATA_FILE) -> Corpus:
    print(f"Loading {Path(path).name} …", end="  ", flush=True, file=sys.stderr)
    corpus = load_corpus(path)
    print(f"{len(corpus):,} entries, {len(corpus.concepts_by_letter)} initial letters.",
          file=sys.stderr)
    stale = corpus.inconsistent_entries()
    if stale:
        print(f"  warning: {len(stale):,} entries have out-of-date search fields "
              f"(first: {stale[0].title!r})", file=sys.stderr)
    return corpus


# ── Flask app ─────────────────────────────────────────────────────────────────
def create_app(corpus: Corpus, **config) -> Flask:
    """
    Build the web app around a loaded corpus.  The snapshot lives in
    app.config["CORPUS"]; to reload, build a new Corpus and assign it there.
    Keyword arguments override the module-level configuration.
    """
    app = Flask(__name__)
    app.config.update(CORPUS=corpus, PAGE_SIZE=PAGE_SIZE, BASE_URL=BASE_URL,
                      BUILD_DATE=BUILD_DATE)
    app.config.update(config)
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    def canonical_url() -> str:
        qs = request.query_string.decode()
        return app.config["BASE_URL"] + quote(request.path, safe="/") + (f"?{qs}" if qs else "")

    @app.route("/")
    def index():
        query = request.args.get("frase", "")
        mode  = SearchMode.parse(request.args.get("mode", ""))
        page  = parse_page(request.args.get("pagina"))
        size  = app.config["PAGE_SIZE"]

        payload = {
            "title":         f"Cerca «{query}»" if query else HOMEPAGE_TITLE,
            "query":         query,
            "mode":          mode.value,
            "modes":         [m.value for m in SearchMode],
            "page":          page,
            "total":         0,
            "total_pages":   0,
            "previous_page": None,
            "next_page":     None,
            "entries":       [],
            "canonical_url": canonical_url(),
        }

        q_norm = normalize_for_search(query)
        if q_norm:
            entries, total = app.config["CORPUS"].search(q_norm, mode, page, size)
            total_pages = (total + size - 1) // size
            payload.update(
                total=total,
                total_pages=total_pages,
                previous_page=page - 1 if page > 1 else None,
                next_page=page + 1 if page < total_pages else None,
                entries=[entry_json(e) for e in entries],
            )

        response = jsonify(payload)
        if app.config["BUILD_DATE"]:
            response.headers["X-Build-Date"] = app.config["BUILD_DATE"]
        return response

    @app.route("/lletra/<letter>")
    def letter_page(letter):
        if len(letter) != 1 or not "A" <= letter <= "Z":
            abort(404)
        concepts = app.config["CORPUS"].concepts_for_letter(letter)
        if not concepts:
            abort(404)
        return jsonify({
            "title":    f"Lletra {letter}",
            "letter":   letter,
            "concepts": [{"concept": c, "slug": concept_slug(c), "title": concept_title(c)}
                         for c in concepts],
            "canonical_url": canonical_url(),
        })

    @app.route("/concepte/<slug>")
    def concept_page(slug):
        entries = app.config["CORPUS"].entries_for_concept(concept_from_slug(slug))
        if not entries:
            abort(404)
        concept = entries[0].concepte
        return jsonify({
            "title":   concept_title(concept),
            "concept": concept,
            "entries": [entry_json(e) for e in entries],
            "canonical_url": canonical_url(),
        })

    @app.route("/frase")
    def phrase():
        text = request.args.get("text", "")
        return jsonify({"text": text,
                        "exists": bool(text) and app.config["CORPUS"].phrase_exists(text)})

    # Old bookmarks and search engines still point here.
    @app.route("/cerca")
    def legacy_search():
        qs = request.query_string.decode()
        return redirect(f"/?{qs}" if qs else "/", code=301)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "No s'ha trobat la pàgina."}), 404

    return app


# ── Entry point ───────────────────────────────────────────────────────────────
def main() -> None:
    try:
        corpus = load()
    except LoadError as exc:
        print(f"\n  ✗ Failed to load data: {exc}", file=sys.stderr)
        sys.exit(1)
    app = create_app(corpus)
    print(f"\n  ✦ DSFF lookup running at  http://{HOST}:{PORT}", file=sys.stderr)
    print(  "    Press Ctrl-C to quit.\n", file=sys.stderr)
    app.run(host=HOST, port=PORT, debug=False, threaded=True)


if __name__ == "__main__":
    main()
