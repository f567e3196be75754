from __future__ import annotations

import gzip
import json
import sys
from pathlib import Path

import pytest

# Make the top-level modules importable when running tests from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dsff_app import create_app  # noqa: E402
from dsff_engine import Corpus, Entry  # noqa: E402


def make_entry(title: str, concepte: str = "GEL", **fields) -> Entry:
    """Entry with its search fields computed the way the export does."""
    return Entry.from_json({"title": title, "concepte": concepte, **fields})


def write_corpus(path: Path, records) -> Path:
    with gzip.open(path, "wb") as fp:
        fp.write(json.dumps(records, ensure_ascii=False).encode("utf-8"))
    return path


SAMPLE_RECORDS = [
    {
        "title": "trencar el gel",
        "title_normalized_wp": "trencar el gel",
        "title_normalized_wpc": "trencar el gel",
        "concepte": "GEL",
        "antonim_concepte": False,
        "accepcio_concepte": "",
        "nova_incorporacio": False,
        "categoria": "sv",
        "definicio": "Vèncer la fredor inicial d'una relació.",
        "font_definicio": "(DIEC1)",
        "exemples": "Amb una broma va trencar el gel.",
        "font_exemples": "",
        "sinonims": "",
        "altres_relacions": "",
        "variants_dialectals": "",
        "marcatge_dialectal": "",
        "observacions": "",
    },
]


@pytest.fixture()
def corpus_file(tmp_path: Path) -> Path:
    return write_corpus(tmp_path / "data.json.gz", SAMPLE_RECORDS)


@pytest.fixture()
def corpus() -> Corpus:
    return Corpus([
        make_entry("trencar el gel", "GEL", categoria="sv"),
        make_entry("fer-se l’orni (algú)", "DESENTENDRE'S"),
        make_entry("cançó popular", "CANÇÓ"),
        make_entry("música pop", "MÚSICA"),
        make_entry("estar gelat", "GEL", antonim_concepte=True),
        make_entry("Àvia rica", "Àvia"),
        make_entry("aigua passada", "Aigua"),
    ])


@pytest.fixture()
def app(corpus: Corpus):
    return create_app(corpus, PAGE_SIZE=2, BUILD_DATE="", BASE_URL="https://dsff.uab.cat")


@pytest.fixture()
def client(app):
    return app.test_client()
