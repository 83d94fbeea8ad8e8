"""
Shared test fixtures.

The import scripts live at the repository root, next to each other.
"""

import sys
from pathlib import Path

root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))
sys.path.insert(0, str(Path(__file__).parent))

import pytest

from content_store import EntityRef
from fakes import FakeContentStore, FakeLinker
from translation_linker import NullLinker

# ===================
# STORE / LINKER
# ===================


@pytest.fixture
def store():
    """Empty in-memory store with WooCommerce attribute taxonomy pa_color."""
    return FakeContentStore(attribute_taxonomies=["pa_color"])


@pytest.fixture
def linker(store):
    """Polylang-like linker over the same store."""
    return FakeLinker(store)


@pytest.fixture
def null_linker():
    return NullLinker()


@pytest.fixture
def bg_category(store, linker):
    """Source BG category 'Червени джаджи' with bizzio_group_id=123 and a thumbnail."""
    term_id = store.add_term(
        "product_cat", "Червени джаджи", slug="cherveni-dzhadzhi",
        meta={"bizzio_group_id": ["123"], "thumbnail_id": ["55"], "_pll_string_translations": ["x"]},
    )
    linker.tag(EntityRef.term("product_cat", term_id), "bg")
    return term_id


# ===================
# CSV FILES
# ===================


@pytest.fixture
def write_csv(tmp_path):
    """Write lines to a CSV file and return its path."""

    def _write(lines, name="data.csv", encoding="utf-8"):
        path = tmp_path / name
        path.write_bytes(("\n".join(lines) + "\n").encode(encoding))
        return path

    return _write


@pytest.fixture
def wp_env(monkeypatch):
    """Complete WordPress .env configuration."""
    monkeypatch.setenv("WP_BASE_URL", "https://shop.example")
    monkeypatch.setenv("WP_USERNAME", "importer")
    monkeypatch.setenv("WP_APP_PASSWORD", "abcd efgh")


@pytest.fixture
def no_wp_env(monkeypatch):
    monkeypatch.setattr("bizzio_common.load_dotenv", lambda *a, **k: False)
    for var in ("WP_BASE_URL", "WP_URL", "WP_USERNAME", "WP_APP_PASSWORD"):
        monkeypatch.delenv(var, raising=False)
