"""
Tests for the product translation import job.

Run: pytest tests/test_import_translations.py -v
"""

import pytest

import import_translations
from bizzio_csv import MissingColumnError, read_csv
from content_store import EntityRef
from import_translations import TranslationImportOptions, language_columns, run_translation_import

HEADER = "Код;Web име (EN);Web описание (EN);Кратко описание (EN);Web name (DE);Barcode"


@pytest.fixture
def bg_product(store, linker):
    """BG product 'Чайник' with SKU EEG-100, a price and a category."""
    cat = store.add_term("product_cat", "Кухня")
    linker.tag(EntityRef.term("product_cat", cat), "bg")
    product_id = store.add_post(
        "Чайник", slug="chaynik", sku="EEG-100", product_type="variable",
        content="Електрическа кана", meta={"_price": ["49.90"], "_barcode": ["3800123"]},
        core={"regular_price": "49.90", "stock_quantity": 12, "images": [{"id": 301}]},
    )
    store.object_terms[(product_id, "product_cat")] = [cat]
    linker.tag(EntityRef.post(product_id), "bg")
    return product_id


def run(path, store, linker, **opts):
    header, rows = read_csv(path)
    return run_translation_import(header, rows, store, linker, TranslationImportOptions(**opts))


def translation(linker, post_id, lang):
    return linker.get_translations(EntityRef.post(post_id)).get(lang)


class TestLanguageColumns:

    def test_columns_per_language(self):
        header = HEADER.split(";")

        cols = language_columns(header, ["en", "de"])

        assert cols["en"] == {"title": 1, "content": 2, "excerpt": 3}
        assert cols["de"] == {"title": 4, "content": None, "excerpt": None}


class TestProductRows:
    """Per-row behaviour of run_translation_import()"""

    def test_creates_translations_for_every_language(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;Electric kettle;Boils water;Wasserkocher;"])

        stats = run(path, store, linker)

        en_id = translation(linker, bg_product, "en")
        de_id = translation(linker, bg_product, "de")
        assert (store.posts[en_id].title, store.posts[en_id].content, store.posts[en_id].excerpt) == (
            "Kettle", "Electric kettle", "Boils water")
        assert store.posts[de_id].title == "Wasserkocher"
        assert (stats.created, stats.updated, stats.skipped) == (2, 0, 0)

    def test_meta_and_type_copied(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        run(path, store, linker)

        en_id = translation(linker, bg_product, "en")
        assert store.meta[("post", en_id)]["_price"] == ["49.90"]
        assert store.product_types[en_id] == "variable"

    def test_prices_stock_and_images_copied(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        run(path, store, linker)

        en_id = translation(linker, bg_product, "en")
        assert store.core[("post", en_id)] == {
            "regular_price": "49.90", "stock_quantity": 12, "images": [{"id": 301}]}

    def test_variation_match_skipped_with_polylang(self, store, linker, bg_product, write_csv, capsys):
        variation = store.add_post("Чайник - червен", post_type="product_variation", parent=bg_product,
                                   meta={"_barcode": ["3800999"]})
        posts_before = len(store.posts)
        path = write_csv([HEADER, "3800999;Kettle;;;Wasserkocher;"])

        stats = run(path, store, linker)

        assert len(store.posts) == posts_before
        assert store.posts[variation].title == "Чайник - червен"
        assert (stats.created, stats.updated, stats.skipped) == (0, 0, 1)
        assert f"is variation {variation} of product {bg_product}" in capsys.readouterr().err

    def test_empty_cells_keep_provisional_values(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        run(path, store, linker)

        post = store.posts[translation(linker, bg_product, "en")]
        assert post.title == "Kettle"
        assert post.content == ""

    def test_empty_title_skips_language(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        stats = run(path, store, linker)

        assert translation(linker, bg_product, "de") is None
        assert stats.skipped == 1

    def test_categories_point_at_translations(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        run(path, store, linker)

        en_id = translation(linker, bg_product, "en")
        cat = store.object_terms[(bg_product, "product_cat")][0]
        cat_en = linker.get_translations(EntityRef.term("product_cat", cat))["en"]
        assert store.object_terms[(en_id, "product_cat")] == [cat_en]

    def test_unknown_code_skipped(self, store, linker, bg_product, write_csv, capsys):
        path = write_csv([HEADER, "NOPE-1;Kettle;;;;"])

        stats = run(path, store, linker)

        assert stats.skipped == 1
        assert store.writes == []
        assert "Line 2: BG product not found for code=NOPE-1" in capsys.readouterr().err

    def test_empty_code_skipped(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, ";Kettle;;;;"])

        assert run(path, store, linker).skipped == 1

    def test_barcode_fallback(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "3800123;Kettle;;;;"])

        stats = run(path, store, linker)

        assert stats.created == 1
        assert translation(linker, bg_product, "en") is not None

    def test_barcode_fallback_disabled(self, store, linker, bg_product, write_csv):
        path = write_csv([HEADER, "3800123;Kettle;;;;"])

        stats = run(path, store, linker, fallback_meta="")

        assert stats.skipped == 1

    def test_lookup_error_skips_row(self, store, linker, bg_product, write_csv, monkeypatch):
        def broken(sku):
            raise ConnectionError("timeout")

        monkeypatch.setattr(store, "find_product_by_sku", broken)
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        stats = run(path, store, linker)

        assert stats.skipped == 1
        assert stats.created == 0

    def test_missing_code_column(self, store, linker, write_csv):
        path = write_csv(["Barcode;Web name (EN)", "1;Kettle"])

        with pytest.raises(MissingColumnError):
            run(path, store, linker)

    def test_no_language_columns(self, store, linker, bg_product, write_csv):
        path = write_csv(["Code;Price", "EEG-100;1"])

        stats = run(path, store, linker)

        assert (stats.created, stats.updated, stats.skipped) == (0, 0, 0)
        assert store.writes == []


class TestRerunAndDryRun:

    def test_rerun_updates_same_translation(self, store, linker, bg_product, write_csv):
        run(write_csv([HEADER, "EEG-100;Kettle;;;;"], name="a.csv"), store, linker)
        en_id = translation(linker, bg_product, "en")
        posts_before = len(store.posts)

        stats = run(write_csv([HEADER, "EEG-100;Electric Kettle;;;;"], name="b.csv"), store, linker)

        assert translation(linker, bg_product, "en") == en_id
        assert len(store.posts) == posts_before
        assert store.posts[en_id].title == "Electric Kettle"
        assert (stats.created, stats.updated) == (0, 1)

    def test_dry_run_writes_nothing(self, store, linker, bg_product, write_csv, capsys):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])

        stats = run(path, store, linker, dry_run=True)

        assert store.writes == []
        assert stats.updated == 1
        assert "[DRY-RUN]" in capsys.readouterr().out

    def test_without_polylang_source_updated_in_place(self, store, null_linker, bg_product, write_csv):
        path = write_csv([HEADER, "EEG-100;Kettle;;;;"])
        posts_before = len(store.posts)

        stats = run(path, store, null_linker)

        assert len(store.posts) == posts_before
        assert store.posts[bg_product].title == "Kettle"
        assert store.meta[("post", bg_product)]["_price"] == ["49.90"]
        assert stats.updated == 1

    def test_without_polylang_variation_updated_in_place(self, store, null_linker, bg_product, write_csv):
        variation = store.add_post("Чайник - червен", post_type="product_variation", parent=bg_product,
                                   meta={"_barcode": ["3800999"]})
        path = write_csv([HEADER, "3800999;Red kettle;;;;"])

        stats = run(path, store, null_linker)

        assert store.posts[variation].title == "Red kettle"
        assert stats.updated == 1

    def test_bulk_mode_wraps_run(self, store, linker, bg_product, write_csv):
        run(write_csv([HEADER, "EEG-100;Kettle;;;;"]), store, linker)

        assert (store.bulk_entered, store.bulk_exited, store.bulk_depth) == (1, 1, 0)


class TestMain:
    """Exit codes of import_translations.main()"""

    def test_missing_env(self, no_wp_env, write_csv):
        assert import_translations.main([str(write_csv([HEADER]))]) == 2

    def test_missing_file(self, wp_env, tmp_path):
        assert import_translations.main([str(tmp_path / "nope.csv")]) == 1

    def test_missing_code_column(self, wp_env, write_csv):
        path = write_csv(["Barcode;Web name (EN)", "1;Kettle"])

        assert import_translations.main([str(path)]) == 3

    def test_host_unreachable(self, wp_env, write_csv, monkeypatch):
        monkeypatch.setattr("import_translations.WpClient.ping", lambda self: False)

        assert import_translations.main([str(write_csv([HEADER]))]) == 4

    def test_csv_argument_required(self, wp_env):
        with pytest.raises(SystemExit):
            import_translations.main([])
