#!/usr/bin/env python3
"""Import product translations from a Bizzio export onto the BG products.

Kasutus:
    python import_translations.py /path/to/EEG.csv
    python import_translations.py EEG.csv --dry-run
    python import_translations.py EEG.csv --fallback-meta _barcode --source-lang bg

Reeglid:
- Products are found by ``Код``/``Code``/``SKU`` = Woo SKU, else by the
  fallback meta (``_barcode``) on products and variations. With Polylang a
  matched variation is skipped, Polylang translates it with its parent.
- Target languages come from the header: every ``Web име (XX)`` /
  ``Web name (XX)`` column adds ``xx``.
- Per language: ensure the Polylang translation, copy the product type,
  prices, stock, images and all meta, write title/content/excerpt, then
  point categories, tags and attribute terms at their own translations.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from bizzio_common import DEFAULT_SOURCE_LANG, ImportStats, default_lang, error, load_env, load_wp_config, log, warn
from bizzio_csv import (
    CSV_DELIM, EmptyInputError, MissingColumnError, cell, detect_languages, pick_column, read_csv,
)
from content_store import VARIATION_TYPE, ContentStore, EntityRef
from entity_locator import FALLBACK_META_FOR_CODE, find_source_product
from field_sync import (
    POST_META_EXCLUDE, apply_post_fields, copy_core_fields, copy_meta, sync_product_type, sync_terms_to_lang,
)
from translation_linker import TranslationLinker, detect_linker
from translation_resolver import ensure_post_translation
from wp_client import WpClient
from wp_store import WpRestContentStore

CODE_CANDIDATES = ["Код", "Code", "SKU"]


def title_candidates(L: str) -> List[str]:
    return [f"Web име ({L})", f"Артикул ({L})", f"Web name ({L})", f"Article ({L})", f"Title ({L})"]


def content_candidates(L: str) -> List[str]:
    return [f"Web описание ({L})", f"Описание ({L})", f"Web description ({L})", f"Description ({L})"]


def excerpt_candidates(L: str) -> List[str]:
    return [f"Кратко описание ({L})", f"Short description ({L})", f"Excerpt ({L})"]


@dataclass
class TranslationImportOptions:
    source_lang: str = DEFAULT_SOURCE_LANG
    fallback_meta: str = FALLBACK_META_FOR_CODE
    dry_run: bool = False


def language_columns(header: Sequence[str], langs: Iterable[str]) -> Dict[str, Dict[str, Optional[int]]]:
    out: Dict[str, Dict[str, Optional[int]]] = {}
    for lang in langs:
        L = lang.upper()
        out[lang] = {
            "title": pick_column(header, title_candidates(L)),
            "content": pick_column(header, content_candidates(L)),
            "excerpt": pick_column(header, excerpt_candidates(L)),
        }
    return out


def sync_all_product_data(store: ContentStore, source_id: int, target_id: int) -> None:
    source, target = EntityRef.post(source_id), EntityRef.post(target_id)
    sync_product_type(store, source_id, target_id)
    copy_core_fields(store, source, target)
    copy_meta(store, source, target, POST_META_EXCLUDE)


def process_language(store: ContentStore, linker: TranslationLinker, row: Sequence[str], line: int,
                     code: str, source_id: int, lang: str, cols: Dict[str, Optional[int]],
                     opts: TranslationImportOptions, stats: ImportStats) -> None:
    L = lang.upper()
    if cols["title"] is None:
        warn(f"Line {line}: no title column for '{lang}', skipping")
        stats.skipped += 1
        return

    title = cell(row, cols["title"])
    content = cell(row, cols["content"])
    excerpt = cell(row, cols["excerpt"])
    if not title:
        log(f"Skipping lang '{lang}' for code={code}: empty title.")
        stats.skipped += 1
        return

    resolved = ensure_post_translation(store, linker, source_id, lang, opts.dry_run)
    if resolved is None:
        stats.skipped += 1
        return
    target_id, is_new = resolved

    if opts.dry_run:
        log(f"[DRY-RUN] code={code} → {L}: would write title '{title}' to ID {target_id}")
    else:
        if target_id != source_id:
            sync_all_product_data(store, source_id, target_id)
        apply_post_fields(store, target_id, title, content, excerpt)
        if target_id != source_id:
            sync_terms_to_lang(store, linker, source_id, target_id, lang)

    log(f"✔ code={code} → {L} ID {target_id}" + (" [NEW]" if is_new else ""))
    if is_new:
        stats.created += 1
    else:
        stats.updated += 1


def run_translation_import(header: Sequence[str], rows: Iterable[Sequence[str]], store: ContentStore,
                           linker: TranslationLinker, opts: TranslationImportOptions) -> ImportStats:
    col_code = pick_column(header, CODE_CANDIDATES)
    if col_code is None:
        raise MissingColumnError("Missing required column: 'Код' / 'Code' / 'SKU'")

    langs = detect_languages(header)
    if not langs:
        warn("No language columns found in CSV header (e.g. 'Web име (EN)').")
    else:
        log("Detected languages: " + ", ".join(langs))
    lang_cols = language_columns(header, langs)

    stats = ImportStats()
    line = 1
    with store.bulk_mode():
        for row in rows:
            line += 1
            code = cell(row, col_code)
            if not code:
                stats.skipped += 1
                continue
            try:
                source_id = find_source_product(store, code, opts.fallback_meta)
                source = store.get_post(source_id) if source_id and linker.available else None
            except Exception as exc:
                warn(f"Line {line}: lookup failed for code={code}: {exc}")
                stats.skipped += 1
                continue
            if not source_id:
                warn(f"Line {line}: {opts.source_lang.upper()} product not found for code={code}")
                stats.skipped += 1
                continue
            # Polylang groups whole products, a variation follows its parent
            if source is not None and source.type == VARIATION_TYPE:
                warn(f"Line {line}: code={code} is variation {source_id} of product {source.parent}, "
                     f"translate the parent product instead")
                stats.skipped += 1
                continue

            for lang in langs:
                try:
                    process_language(store, linker, row, line, code, source_id, lang, lang_cols[lang], opts, stats)
                except Exception as exc:
                    warn(f"Line {line}: code={code} lang={lang} failed: {exc}")
                    stats.skipped += 1
    return stats


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    parser = argparse.ArgumentParser(description="Import Bizzio product translations into Polylang")
    parser.add_argument("csv", help="CSV path")
    parser.add_argument("--source-lang", default=default_lang("BIZZIO_SOURCE_LANG", DEFAULT_SOURCE_LANG))
    parser.add_argument("--fallback-meta", default=FALLBACK_META_FOR_CODE,
                        help="Meta key matched against the code when no SKU matches ('' to disable)")
    parser.add_argument("--delimiter", default=CSV_DELIM)
    parser.add_argument("--dry-run", action="store_true", help="Do not write anything")
    args = parser.parse_args(argv)

    cfg = load_wp_config()
    missing_env = cfg.missing()
    if missing_env:
        error("Missing .env variables: " + ", ".join(missing_env))
        return 2

    csv_path = Path(args.csv)
    try:
        header, rows = read_csv(csv_path, args.delimiter)
    except FileNotFoundError:
        error(f"Usage: import_translations.py /absolute/path/to/your_data.csv (not found: {csv_path})")
        return 1
    except EmptyInputError:
        error("CSV seems empty.")
        return 1
    except OSError as exc:
        error(f"Cannot open: {csv_path} ({exc})")
        return 1

    if pick_column(header, CODE_CANDIDATES) is None:
        rows.close()
        error("Missing required column: 'Код' / 'Code' / 'SKU'")
        return 3

    client = WpClient(cfg)
    if not client.ping():
        rows.close()
        error(f"WordPress REST API not reachable at {cfg.base_url}")
        return 4
    linker = detect_linker(client)
    if not linker.available:
        warn("Polylang REST API not found, products are updated in place")
    store = WpRestContentStore(client)

    opts = TranslationImportOptions(
        source_lang=args.source_lang.lower(),
        fallback_meta=args.fallback_meta.strip(),
        dry_run=args.dry_run,
    )
    log(f"Reading CSV: {csv_path}")
    stats = run_translation_import(header, rows, store, linker, opts)
    log(f"✔ Done. {stats.summary()}. Dry-run={'yes' if opts.dry_run else 'no'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
