#!/usr/bin/env python3
"""Import category translations from a Bizzio site-group CSV.

Kasutus:
    python import_categories.py keter_sitegroup.csv
    python import_categories.py export.csv --dest-lang en --taxonomy product_cat

Loogika:
1. Reads the CSV (``;`` separated, encoding detected per line).
2. Finds the source (BG) term by its ``bizzio_group_id`` meta = CSV ``(id)``.
3. Finds or creates the destination-language term and links it in Polylang.
4. Copies all term meta (images, thumbnails, ...) from the source term.
5. Writes name/description from the CSV, SEO texts when the columns exist.
6. Second pass: re-parents translated terms to the translated parents.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from bizzio_common import (
    DEFAULT_DEST_LANG, DEFAULT_SOURCE_LANG, ImportStats, default_lang, error, load_env,
    load_wp_config, log, warn,
)
from bizzio_csv import CSV_DELIM, EmptyInputError, MissingColumnError, cell, read_csv, resolve_column
from content_store import CATEGORY_TAX, ContentStore, EntityRef
from entity_locator import clean_group_id, find_source_term
from field_sync import TERM_META_EXCLUDE, apply_seo_fields, apply_term_fields, copy_core_fields, copy_meta
from translation_linker import TranslationLinker, detect_linker
from translation_resolver import ensure_term_translation
from wp_client import WpClient
from wp_store import WpRestContentStore

DEFAULT_CSV = "keter_sitegroup.csv"


@dataclass
class CategoryImportOptions:
    taxonomy: str = CATEGORY_TAX
    source_lang: str = DEFAULT_SOURCE_LANG
    dest_lang: str = DEFAULT_DEST_LANG


@dataclass
class CategoryImportResult:
    stats: ImportStats = field(default_factory=ImportStats)
    pairs: List[Tuple[int, int]] = field(default_factory=list)
    reparented: int = 0


def category_columns(header: Sequence[str], dest_lang: str) -> Dict[str, Optional[int]]:
    L = dest_lang.upper()
    return {
        "id": resolve_column(header, ["id", "(id)"]),
        "name": resolve_column(header, [f"Артикулна група ({L})", f"Name ({L})"]),
        "description": resolve_column(header, [f"Бележка ({L})", f"Description ({L})"]),
        "meta_title": resolve_column(header, [f"Meta име ({L})", f"Meta Title ({L})"]),
        "meta_description": resolve_column(header, [f"Meta описание ({L})", f"Meta Description ({L})"]),
    }


def process_row(store: ContentStore, linker: TranslationLinker, row: Sequence[str],
                cols: Dict[str, Optional[int]], opts: CategoryImportOptions,
                result: CategoryImportResult) -> None:
    stats = result.stats
    tax = opts.taxonomy
    L = opts.dest_lang.upper()

    bizzio_id = cell(row, cols["id"])
    if not bizzio_id:
        return
    group_id = clean_group_id(bizzio_id)

    source_id = find_source_term(store, linker, tax, bizzio_id, opts.source_lang)
    if not source_id:
        warn(f"Original term not found for bizzio_id: {group_id} (original: {bizzio_id})")
        stats.skipped += 1
        return

    name = cell(row, cols["name"])
    description = cell(row, cols["description"])
    if not name:
        log(f"Skipping ID {bizzio_id}: Empty {L} name.")
        stats.skipped += 1
        return

    resolved = ensure_term_translation(store, linker, tax, source_id, opts.dest_lang,
                                       name=name, description=description)
    if resolved is None:
        stats.skipped += 1
        return
    target_id, is_new = resolved

    if is_new:
        stats.created += 1
    else:
        apply_term_fields(store, tax, target_id, name, description)
        stats.updated += 1

    source_ref = EntityRef.term(tax, source_id)
    target_ref = EntityRef.term(tax, target_id)
    copy_meta(store, source_ref, target_ref, TERM_META_EXCLUDE)
    copy_core_fields(store, source_ref, target_ref)
    apply_seo_fields(store, target_ref, cell(row, cols["meta_title"]), cell(row, cols["meta_description"]))

    log(f"Processed: {bizzio_id} -> {L} Term ID: {target_id}" + (" [NEW]" if is_new else ""))
    result.pairs.append((source_id, target_id))


def sync_hierarchy(store: ContentStore, linker: TranslationLinker, taxonomy: str,
                   pairs: Iterable[Tuple[int, int]], dest_lang: str) -> int:
    """Give every translated term the translation of its source's parent.

    One flat pass: a parent translated later in the same CSV is only picked
    up on the next run.
    """
    updated = 0
    for src_id, dest_id in pairs:
        if src_id == dest_id:
            continue
        try:
            src_term = store.get_term(taxonomy, src_id)
            if src_term is None:
                continue
            dest_parent_id = 0
            if src_term.parent > 0:
                parent_trans = linker.get_translations(EntityRef.term(taxonomy, src_term.parent))
                dest_parent_id = parent_trans.get(dest_lang, 0)
            dest_term = store.get_term(taxonomy, dest_id)
            if dest_term and dest_term.parent != dest_parent_id:
                store.update_term(taxonomy, dest_id, parent=dest_parent_id)
                log(f"Updated parent for Term ID {dest_id} -> Parent ID {dest_parent_id}")
                updated += 1
        except Exception as exc:
            warn(f"Hierarchy sync failed for Term ID {dest_id}: {exc}")
    return updated


def run_category_import(header: Sequence[str], rows: Iterable[Sequence[str]], store: ContentStore,
                        linker: TranslationLinker, opts: CategoryImportOptions) -> CategoryImportResult:
    cols = category_columns(header, opts.dest_lang)
    if cols["id"] is None:
        raise MissingColumnError("Required ID column not found in CSV.")

    result = CategoryImportResult()
    with store.bulk_mode():
        for row in rows:
            try:
                process_row(store, linker, row, cols, opts, result)
            except Exception as exc:
                warn(f"Row failed ({cell(row, cols['id'])}): {exc}")
                result.stats.skipped += 1

    if linker.available:
        log("Syncing category hierarchy...")
        result.reparented = sync_hierarchy(store, linker, opts.taxonomy, result.pairs, opts.dest_lang)
        log(f"Hierarchy: {result.reparented} parent(s) updated")
    return result


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    parser = argparse.ArgumentParser(description="Import Bizzio category translations into Polylang")
    parser.add_argument("csv", nargs="?", default=DEFAULT_CSV, help=f"CSV path (default {DEFAULT_CSV})")
    parser.add_argument("--taxonomy", default=CATEGORY_TAX)
    parser.add_argument("--source-lang", default=default_lang("BIZZIO_SOURCE_LANG", DEFAULT_SOURCE_LANG))
    parser.add_argument("--dest-lang", default=default_lang("BIZZIO_DEST_LANG", DEFAULT_DEST_LANG))
    parser.add_argument("--delimiter", default=CSV_DELIM)
    args = parser.parse_args(argv)

    cfg = load_wp_config()
    missing_env = cfg.missing()
    if missing_env:
        error("Missing .env variables: " + ", ".join(missing_env))
        return 2

    csv_path = Path(args.csv)
    log(f"Reading CSV: {csv_path}")
    try:
        header, rows = read_csv(csv_path, args.delimiter)
    except FileNotFoundError:
        error(f"File not found: {csv_path}")
        return 1
    except EmptyInputError:
        error("CSV header is empty or file not readable.")
        return 1
    except OSError as exc:
        error(f"Cannot open CSV: {exc}")
        return 1

    opts = CategoryImportOptions(
        taxonomy=args.taxonomy,
        source_lang=args.source_lang.lower(),
        dest_lang=args.dest_lang.lower(),
    )
    if category_columns(header, opts.dest_lang)["id"] is None:
        rows.close()
        log("Detected Header Columns: " + " | ".join(header))
        error("Required ID column not found in CSV.")
        return 3

    client = WpClient(cfg)
    if not client.ping():
        rows.close()
        error(f"WordPress REST API not reachable at {cfg.base_url}")
        return 4
    linker = detect_linker(client)
    if not linker.available:
        warn("Polylang REST API not found, terms are updated in place")
    store = WpRestContentStore(client)

    result = run_category_import(header, rows, store, linker, opts)
    log(f"✔ Import complete. {result.stats.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
