"""Copy data from the source-language entity onto its translation."""

from __future__ import annotations

import copy
from typing import Iterable, List, Optional

from bizzio_common import warn
from content_store import CATEGORY_TAX, TAG_TAX, ContentStore, EntityRef
from translation_linker import TranslationLinker
from translation_resolver import ensure_term_translation

PLL_META_PREFIX = "_pll_"

TERM_META_EXCLUDE = frozenset({
    "_pll_string_translations",
})

POST_META_EXCLUDE = frozenset({
    "_edit_lock", "_edit_last", "post_title", "post_content", "post_excerpt",
    "pll_sync_post", "_dp_original", "_icl_lang_duplicate_of",
})

# Yoast and Rank Math both get the SEO texts
SEO_TITLE_KEYS = ("_yoast_wpseo_title", "rank_math_title")
SEO_DESC_KEYS = ("_yoast_wpseo_metadesc", "rank_math_description")


def copy_meta(store: ContentStore, source: EntityRef, target: EntityRef,
              exclude: Iterable[str] = (), exclude_prefixes: Iterable[str] = (PLL_META_PREFIX,)) -> int:
    """Mirror every meta key of ``source`` onto ``target``, returns keys copied.

    Each key's whole value list replaces the target's, so repeated runs never
    pile up values.
    """
    if source == target:
        return 0
    skip = set(exclude)
    prefixes = tuple(exclude_prefixes)
    copied = 0
    for key, values in store.get_meta(source).items():
        if key in skip or (prefixes and key.startswith(prefixes)):
            continue
        store.replace_meta(target, key, copy.deepcopy(list(values)))
        copied += 1
    return copied


def copy_core_fields(store: ContentStore, source: EntityRef, target: EntityRef) -> bool:
    """Prices, stock, images, category thumbnail and the like. WooCommerce
    keeps these out of the meta listing, so they travel separately."""
    if source == target:
        return False
    fields = store.get_core_fields(source)
    if not fields:
        return False
    store.set_core_fields(target, copy.deepcopy(fields))
    return True


def apply_term_fields(store: ContentStore, taxonomy: str, term_id: int,
                      name: str = "", description: str = "") -> bool:
    fields = {}
    if name:
        fields["name"] = name
    if description:
        fields["description"] = description
    if not fields:
        return False
    store.update_term(taxonomy, term_id, **fields)
    return True


def apply_post_fields(store: ContentStore, post_id: int, title: str = "", content: str = "",
                      excerpt: str = "") -> bool:
    fields = {k: v for k, v in (("title", title), ("content", content), ("excerpt", excerpt)) if v}
    if not fields:
        return False
    store.update_post(post_id, **fields)
    return True


def apply_seo_fields(store: ContentStore, ref: EntityRef, title: str = "", description: str = "") -> None:
    if title:
        for key in SEO_TITLE_KEYS:
            store.update_meta(ref, key, title)
    if description:
        for key in SEO_DESC_KEYS:
            store.update_meta(ref, key, description)


def sync_product_type(store: ContentStore, source_id: int, target_id: int) -> None:
    product_type = store.get_product_type(source_id)
    if product_type and product_type != store.get_product_type(target_id):
        store.set_product_type(target_id, product_type)


def product_taxonomies(store: ContentStore) -> Optional[List[str]]:
    attrs = store.product_attribute_taxonomies()
    if attrs is None:
        return None
    out: List[str] = []
    for tax in [CATEGORY_TAX, TAG_TAX] + list(attrs):
        if tax not in out:
            out.append(tax)
    return out


def sync_terms_to_lang(store: ContentStore, linker: TranslationLinker, source_id: int,
                       target_id: int, lang: str) -> int:
    """Put the translations of the source's categories, tags and attribute
    terms on the target. Returns the number of taxonomies written."""
    taxonomies = product_taxonomies(store)
    if taxonomies is None:
        return 0
    written = 0
    for tax in taxonomies:
        source_terms = store.get_object_terms(source_id, tax)
        if not source_terms:
            continue
        target_terms: List[int] = []
        for term_id in source_terms:
            resolved = ensure_term_translation(store, linker, tax, term_id, lang)
            if resolved is None:
                warn(f"No {lang} translation for term {term_id} in {tax}")
                continue
            target_terms.append(resolved[0])
        if target_terms:
            store.set_object_terms(target_id, tax, target_terms)
            written += 1
    return written
