from __future__ import annotations

from typing import List, Optional

from bizzio_common import join_ids, warn
from content_store import PRODUCT_TYPES, ContentStore, EntityRef
from translation_linker import TranslationLinker

GROUP_ID_META = "bizzio_group_id"
FALLBACK_META_FOR_CODE = "_barcode"


def clean_group_id(raw: str) -> str:
    """id.291608440944460608 -> 291608440944460608 (also drops leading '!')."""
    return (raw or "").strip().replace("id.", "").lstrip("!")


def find_source_term(store: ContentStore, linker: TranslationLinker, taxonomy: str,
                     raw_id: str, source_lang: str) -> Optional[int]:
    group_id = clean_group_id(raw_id)
    if not group_id:
        return None
    matches = store.find_terms_by_meta(taxonomy, GROUP_ID_META, group_id)
    if not matches:
        return None

    # translations carry the same bizzio_group_id once created
    if linker.available and len(matches) > 1:
        own: List[int] = []
        for term_id in matches:
            lang = linker.get_language(EntityRef.term(taxonomy, term_id))
            if not lang or lang == source_lang:
                own.append(term_id)
        matches = own or matches

    if len(matches) > 1:
        warn(f"Several terms share bizzio_group_id {group_id} ({join_ids(matches)}), using {matches[0]}")
    return matches[0]


def find_source_product(store: ContentStore, code: str,
                        fallback_meta_key: str = FALLBACK_META_FOR_CODE) -> Optional[int]:
    code = (code or "").strip()
    if not code:
        return None
    product_id = store.find_product_by_sku(code)
    if product_id:
        return product_id
    if not fallback_meta_key:
        return None
    ids = store.find_posts_by_meta(fallback_meta_key, code, PRODUCT_TYPES)
    return ids[0] if ids else None
