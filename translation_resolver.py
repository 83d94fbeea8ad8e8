"""Find or create the translation of a product or a term."""

from __future__ import annotations

from typing import Optional, Tuple

from bizzio_common import log, slugify, warn
from content_store import AlreadyExists, ContentStore, Created, EntityRef, Failed, Post
from entity_locator import GROUP_ID_META
from translation_linker import TranslationLinker

Resolved = Tuple[int, bool]  # (entity id, created in this call)


def ensure_post_translation(store: ContentStore, linker: TranslationLinker, source_id: int,
                            lang: str, dry_run: bool = False) -> Optional[Resolved]:
    if not linker.available:
        return source_id, False

    source_ref = EntityRef.post(source_id)
    existing = linker.get_translations(source_ref).get(lang)
    if existing:
        return existing, False

    if dry_run:
        return source_id, False

    src = store.get_post(source_id)
    if src is None:
        warn(f"Source post {source_id} disappeared")
        return None

    # provisional title/slug until the CSV values are applied
    res = store.create_post(Post(
        id=0,
        type=src.type,
        status="publish",
        author=src.author,
        parent=src.parent or 0,
        menu_order=src.menu_order or 0,
        title=f"{src.title} ({lang})",
        slug=f"{src.slug}-{slugify(lang) or lang}" if src.slug else "",
    ))
    if isinstance(res, Failed):
        warn(f"Failed to create {lang} translation of post {source_id}: {res.reason}")
        return None

    linker.link(source_ref, res.id, lang)
    return res.id, isinstance(res, Created)


def ensure_term_translation(store: ContentStore, linker: TranslationLinker, taxonomy: str,
                            source_term_id: int, lang: str, name: Optional[str] = None,
                            description: str = "") -> Optional[Resolved]:
    """Translation of a term in ``lang``.

    Order of preference: the Polylang group entry, a term with the same name
    already tagged ``lang``, a freshly created term. When creation clashes
    with an existing untracked term, that term is linked instead. Fresh terms
    inherit the source's ``bizzio_group_id``.
    """
    if not linker.available:
        return source_term_id, False

    source_ref = EntityRef.term(taxonomy, source_term_id)
    existing = linker.get_translations(source_ref).get(lang)
    if existing:
        return existing, False

    base = store.get_term(taxonomy, source_term_id)
    if base is None:
        return None
    term_name = (name or "").strip() or base.name

    same_name = linker.find_term_by_name(taxonomy, term_name, lang)
    if same_name and same_name != source_term_id:
        linker.link(source_ref, same_name, lang)
        log(f"ℹ️ Linked existing {lang} term '{term_name}' (ID {same_name})")
        return same_name, False

    if name:
        slug = slugify(term_name)
    else:
        slug = f"{base.slug}-{lang}" if base.slug else ""
    res = store.create_term(taxonomy, term_name, slug=slug, description=description)

    if isinstance(res, AlreadyExists):
        if res.id == source_term_id:
            warn(f"Term '{term_name}' clashes with its own source term {source_term_id}")
            return None
        log(f"ℹ️ Term already exists (unlinked): {term_name} (ID {res.id})")
        linker.link(source_ref, res.id, lang)
        return res.id, False
    if isinstance(res, Failed):
        warn(f"Failed to create term '{term_name}': {res.reason}")
        return None

    linker.link(source_ref, res.id, lang)
    gid = store.get_meta_value(source_ref, GROUP_ID_META)
    if gid != "":
        store.update_meta(EntityRef.term(taxonomy, res.id), GROUP_ID_META, gid)
    return res.id, True
