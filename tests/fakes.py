"""
In-memory stand-ins for WordPress and Polylang.

FakeContentStore keeps terms, products, meta and term assignments in dicts;
FakeLinker keeps languages and translation groups the way Polylang does
(one group dict per member).
"""

import copy
import itertools
from typing import Any, Dict, List, Optional, Sequence, Tuple

from content_store import (
    PRODUCT_TYPES, TERM, AlreadyExists, ContentStore, Created, CreateResult, EntityRef, Failed,
    Post, Term,
)
from translation_linker import TranslationLinker


class FakeContentStore(ContentStore):

    def __init__(self, attribute_taxonomies: Optional[List[str]] = None):
        self._ids = itertools.count(100)
        self.terms: Dict[str, Dict[int, Term]] = {}
        self.posts: Dict[int, Post] = {}
        self.meta: Dict[Tuple[str, int], Dict[str, List[Any]]] = {}
        self.core: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self.object_terms: Dict[Tuple[int, str], List[int]] = {}
        self.product_types: Dict[int, str] = {}
        self.skus: Dict[str, int] = {}
        self.attribute_taxonomies = attribute_taxonomies
        self.fail_term_names: set = set()
        self.bulk_depth = 0
        self.bulk_entered = 0
        self.bulk_exited = 0
        self.writes: List[tuple] = []

    # --- seeding helpers ---
    def add_term(self, taxonomy: str, name: str, slug: str = "", parent: int = 0,
                 description: str = "", meta: Optional[Dict[str, List[Any]]] = None,
                 core: Optional[Dict[str, Any]] = None) -> int:
        term_id = next(self._ids)
        self.terms.setdefault(taxonomy, {})[term_id] = Term(
            id=term_id, taxonomy=taxonomy, name=name, slug=slug or name.lower().replace(" ", "-"),
            description=description, parent=parent,
        )
        self.meta[(TERM, term_id)] = copy.deepcopy(meta or {})
        if core:
            self.core[(TERM, term_id)] = copy.deepcopy(core)
        return term_id

    def add_post(self, title: str, slug: str = "", post_type: str = "product", sku: str = "",
                 parent: int = 0, product_type: str = "simple", content: str = "", excerpt: str = "",
                 meta: Optional[Dict[str, List[Any]]] = None, author: int = 1,
                 core: Optional[Dict[str, Any]] = None) -> int:
        post_id = next(self._ids)
        self.posts[post_id] = Post(
            id=post_id, type=post_type, title=title, slug=slug or title.lower().replace(" ", "-"),
            author=author, parent=parent, content=content, excerpt=excerpt,
        )
        self.meta[("post", post_id)] = copy.deepcopy(meta or {})
        if core:
            self.core[("post", post_id)] = copy.deepcopy(core)
        if sku:
            self.skus[sku] = post_id
        if post_type == "product":
            self.product_types[post_id] = product_type
        return post_id

    # --- terms ---
    def get_term(self, taxonomy, term_id):
        term = self.terms.get(taxonomy, {}).get(term_id)
        return copy.copy(term) if term else None

    def find_terms_by_meta(self, taxonomy, key, value):
        out = []
        for term_id in self.terms.get(taxonomy, {}):
            values = self.meta.get((TERM, term_id), {}).get(key, [])
            if any(str(v) == value for v in values):
                out.append(term_id)
        return sorted(out)

    def create_term(self, taxonomy, name, slug="", description="", parent=0) -> CreateResult:
        if name in self.fail_term_names:
            return Failed(f"cannot create '{name}'")
        base = slug or name.lower().replace(" ", "-")
        # same name under the same slug is what WordPress reports as term_exists
        for term in self.terms.get(taxonomy, {}).values():
            if term.name == name and term.parent == parent and term.slug == base:
                return AlreadyExists(term.id)
        taken = {t.slug for t in self.terms.get(taxonomy, {}).values()}
        unique, n = base, 2
        while unique in taken:
            unique, n = f"{base}-{n}", n + 1
        term_id = self.add_term(taxonomy, name, slug=unique, parent=parent, description=description)
        self.writes.append(("create_term", taxonomy, term_id))
        return Created(term_id)

    def update_term(self, taxonomy, term_id, **fields):
        term = self.terms[taxonomy][term_id]
        for key, value in fields.items():
            setattr(term, key, value)
        self.writes.append(("update_term", taxonomy, term_id, dict(fields)))

    # --- posts ---
    def get_post(self, post_id):
        post = self.posts.get(post_id)
        return copy.copy(post) if post else None

    def find_product_by_sku(self, sku):
        return self.skus.get(sku)

    def find_posts_by_meta(self, key, value, post_types: Sequence[str] = PRODUCT_TYPES):
        out = []
        for post_id, post in self.posts.items():
            if post.type not in post_types:
                continue
            if any(str(v) == value for v in self.meta.get(("post", post_id), {}).get(key, [])):
                out.append(post_id)
        return sorted(out)

    def create_post(self, post: Post) -> CreateResult:
        taken = {p.slug for p in self.posts.values()}
        unique, n = post.slug, 2
        while unique and unique in taken:
            unique, n = f"{post.slug}-{n}", n + 1
        post_id = self.add_post(post.title, slug=unique, post_type=post.type, parent=post.parent,
                                product_type="simple", author=post.author)
        self.posts[post_id].status = post.status
        self.posts[post_id].menu_order = post.menu_order
        self.writes.append(("create_post", post_id))
        return Created(post_id)

    def update_post(self, post_id, **fields):
        post = self.posts[post_id]
        for key, value in fields.items():
            setattr(post, key, value)
        self.writes.append(("update_post", post_id, dict(fields)))

    def get_object_terms(self, post_id, taxonomy):
        return list(self.object_terms.get((post_id, taxonomy), []))

    def set_object_terms(self, post_id, taxonomy, term_ids):
        self.object_terms[(post_id, taxonomy)] = list(term_ids)
        self.writes.append(("set_object_terms", post_id, taxonomy))

    def get_product_type(self, post_id):
        return self.product_types.get(post_id)

    def set_product_type(self, post_id, product_type):
        self.product_types[post_id] = product_type
        self.writes.append(("set_product_type", post_id, product_type))

    def product_attribute_taxonomies(self):
        return None if self.attribute_taxonomies is None else list(self.attribute_taxonomies)

    # --- meta ---
    def _meta(self, ref: EntityRef) -> Dict[str, List[Any]]:
        return self.meta.setdefault((ref.kind, ref.id), {})

    def get_meta(self, ref):
        return copy.deepcopy(self._meta(ref))

    def replace_meta(self, ref, key, values):
        if values:
            self._meta(ref)[key] = list(values)
        else:
            self._meta(ref).pop(key, None)
        self.writes.append(("replace_meta", ref.id, key))

    def update_meta(self, ref, key, value):
        self._meta(ref)[key] = [value]
        self.writes.append(("update_meta", ref.id, key))

    # --- core fields ---
    def get_core_fields(self, ref):
        return copy.deepcopy(self.core.get((ref.kind, ref.id), {}))

    def set_core_fields(self, ref, fields):
        self.core.setdefault((ref.kind, ref.id), {}).update(fields)
        self.writes.append(("set_core_fields", ref.id))

    # --- bulk ---
    def begin_bulk(self):
        self.bulk_depth += 1
        self.bulk_entered += 1

    def end_bulk(self):
        self.bulk_depth -= 1
        self.bulk_exited += 1


class FakeLinker(TranslationLinker):

    def __init__(self, store: FakeContentStore):
        self.store = store
        self.languages: Dict[Tuple[str, int], str] = {}
        self.groups: Dict[Tuple[str, int], Dict[str, int]] = {}

    def tag(self, ref: EntityRef, lang: str) -> None:
        self.languages[(ref.kind, ref.id)] = lang

    def get_translations(self, ref):
        return dict(self.groups.get((ref.kind, ref.id), {}))

    def get_language(self, ref):
        return self.languages.get((ref.kind, ref.id))

    def set_language(self, ref, lang):
        self.languages[(ref.kind, ref.id)] = lang

    def save_translations(self, ref, group):
        for member_id in group.values():
            self.groups[(ref.kind, member_id)] = dict(group)

    def find_term_by_name(self, taxonomy, name, lang):
        for term in self.store.terms.get(taxonomy, {}).values():
            if term.name == name and self.languages.get((TERM, term.id)) == lang:
                return term.id
        return None
