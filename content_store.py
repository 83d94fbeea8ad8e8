"""Content store seam: what the import scripts need from WordPress.

The sync logic only talks to ``ContentStore``; ``wp_store.WpRestContentStore``
is the real thing, tests use an in-memory fake.
"""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Union

TERM = "term"
POST = "post"

VARIATION_TYPE = "product_variation"
PRODUCT_TYPES = ("product", VARIATION_TYPE)
CATEGORY_TAX = "product_cat"
TAG_TAX = "product_tag"


class EntityRef(NamedTuple):
    kind: str  # TERM or POST
    id: int
    taxonomy: str = ""

    @classmethod
    def term(cls, taxonomy: str, term_id: int) -> "EntityRef":
        return cls(TERM, int(term_id), taxonomy)

    @classmethod
    def post(cls, post_id: int) -> "EntityRef":
        return cls(POST, int(post_id))


@dataclass
class Term:
    id: int
    taxonomy: str
    name: str
    slug: str = ""
    description: str = ""
    parent: int = 0


@dataclass
class Post:
    id: int
    type: str = "product"
    title: str = ""
    slug: str = ""
    status: str = "publish"
    author: int = 0
    parent: int = 0
    menu_order: int = 0
    content: str = ""
    excerpt: str = ""


# Creation outcome. AlreadyExists carries the id of the clashing entity.
@dataclass(frozen=True)
class Created:
    id: int


@dataclass(frozen=True)
class AlreadyExists:
    id: int


@dataclass(frozen=True)
class Failed:
    reason: str


CreateResult = Union[Created, AlreadyExists, Failed]


class ContentStore(ABC):
    # --- terms ---
    @abstractmethod
    def get_term(self, taxonomy: str, term_id: int) -> Optional[Term]:
        ...

    @abstractmethod
    def find_terms_by_meta(self, taxonomy: str, key: str, value: str) -> List[int]:
        """Ids of terms whose meta ``key`` has ``value``, ascending."""

    @abstractmethod
    def create_term(self, taxonomy: str, name: str, slug: str = "", description: str = "",
                    parent: int = 0) -> CreateResult:
        ...

    @abstractmethod
    def update_term(self, taxonomy: str, term_id: int, **fields: Any) -> None:
        """Update ``name``, ``description``, ``slug`` and/or ``parent``."""

    # --- posts / products ---
    @abstractmethod
    def get_post(self, post_id: int) -> Optional[Post]:
        ...

    @abstractmethod
    def find_product_by_sku(self, sku: str) -> Optional[int]:
        ...

    @abstractmethod
    def find_posts_by_meta(self, key: str, value: str,
                           post_types: Sequence[str] = PRODUCT_TYPES) -> List[int]:
        ...

    @abstractmethod
    def create_post(self, post: Post) -> CreateResult:
        """Insert ``post`` (its ``id`` is ignored)."""

    @abstractmethod
    def update_post(self, post_id: int, **fields: Any) -> None:
        """Update ``title``, ``content`` and/or ``excerpt``."""

    @abstractmethod
    def get_object_terms(self, post_id: int, taxonomy: str) -> List[int]:
        ...

    @abstractmethod
    def set_object_terms(self, post_id: int, taxonomy: str, term_ids: Sequence[int]) -> None:
        """Replace the post's terms in ``taxonomy``."""

    @abstractmethod
    def get_product_type(self, post_id: int) -> Optional[str]:
        ...

    @abstractmethod
    def set_product_type(self, post_id: int, product_type: str) -> None:
        ...

    @abstractmethod
    def product_attribute_taxonomies(self) -> Optional[List[str]]:
        """``pa_*`` taxonomy names, or ``None`` when WooCommerce is not there."""

    # --- meta (both kinds) ---
    @abstractmethod
    def get_meta(self, ref: EntityRef) -> Dict[str, List[Any]]:
        ...

    @abstractmethod
    def replace_meta(self, ref: EntityRef, key: str, values: Sequence[Any]) -> None:
        """Make ``values`` the complete value list of ``key``; empty deletes the key."""

    @abstractmethod
    def update_meta(self, ref: EntityRef, key: str, value: Any) -> None:
        """Set ``key`` to the single ``value``."""

    # --- store-native fields outside meta (prices, stock, images, ...) ---
    @abstractmethod
    def get_core_fields(self, ref: EntityRef) -> Dict[str, Any]:
        ...

    @abstractmethod
    def set_core_fields(self, ref: EntityRef, fields: Dict[str, Any]) -> None:
        ...

    def get_meta_value(self, ref: EntityRef, key: str) -> Any:
        values = self.get_meta(ref).get(key) or []
        return values[0] if values else ""

    # --- bulk mode ---
    def begin_bulk(self) -> None:
        pass

    def end_bulk(self) -> None:
        pass

    @contextlib.contextmanager
    def bulk_mode(self) -> Iterator["ContentStore"]:
        """Wrap a batch of writes; ``end_bulk`` runs on every exit path."""
        self.begin_bulk()
        try:
            yield self
        finally:
            self.end_bulk()
