"""ContentStore backed by the WordPress REST API.

Terms go through ``wp/v2/<taxonomy>`` (the taxonomy must be ``show_in_rest``
and ``bizzio_group_id`` registered as REST meta), products and variations
through ``wc/v3/products``.

Neither API can filter by meta, so meta lookups scan the whole listing, the
same way the category check script builds its indexes. Inside ``bulk_mode()``
those listings are read once and kept until the batch ends.

WooCommerce leaves prices, stock, images and other internal keys out of
``meta_data``; those travel as product fields (``get_core_fields``). A
category's thumbnail and display type come from ``wc/v3/products/categories``.
"""

from __future__ import annotations

import html
from typing import Any, Dict, List, Optional, Sequence

import requests

from bizzio_common import warn
from content_store import (
    CATEGORY_TAX, PRODUCT_TYPES, TAG_TAX, TERM, VARIATION_TYPE, AlreadyExists, ContentStore, Created,
    CreateResult, EntityRef, Failed, Post, Term,
)
from wp_client import WpApiError, WpClient

POST_REST_BASE = "product"

# Woo keeps these outside meta_data (_price, _stock, _thumbnail_id, ...)
PRODUCT_CORE_FIELDS = (
    "regular_price", "sale_price", "date_on_sale_from", "date_on_sale_to",
    "tax_status", "tax_class", "manage_stock", "stock_quantity", "stock_status", "backorders",
    "sold_individually", "weight", "dimensions", "shipping_class", "virtual", "downloadable",
    "featured", "catalog_visibility", "purchase_note", "images", "attributes", "default_attributes",
)
VARIATION_CORE_FIELDS = (
    "regular_price", "sale_price", "date_on_sale_from", "date_on_sale_to",
    "tax_status", "tax_class", "manage_stock", "stock_quantity", "stock_status", "backorders",
    "weight", "dimensions", "shipping_class", "virtual", "downloadable", "image", "attributes",
)
CATEGORY_CORE_FIELDS = ("image", "display_type")
ATTRIBUTE_KEYS = ("id", "name", "position", "visible", "variation", "options")


def _as_int(v: Any) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


def _meta_values(raw: Any) -> List[Any]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return list(raw)
    return [raw]


def _image_ref(img: Any) -> Optional[Dict[str, int]]:
    """Images are shared attachments, the translation points at the same id."""
    image_id = _as_int(img.get("id")) if isinstance(img, dict) else 0
    return {"id": image_id} if image_id else None


def _pick_fields(data: Dict[str, Any], keys: Sequence[str]) -> Dict[str, Any]:
    fields = {k: data[k] for k in keys if data.get(k) is not None}
    if "images" in fields:
        fields["images"] = [ref for ref in map(_image_ref, fields["images"] or []) if ref]
    if "image" in fields:
        image = _image_ref(fields.pop("image"))
        if image:
            fields["image"] = image
    return fields


class WpRestContentStore(ContentStore):
    def __init__(self, client: WpClient) -> None:
        self.client = client
        self._bulk = False
        self._term_lists: Dict[str, List[Dict[str, Any]]] = {}
        self._meta_index: Dict[str, Dict[str, List[int]]] = {}
        self._attributes: Optional[Dict[str, int]] = None
        self._attribute_terms: Dict[int, List[Dict[str, Any]]] = {}
        self._variation_parent: Dict[int, int] = {}

    # --- bulk mode ---
    def begin_bulk(self) -> None:
        self._bulk = True

    def end_bulk(self) -> None:
        self._bulk = False
        self._term_lists.clear()
        self._meta_index.clear()
        self._attribute_terms.clear()
        self._attributes = None

    # --- terms ---
    def _term_path(self, taxonomy: str, term_id: Optional[int] = None) -> str:
        path = f"wp/v2/{taxonomy}"
        return f"{path}/{term_id}" if term_id else path

    def _all_terms(self, taxonomy: str) -> List[Dict[str, Any]]:
        cached = self._term_lists.get(taxonomy)
        if cached is not None:
            return cached
        items = list(self.client.paginate(self._term_path(taxonomy), {"_fields": "id,name,slug,parent,meta"}))
        if self._bulk:
            self._term_lists[taxonomy] = items
        return items

    @staticmethod
    def _to_term(taxonomy: str, item: Dict[str, Any]) -> Term:
        return Term(
            id=_as_int(item.get("id")),
            taxonomy=taxonomy,
            name=html.unescape(str(item.get("name") or "")),
            slug=str(item.get("slug") or ""),
            description=str(item.get("description") or ""),
            parent=_as_int(item.get("parent")),
        )

    def get_term(self, taxonomy: str, term_id: int) -> Optional[Term]:
        try:
            item = self.client.get(self._term_path(taxonomy, term_id))
        except WpApiError as exc:
            if exc.status == 404:
                return None
            raise
        if not isinstance(item, dict):
            return None
        return self._to_term(taxonomy, item)

    def find_terms_by_meta(self, taxonomy: str, key: str, value: str) -> List[int]:
        out: List[int] = []
        for item in self._all_terms(taxonomy):
            meta = item.get("meta") or {}
            if not isinstance(meta, dict):
                continue
            if any(str(v) == value for v in _meta_values(meta.get(key))):
                out.append(_as_int(item.get("id")))
        return sorted(out)

    def create_term(self, taxonomy: str, name: str, slug: str = "", description: str = "",
                    parent: int = 0) -> CreateResult:
        payload: Dict[str, Any] = {"name": name}
        if slug:
            payload["slug"] = slug
        if description:
            payload["description"] = description
        if parent:
            payload["parent"] = parent
        try:
            data = self.client.post(self._term_path(taxonomy), payload)
        except WpApiError as exc:
            if exc.code == "term_exists":
                existing = _as_int(exc.data.get("term_id") or exc.data.get("resource_id"))
                if existing:
                    return AlreadyExists(existing)
            return Failed(str(exc))
        except requests.RequestException as exc:
            return Failed(str(exc))
        new_id = _as_int((data or {}).get("id"))
        if not new_id:
            return Failed(f"no id in response for term '{name}'")
        return Created(new_id)

    def update_term(self, taxonomy: str, term_id: int, **fields: Any) -> None:
        payload = {k: v for k, v in fields.items() if k in ("name", "description", "slug", "parent")}
        if payload:
            self.client.post(self._term_path(taxonomy, term_id), payload)

    # --- products ---
    def _product(self, post_id: int) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(f"wc/v3/products/{post_id}")
        except WpApiError as exc:
            if exc.status == 404:
                return None
            raise
        if not isinstance(data, dict):
            return None
        if data.get("type") == "variation":
            self._variation_parent[post_id] = _as_int(data.get("parent_id"))
        return data

    def _product_path(self, post_id: int) -> str:
        parent = self._variation_parent.get(post_id)
        if parent:
            return f"wc/v3/products/{parent}/variations/{post_id}"
        return f"wc/v3/products/{post_id}"

    def get_post(self, post_id: int) -> Optional[Post]:
        data = self._product(post_id)
        if data is None:
            return None
        return Post(
            id=_as_int(data.get("id")),
            type=VARIATION_TYPE if data.get("type") == "variation" else "product",
            title=html.unescape(str(data.get("name") or "")),
            slug=str(data.get("slug") or ""),
            status=str(data.get("status") or "publish"),
            parent=_as_int(data.get("parent_id")),
            menu_order=_as_int(data.get("menu_order")),
            content=str(data.get("description") or ""),
            excerpt=str(data.get("short_description") or ""),
        )

    def find_product_by_sku(self, sku: str) -> Optional[int]:
        data = self.client.get("wc/v3/products", {"sku": sku, "per_page": 10, "_fields": "id,sku"})
        for item in data or []:
            if isinstance(item, dict) and str(item.get("sku") or "") == sku:
                return _as_int(item.get("id"))
        return None

    def _build_meta_index(self, key: str) -> Dict[str, List[int]]:
        index: Dict[str, List[int]] = {}

        def _add(item: Dict[str, Any]) -> None:
            for m in item.get("meta_data") or []:
                if isinstance(m, dict) and m.get("key") == key:
                    index.setdefault(str(m.get("value")), []).append(_as_int(item.get("id")))

        for product in self.client.paginate("wc/v3/products", {"_fields": "id,type,meta_data"}):
            _add(product)
            if product.get("type") != "variable":
                continue
            parent_id = _as_int(product.get("id"))
            for variation in self.client.paginate(f"wc/v3/products/{parent_id}/variations",
                                                  {"_fields": "id,meta_data"}):
                self._variation_parent[_as_int(variation.get("id"))] = parent_id
                _add(variation)
        return index

    def find_posts_by_meta(self, key: str, value: str,
                           post_types: Sequence[str] = PRODUCT_TYPES) -> List[int]:
        index = self._meta_index.get(key)
        if index is None:
            index = self._build_meta_index(key)
            if self._bulk:
                self._meta_index[key] = index
        ids = index.get(value, [])
        if VARIATION_TYPE not in post_types:
            ids = [i for i in ids if i not in self._variation_parent]
        return sorted(ids)

    def create_post(self, post: Post) -> CreateResult:
        payload: Dict[str, Any] = {"status": post.status or "publish", "menu_order": post.menu_order}
        if post.type == VARIATION_TYPE:
            if not post.parent:
                return Failed("variation without parent product")
            path = f"wc/v3/products/{post.parent}/variations"
        else:
            path = "wc/v3/products"
            payload["name"] = post.title
            if post.slug:
                payload["slug"] = post.slug
        try:
            data = self.client.post(path, payload)
        except WpApiError as exc:
            existing = _as_int(exc.data.get("resource_id"))
            if existing:
                return AlreadyExists(existing)
            return Failed(str(exc))
        except requests.RequestException as exc:
            return Failed(str(exc))
        new_id = _as_int((data or {}).get("id"))
        if not new_id:
            return Failed(f"no id in response for '{post.title}'")
        if post.type == VARIATION_TYPE:
            self._variation_parent[new_id] = post.parent
        return Created(new_id)

    def update_post(self, post_id: int, **fields: Any) -> None:
        mapping = {"title": "name", "content": "description", "excerpt": "short_description"}
        payload = {mapping[k]: v for k, v in fields.items() if k in mapping}
        if payload:
            self.client.put(self._product_path(post_id), payload)

    # --- product taxonomies ---
    def product_attribute_taxonomies(self) -> Optional[List[str]]:
        if self._attributes is None:
            try:
                items = self.client.get("wc/v3/products/attributes") or []
            except WpApiError as exc:
                if exc.status == 404:
                    return None
                raise
            self._attributes = {str(a.get("slug")): _as_int(a.get("id")) for a in items if isinstance(a, dict)}
        return list(self._attributes.keys())

    def _attribute_id(self, taxonomy: str) -> int:
        self.product_attribute_taxonomies()
        return (self._attributes or {}).get(taxonomy, 0)

    def _attribute_term_list(self, attr_id: int) -> List[Dict[str, Any]]:
        cached = self._attribute_terms.get(attr_id)
        if cached is not None:
            return cached
        items = list(self.client.paginate(f"wc/v3/products/attributes/{attr_id}/terms", {"_fields": "id,name"}))
        if self._bulk:
            self._attribute_terms[attr_id] = items
        return items

    def get_object_terms(self, post_id: int, taxonomy: str) -> List[int]:
        data = self._product(post_id) or {}
        if taxonomy in (CATEGORY_TAX, TAG_TAX):
            key = "categories" if taxonomy == CATEGORY_TAX else "tags"
            return [_as_int(t.get("id")) for t in data.get(key) or [] if isinstance(t, dict)]
        attr_id = self._attribute_id(taxonomy)
        if not attr_id:
            return []
        options: List[str] = []
        for attr in data.get("attributes") or []:
            if isinstance(attr, dict) and _as_int(attr.get("id")) == attr_id:
                options = [str(o) for o in attr.get("options") or []]
        by_name = {html.unescape(str(t.get("name") or "")): _as_int(t.get("id"))
                   for t in self._attribute_term_list(attr_id)}
        return [by_name[o] for o in options if o in by_name]

    def set_object_terms(self, post_id: int, taxonomy: str, term_ids: Sequence[int]) -> None:
        path = self._product_path(post_id)
        if taxonomy in (CATEGORY_TAX, TAG_TAX):
            key = "categories" if taxonomy == CATEGORY_TAX else "tags"
            self.client.put(path, {key: [{"id": int(t)} for t in term_ids]})
            return
        attr_id = self._attribute_id(taxonomy)
        if not attr_id:
            return
        names: List[str] = []
        for tid in term_ids:
            term = self.get_term(taxonomy, tid)
            if term:
                names.append(term.name)
        attributes = [a for a in (self._product(post_id) or {}).get("attributes") or [] if isinstance(a, dict)]
        for attr in attributes:
            if _as_int(attr.get("id")) == attr_id:
                attr["options"] = names
                break
        else:
            attributes.append({"id": attr_id, "options": names, "visible": True})
        self.client.put(path, {"attributes": attributes})

    def get_product_type(self, post_id: int) -> Optional[str]:
        data = self._product(post_id) or {}
        return str(data.get("type") or "") or None

    def set_product_type(self, post_id: int, product_type: str) -> None:
        if product_type == "variation" or post_id in self._variation_parent:
            return
        self.client.put(self._product_path(post_id), {"type": product_type})

    # --- meta ---
    def get_meta(self, ref: EntityRef) -> Dict[str, List[Any]]:
        out: Dict[str, List[Any]] = {}
        if ref.kind == TERM:
            item = self.client.get(self._term_path(ref.taxonomy, ref.id), {"_fields": "id,meta"}) or {}
            meta = item.get("meta") or {}
            if isinstance(meta, dict):
                for key, raw in meta.items():
                    values = _meta_values(raw)
                    if values:
                        out[key] = values
            return out
        for m in (self._product(ref.id) or {}).get("meta_data") or []:
            if isinstance(m, dict) and m.get("key"):
                out.setdefault(str(m["key"]), []).append(m.get("value"))
        return out

    def replace_meta(self, ref: EntityRef, key: str, values: Sequence[Any]) -> None:
        """Write the whole value list of ``key`` in one request.

        Woo ``meta_data`` rows without an ``id`` update the key's first row, so
        several values need one existing row each. When the target has fewer,
        the list goes through the ``wp/v2`` ``meta`` field, which works for
        keys registered with ``single => false``.
        """
        values = list(values)
        if ref.kind == TERM:
            value: Any = values if len(values) > 1 else (values[0] if values else None)
            self.client.post(self._term_path(ref.taxonomy, ref.id), {"meta": {key: value}})
            return

        rows = [m for m in (self._product(ref.id) or {}).get("meta_data") or []
                if isinstance(m, dict) and m.get("key") == key and m.get("id")]
        if len(values) > max(len(rows), 1):
            if self._write_meta_list(ref.id, key, values):
                return
            warn(f"Meta '{key}' of product {ref.id} is not registered for REST, "
                 f"keeping {len(rows) or 1} of {len(values)} values")
            values = values[:len(rows)] if rows else values[-1:]

        # a null value deletes the row
        payload = [{"id": m["id"], "key": key, "value": values[i] if i < len(values) else None}
                   for i, m in enumerate(rows)]
        if not rows and values:
            payload.append({"key": key, "value": values[0]})
        if payload:
            self.client.put(self._product_path(ref.id), {"meta_data": payload})

    def _write_meta_list(self, post_id: int, key: str, values: List[Any]) -> bool:
        if post_id in self._variation_parent:
            return False
        try:
            data = self.client.post(f"wp/v2/{POST_REST_BASE}/{post_id}", {"meta": {key: values}})
        except WpApiError:
            return False
        stored = ((data or {}).get("meta") or {}).get(key)
        return isinstance(stored, list) and [str(v) for v in stored] == [str(v) for v in values]

    def update_meta(self, ref: EntityRef, key: str, value: Any) -> None:
        if ref.kind == TERM:
            self.client.post(self._term_path(ref.taxonomy, ref.id), {"meta": {key: value}})
            return
        self.client.put(self._product_path(ref.id), {"meta_data": [{"key": key, "value": value}]})

    # --- store-native fields ---
    def _category_path(self, term_id: int) -> str:
        return f"wc/v3/products/categories/{term_id}"

    def get_core_fields(self, ref: EntityRef) -> Dict[str, Any]:
        if ref.kind == TERM:
            if ref.taxonomy != CATEGORY_TAX:
                return {}
            try:
                data = self.client.get(self._category_path(ref.id))
            except WpApiError as exc:
                if exc.status == 404:
                    return {}
                raise
            return _pick_fields(data or {}, CATEGORY_CORE_FIELDS)

        data = self._product(ref.id)
        if data is None:
            return {}
        if data.get("type") == "variation":
            return _pick_fields(data, VARIATION_CORE_FIELDS)
        fields = _pick_fields(data, PRODUCT_CORE_FIELDS)
        if "attributes" in fields:
            fields["attributes"] = [
                {k: a[k] for k in ATTRIBUTE_KEYS if k in a}
                for a in fields["attributes"] if isinstance(a, dict)
            ]
        return fields

    def set_core_fields(self, ref: EntityRef, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        if ref.kind == TERM:
            if ref.taxonomy == CATEGORY_TAX:
                self.client.put(self._category_path(ref.id), dict(fields))
            return
        self.client.put(self._product_path(ref.id), dict(fields))
