"""Translation linking (which entity is in which language, and which are
translations of each other).

``PolylangLinker`` talks to Polylang's REST fields (``lang`` and
``translations`` on wp/v2 objects). ``NullLinker`` stands in when the site has
no Polylang: every entity is its own translation. ``detect_linker`` decides
once at startup.
"""

from __future__ import annotations

import html
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from content_store import TERM, EntityRef
from wp_client import WpApiError, WpClient

TranslationGroup = Dict[str, int]


class TranslationLinker(ABC):
    available = True

    @abstractmethod
    def get_translations(self, ref: EntityRef) -> TranslationGroup:
        ...

    @abstractmethod
    def get_language(self, ref: EntityRef) -> Optional[str]:
        ...

    @abstractmethod
    def set_language(self, ref: EntityRef, lang: str) -> None:
        ...

    @abstractmethod
    def save_translations(self, ref: EntityRef, group: TranslationGroup) -> None:
        """Store ``group`` for every member; ``ref`` tells the entity kind."""

    @abstractmethod
    def find_term_by_name(self, taxonomy: str, name: str, lang: str) -> Optional[int]:
        ...

    def link(self, source: EntityRef, target_id: int, lang: str) -> TranslationGroup:
        """Tag ``target_id`` with ``lang`` and add it to the source's group."""
        target = source._replace(id=int(target_id))
        self.set_language(target, lang)
        group = dict(self.get_translations(source))
        group[lang] = int(target_id)
        src_lang = self.get_language(source)
        if src_lang and src_lang not in group:
            group[src_lang] = source.id
        self.save_translations(source, group)
        return group


class NullLinker(TranslationLinker):
    available = False

    def get_translations(self, ref: EntityRef) -> TranslationGroup:
        return {}

    def get_language(self, ref: EntityRef) -> Optional[str]:
        return None

    def set_language(self, ref: EntityRef, lang: str) -> None:
        pass

    def save_translations(self, ref: EntityRef, group: TranslationGroup) -> None:
        pass

    def find_term_by_name(self, taxonomy: str, name: str, lang: str) -> Optional[int]:
        return None


class PolylangLinker(TranslationLinker):
    def __init__(self, client: WpClient, post_rest_base: str = "product") -> None:
        self.client = client
        self.post_rest_base = post_rest_base

    def _path(self, ref: EntityRef) -> str:
        if ref.kind == TERM:
            return f"wp/v2/{ref.taxonomy}/{ref.id}"
        return f"wp/v2/{self.post_rest_base}/{ref.id}"

    def _fields(self, ref: EntityRef) -> Dict[str, Any]:
        data = self.client.get(self._path(ref), {"_fields": "id,lang,translations"})
        return data if isinstance(data, dict) else {}

    def get_translations(self, ref: EntityRef) -> TranslationGroup:
        raw = self._fields(ref).get("translations") or {}
        if not isinstance(raw, dict):
            return {}
        group: TranslationGroup = {}
        for lang, entity_id in raw.items():
            try:
                if int(entity_id):
                    group[str(lang)] = int(entity_id)
            except (TypeError, ValueError):
                continue
        return group

    def get_language(self, ref: EntityRef) -> Optional[str]:
        return self._fields(ref).get("lang") or None

    def set_language(self, ref: EntityRef, lang: str) -> None:
        self.client.post(self._path(ref), {"lang": lang})

    def save_translations(self, ref: EntityRef, group: TranslationGroup) -> None:
        # Polylang keeps one shared group record, writing it through any member updates all
        member = ref._replace(id=next(iter(group.values()))) if group else ref
        self.client.post(self._path(member), {"translations": group})

    def find_term_by_name(self, taxonomy: str, name: str, lang: str) -> Optional[int]:
        items = self.client.get(f"wp/v2/{taxonomy}", {
            "search": name,
            "lang": lang,
            "per_page": 100,
            "_fields": "id,name,lang",
        }) or []
        for item in items:
            if not isinstance(item, dict):
                continue
            if html.unescape(str(item.get("name") or "")) != name:
                continue
            if item.get("lang") and item.get("lang") != lang:
                continue
            return int(item.get("id") or 0) or None
        return None


def detect_linker(client: WpClient) -> TranslationLinker:
    try:
        client.get("pll/v1/languages")
    except WpApiError:
        return NullLinker()
    except requests.RequestException:
        return NullLinker()
    return PolylangLinker(client)
