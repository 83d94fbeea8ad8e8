"""Thin WordPress REST client (wp/v2, wc/v3, pll/v1) on a requests session.

No retries: the import scripts log a failed request and move on to the next
row, re-running the script picks up whatever was missed.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter

from bizzio_common import WpConfig

PER_PAGE = 100


class WpApiError(RuntimeError):
    def __init__(self, status: int, code: str = "", message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.status = status
        self.code = code
        self.message = message
        self.data = data or {}
        super().__init__(f"HTTP {status} {code}: {message}".strip())


class WpClient:
    def __init__(self, cfg: WpConfig, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.auth = (cfg.username, cfg.app_password)
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self.session.verify = cfg.verify_ssl
        self.session.mount("https://", HTTPAdapter(pool_connections=4, pool_maxsize=4))
        self.session.mount("http://", HTTPAdapter(pool_connections=4, pool_maxsize=4))

    def _url(self, path: str) -> str:
        return f"{self.cfg.base_url.rstrip('/')}/wp-json/{path.lstrip('/')}"

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 payload: Optional[Dict[str, Any]] = None) -> Any:
        resp = self.session.request(method, self._url(path), params=params, json=payload,
                                    timeout=self.cfg.timeout)
        if resp.status_code >= 400:
            code, message, data = "", (resp.text or "")[:200], {}
            try:
                body = resp.json()
                if isinstance(body, dict):
                    code = str(body.get("code") or "")
                    message = str(body.get("message") or message)
                    data = body.get("data") if isinstance(body.get("data"), dict) else {}
            except ValueError:
                pass
            raise WpApiError(resp.status_code, code, message, data)
        if not resp.content:
            return None
        return resp.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Dict[str, Any]) -> Any:
        return self._request("POST", path, payload=payload)

    def put(self, path: str, payload: Dict[str, Any]) -> Any:
        return self._request("PUT", path, payload=payload)

    def paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterable[Dict[str, Any]]:
        params = dict(params or {})
        page = 1
        while True:
            params.update({"page": page, "per_page": PER_PAGE})
            try:
                items = self.get(path, params)
            except WpApiError as exc:
                if exc.status == 400 and exc.code == "rest_post_invalid_page_number":
                    break
                raise
            if not isinstance(items, list) or not items:
                break
            for item in items:
                if isinstance(item, dict):
                    yield item
            if len(items) < PER_PAGE:
                break
            page += 1

    def ping(self) -> bool:
        """True when the REST index answers."""
        try:
            self.get("")
            return True
        except (requests.RequestException, WpApiError):
            return False
