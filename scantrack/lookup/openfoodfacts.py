"""Open Food Facts product lookup (no authentication required)."""

from __future__ import annotations

import logging
import re
from typing import Any

import requests

from ..config import DEFAULT_PRODUCT_URL, DEFAULT_SEARCH_URL
from ..models import PLACEHOLDER_IMAGE, UNKNOWN_PRODUCT_NAME, ProductCandidate
from . import ProductLookup, ProductLookupError, ProductNotFoundError

logger = logging.getLogger(__name__)

_BARCODE = re.compile(r"[0-9]+")


class OpenFoodFactsLookup(ProductLookup):
    """Search Open Food Facts by JAN/EAN code or by keyword.

    A query made only of digits is treated as a barcode and resolved to at
    most one product; anything else goes through the keyword search.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        product_url: str = DEFAULT_PRODUCT_URL,
        search_url: str = DEFAULT_SEARCH_URL,
        page_size: int = 24,
        timeout: float = 10.0,
    ) -> None:
        self._session = session or requests.Session()
        self._product_url = product_url
        self._search_url = search_url
        self._page_size = page_size
        self._timeout = timeout

    def search(self, query: str) -> list[ProductCandidate]:
        query = (query or "").strip()
        if not query:
            raise ValueError("検索ワードが必要です")

        logger.info("OpenFoodFacts検索: %s", query)

        if _BARCODE.fullmatch(query):
            products = self._by_barcode(query)
        else:
            products = self._by_keyword(query)

        if not products:
            raise ProductNotFoundError("商品が見つかりませんでした")

        return [_to_candidate(p) for p in products]

    def _by_barcode(self, code: str) -> list[dict[str, Any]]:
        data = self._get_json(self._product_url.format(code=code))
        if data.get("status") == 1 and data.get("product"):
            return [data["product"]]
        return []

    def _by_keyword(self, terms: str) -> list[dict[str, Any]]:
        params = {
            "search_terms": terms,
            "search_simple": 1,
            "action": "process",
            "json": 1,
            "page_size": self._page_size,
        }
        data = self._get_json(self._search_url, params=params)
        return data.get("products") or []

    def _get_json(self, url: str, params: dict | None = None) -> dict[str, Any]:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("APIエラー: %s", e)
            raise ProductLookupError(f"情報の取得に失敗しました: {e}") from e


def _to_candidate(product: dict[str, Any]) -> ProductCandidate:
    # Japanese name first
    name = product.get("product_name_ja") or product.get("product_name") or UNKNOWN_PRODUCT_NAME
    image = product.get("image_url") or product.get("image_front_url") or PLACEHOLDER_IMAGE
    code = product.get("code")
    return ProductCandidate(
        name=name,
        code=str(code) if code else None,
        image=image,
        categories=product.get("categories") or "",
    )
