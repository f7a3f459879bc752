#!/usr/bin/env python3
"""
Apollo 247 GraphQL client
Authenticated calls against the storefront API with one-shot token refresh.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from scrapers.apollo_auth import acquire_token
from scrapers.errors import ApiError, TokenExpired, TokenRefreshFailed

logger = logging.getLogger(__name__)

API_URL = "https://api.apollo247.com/"
ORIGIN = "https://www.apollopharmacy.in"
PRODUCT_URL = "https://www.apollopharmacy.in/medicine-info/{sku}"
REQUEST_TIMEOUT = 30
DEFAULT_PINCODE = "500032"

UNAUTHENTICATED = "UNAUTHENTICATED"

SKU_INFO_QUERY = """
query getSkuInfo($skuInfoInput: SkuInfoInput!) {
  getSkuInfo(skuInfoInput: $skuInfoInput) {
    stat
    expiryDate
    pdpPriceInfo {
      price
      mrp
      discount
      sellingPrice
      discountPercent
    }
    tatInfo {
      magentoAvailability
      message
      unitPrice
      packInfo
    }
  }
}
"""

SEARCH_QUERY = """
query searchMedicineProducts($searchText: String!, $pageSize: Int, $offset: Int) {
  searchMedicineProducts(searchText: $searchText, pageSize: $pageSize, offset: $offset) {
    products {
      id
      name
      sku
      price
      special_price
      mrp
      thumbnail
      url_key
      type_id
      is_in_stock
      is_prescription_required
    }
    total_count
  }
}
"""


@dataclass(frozen=True)
class SkuQuery:
    sku: str
    qty: int = 1
    pincode: str = ""
    lat: float = 0
    lng: float = 0

    def variables(self) -> dict:
        return {
            "skuInfoInput": {
                "sku": self.sku,
                "qty": self.qty,
                "addressInfo": {
                    "pincode": self.pincode,
                    "lat": self.lat,
                    "lng": self.lng,
                },
            }
        }


def api_headers(token: str) -> dict:
    return {
        "authorization": f"Bearer {token}",
        "content-type": "application/json",
        "origin": ORIGIN,
        "referer": ORIGIN + "/",
        "user-agent": "Mozilla/5.0",
    }


def is_unauthenticated(errors) -> bool:
    """True if a GraphQL error list carries the UNAUTHENTICATED code."""
    if not isinstance(errors, list):
        return False
    for err in errors:
        if not isinstance(err, dict):
            continue
        extensions = err.get("extensions") or {}
        if isinstance(extensions, dict) and extensions.get("code") == UNAUTHENTICATED:
            return True
    return False


def classify_response(status_code: int, body) -> dict:
    """
    Return the `data` block of a GraphQL response or raise.

    401, or an embedded UNAUTHENTICATED error under any status, means the token
    is dead. Everything else that is not a clean `{data: ...}` is an ApiError.
    """
    errors = body.get("errors") if isinstance(body, dict) else None

    if status_code == 401 or is_unauthenticated(errors):
        raise TokenExpired(f"Token rejected (HTTP {status_code})")

    if status_code >= 400:
        raise ApiError(f"HTTP {status_code}", status_code)
    if not isinstance(body, dict):
        raise ApiError("Malformed response body", status_code)
    if errors:
        messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
        raise ApiError(messages or "GraphQL error", status_code)

    data = body.get("data")
    if not isinstance(data, dict):
        raise ApiError("Response has no data", status_code)
    return data


def call(token: str, operation: str, variables: dict, query: str,
         http=None, timeout: float = REQUEST_TIMEOUT) -> dict:
    """POST one GraphQL operation with the bearer token. Never retries."""
    http = http or requests
    payload = {"operationName": operation, "variables": variables, "query": query}
    try:
        resp = http.post(API_URL, json=payload, headers=api_headers(token), timeout=timeout)
    except requests.RequestException as e:
        raise ApiError(f"Request failed: {e}") from e

    try:
        body = resp.json()
    except ValueError:
        body = None
    return classify_response(resp.status_code, body)


def get_sku_info(token: str, query: SkuQuery, http=None) -> dict:
    data = call(token, "getSkuInfo", query.variables(), SKU_INFO_QUERY, http=http)
    info = data.get("getSkuInfo")
    if info is None:
        raise ApiError(f"No SKU info for {query.sku}")
    return info


def search_products(token: str, search_text: str, page_size: int = 20, offset: int = 0, http=None) -> dict:
    variables = {"searchText": search_text, "pageSize": page_size, "offset": offset}
    data = call(token, "searchMedicineProducts", variables, SEARCH_QUERY, http=http)
    return data.get("searchMedicineProducts") or {"products": [], "total_count": 0}


def summarize_sku_info(sku: str, info: dict) -> dict:
    """Flatten a getSkuInfo block into pricing and availability sections."""
    price = info.get("pdpPriceInfo") or {}
    tat = info.get("tatInfo") or {}
    return {
        "sku": sku,
        "product_url": PRODUCT_URL.format(sku=sku),
        "stats": info.get("stat"),
        "expiry_date": info.get("expiryDate"),
        "pricing": {
            "price": price.get("price"),
            "mrp": price.get("mrp"),
            "discount": price.get("discount"),
            "selling_price": price.get("sellingPrice"),
            "discount_percent": price.get("discountPercent"),
        },
        "availability": {
            "in_stock": tat.get("magentoAvailability"),
            "message": tat.get("message"),
            "unit_price": tat.get("unitPrice"),
            "pack_info": tat.get("packInfo"),
        },
        "raw_data": info,
    }


class ApolloClient:
    """
    Holds the current token and the browser session it came from.

    The token is acquired lazily. A TokenExpired answer invalidates it at once,
    closes the old session, acquires a new pair and retries the same call once.
    If that refresh fails for any reason the client is done: every later call
    raises the same TokenRefreshFailed. A failed first bootstrap is not sticky.
    """

    def __init__(self, token_source: Callable = acquire_token, http=None):
        self.token_source = token_source
        self._owns_http = http is None
        self.http = http or requests.Session()
        self.token: Optional[str] = None
        self.session = None
        self.refresh_count = 0
        self.failure: Optional[TokenRefreshFailed] = None
        self._lock = threading.Lock()

    def _acquire(self):
        self.token, self.session = self.token_source()

    def ensure_token(self) -> str:
        with self._lock:
            if self.failure is not None:
                raise self.failure
            if self.token is None:
                if self.session is not None:
                    self.session.close()
                    self.session = None
                self._acquire()
            return self.token

    def invalidate(self, token: str):
        with self._lock:
            if self.token == token:
                self.token = None

    def refresh(self, stale_token: str) -> str:
        """Replace `stale_token` unless another caller already did."""
        with self._lock:
            if self.failure is not None:
                raise self.failure
            if self.token is not None and self.token != stale_token:
                return self.token

            logger.info("Refreshing session (token expired)...")
            self.token = None
            if self.session is not None:
                self.session.close()
                self.session = None
            try:
                self._acquire()
            except Exception as e:
                logger.error(f"Token refresh failed: {e}")
                self.failure = TokenRefreshFailed(f"Token refresh failed: {e}")
                raise self.failure from e
            self.refresh_count += 1
            return self.token

    def call_with_refresh(self, fn: Callable, *args, **kwargs):
        """Run `fn(token, *args, **kwargs)`, refreshing the token at most once."""
        token = self.ensure_token()
        try:
            return fn(token, *args, **kwargs)
        except TokenExpired:
            self.invalidate(token)
            fresh = self.refresh(token)

        try:
            return fn(fresh, *args, **kwargs)
        except TokenExpired:
            self.invalidate(fresh)
            raise

    def get_sku_info(self, query: SkuQuery) -> dict:
        return self.call_with_refresh(get_sku_info, query, http=self.http)

    def search_products(self, search_text: str, page_size: int = 20, offset: int = 0) -> dict:
        return self.call_with_refresh(search_products, search_text, page_size, offset, http=self.http)

    @property
    def page(self):
        """Page of the live session, for browser work between API calls."""
        self.ensure_token()
        return self.session.page

    def close(self):
        with self._lock:
            if self.session is not None:
                self.session.close()
                self.session = None
            self.token = None
            if self._owns_http:
                self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    import json
    with ApolloClient() as client:
        info = client.get_sku_info(SkuQuery("NEU1021", pincode=DEFAULT_PINCODE))
        print(json.dumps(info, indent=2))
