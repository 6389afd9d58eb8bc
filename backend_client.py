"""
Client for the upstream commerce API

Auth, addresses, gift catalog, recipients, products, orders and reverse
geocoding all live behind the upstream service. Every call either returns
decoded JSON or raises BackendError; nothing is retried.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import BackendError
from schemas import Address, GiftWrap, Occasion, Recipient
from settings import settings

logger = logging.getLogger(__name__)


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings.BACKEND_TIMEOUT
        self.transport = transport

    def with_token(self, token: Optional[str]) -> "BackendClient":
        return BackendClient(self.base_url, token, self.timeout, self.transport)

    def _headers(self, auth: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        failure: str,
        auth: bool = False,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(method, path, params=params, json=json, headers=self._headers(auth))
            except httpx.HTTPError as e:
                logger.error("%s %s failed: %s", method, path, e)
                raise BackendError(failure) from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                logger.error("%s %s returned %s with an unreadable body: %s", method, path, response.status_code, e)
                raise BackendError(failure, response.status_code) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        logger.error("%s %s returned %s: %s", method, path, response.status_code, body)
        raise BackendError(body.get("error") or failure, response.status_code, body.get("details"))

    # Auth

    async def signup(self, payload: dict) -> dict:
        return await self._request("POST", "/api/auth/signup", "Failed to create account", json=payload)

    async def login(self, payload: dict) -> dict:
        return await self._request("POST", "/api/auth/login", "Authentication failed", json=payload)

    # Addresses

    async def list_addresses(self) -> List[Address]:
        data = await self._request("GET", "/api/addresses", "Failed to load addresses", auth=True)
        return [Address.model_validate(a) for a in data.get("addresses") or []]

    async def create_address(self, payload: dict) -> Address:
        data = await self._request("POST", "/api/addresses", "Failed to save address", auth=True, json=payload)
        # The upstream answers either {address: {...}} or the bare record
        return Address.model_validate(data.get("address") or data)

    # Gift catalog

    async def list_gift_wraps(self) -> List[GiftWrap]:
        data = await self._request("GET", "/api/gift-wraps", "Failed to load gift wraps")
        return [GiftWrap.model_validate(w) for w in data] if isinstance(data, list) else []

    async def list_occasions(self) -> List[Occasion]:
        data = await self._request("GET", "/api/occasions", "Failed to load occasions")
        return [Occasion.model_validate(o) for o in data] if isinstance(data, list) else []

    async def list_recipients(self) -> List[Recipient]:
        data = await self._request("GET", "/api/recipients", "Failed to load recipients", auth=True)
        return [Recipient.model_validate(r) for r in data.get("recipients") or []]

    # Catalog

    async def list_products(self, params: Optional[dict] = None) -> Any:
        return await self._request("GET", "/api/products", "Failed to load products", params=params)

    async def get_product(self, product_id: str) -> Any:
        return await self._request("GET", f"/api/products/{product_id}", "Product not found")

    async def list_categories(self, type: Optional[str] = None) -> Any:
        params = {"type": type} if type else None
        return await self._request("GET", "/api/categories", "Failed to load categories", params=params)

    # Orders

    async def create_order(self, payload: dict) -> dict:
        return await self._request("POST", "/api/orders", "Failed to place order", auth=True, json=payload)

    # Location

    async def reverse_geocode(self, lat: float, lng: float) -> dict:
        return await self._request(
            "GET", "/api/location/reverse-geocode", "Failed to look up location", params={"lat": lat, "lng": lng}
        )
