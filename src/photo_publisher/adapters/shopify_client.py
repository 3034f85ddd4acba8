"""Shopify Admin API client."""

import base64
import logging
from dataclasses import dataclass, field
from pathlib import PurePath

import httpx

from photo_publisher.domain.catalog import ImageUpload
from photo_publisher.services.catalog import ProductSource
from photo_publisher.services.paths import SUPPORTED_EXTENSIONS
from photo_publisher.services.session import CatalogClient

_logger = logging.getLogger(__name__)

DEFAULT_PUBLICATION_NAMES = (
    "Online Store",
    "Point of Sale",
    "Google & YouTube",
    "Facebook & Instagram",
)
PRODUCT_FETCH_CAP = 1000
_PRODUCT_FIELDS = "id,title,status,created_at,images,variants"

_LIST_PUBLICATIONS_QUERY = """
query ListPublications {
  publications(first: 50) {
    edges {
      node {
        id
        name
        catalog { title }
      }
    }
  }
}
"""

_PUBLISH_PRODUCT_MUTATION = """
mutation PublishProduct($id: ID!, $input: [PublicationInput!]!) {
  publishablePublish(id: $id, input: $input) {
    publishable { ... on Product { id } }
    userErrors { field message }
  }
}
"""


class ShopifyApiError(RuntimeError):
    """Raised when the Shopify API returns an error or an unusable response."""


def normalize_shop_domain(raw: str) -> str:
    """Strip scheme and trailing slashes from a configured shop domain."""
    cleaned = raw.strip()
    for scheme in ("https://", "http://"):
        if cleaned.lower().startswith(scheme):
            cleaned = cleaned[len(scheme) :]
            break
    return cleaned.rstrip("/")


@dataclass
class HttpxShopifyClient(CatalogClient, ProductSource):
    """HTTPX-backed client for the Shopify Admin REST and GraphQL APIs."""

    shop_domain: str
    admin_token: str
    http_client: httpx.AsyncClient
    api_version: str = "2024-07"
    timeout_seconds: float = 30.0
    publication_names: tuple[str, ...] = DEFAULT_PUBLICATION_NAMES
    _publication_ids: list[str] = field(default_factory=list, init=False)

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        shop_domain: str,
        admin_token: str,
        api_version: str = "2024-07",
        timeout_seconds: float = 30.0,
        publication_names: tuple[str, ...] | None = None,
    ) -> "HttpxShopifyClient":
        """Create a Shopify client with a managed httpx session."""
        domain = normalize_shop_domain(shop_domain)
        if not domain:
            raise ValueError("Missing Shopify shop domain")
        if not admin_token:
            raise ValueError("Missing Shopify admin token")
        return cls(
            shop_domain=domain,
            admin_token=admin_token,
            http_client=httpx.AsyncClient(),
            api_version=api_version,
            timeout_seconds=timeout_seconds,
            publication_names=publication_names or DEFAULT_PUBLICATION_NAMES,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    async def fetch_products(self) -> list[dict[str, object]]:
        """Fetch up to 1000 products, retrying with simpler queries if empty."""
        url = f"{self.base_url}/products.json"
        attempts = (
            {"limit": "250", "fields": _PRODUCT_FIELDS, "order": "created_at desc"},
            {"limit": "250", "fields": _PRODUCT_FIELDS},
            {"limit": "250"},
        )
        products: list[dict[str, object]] = []
        for params in attempts:
            products = await self._fetch_product_pages(url, params)
            if products:
                break
            _logger.warning("Product fetch returned 0 with params %s", params)
        return products

    async def upload_images(self, item_id: str, images: list[ImageUpload]) -> None:
        """Attach images to a product one at a time, in order."""
        for image in images:
            extension = PurePath(image.filename).suffix.lower()
            if extension not in SUPPORTED_EXTENSIONS:
                _logger.info(
                    "Skipping non image file during upload: %s", image.filename
                )
                continue
            payload = {
                "image": {
                    "attachment": base64.b64encode(image.content).decode("ascii"),
                    "filename": image.filename,
                }
            }
            data = await self._rest(
                "POST", f"/products/{item_id}/images.json", json=payload
            )
            uploaded = data.get("image") or {}
            _logger.info(
                "Uploaded image for product %s, image id: %s",
                item_id,
                uploaded.get("id") if isinstance(uploaded, dict) else None,
            )

    async def publish(self, item_id: str) -> None:
        """Set the product active and publish it to the configured channels."""
        try:
            await self._rest(
                "PUT",
                f"/products/{item_id}.json",
                json={"product": {"id": _rest_id(item_id), "status": "active"}},
            )
        except (ShopifyApiError, httpx.HTTPError) as exc:
            _logger.warning(
                "Could not set product %s active, publishing anyway: %s", item_id, exc
            )
        else:
            _logger.info("Updated product status to active for %s", item_id)

        publication_ids = await self._required_publication_ids()
        if not publication_ids:
            _logger.warning(
                "No publication ids found, product %s not published", item_id
            )
            return
        data = await self._graphql(
            _PUBLISH_PRODUCT_MUTATION,
            {
                "id": f"gid://shopify/Product/{item_id}",
                "input": [{"publicationId": pid} for pid in publication_ids],
            },
        )
        result = data.get("publishablePublish") or {}
        user_errors = result.get("userErrors") if isinstance(result, dict) else None
        if user_errors:
            raise ShopifyApiError(f"publishablePublish userErrors: {user_errors}")
        _logger.info(
            "Published product %s to %s sales channels", item_id, len(publication_ids)
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _fetch_product_pages(
        self, url: str, params: dict[str, str]
    ) -> list[dict[str, object]]:
        products: list[dict[str, object]] = []
        next_url: str | None = url
        next_params: dict[str, str] | None = params
        while next_url:
            _logger.info("Fetching products page: %s", next_url)
            response = await self.http_client.get(
                next_url,
                params=next_params,
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            data = _decode(response)
            if data.get("errors") or data.get("error"):
                raise ShopifyApiError("Shopify REST returned an error payload")
            page = data.get("products")
            products.extend(page if isinstance(page, list) else [])
            if len(products) >= PRODUCT_FETCH_CAP:
                _logger.info("Reached %s product limit, stopping", PRODUCT_FETCH_CAP)
                return products[:PRODUCT_FETCH_CAP]
            next_url = response.links.get("next", {}).get("url")
            next_params = None
        return products

    async def _required_publication_ids(self) -> list[str]:
        if self._publication_ids:
            return self._publication_ids
        data = await self._graphql(_LIST_PUBLICATIONS_QUERY, {})
        publications = data.get("publications") or {}
        edges = publications.get("edges", []) if isinstance(publications, dict) else []
        ids: list[str] = []
        missing: list[str] = []
        for required in self.publication_names:
            match = _find_publication(edges, required)
            if match:
                ids.append(match)
            else:
                missing.append(required)
        if missing:
            _logger.warning(
                "Could not find publication ids for channels: %s", ", ".join(missing)
            )
        self._publication_ids = ids
        return ids

    async def _rest(
        self, method: str, path: str, json: dict[str, object] | None = None
    ) -> dict[str, object]:
        response = await self.http_client.request(
            method,
            f"{self.base_url}{path}",
            json=json,
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        return _decode(response)

    async def _graphql(
        self, query: str, variables: dict[str, object]
    ) -> dict[str, object]:
        response = await self.http_client.post(
            f"{self.base_url}/graphql.json",
            json={"query": query, "variables": variables},
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        payload = _decode(response)
        if payload.get("errors"):
            raise ShopifyApiError(
                f"Shopify GraphQL returned errors: {payload['errors']}"
            )
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.admin_token,
            "Accept": "application/json",
        }


def _decode(response: httpx.Response) -> dict[str, object]:
    """Decode a JSON response body, raising on HTTP or parse errors."""
    try:
        data = response.json() if response.content else {}
    except ValueError as exc:
        raise ShopifyApiError(
            f"Shopify returned non JSON, status {response.status_code}"
        ) from exc
    if response.is_error:
        _logger.error("Shopify error %s: %s", response.status_code, data)
        raise ShopifyApiError(f"Shopify error {response.status_code}")
    return data if isinstance(data, dict) else {}


def _find_publication(edges: list[object], required: str) -> str | None:
    """Return the id of the publication whose name or catalog matches."""
    wanted = required.lower()
    for edge in edges:
        node = edge.get("node") if isinstance(edge, dict) else None
        if not isinstance(node, dict):
            continue
        catalog = node.get("catalog") or {}
        parts = [str(node.get("name") or "")]
        if isinstance(catalog, dict) and catalog.get("title"):
            parts.append(str(catalog["title"]))
        if wanted in " ".join(parts).lower():
            return str(node.get("id"))
    return None


def _rest_id(item_id: str) -> int | str:
    return int(item_id) if item_id.isdigit() else item_id
