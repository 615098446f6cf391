# product listing client for the headless CMS content API
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import httpx

from api.errors import FetchError
from storage.models import (
    PLACEHOLDER_IMAGE,
    PLACEHOLDER_NAME,
    UNCATEGORIZED,
    CategoryFacet,
    Product,
)
from utils.config import StoreConfig
from utils.logger import get_logger
from utils.pure import richtext_to_paragraphs

_logger = get_logger(__name__)

PRODUCTS_PREFIX = "products/"
FETCH_ERROR_MESSAGE = "Failed to load products. Please try again later."

_CURRENT = object()  # fetch_page default: keep the selected filter


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE = "date"

    @property
    def sort_by(self) -> str:
        return _SORT_BY[self]

    @property
    def label(self) -> str:
        return _SORT_LABELS[self]


_SORT_BY = {
    SortOption.RELEVANCE: "published_at:desc",
    SortOption.PRICE_ASC: "content.price:asc",
    SortOption.PRICE_DESC: "content.price:desc",
    SortOption.DATE: "published_at:desc",
}

_SORT_LABELS = {
    SortOption.RELEVANCE: "Most relevant",
    SortOption.PRICE_ASC: "Price: low to high",
    SortOption.PRICE_DESC: "Price: high to low",
    SortOption.DATE: "Newest",
}


def normalize_category(name: Optional[str]) -> str:
    """Key used both for the server search term and the client-side match."""
    return (name or "").strip().casefold()


def normalize_product(story: Dict[str, Any]) -> Product:
    """Project a raw content record onto the uniform Product shape, applying defaults."""
    if not isinstance(story, dict):
        raise ValueError(f"malformed product record: {story!r}")
    content = story.get("content") or {}
    if not isinstance(content, dict):
        raise ValueError(f"malformed product content: {content!r}")
    price = content.get("price") or "0"
    sale_price = content.get("sale_price") or None
    image = content.get("image") or {}
    image_url = image.get("filename") if isinstance(image, dict) else image
    stock_status = "outofstock" if content.get("stock_status") == "outofstock" else "instock"

    return Product(
        id=story["id"],
        name=content.get("name") or PLACEHOLDER_NAME,
        price=str(price),
        regular_price=str(content.get("regular_price") or price),
        sale_price=str(sale_price) if sale_price is not None else None,
        stock_status=stock_status,
        image=image_url or PLACEHOLDER_IMAGE,
        category=content.get("category") or UNCATEGORIZED,
        slug=story.get("slug") or "",
        description=richtext_to_paragraphs(content.get("description")),
    )


def aggregate_categories(products: Iterable[Product]) -> List[CategoryFacet]:
    """
    Facet list: products grouped by lower-cased category, most frequent first.
    Ties keep the order in which the category was first seen.
    """
    counts: Dict[str, int] = {}
    for product in products:
        if not product.category:
            continue
        key = product.category.lower()
        counts[key] = counts.get(key, 0) + 1

    facets = [CategoryFacet(name=key[:1].upper() + key[1:], count=n) for key, n in counts.items()]
    return sorted(facets, key=lambda f: f.count, reverse=True)


class CacheKey(NamedTuple):
    sort: SortOption
    category: str  # normalized, "all" when unfiltered
    page: int


@dataclass(frozen=True)
class PageResult:
    products: List[Product]
    total: Optional[int]  # None when the API reported no total
    full_page: bool = False  # raw page had page_size records


@dataclass
class CatalogState:
    """Listing state owned by one catalog view, from mount to unmount."""

    sort: SortOption = SortOption.RELEVANCE
    category: Optional[str] = None  # display name as selected
    page: int = 1
    products: List[Product] = field(default_factory=list)
    total: Optional[int] = None
    has_more: bool = True
    initial_loading: bool = False
    loading: bool = False
    error: Optional[str] = None


class CatalogClient:
    """
    Paginated, cached product stream over the content API.

    Only one fetch may be in flight; a fetch requested meanwhile is dropped.
    The cache is keyed by (sort, category, page) and emptied as a whole
    whenever sort or category changes.
    """

    def __init__(
        self,
        config: StoreConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.client = client or httpx.AsyncClient(
            base_url=config.content_api_url,
            timeout=config.http_timeout,
            headers={"Accept": "application/json"},
        )
        self.state = CatalogState()
        self._cache: Dict[CacheKey, PageResult] = {}
        self._fetching = False
        self._alive = True
        self._generation = 0

    # ---------------------------
    # Lifecycle
    # ---------------------------

    async def close(self) -> None:
        """Tear down; responses arriving afterwards are discarded."""
        self._alive = False
        await self.client.aclose()

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    @property
    def is_loading(self) -> bool:
        return self._fetching or self.state.initial_loading or self.state.loading

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ---------------------------
    # Filters
    # ---------------------------

    def _reset(self) -> None:
        self._generation += 1
        self._cache.clear()
        self.state.page = 1
        self.state.products = []
        self.state.total = None
        self.state.has_more = True
        self.state.error = None

    def select_sort(self, option: SortOption | str) -> None:
        option = SortOption(option)
        if option == self.state.sort:
            return
        _logger.debug(f"Sort changed to {option.value}, cache cleared.")
        self.state.sort = option
        self._reset()

    def select_category(self, name: Optional[str]) -> None:
        """Select a category filter; selecting the active one clears the filter."""
        if name is not None and normalize_category(name) == normalize_category(
            self.state.category
        ):
            name = None
        if name == self.state.category:
            return
        _logger.debug(f"Category changed to {name or 'all'}, cache cleared.")
        self.state.category = name
        self._reset()

    # ---------------------------
    # Fetching
    # ---------------------------

    def _cache_key(self, page: int) -> CacheKey:
        category = normalize_category(self.state.category) or "all"
        return CacheKey(self.state.sort, category, page)

    async def fetch_page(
        self,
        page: int,
        sort: Any = _CURRENT,
        category: Any = _CURRENT,
    ) -> Optional[PageResult]:
        """
        Load one listing page into ``state``.

        ``sort``/``category`` default to the current filters; passing different
        ones (``category=None`` meaning all) resets the listing and the cache
        first. Returns the page, or None when the call was dropped, skipped,
        superseded, torn down or failed (see ``state.error``).
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if self._fetching:
            # dropped calls leave filters and listing untouched
            _logger.debug(f"Fetch for page {page} dropped, another one is in flight.")
            return None
        if sort is not _CURRENT:
            self.select_sort(sort)
        if category is not _CURRENT and normalize_category(category) != normalize_category(
            self.state.category
        ):
            self.state.category = category
            self._reset()

        if page > 1 and not self.state.has_more:
            return None

        self._fetching = True
        if page == 1:
            self.state.initial_loading = True
        else:
            self.state.loading = True

        generation = self._generation
        try:
            key = self._cache_key(page)
            result = self._cache.get(key)
            if result is not None:
                _logger.debug(f"Cache hit for {key}.")
            else:
                result = await self._request_page(page)
                if not self._alive or generation != self._generation:
                    _logger.debug(f"Discarding stale response for {key}.")
                    return None
                self._cache[key] = result

            self._apply(page, result)
            self.state.error = None
            return result
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            _logger.error(f"Error fetching products (page {page}): {e}")
            if self._alive:
                self.state.error = FETCH_ERROR_MESSAGE
            return None
        finally:
            self._fetching = False
            self.state.initial_loading = False
            self.state.loading = False

    async def load_next(self) -> Optional[PageResult]:
        """Advance to the next page when more remain."""
        if self._fetching or not self.state.has_more:
            return None
        return await self.fetch_page(self.state.page + 1)

    async def retry(self) -> Optional[PageResult]:
        """Repeat whatever failed: the first page, or the page after the last one shown."""
        self.state.error = None
        if not self.state.products:
            return await self.fetch_page(1)
        return await self.load_next()

    async def _request_page(self, page: int) -> PageResult:
        params: Dict[str, Any] = {
            "token": self.config.content_api_token,
            "starts_with": PRODUCTS_PREFIX,
            "per_page": self.config.page_size,
            "page": page,
            "sort_by": self.state.sort.sort_by,
        }
        category = normalize_category(self.state.category)
        if category:
            params["search_term"] = category

        _logger.info(
            f"Fetching products: page {page}, category: {category or 'all'}, "
            f"sort: {self.state.sort.value}"
        )
        response = await self.client.get("/stories", params=params)
        response.raise_for_status()
        data = response.json()

        stories = data["stories"]
        products = [normalize_product(story) for story in stories]
        if category:
            products = [p for p in products if normalize_category(p.category) == category]

        total = self._read_total(response, data)
        _logger.info(f"Loaded {len(products)} products. Total: {total}.")
        return PageResult(
            products=products,
            total=total,
            full_page=len(stories) >= self.config.page_size,
        )

    @staticmethod
    def _read_total(response: httpx.Response, data: Dict[str, Any]) -> Optional[int]:
        # header first, body second; no guessing from the page length
        raw = response.headers.get("total")
        if raw is None:
            raw = data.get("total")
        if raw is None:
            return None
        return int(raw)

    def _apply(self, page: int, result: PageResult) -> None:
        state = self.state
        if page == 1:
            state.products = list(result.products)
        else:
            seen = {p.id for p in state.products}
            for product in result.products:
                if product.id not in seen:
                    state.products.append(product)
                    seen.add(product.id)
        state.page = page
        state.total = result.total

        if result.total is not None:
            state.has_more = len(state.products) < result.total and bool(result.products)
        else:
            state.has_more = result.full_page and bool(result.products)
        _logger.debug(f"Showing {len(state.products)}, has more: {state.has_more}.")

    # ---------------------------
    # Facets and detail
    # ---------------------------

    async def load_categories(self) -> List[CategoryFacet]:
        """Facets from one unfiltered listing, independent of pagination state."""
        try:
            response = await self.client.get(
                "/stories",
                params={
                    "token": self.config.content_api_token,
                    "starts_with": PRODUCTS_PREFIX,
                    "per_page": self.config.page_size,
                },
            )
            response.raise_for_status()
            stories = response.json()["stories"]
            return aggregate_categories(normalize_product(s) for s in stories)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            _logger.error(f"Error loading categories: {e}")
            return []

    async def fetch_product(self, slug: str) -> Product:
        """Product detail by slug. Raises FetchError."""
        if not slug:
            raise FetchError("Product not found.")
        try:
            response = await self.client.get(
                f"/stories/{PRODUCTS_PREFIX}{slug}",
                params={"token": self.config.content_api_token},
            )
            response.raise_for_status()
            return normalize_product(response.json()["story"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            _logger.error(f"Error loading product {slug!r}: {e}")
            raise FetchError(
                "Could not load the product details. Please try again later."
            ) from e
