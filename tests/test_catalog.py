import asyncio
import unittest

import httpx

from store_case import TEST_CONFIG, make_story
from api.catalog import (
    FETCH_ERROR_MESSAGE,
    CatalogClient,
    SortOption,
    aggregate_categories,
    normalize_product,
)
from api.errors import FetchError


class FakeCMS:
    """Serves /stories pages from a fixed list of stories and records every request."""

    def __init__(self, stories, total_header=True, total_body=False, page_size=3):
        self.stories = stories
        self.total_header = total_header
        self.total_body = total_body
        self.page_size = page_size
        self.requests = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"error": "boom"})

        if request.url.path.startswith("/v2/cdn/stories/products/"):
            slug = request.url.path.rsplit("/", 1)[-1]
            for story in self.stories:
                if story["slug"] == slug:
                    return httpx.Response(200, json={"story": story})
            return httpx.Response(404, json={"error": "not found"})

        page = int(request.url.params.get("page", 1))
        per_page = int(request.url.params.get("per_page", self.page_size))
        chunk = self.stories[(page - 1) * per_page : page * per_page]
        body = {"stories": chunk}
        headers = {}
        if self.total_header:
            headers["Total"] = str(len(self.stories))
        if self.total_body:
            body["total"] = len(self.stories)
        return httpx.Response(200, json=body, headers=headers)


def stories(n, category="Tools"):
    return [make_story(i, name=f"Item {i}", price=f"{i}.00", category=category) for i in range(1, n + 1)]


class CatalogTestCase(unittest.IsolatedAsyncioTestCase):
    def make_client(self, cms):
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(cms), base_url=TEST_CONFIG.content_api_url
        )
        return CatalogClient(TEST_CONFIG, client=http)

    async def asyncTearDown(self):
        if getattr(self, "catalog", None) is not None:
            await self.catalog.close()

    # ---------- Pagination ----------

    async def test_first_page_and_request_params(self):
        cms = FakeCMS(stories(5))
        self.catalog = self.make_client(cms)

        result = await self.catalog.fetch_page(1)
        self.assertEqual([p.id for p in result.products], [1, 2, 3])
        self.assertEqual(self.catalog.state.total, 5)
        self.assertTrue(self.catalog.state.has_more)

        params = cms.requests[0].url.params
        self.assertEqual(params["token"], "public-token")
        self.assertEqual(params["starts_with"], "products/")
        self.assertEqual(params["per_page"], "3")
        self.assertEqual(params["sort_by"], "published_at:desc")
        self.assertNotIn("search_term", params)

    async def test_load_next_until_exhausted(self):
        cms = FakeCMS(stories(5))
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        await self.catalog.load_next()
        self.assertEqual(len(self.catalog.state.products), 5)
        self.assertFalse(self.catalog.state.has_more)

        self.assertIsNone(await self.catalog.load_next())
        self.assertEqual(len(cms.requests), 2)

    async def test_identical_fetches_hit_the_cache(self):
        cms = FakeCMS(stories(5))
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        await self.catalog.fetch_page(1)
        self.assertEqual(len(cms.requests), 1)
        self.assertEqual(self.catalog.cache_size, 1)

    async def test_filter_change_clears_cache(self):
        cms = FakeCMS(stories(5))
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        self.catalog.select_sort(SortOption.PRICE_ASC)
        self.assertEqual(self.catalog.cache_size, 0)
        self.assertEqual(self.catalog.state.products, [])

        await self.catalog.fetch_page(1)
        self.assertEqual(len(cms.requests), 2)
        self.assertEqual(cms.requests[1].url.params["sort_by"], "content.price:asc")

        await self.catalog.fetch_page(1, category="Tools")
        self.assertEqual(len(cms.requests), 3)
        self.assertEqual(cms.requests[2].url.params["search_term"], "tools")

    async def test_later_pages_are_deduplicated(self):
        data = stories(3)
        # page 2 repeats id 3
        data += [make_story(3, name="Again"), make_story(4), make_story(5)]
        cms = FakeCMS(data, total_header=False)
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        await self.catalog.load_next()
        ids = [p.id for p in self.catalog.state.products]
        self.assertEqual(ids, [1, 2, 3, 4, 5])

    async def test_empty_page_stops_pagination(self):
        cms = FakeCMS(stories(3), total_header=False)
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        # full page and no total: more may follow
        self.assertTrue(self.catalog.state.has_more)
        await self.catalog.load_next()
        self.assertFalse(self.catalog.state.has_more)
        self.assertEqual(len(self.catalog.state.products), 3)

    async def test_total_from_body_when_header_missing(self):
        cms = FakeCMS(stories(4), total_header=False, total_body=True)
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1)
        self.assertEqual(self.catalog.state.total, 4)

    async def test_concurrent_fetch_is_dropped(self):
        release = asyncio.Event()
        cms = FakeCMS(stories(5))

        async def slow(request):
            await release.wait()
            return cms(request)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(slow), base_url=TEST_CONFIG.content_api_url
        )
        self.catalog = CatalogClient(TEST_CONFIG, client=http)

        first = asyncio.create_task(self.catalog.fetch_page(1))
        await asyncio.sleep(0)
        self.assertTrue(self.catalog.is_loading)
        self.assertIsNone(await self.catalog.fetch_page(2))

        release.set()
        self.assertIsNotNone(await first)
        self.assertEqual(len(cms.requests), 1)
        self.assertFalse(self.catalog.is_loading)

    async def test_stale_response_is_discarded(self):
        release = asyncio.Event()
        cms = FakeCMS(stories(5))

        async def slow(request):
            await release.wait()
            return cms(request)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(slow), base_url=TEST_CONFIG.content_api_url
        )
        self.catalog = CatalogClient(TEST_CONFIG, client=http)

        pending = asyncio.create_task(self.catalog.fetch_page(1))
        await asyncio.sleep(0)
        self.catalog.select_category("Tools")
        release.set()

        self.assertIsNone(await pending)
        self.assertEqual(self.catalog.state.products, [])
        self.assertEqual(self.catalog.cache_size, 0)

    async def test_filter_change_while_fetching_is_dropped_cleanly(self):
        release = asyncio.Event()
        cms = FakeCMS(stories(5))

        async def slow(request):
            await release.wait()
            return cms(request)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(slow), base_url=TEST_CONFIG.content_api_url
        )
        self.catalog = CatalogClient(TEST_CONFIG, client=http)

        first = asyncio.create_task(self.catalog.fetch_page(1))
        await asyncio.sleep(0)
        self.assertIsNone(await self.catalog.fetch_page(1, sort="price_asc"))
        self.assertEqual(self.catalog.state.sort, SortOption.RELEVANCE)

        release.set()
        self.assertIsNotNone(await first)
        self.assertEqual(len(self.catalog.state.products), 3)
        self.assertFalse(self.catalog.is_loading)

        # the filter can be applied once the listing is idle
        await self.catalog.fetch_page(1, sort="price_asc")
        self.assertEqual(cms.requests[-1].url.params["sort_by"], "content.price:asc")

    # ---------- Malformed records ----------

    async def test_malformed_records_become_error_state(self):
        for body in ({"stories": ["oops"]}, {"stories": [{"id": 1, "content": "x"}]}):
            with self.subTest(body=body):
                http = httpx.AsyncClient(
                    transport=httpx.MockTransport(lambda r, body=body: httpx.Response(200, json=body)),
                    base_url=TEST_CONFIG.content_api_url,
                )
                catalog = CatalogClient(TEST_CONFIG, client=http)
                self.assertIsNone(await catalog.fetch_page(1))
                self.assertEqual(catalog.state.error, FETCH_ERROR_MESSAGE)
                self.assertFalse(catalog.is_loading)
                self.assertEqual(await catalog.load_categories(), [])
                await catalog.close()

    async def test_malformed_detail_raises_fetch_error(self):
        body = {"story": {"id": 1, "slug": "x", "content": ["x"]}}
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=body)),
            base_url=TEST_CONFIG.content_api_url,
        )
        self.catalog = CatalogClient(TEST_CONFIG, client=http)
        with self.assertRaises(FetchError):
            await self.catalog.fetch_product("x")

    async def test_error_sets_message_and_retry_recovers(self):
        cms = FakeCMS(stories(2))
        cms.fail = True
        self.catalog = self.make_client(cms)

        self.assertIsNone(await self.catalog.fetch_page(1))
        self.assertEqual(self.catalog.state.error, FETCH_ERROR_MESSAGE)
        self.assertFalse(self.catalog.is_loading)

        cms.fail = False
        await self.catalog.retry()
        self.assertIsNone(self.catalog.state.error)
        self.assertEqual(len(self.catalog.state.products), 2)

    async def test_invalid_page(self):
        self.catalog = self.make_client(FakeCMS([]))
        with self.assertRaises(ValueError):
            await self.catalog.fetch_page(0)

    # ---------- Category filter ----------

    async def test_category_post_filter_is_exact(self):
        data = [
            make_story(1, category="Tools"),
            make_story(2, category="Power Tools"),
            make_story(3, category=" tools "),
        ]
        cms = FakeCMS(data)
        self.catalog = self.make_client(cms)

        await self.catalog.fetch_page(1, category="TOOLS")
        self.assertEqual([p.id for p in self.catalog.state.products], [1, 3])

    async def test_selecting_active_category_clears_it(self):
        self.catalog = self.make_client(FakeCMS([]))
        self.catalog.select_category("Tools")
        self.assertEqual(self.catalog.state.category, "Tools")
        self.catalog.select_category("tools")
        self.assertIsNone(self.catalog.state.category)

    async def test_load_categories(self):
        data = [
            make_story(1, category="Mugs"),
            make_story(2, category="tools"),
            make_story(3, category="Tools"),
        ]
        self.catalog = self.make_client(FakeCMS(data))
        facets = await self.catalog.load_categories()
        self.assertEqual([(f.name, f.count) for f in facets], [("Tools", 2), ("Mugs", 1)])

    async def test_load_categories_error_is_empty(self):
        cms = FakeCMS(stories(2))
        cms.fail = True
        self.catalog = self.make_client(cms)
        self.assertEqual(await self.catalog.load_categories(), [])

    # ---------- Detail ----------

    async def test_fetch_product(self):
        story = make_story(
            9,
            name="Lamp",
            description={"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Bright."}]}]},
        )
        self.catalog = self.make_client(FakeCMS([story]))
        prod = await self.catalog.fetch_product("product-9")
        self.assertEqual(prod.name, "Lamp")
        self.assertEqual(prod.description, ["Bright."])

        with self.assertRaises(FetchError):
            await self.catalog.fetch_product("missing")


class NormalizeTestCase(unittest.TestCase):
    def test_defaults(self):
        prod = normalize_product({"id": 1, "content": {}})
        self.assertEqual(prod.name, "Unnamed product")
        self.assertEqual(prod.price, "0")
        self.assertEqual(prod.regular_price, "0")
        self.assertIsNone(prod.sale_price)
        self.assertEqual(prod.stock_status, "instock")
        self.assertEqual(prod.image, "/placeholder.svg?height=200&width=200")
        self.assertEqual(prod.category, "uncategorized")
        self.assertEqual(prod.description, [])

    def test_sale_and_stock(self):
        prod = normalize_product(
            make_story(
                1,
                price="20",
                sale_price="15",
                stock_status="outofstock",
                image={"filename": "https://img.test/a.png"},
            )
        )
        self.assertTrue(prod.on_sale)
        self.assertFalse(prod.in_stock)
        self.assertEqual(prod.effective_price, "15")
        self.assertEqual(prod.image, "https://img.test/a.png")

    def test_non_dict_records_rejected(self):
        with self.assertRaises(ValueError):
            normalize_product("oops")
        with self.assertRaises(ValueError):
            normalize_product({"id": 1, "content": ["x"]})

    def test_price_labels(self):
        prod = normalize_product(make_story(1, price="$12.50", regular_price="1,200"))
        self.assertEqual(prod.price_label, "$12.50")
        self.assertEqual(prod.regular_price_label, "$1,200.00")

    def test_aggregate_ties_keep_first_seen_order(self):
        products = [
            normalize_product(make_story(1, category="b")),
            normalize_product(make_story(2, category="a")),
            normalize_product(make_story(3, category="A")),
            normalize_product(make_story(4, category="c")),
            normalize_product(make_story(5, category="B")),
        ]
        facets = aggregate_categories(products)
        self.assertEqual([(f.name, f.count) for f in facets], [("B", 2), ("A", 2), ("C", 1)])


if __name__ == "__main__":
    unittest.main()
