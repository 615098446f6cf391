import json
import unittest
from decimal import Decimal

from store_case import StoreTestCase, make_story
from api.catalog import normalize_product
from storage import local
from storage.cart import CartStore


def product(pid, price="10.00", **content):
    return normalize_product(make_story(pid, name=f"Item {pid}", price=price, **content))


class CartStoreTestCase(StoreTestCase):
    async def asyncSetUp(self):
        self.cart = CartStore()
        await self.cart.hydrate()

    # ---------- Mutations ----------

    async def test_add_merges_same_product(self):
        p = product(1)
        await self.cart.add(p)
        item = await self.cart.add(p)

        self.assertEqual(len(self.cart.items), 1)
        self.assertEqual(item.quantity, 2)
        self.assertEqual(self.cart.total_items(), 2)

    async def test_add_copies_sale_price(self):
        item = await self.cart.add(product(1, price="20.00", sale_price="15.00"))
        self.assertEqual(item.price, "15.00")
        self.assertEqual(self.cart.total_price(), Decimal("15.00"))

    async def test_remove_then_add_starts_at_one(self):
        p = product(1)
        await self.cart.add(p)
        await self.cart.add(p)
        await self.cart.remove(1)
        self.assertTrue(self.cart.is_empty())

        item = await self.cart.add(p)
        self.assertEqual(item.quantity, 1)

    async def test_set_quantity(self):
        await self.cart.add(product(1))
        await self.cart.set_quantity(1, 5)
        self.assertEqual(self.cart.get(1).quantity, 5)

        await self.cart.set_quantity(1, 0)
        self.assertIsNone(self.cart.get(1))

        # unknown ids are ignored
        await self.cart.set_quantity(99, 3)
        await self.cart.remove(99)
        self.assertTrue(self.cart.is_empty())

    async def test_totals_for_mixed_cart(self):
        a = product(1, price="$12.50")
        b = product(2, price="0")
        c = product(3, price="0.00")
        await self.cart.add(a)
        await self.cart.add(a)
        await self.cart.add(b)
        await self.cart.add(c)
        await self.cart.remove(3)

        self.assertEqual(self.cart.total_items(), 3)
        self.assertEqual(self.cart.total_price(), Decimal("25.00"))

    # ---------- Persistence ----------

    async def test_state_survives_reload(self):
        await self.cart.add(product(1, price="3.00"))
        await self.cart.add(product(2, price="4.00"))
        await self.cart.add(product(1, price="3.00"))

        restored = CartStore()
        await restored.hydrate()
        self.assertEqual([i.id for i in restored.items], [1, 2])
        self.assertEqual(restored.get(1).quantity, 2)
        self.assertEqual(restored.total_price(), Decimal("10.00"))

    async def test_persisted_shape(self):
        await self.cart.add(product(7, price="9.99", category="Mugs"))
        raw = json.loads(await local.get_item(local.CART_KEY))
        self.assertEqual(
            raw,
            [
                {
                    "id": 7,
                    "name": "Item 7",
                    "price": "9.99",
                    "image": "/placeholder.svg?height=200&width=200",
                    "category": "Mugs",
                    "quantity": 1,
                }
            ],
        )

    async def test_corrupt_payload_gives_empty_cart(self):
        await local.set_item(local.CART_KEY, "{not json")
        with self.assertLogs("storage.cart", level="ERROR"):
            restored = CartStore()
            await restored.hydrate()
        self.assertTrue(restored.is_empty())

    async def test_duplicate_lines_merged_on_hydrate(self):
        line = {"id": 1, "name": "A", "price": "2.00", "quantity": 1}
        await local.set_item(local.CART_KEY, json.dumps([line, dict(line, quantity=2)]))

        restored = CartStore()
        await restored.hydrate()
        self.assertEqual(len(restored.items), 1)
        self.assertEqual(restored.get(1).quantity, 3)

    async def test_clear_erases_storage(self):
        await self.cart.add(product(1))
        await self.cart.clear()
        self.assertTrue(self.cart.is_empty())
        self.assertIsNone(await local.get_item(local.CART_KEY))

    async def test_complete_checkout_drops_marker(self):
        await self.cart.add(product(1))
        await local.set_item(local.CHECKOUT_MARKER_KEY, "{}")
        await self.cart.complete_checkout()
        self.assertTrue(self.cart.is_empty())
        self.assertIsNone(await local.get_item(local.CHECKOUT_MARKER_KEY))

    # ---------- Notices ----------

    async def test_notices(self):
        notices = []
        unsubscribe = self.cart.on_notify(notices.append)

        p = product(1)
        await self.cart.add(p)
        await self.cart.add(p)
        self.assertEqual([n.kind for n in notices], ["added", "quantity"])
        self.assertEqual(notices[0].message, "Item 1 added to cart")
        self.assertEqual(notices[1].message, "Item 1: quantity now 2")
        self.assertEqual(notices[0].timeout, 3.0)

        unsubscribe()
        await self.cart.add(p)
        self.assertEqual(len(notices), 2)

    async def test_failing_listener_does_not_skip_persistence(self):
        def broken(notice):
            raise RuntimeError("listener bug")

        self.cart.on_notify(broken)
        with self.assertLogs("storage.cart", level="ERROR"):
            await self.cart.add(product(1))

        restored = CartStore()
        await restored.hydrate()
        self.assertEqual(restored.get(1).quantity, 1)


if __name__ == "__main__":
    unittest.main()
