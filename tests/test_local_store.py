"""
Tests for the device-local store.

Missing or corrupt data must read as an empty list, never raise.
"""

from sqlmodel import Session

from storefront.models.cart import CartLine, SavedLine
from storefront.models.local import LocalEntry

from conftest import make_product


def _write_raw(store, key: str, value: str) -> None:
    with Session(store.engine) as session:
        session.add(LocalEntry(key=key, value=value))
        session.commit()


class TestLoad:
    def test_missing_key_is_empty(self, local_store):
        assert local_store.load("ecommerce-cart", CartLine) == []

    def test_saved_lines_come_back(self, local_store):
        lines = [
            CartLine(product=make_product("prod-001", 12.5), quantity=2, selected_size="M"),
            CartLine(product=make_product("prod-002"), quantity=1),
        ]
        local_store.save("ecommerce-cart", lines)

        loaded = local_store.load("ecommerce-cart", CartLine)

        assert [line.key for line in loaded] == [("prod-001", "M", None), ("prod-002", None, None)]
        assert loaded[0].quantity == 2
        assert loaded[0].product.price == 12.5

    def test_undecodable_json_is_empty(self, local_store):
        _write_raw(local_store, "ecommerce-cart", "{not json")
        assert local_store.load("ecommerce-cart", CartLine) == []

    def test_non_list_json_is_empty(self, local_store):
        _write_raw(local_store, "ecommerce-cart", '{"product": "x"}')
        assert local_store.load("ecommerce-cart", CartLine) == []

    def test_invalid_item_is_empty(self, local_store):
        # quantity 0 violates the CartLine invariant
        _write_raw(
            local_store,
            "ecommerce-cart",
            '[{"product": {"id": "prod-001"}, "quantity": 0}]',
        )
        assert local_store.load("ecommerce-cart", CartLine) == []

    def test_keys_are_independent(self, local_store):
        local_store.save("ecommerce-saved", [SavedLine(product=make_product("prod-009"))])
        assert local_store.load("ecommerce-cart", CartLine) == []
        assert len(local_store.load("ecommerce-saved", SavedLine)) == 1


class TestSaveAndClear:
    def test_save_overwrites_whole_sequence(self, local_store):
        local_store.save("ecommerce-cart", [CartLine(product=make_product("prod-001"), quantity=1)])
        local_store.save("ecommerce-cart", [CartLine(product=make_product("prod-002"), quantity=3)])

        loaded = local_store.load("ecommerce-cart", CartLine)
        assert [line.product_id for line in loaded] == ["prod-002"]

    def test_clear_removes_key(self, local_store):
        local_store.save("ecommerce-cart", [CartLine(product=make_product(), quantity=1)])
        local_store.clear("ecommerce-cart")
        assert local_store.load("ecommerce-cart", CartLine) == []

    def test_clear_missing_key_is_noop(self, local_store):
        local_store.clear("never-written")
