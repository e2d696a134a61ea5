"""
Tests for cart entries, the merge rule and the local cart store
"""

import json

import pytest

from cartsync.cart import CartEntry, LocalCartStore, merge_carts, validate_entries
from cartsync.cart.models import CartSummary, RemoteCartDocument
from cartsync.errors import CartStoreError


def entries(*pairs):
    return [CartEntry(item_id, quantity) for item_id, quantity in pairs]


def as_set(items):
    return {(entry.item_id, entry.quantity) for entry in items}


class TestCartEntry:
    """Tests for CartEntry validation."""

    def test_valid_entry(self):
        entry = CartEntry.from_dict({"item_id": "svc1", "quantity": 2})
        assert entry == CartEntry("svc1", 2)
        assert entry.to_dict() == {"item_id": "svc1", "quantity": 2}

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True, None])
    def test_rejects_bad_quantity(self, quantity):
        with pytest.raises(ValueError):
            CartEntry("svc1", quantity).validate()

    @pytest.mark.parametrize("item_id", ["", None, 42])
    def test_rejects_bad_item_id(self, item_id):
        with pytest.raises(ValueError):
            CartEntry(item_id, 1).validate()

    def test_validate_entries_rejects_non_entries(self):
        with pytest.raises(ValueError):
            validate_entries([{"item_id": "svc1", "quantity": 1}])

    def test_remote_document_parses_items(self):
        doc = RemoteCartDocument(
            owner_id="user-1",
            items=[{"item_id": "svc1", "quantity": 3}],
            updated_at="2025-01-01T00:00:00+00:00",
            some_other_column="kept by the database",
        )
        assert doc.items == [CartEntry("svc1", 3)]

    def test_summary_counts(self):
        summary = CartSummary(entries=entries(("svc1", 2), ("svc2", 3)))
        assert summary.total_items == 5
        assert summary.distinct_items == 2
        assert summary.to_dict()["is_empty"] is False
        assert CartSummary().to_dict()["is_empty"] is True


class TestMergeCarts:
    """Tests for local-precedence merging."""

    def test_scenario_a_local_quantity_wins(self):
        local = entries(("svc1", 2))
        remote = entries(("svc1", 5), ("svc2", 1))

        merged = merge_carts(remote, local)

        assert as_set(merged) == {("svc1", 2), ("svc2", 1)}

    def test_scenario_b_empty_local_keeps_remote(self):
        assert merge_carts(entries(("svc3", 1)), []) == entries(("svc3", 1))

    def test_union_of_item_ids(self):
        local = entries(("a", 1), ("b", 2))
        remote = entries(("b", 7), ("c", 3))

        merged = merge_carts(remote, local)

        assert {entry.item_id for entry in merged} == {"a", "b", "c"}
        assert dict((e.item_id, e.quantity) for e in merged)["b"] == 2

    def test_idempotent(self):
        merged = merge_carts(entries(("svc1", 5), ("svc2", 1)), entries(("svc1", 2), ("svc4", 9)))
        assert as_set(merge_carts(merged, merged)) == as_set(merged)

    def test_both_empty(self):
        assert merge_carts([], []) == []

    def test_result_is_unique_by_item_id(self):
        merged = merge_carts(entries(("a", 1), ("a", 4)), entries(("b", 1)))
        ids = [entry.item_id for entry in merged]
        assert len(ids) == len(set(ids))


class TestLocalCartStore:
    """Tests for the device snapshot accessor."""

    def test_read_empty(self, local_store):
        assert local_store.read() == []

    def test_round_trip_regardless_of_order(self, local_store):
        items = entries(("svc2", 1), ("svc1", 4), ("svc3", 2))

        local_store.write(items)
        first = local_store.read()
        local_store.write(list(reversed(items)))
        second = local_store.read()

        assert as_set(first) == as_set(items)
        assert as_set(second) == as_set(items)

    def test_write_is_single_set_with_ttl(self, local_store, redis_client):
        local_store.write(entries(("svc1", 1)))

        assert json.loads(redis_client.data["cart:device:device-1"]) == [
            {"item_id": "svc1", "quantity": 1}
        ]
        assert redis_client.expiry["cart:device:device-1"] == local_store.ttl

    def test_scenario_c_zero_quantity_rejected(self, local_store, redis_client):
        local_store.write(entries(("svc9", 1)))

        with pytest.raises(ValueError):
            local_store.write([CartEntry("svc1", 0)])

        # Nothing was written
        assert local_store.read() == entries(("svc9", 1))

    def test_corrupt_json_reads_empty(self, local_store, redis_client):
        redis_client.data[local_store.key] = "{not json"
        assert local_store.read() == []

    def test_malformed_entries_read_empty(self, local_store, redis_client):
        redis_client.data[local_store.key] = json.dumps([{"item_id": "svc1", "quantity": -3}])
        assert local_store.read() == []

    def test_wrong_shape_reads_empty(self, local_store, redis_client):
        redis_client.data[local_store.key] = json.dumps({"item_id": "svc1"})
        assert local_store.read() == []

    def test_unavailable_store_reads_empty(self, local_store, redis_client):
        redis_client.fail_reads = True
        assert local_store.read() == []

    def test_rejected_write_raises_store_error(self, local_store, redis_client):
        redis_client.fail_writes = True
        with pytest.raises(CartStoreError):
            local_store.write(entries(("svc1", 1)))

    def test_clear(self, local_store):
        local_store.write(entries(("svc1", 1)))
        local_store.clear()
        assert local_store.read() == []

    def test_no_deduplication(self, local_store):
        local_store.write(entries(("svc1", 1), ("svc1", 2)))
        assert len(local_store.read()) == 2

    def test_requires_device_id(self, redis_client):
        with pytest.raises(ValueError):
            LocalCartStore(redis_client, "")
