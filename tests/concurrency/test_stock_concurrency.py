"""
Concurrent stock consumption against one material.

Each thread opens its own transaction, as separate worker processes do.
The ledger must serialize the remainder read-modify-write so that the
tracked length (quantity * 100 - remainder) drops by exactly the accepted
consumption and quantity never goes negative.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.services.material_resolver import MaterialResolver
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedgerService

pytestmark = pytest.mark.slow_locks

THREADS = 5


def _seed_item(database, quantity: int):
    with database.session_scope() as session:
        item = InventoryItem(code="dtf-57", name="DTF 57 cm", quantity=quantity)
        session.add(item)
        session.flush()
        return item.id


def _stock(database, catalog, item_id) -> tuple[int, int]:
    with database.session_scope() as session:
        ledger = StockLedgerService(session, MaterialResolver(session, catalog))
        return session.get(InventoryItem, item_id).quantity, ledger.get_remainder_cm(item_id)


class TestConcurrentConsumption:
    def test_only_available_length_is_consumed(self, database, catalog):
        item_id = _seed_item(database, quantity=2)
        barrier = Barrier(THREADS)

        def consume(_):
            barrier.wait()
            try:
                with database.session_scope() as session:
                    ledger = StockLedgerService(session, MaterialResolver(session, catalog))
                    ledger.adjust_material_stock("dtf-57", 60)
                return "ok"
            except InsufficientStockError:
                return "insufficient"

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            outcomes = list(pool.map(consume, range(THREADS)))

        assert outcomes.count("ok") == 3
        assert outcomes.count("insufficient") == 2
        quantity, remainder = _stock(database, catalog, item_id)
        assert (quantity, remainder) == (1, 80)
        assert quantity * 100 - remainder == 200 - 3 * 60

    def test_mixed_consume_and_return_conserve_length(self, database, catalog):
        item_id = _seed_item(database, quantity=4)
        deltas = [150, -30, 75, -120, 45, 10, -5, 90]
        barrier = Barrier(len(deltas))

        def adjust(delta):
            barrier.wait()
            try:
                with database.session_scope() as session:
                    ledger = StockLedgerService(session, MaterialResolver(session, catalog))
                    ledger.adjust_material_stock("dtf-57", delta)
                return delta
            except InsufficientStockError:
                return 0

        with ThreadPoolExecutor(max_workers=len(deltas)) as pool:
            applied = list(pool.map(adjust, deltas))

        quantity, remainder = _stock(database, catalog, item_id)
        assert quantity >= 0
        assert 0 <= remainder < 100
        assert quantity * 100 - remainder == 400 - sum(applied)


class TestConcurrentSequence:
    def test_values_are_unique(self, database):
        barrier = Barrier(THREADS)

        def draw(_):
            barrier.wait()
            values = []
            for _ in range(4):
                with database.session_scope() as session:
                    values.append(SequenceService(session).next_value("concurrency_test"))
            return values

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            drawn = [v for values in pool.map(draw, range(THREADS)) for v in values]

        assert sorted(drawn) == list(range(1, THREADS * 4 + 1))
