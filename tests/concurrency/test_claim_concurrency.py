"""
Concurrent claiming of file-processing jobs.

Several workers poll the same queue; the conditional PENDING -> PROCESSING
update must hand every job to exactly one of them.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from stock_batch.domain.types import StagedFile
from stock_batch.services.queue import FileJobQueue
from stock_kernel.models.order import Order

pytestmark = pytest.mark.slow_locks


def _enqueue(database, clock, count: int) -> list:
    with database.session_scope() as session:
        order = Order(material_id="dtf-57", payload={})
        session.add(order)
        session.flush()
        queue = FileJobQueue(session, clock=clock)
        return [
            queue.enqueue(
                order.id,
                [StagedFile(
                    path=f"/srv/uploads/tmp/{i}.pdf", original_name=f"{i}.pdf",
                    mime_type="application/pdf", size_bytes=1,
                )],
            ).job_id
            for i in range(count)
        ]


def _claim(database, clock, limit: int) -> list:
    with database.session_scope() as session:
        return [job.job_id for job in FileJobQueue(session, clock=clock).claim_pending(limit)]


class TestClaimRace:
    def test_single_job_has_one_winner(self, database, clock):
        (job_id,) = _enqueue(database, clock, 1)
        barrier = Barrier(2)

        def claim(_):
            barrier.wait()
            return _claim(database, clock, 1)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(claim, range(2)))

        assert sorted(len(r) for r in results) == [0, 1]
        assert [j for r in results for j in r] == [job_id]

    def test_every_job_claimed_exactly_once(self, database, clock):
        job_ids = _enqueue(database, clock, 12)
        workers = 4
        barrier = Barrier(workers)

        def drain(_):
            barrier.wait()
            claimed = []
            while True:
                batch = _claim(database, clock, 2)
                if not batch:
                    return claimed
                claimed.extend(batch)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            claimed = [j for batch in pool.map(drain, range(workers)) for j in batch]

        assert len(claimed) == len(job_ids)
        assert set(claimed) == set(job_ids)
