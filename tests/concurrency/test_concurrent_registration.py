"""
Concurrent registration and routing.

Many workers register documents against one configuration at the same
time, each through its own facade transaction.  The numbers handed out
must be distinct and dense, and concurrent routings of one document must
produce one gap-free history.

Run with: pytest tests/concurrency/test_concurrent_registration.py -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Barrier
from uuid import uuid4

import pytest

from registry_kernel.domain.dtos import DocumentFields
from registry_kernel.domain.workflow import DocumentType
from registry_kernel.exceptions import OptimisticLockError
from registry_kernel.services.sequence_service import SequenceService

pytestmark = pytest.mark.slow_locks

WORKERS = 12


def _run_together(count, fn):
    barrier = Barrier(count)

    def worker(i):
        barrier.wait()
        return fn(i)

    results, errors = [], []
    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(worker, i) for i in range(count)]
        for future in as_completed(futures):
            try:
                results.append(future.result())
            except Exception as exc:  # collected for the assertion message
                errors.append(exc)
    return results, errors


class TestConcurrentRegistration:
    def test_numbers_distinct_and_dense(self, facade, parish_id, test_actor_id):
        config = facade.create_configuration("General register", test_actor_id)

        def register(i):
            return facade.create_document(
                parish_id,
                DocumentType.INCOMING,
                config.id,
                DocumentFields(subject=f"Concurrent request {i}"),
                test_actor_id,
                register_immediately=True,
            )

        results, errors = _run_together(WORKERS, register)

        assert errors == []
        numbers = sorted(d.registration_number for d in results)
        assert numbers == list(range(1, WORKERS + 1))
        assert len({d.formatted_number for d in results}) == WORKERS

    def test_first_use_of_a_key_under_contention(
        self, facade, session_factory, parish_id, test_actor_id,
    ):
        config = facade.create_configuration(
            "Outgoing", test_actor_id, resets_annually=False, starting_number=500,
        )

        def register(i):
            return facade.create_document(
                parish_id, "outgoing", config.id,
                DocumentFields(subject=f"Letter {i}"), test_actor_id,
                register_immediately=True,
            ).registration_number

        results, errors = _run_together(WORKERS, register)

        assert errors == []
        assert sorted(results) == list(range(500, 500 + WORKERS))
        check = session_factory()
        assert SequenceService(check).current_value(config.id, 0) == 500 + WORKERS - 1
        check.rollback()

    def test_drafts_registered_concurrently(self, facade, parish_id, test_actor_id):
        config = facade.create_configuration("General register", test_actor_id)
        drafts = [
            facade.create_document(
                parish_id, "incoming", config.id,
                DocumentFields(subject=f"Draft {i}"), test_actor_id,
            )
            for i in range(WORKERS)
        ]

        results, errors = _run_together(
            WORKERS, lambda i: facade.register_document(drafts[i].id, test_actor_id),
        )

        assert errors == []
        assert sorted(d.registration_number for d in results) == list(range(1, WORKERS + 1))


class TestConcurrentRouting:
    def test_concurrent_sends_keep_one_history(self, facade, parish_id, test_actor_id):
        config = facade.create_configuration("General register", test_actor_id)
        doc = facade.create_document(
            parish_id, "incoming", config.id, DocumentFields(subject="Contested"),
            test_actor_id, register_immediately=True,
        )
        senders = 6

        def send(i):
            return facade.route_document(doc.id, "sent", test_actor_id, to_user_id=uuid4())

        results, errors = _run_together(senders, send)

        # a send may lose its version race after the retry is spent
        assert all(isinstance(e, OptimisticLockError) for e in errors)
        history = facade.get_history(doc.id)
        assert len(history) == len(results)
        assert [r.position for r in history] == list(range(1, len(history) + 1))
        assert facade.get_document(doc.id).version_id == 2 + len(history)
