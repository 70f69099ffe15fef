"""
Tests for the background view worker (last-write-wins delivery).
"""

import threading
import pytest

from timeline_engine.scheduling import BackgroundViewWorker


TIMEOUT = 5.0


class TestBackgroundViewWorker:

    def test_result_delivered(self):
        delivered = []
        done = threading.Event()

        def on_result(value):
            delivered.append(value)
            done.set()

        with BackgroundViewWorker() as worker:
            ticket = worker.submit(lambda: 42, on_result)
            assert ticket.result(TIMEOUT) == 42
            assert done.wait(TIMEOUT)

        assert delivered == [42]
        assert ticket.is_current()

    def test_stale_result_discarded(self):
        release = threading.Event()
        delivered = []
        newest_done = threading.Event()

        def slow():
            release.wait(TIMEOUT)
            return "stale"

        def on_newest(value):
            delivered.append(value)
            newest_done.set()

        with BackgroundViewWorker() as worker:
            first = worker.submit(slow, delivered.append)
            second = worker.submit(lambda: "fresh", on_newest)
            release.set()

            assert first.result(TIMEOUT) == "stale"
            assert newest_done.wait(TIMEOUT)
            assert first.current_result(TIMEOUT) is None
            assert second.current_result(TIMEOUT) == "fresh"

        assert delivered == ["fresh"]
        assert worker.discarded_count == 1

    def test_error_delivered_to_current_pass(self):
        errors = []
        done = threading.Event()

        def fail():
            raise RuntimeError("boom")

        def on_error(error):
            errors.append(error)
            done.set()

        with BackgroundViewWorker() as worker:
            ticket = worker.submit(fail, on_error=on_error)
            assert done.wait(TIMEOUT)
            with pytest.raises(RuntimeError):
                ticket.result(TIMEOUT)

        assert isinstance(errors[0], RuntimeError)

    def test_generations_increase(self):
        with BackgroundViewWorker() as worker:
            first = worker.submit(lambda: 1)
            second = worker.submit(lambda: 2)
            assert second.generation == first.generation + 1
            assert worker.current_generation == second.generation

    def test_worker_count_validated(self):
        with pytest.raises(ValueError):
            BackgroundViewWorker(max_workers=0)
