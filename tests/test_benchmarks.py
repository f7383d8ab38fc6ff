"""Micro-benchmarks for the prediction update cycle."""

import itertools

import pytest

from access_rank.engine import AccessRank


@pytest.mark.benchmark
class TestEngineBenchmarks:
    def test_visit_benchmark(self, benchmark):
        """A visit with a few dozen listed items should stay cheap."""
        engine = AccessRank()
        items = [f"item-{i}" for i in range(40)]
        for _ in range(5):
            for item in items:
                engine.visit_item(item)

        cycle = itertools.cycle(items)
        benchmark(lambda: engine.visit_item(next(cycle)))
        assert len(engine.predictions) == len(items) - 1

    def test_snapshot_benchmark(self, benchmark):
        engine = AccessRank()
        for _ in range(20):
            for item in ("mail", "calendar", "notes", "tasks"):
                engine.visit_item(item)

        snapshot = benchmark(engine.to_snapshot)
        assert AccessRank.from_snapshot(snapshot).predictions == engine.predictions
