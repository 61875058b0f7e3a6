from __future__ import annotations

import pytest

from bom_importer.models.processing_result import BatchStatsAccumulator, FileStat


def test_file_stat_defaults():
    stat = FileStat("SO1.xlsx", "success", line_items=4, tools=2, warnings=0, elapsed_seconds=0.1)
    assert stat.committed_rows == 0
    assert stat.failed_batches == 0
    assert stat.total_batches == 0


def test_accumulator_empty():
    assert BatchStatsAccumulator().get_stats() == (0, 0.0, 0.0)


def test_accumulator_single_batch():
    acc = BatchStatsAccumulator()
    acc.add_batch_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)


def test_accumulator_p95():
    acc = BatchStatsAccumulator()
    for i in range(1, 21):
        acc.add_batch_time(i / 10)
    total, avg, p95 = acc.get_stats()
    assert total == 20
    assert avg == pytest.approx(1.05)
    assert 1.8 < p95 <= 2.0
