from __future__ import annotations

import importlib.util
import time
from pathlib import Path

import numpy as np
import pytest

from ticket_recon.core.dealers import DealerConfig, DealerResolver
from ticket_recon.core.exclusion import exclude_v1
from ticket_recon.core.ranges import build_ranges
from ticket_recon.models.ticket_range import TicketRange

"""Performance smoke tests for the range engine.

Synthetic ERP reports come from scripts/gen_sample_reports.py; budgets are lenient so
CI stays stable, the point is catching accidental quadratic blowups.
"""

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "gen_sample_reports.py"


@pytest.fixture(scope="module")
def gen():
    spec = importlib.util.spec_from_file_location("gen_sample_reports", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_build_ranges_throughput(gen):
    dealers = 5_000
    grid = gen.generate_erp_grid(dealers, gap_every=10)
    resolver = DealerResolver(DealerConfig())

    start = time.perf_counter()
    ranges = build_ranges(grid, resolver)
    elapsed = time.perf_counter() - start

    gap_rows = (dealers - 1) // 10
    assert len(ranges) == dealers + gap_rows
    # 台帳の連続性: ギャップ補完後は先頭から末尾まで欠番なし
    starts = [r.start for r in ranges]
    assert starts == sorted(starts)
    assert sum(r.qty for r in ranges) == ranges[-1].end - ranges[0].start + 1
    assert elapsed < 10.0, f"build_ranges too slow: {elapsed:.3f}s"


def test_exclusion_throughput():
    rng = np.random.default_rng(42)
    n = 20_000
    dealers = [f"{c:06d}" for c in rng.integers(100_000, 100_200, size=n)]
    starts = np.arange(n) * 100 + 1_000_000
    ranges = [TicketRange(d, "SFT", "", int(s), int(s) + 49) for d, s in zip(dealers, starts)]
    v1 = [r.with_bounds(r.start + 10, r.start + 19) for r in ranges[::2]]

    start = time.perf_counter()
    out = exclude_v1(ranges, v1)
    elapsed = time.perf_counter() - start

    assert sum(r.qty for r in out) == sum(r.qty for r in ranges) - 10 * len(v1)
    assert elapsed < 10.0, f"exclude_v1 too slow: {elapsed:.3f}s"
