#!/usr/bin/env python3
"""Synthetic report generator for manual runs and performance checks.

Generates ERP stock summaries in the layout the range builder expects:
- a few title rows ("ITEM : <game>", "DRAW DATE : yyyy-mm-dd")
- one row per dealer allocation: dealer code | name | From | To | Qty
- occasional '#' rows marking the start of an unassigned stretch (gap)
- a closing TOTAL row

and agent return reports (dealer | From | Qty).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd


def generate_erp_grid(
    dealers: int,
    game: str = "SUPIRI DHANA SAMPATHA",
    draw: str = "2025-12-02",
    start_barcode: int = 1_000_000,
    gap_every: int = 10,
    seed: int = 42,
) -> list[list[Any]]:
    """ERP stock summary grid with ``dealers`` allocation rows.

    Every ``gap_every``-th allocation is preceded by a '#' row whose From barcode leaves
    a gap after the previous dealer range.
    """
    rng = np.random.default_rng(seed)
    grid: list[list[Any]] = [
        [f"ITEM : {game}", "", "", "", ""],
        [f"DRAW DATE : {draw}", "", "", "", ""],
        ["DEALER", "NAME", "FROM", "TO", "QTY"],
    ]

    codes = rng.integers(10_000, 999_999, size=dealers)
    sizes = rng.integers(20, 500, size=dealers)
    gaps = rng.integers(1, 50, size=dealers)

    cursor = start_barcode
    total = 0
    for i in range(dealers):
        if gap_every and i and i % gap_every == 0:
            cursor += int(gaps[i])
            grid.append(["#", "UNASSIGNED", cursor, "", ""])
        size = int(sizes[i])
        grid.append([int(codes[i]), f"Dealer {i + 1}", cursor, cursor + size - 1, size])
        cursor += size
        total += size

    grid.append(["TOTAL", "", "", "", total])
    return grid


def generate_return_grid(dealers: int, start_barcode: int = 1_000_000, seed: int = 7) -> list[list[Any]]:
    rng = np.random.default_rng(seed)
    grid: list[list[Any]] = [["AGENT RETURN REPORT", "", ""], ["AGENT", "FROM", "QTY"]]
    cursor = start_barcode
    for _ in range(dealers):
        qty = int(rng.integers(1, 40))
        grid.append([int(rng.integers(10_000, 999_999)), f"{cursor:07d}", qty])
        cursor += qty + int(rng.integers(0, 100))
    return grid


def save_grid(grid: list[list[Any]], output_path: Path, sheet_name: str = "Sheet1") -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(grid).to_excel(output_path, sheet_name=sheet_name, header=False, index=False, engine="openpyxl")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate synthetic ERP / return reports")
    parser.add_argument("--dealers", type=int, default=200, help="allocation rows per report")
    parser.add_argument("--files", type=int, default=1, help="number of reports to generate")
    parser.add_argument("--kind", choices=["erp", "returns"], default="erp")
    parser.add_argument("--output-dir", type=Path, default=Path("./data/erp"))
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.dealers <= 0 or args.files <= 0:
        print("error: --dealers and --files must be positive", file=sys.stderr)
        return 1

    for i in range(args.files):
        if args.kind == "erp":
            grid = generate_erp_grid(args.dealers, seed=args.seed + i)
            name = f"erp_report_{i + 1:03d}.xlsx"
        else:
            grid = generate_return_grid(args.dealers, seed=args.seed + i)
            name = f"return_report_{i + 1:03d}.xlsx"
        path = args.output_dir / name
        save_grid(grid, path)
        print(f"Generated {path} ({len(grid)} rows)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
