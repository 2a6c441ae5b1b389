# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from ticket_recon.core.dealers import DealerConfig, DealerResolver
from ticket_recon.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
output_directory: ./output
mode: erp
business_date: "2025-12-02"
dealer_config_path: config/dealers.yml
games_path: config/games.yml
gap_fill: true
barcode:
  erp:
    trim_digits: 0
  returns:
    trim_digits: 0
database:
  host: localhost
  port: 5432
  user: recon
  password: secret
  database: recon
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "recon.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / "config" / "dealers.yml").write_text(
        "master_code: '000000'\naliases:\n  '012345': '054321'\n", encoding="utf-8"
    )
    return cfg


@pytest.fixture()
def resolver() -> DealerResolver:
    return DealerResolver(DealerConfig(master_code="000000", aliases={"12345": "54321"}))


@pytest.fixture()
def write_grid() -> Callable[[Path, list[list[Any]]], Path]:
    """Write a raw grid (no header row) as the first sheet of an .xlsx file."""
    def _write(path: Path, grid: list[list[Any]], sheet_name: str = "Sheet1") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(grid).to_excel(path, sheet_name=sheet_name, header=False, index=False, engine="openpyxl")
        return path
    return _write


@pytest.fixture()
def erp_grid() -> list[list[Any]]:
    """ERP stock summary with one '#' gap marker.

    dealer 100100: 1000100..1000150, '#' row From 1000160 -> gap 1000151..1000159 (qty 9)
    dealer 100200: 1000160..1000199
    """
    return [
        ["ITEM : SUPIRI DHANA SAMPATHA", "", "", "", ""],
        ["DRAW DATE : 2025-12-02", "", "", "", ""],
        ["DEALER", "NAME", "FROM", "TO", "QTY"],
        [100100, "Lucky Stores", 1000100, 1000150, 51],
        ["#", "UNASSIGNED", 1000160, "", ""],
        [100200, "Galle Agency", 1000160, 1000199, 40],
        ["TOTAL", "", "", "", 91],
    ]
