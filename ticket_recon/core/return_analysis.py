from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from .classifier import Row
from .game_map import ERP_GAME_MAP, CodeTable

"""Sales vs returns analysis.

Sales summaries and return summaries are fixed-layout exports (unlike the ERP stock
summary), so columns are read by position:

    sales    agent code = col 0, agent name = col 1, qty = col 4
    returns  agent code = col 1, qty = col 8

Quantities are summed per agent and lottery type; agents are ranked by return %.
"""

__all__ = [
    "DEFAULT_TOP_N",
    "AgentQty",
    "AgentResult",
    "TypeResult",
    "normalize_agent_code",
    "is_likely_header_cell",
    "parse_sales",
    "parse_returns",
    "allowed_lottery_types",
    "infer_lottery_type",
    "analyse_lottery_type",
    "analyse",
    "type_result_sheet",
]

DEFAULT_TOP_N = 15

_HEADER_WORDS = ("AGENT", "CODE", "NAME", "QTY", "FROM", "TO", "TOTAL", "SUMMARY", "LOTTERY", "BOARD")
_NON_DIGIT = re.compile(r"[^\d]")

SALES_CODE_COL, SALES_NAME_COL, SALES_QTY_COL = 0, 1, 4
RETURN_CODE_COL, RETURN_QTY_COL = 1, 8


@dataclass(frozen=True)
class AgentQty:
    agent_code: str
    qty: float
    agent_name: str | None = None


@dataclass(frozen=True)
class AgentResult:
    rank: int
    agent_code: str
    lottery_type: str
    sales_qty: float
    return_qty: float
    agent_name: str | None = None

    @property
    def actual_sales(self) -> float:
        return self.sales_qty - self.return_qty

    @property
    def return_pct(self) -> float:
        return self.return_qty / self.sales_qty * 100 if self.sales_qty > 0 else 0.0

    def to_record(self) -> dict[str, Any]:
        return {
            "Rank": self.rank,
            "AgentCode": self.agent_code,
            "AgentName": self.agent_name or "",
            "LotteryType": self.lottery_type,
            "SalesQty": self.sales_qty,
            "ReturnQty": self.return_qty,
            "ActualSales": self.actual_sales,
            "ReturnPct": round(self.return_pct, 2),
        }


@dataclass(frozen=True)
class TypeResult:
    lottery_type: str
    top: list[AgentResult] = field(default_factory=list)
    unique_agents: int = 0
    total_sales_qty: float = 0
    total_return_qty: float = 0

    @property
    def overall_return_pct(self) -> float:
        if self.total_sales_qty <= 0:
            return 0.0
        return self.total_return_qty / self.total_sales_qty * 100


def normalize_agent_code(raw: Any) -> str:
    """4-6 digit codes are padded to 6; other values keep their digits (or the raw text)."""
    text = str(raw if raw is not None else "").strip()
    digits = _NON_DIGIT.sub("", text)
    if 4 <= len(digits) <= 6:
        return digits.zfill(6)
    if not digits:
        return text
    return digits


def _to_qty(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if value == value else 0  # NaN
    text = str(value).replace(",", "").strip()
    if not text:
        return 0
    try:
        return float(text)
    except ValueError:
        return 0


def is_likely_header_cell(value: Any) -> bool:
    upper = str(value if value is not None else "").upper()
    return any(word in upper for word in _HEADER_WORDS)


def _cell(row: Row, idx: int) -> Any:
    return row[idx] if idx < len(row) else None


def _accept(agent_code: str, qty: float) -> bool:
    if not agent_code or qty <= 0:
        return False
    return agent_code.upper() not in ("NAME", "TOTAL")


def parse_sales(grid: Sequence[Row]) -> list[AgentQty]:
    out: list[AgentQty] = []
    for row in grid:
        if not row:
            continue
        code_cell, name_cell = _cell(row, SALES_CODE_COL), _cell(row, SALES_NAME_COL)
        if is_likely_header_cell(code_cell) or is_likely_header_cell(name_cell):
            continue
        agent_code = normalize_agent_code(code_cell)
        qty = _to_qty(_cell(row, SALES_QTY_COL))
        if not _accept(agent_code, qty):
            continue
        name = str(name_cell if name_cell is not None else "").strip()
        out.append(AgentQty(agent_code, qty, name or None))
    return out


def parse_returns(grid: Sequence[Row]) -> list[AgentQty]:
    out: list[AgentQty] = []
    for row in grid:
        if not row:
            continue
        code_cell = _cell(row, RETURN_CODE_COL)
        if is_likely_header_cell(code_cell):
            continue
        agent_code = normalize_agent_code(code_cell)
        qty = _to_qty(_cell(row, RETURN_QTY_COL))
        if _accept(agent_code, qty):
            out.append(AgentQty(agent_code, qty))
    return out


def allowed_lottery_types(day: str, table: CodeTable = ERP_GAME_MAP) -> list[str]:
    return list(table.get(day, {}))


def infer_lottery_type(file_name: str, allowed: Iterable[str]) -> str | None:
    """First allowed code appearing as a standalone token (delimited by non-alphanumerics)."""
    upper = (file_name or "").upper()
    for code in allowed:
        if re.search(rf"(^|[^A-Z0-9]){re.escape(code.upper())}([^A-Z0-9]|$)", upper):
            return code
    return None


def _group_sum(rows: Iterable[AgentQty]) -> dict[str, float]:
    """Per-agent qty totals, agents in first-appearance order."""
    df = pd.DataFrame([(r.agent_code, r.qty) for r in rows], columns=["agent_code", "qty"])
    if df.empty:
        return {}
    totals = df.groupby("agent_code", sort=False)["qty"].sum()
    return dict(zip(totals.index, totals.tolist()))


def analyse_lottery_type(
    lottery_type: str,
    sales: Sequence[AgentQty],
    returns: Sequence[AgentQty],
    top_n: int = DEFAULT_TOP_N,
) -> TypeResult | None:
    """Per-agent merge of one lottery type; None when there are no sales rows."""
    if not sales:
        return None

    sales_sum = _group_sum(sales)
    return_sum = _group_sum(returns)
    names = {r.agent_code: r.agent_name for r in sales if r.agent_name}

    merged: list[AgentResult] = []
    total_sales = total_returns = 0.0
    for code, sales_qty in sales_sum.items():
        if sales_qty <= 0:
            continue
        return_qty = return_sum.get(code, 0)
        total_sales += sales_qty
        total_returns += return_qty
        merged.append(AgentResult(0, code, lottery_type, sales_qty, return_qty, names.get(code)))

    # stable sort: equal return % keep sales-file order
    merged.sort(key=lambda r: r.return_pct, reverse=True)
    top = [
        AgentResult(i + 1, r.agent_code, r.lottery_type, r.sales_qty, r.return_qty, r.agent_name)
        for i, r in enumerate(merged[:top_n])
    ]
    return TypeResult(
        lottery_type=lottery_type,
        top=top,
        unique_agents=len(sales_sum),
        total_sales_qty=total_sales,
        total_return_qty=total_returns,
    )


def analyse(
    sales_by_type: dict[str, list[AgentQty]],
    returns_by_type: dict[str, list[AgentQty]],
    top_n: int = DEFAULT_TOP_N,
) -> list[TypeResult]:
    """Only lottery types with sales are analysed; results sorted by overall return %."""
    results: list[TypeResult] = []
    for lottery_type in sorted(sales_by_type):
        res = analyse_lottery_type(
            lottery_type,
            sales_by_type[lottery_type],
            returns_by_type.get(lottery_type, []),
            top_n=top_n,
        )
        if res is not None:
            results.append(res)
    results.sort(key=lambda r: r.overall_return_pct, reverse=True)
    return results


def type_result_sheet(result: TypeResult, business_date: str, day: str) -> tuple[list[tuple[str, Any]], list[dict[str, Any]]]:
    """(metadata header, table records) for one lottery type sheet."""
    meta: list[tuple[str, Any]] = [
        ("Date", business_date),
        ("Day", day),
        ("LotteryType", result.lottery_type),
        ("UniqueAgents", result.unique_agents),
        ("TotalSalesQty", result.total_sales_qty),
        ("TotalReturnQty", result.total_return_qty),
        ("OverallReturnPct", round(result.overall_return_pct, 2)),
    ]
    return meta, [r.to_record() for r in result.top]
