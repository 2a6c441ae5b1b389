from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

"""Auto game / day mapper.

ERP exports are named after a short per-weekday game code (SFA = the Tuesday edition
of one game, SFW = its Wednesday edition, ...). The mapper finds that code in a file
name and translates it to the official game code for the business date's weekday.
"""

__all__ = [
    "WEEKDAYS",
    "ERP_GAME_MAP",
    "GameSuggestion",
    "day_from_date",
    "all_codes",
    "find_days_for_code",
    "detect_code",
    "map_to_official",
    "suggest_game",
    "official_games",
]

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

CodeTable = Mapping[str, Mapping[str, str]]  # weekday -> {erp_code: official_code}

ERP_GAME_MAP: CodeTable = {
    "Monday": {"LWM": "LMO", "AKM": "AMO", "SFM": "SFM", "SBM": "SBM", "KTM": "KPM", "SPM": "SRM", "VM": "DMO", "SM": "JMO"},
    "Tuesday": {"LWA": "LWT", "AKA": "ATU", "SFA": "SFT", "SBA": "BTU", "KTT": "KPT", "SPA": "SRT", "VA": "DTU", "SA": "JST"},
    "Wednesday": {"LWW": "LWW", "AKW": "AWD", "SFW": "SFW", "SBW": "SBW", "KTW": "KPW", "SPW": "SWD", "VW": "DWD", "SW": "JSW"},
    "Thursday": {"LWB": "LTH", "AKT": "ATH", "SFT": "SFH", "SBT": "SBT", "KTB": "KTH", "SPT": "STH", "VI": "DTH", "ST": "JTH"},
    "Friday": {"LWF": "LWF", "AKF": "AFR", "SFF": "SFR", "SBF": "SBF", "KTF": "KPF", "SPF": "SRF", "VF": "DFI", "SF": "JFR"},
    "Saturday": {"LWS": "LSA", "AKS": "ASA", "SFS": "SFS", "SBS": "SBS", "KTS": "KSA", "SPS": "SRS", "VS": "DSA", "SS": "JSA"},
    "Sunday": {"LWI": "LWS", "AKI": "ASU", "SFI": "SFU", "SBI": "SSU", "KTI": "KPS", "SPI": "SRU", "VI": "DSU", "SI": "JSU"},
}

_TOKEN = re.compile(r"(?:^|[^A-Z])([A-Z]{2,3})(?=[^A-Z]|$)")
_EXTENSION = re.compile(r"\.[^/.]+$")


@dataclass(frozen=True)
class GameSuggestion:
    """Result of suggest_game.

    status: ok | mismatch_day | ambiguous | not_found
    """
    status: str
    selected_day: str
    note: str
    erp_code: str | None = None
    detected_day: str | None = None
    official: str | None = None
    days: tuple[str, ...] = field(default_factory=tuple)

    @property
    def resolved(self) -> bool:
        return self.official is not None


def day_from_date(iso_date: str | None) -> str:
    """English weekday name for yyyy-mm-dd (today when empty)."""
    d = date.fromisoformat(iso_date.strip()) if iso_date and iso_date.strip() else date.today()
    return WEEKDAYS[d.weekday()]


def _normalize_file_name(file_name: str) -> str:
    return _EXTENSION.sub("", file_name or "").upper()


def all_codes(table: CodeTable = ERP_GAME_MAP) -> list[str]:
    """Every known code, longest first (SFW is tried before SW)."""
    seen: dict[str, None] = {}
    for codes in table.values():
        for code in codes:
            seen.setdefault(code, None)
    return sorted(seen, key=len, reverse=True)


def find_days_for_code(code: str, table: CodeTable = ERP_GAME_MAP) -> list[str]:
    key = (code or "").upper()
    return [day for day, codes in table.items() if key in codes]


def detect_code(file_name: str, table: CodeTable = ERP_GAME_MAP) -> str | None:
    upper = _normalize_file_name(file_name)

    for code in all_codes(table):
        if code in upper:
            return code

    # 区切り文字で囲まれたトークン (substring で拾えなかった場合のみ)
    for m in _TOKEN.finditer(upper):
        if find_days_for_code(m.group(1), table):
            return m.group(1)
    return None


def map_to_official(day: str, code: str, table: CodeTable = ERP_GAME_MAP) -> str | None:
    return table.get(day, {}).get((code or "").upper())


def suggest_game(file_name: str, business_date: str | None, table: CodeTable = ERP_GAME_MAP) -> GameSuggestion:
    selected_day = day_from_date(business_date)
    code = detect_code(file_name, table)

    if code is None:
        return GameSuggestion(
            status="not_found",
            selected_day=selected_day,
            note=(
                f'Cannot detect ERP game code from file name "{file_name}". '
                "Rename the file to include a valid code (e.g., SFA, AKW, LWM)."
            ),
        )

    days = tuple(find_days_for_code(code, table))
    if not days:
        return GameSuggestion(
            status="not_found",
            selected_day=selected_day,
            erp_code=code,
            note=f'ERP code "{code}" is not in the mapping table.',
        )

    if len(days) > 1:
        official = map_to_official(selected_day, code, table)
        if official is None:
            return GameSuggestion(
                status="ambiguous",
                selected_day=selected_day,
                erp_code=code,
                days=days,
                note=(
                    f'ERP code "{code}" exists in multiple days ({", ".join(days)}). '
                    f"Selected date is {selected_day} but mapping is not available for that day."
                ),
            )
        return GameSuggestion(
            status="ok",
            selected_day=selected_day,
            erp_code=code,
            detected_day=selected_day,
            official=official,
            days=days,
            note=f"Auto-detected: ERP={code} -> OFFICIAL={official} (using selected day {selected_day})",
        )

    detected_day = days[0]
    official = map_to_official(detected_day, code, table)
    if detected_day != selected_day:
        return GameSuggestion(
            status="mismatch_day",
            selected_day=selected_day,
            erp_code=code,
            detected_day=detected_day,
            official=official,
            days=days,
            note=(
                f"File name indicates {detected_day} (ERP={code} -> {official}) "
                f"but selected business date is {selected_day}."
            ),
        )

    return GameSuggestion(
        status="ok",
        selected_day=selected_day,
        erp_code=code,
        detected_day=detected_day,
        official=official,
        days=days,
        note=f"Auto-detected: {selected_day} ERP={code} -> OFFICIAL={official}",
    )


def official_games(table: CodeTable = ERP_GAME_MAP) -> list[str]:
    """Sorted union of official codes (dropdown / report listing)."""
    return sorted({official for codes in table.values() for official in codes.values()})
