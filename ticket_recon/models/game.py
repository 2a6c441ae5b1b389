from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

"""Game master record (read-only for the reconciliation engine)."""

__all__ = [
    "GameDef",
]


@dataclass(frozen=True)
class GameDef:
    id: str  # store document id
    name: str  # official game name
    short_code: str | None = None
    board: str | None = None

    @staticmethod
    def from_dict(game_id: str, data: dict[str, Any]) -> GameDef:
        return GameDef(
            id=game_id,
            name=str(data.get("name") or ""),
            short_code=data.get("short_code"),
            board=data.get("board"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        return data
