from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

import yaml

from ..models.game import GameDef
from .uploads import StoreError

"""Game master store (YAML document keyed by game id)."""

__all__ = [
    "GameStoreError",
    "GameStore",
]


class GameStoreError(StoreError):
    pass


class GameStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise GameStoreError(f"cannot read games {self.path}: {e}") from e
        games = data.get("games") if isinstance(data, dict) else None
        return {str(k): dict(v or {}) for k, v in (games or {}).items()}

    def _save(self, games: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump({"games": games}, sort_keys=True, allow_unicode=True),
            encoding="utf-8",
        )

    def fetch_games(self) -> list[GameDef]:
        games = [GameDef.from_dict(gid, data) for gid, data in self._load().items()]
        return sorted(games, key=lambda g: g.name.casefold())

    def create_game(self, name: str, short_code: str | None = None, board: str | None = None) -> GameDef:
        game = GameDef(id=uuid.uuid4().hex, name=name, short_code=short_code, board=board)
        games = self._load()
        games[game.id] = game.to_dict()
        self._save(games)
        return game

    def update_game(self, game_id: str, **changes: Any) -> GameDef:
        games = self._load()
        if game_id not in games:
            raise GameStoreError(f"game not found: {game_id}")
        unknown = set(changes) - {"name", "short_code", "board"}
        if unknown:
            raise GameStoreError(f"unknown game fields: {sorted(unknown)}")
        games[game_id].update(changes)
        self._save(games)
        return GameDef.from_dict(game_id, games[game_id])

    def delete_game(self, game_id: str) -> None:
        games = self._load()
        if games.pop(game_id, None) is None:
            raise GameStoreError(f"game not found: {game_id}")
        self._save(games)

    def find_by_short_code(self, short_code: str) -> GameDef | None:
        key = (short_code or "").strip().upper()
        for game in self.fetch_games():
            if (game.short_code or "").upper() == key:
                return game
        return None
