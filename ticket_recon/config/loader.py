from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..core.digits import TrimPolicy
from ..models.ticket_range import AvailabilityBlock

"""Config loader.

Responsibilities:
- Load YAML config (default config/recon.yml)
- Validate against the packaged JSON schema (config_schema.json)
- Apply defaults and build the frozen ReconConfig snapshot
- Resolve the PostgreSQL DSN (environment first, then config file)
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "BarcodeConfig",
    "FileOverride",
    "AnalysisConfig",
    "DatabaseConfig",
    "ReconConfig",
    "load_config",
    "resolve_dsn",
]

DEFAULT_CONFIG_PATH = Path("config/recon.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class BarcodeConfig:
    erp: TrimPolicy = field(default_factory=lambda: TrimPolicy(fixed_width=False))
    returns: TrimPolicy = field(default_factory=lambda: TrimPolicy(fixed_width=True))


@dataclass(frozen=True)
class FileOverride:
    """Per-file operator input (game/draw override, availability blocks, breaking)."""
    game: str | None = None
    draw: str | None = None
    blocks: tuple[AvailabilityBlock, ...] = ()
    breaking_from: str | None = None
    breaking_sizes: tuple[int, ...] = ()
    breaking_to: str | None = None

    @property
    def has_breaking(self) -> bool:
        return bool(self.breaking_from or self.breaking_sizes)


@dataclass(frozen=True)
class AnalysisConfig:
    sales_directory: str | None = None
    returns_directory: str | None = None
    top_n: int = 15


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ReconConfig:
    source_directory: str
    output_directory: str = "./output"
    mode: str = "erp"
    business_date: str | None = None  # yyyy-mm-dd, None -> today
    dealer_config_path: str = "config/dealers.yml"
    games_path: str = "config/games.yml"
    gap_fill: bool = True
    strict_scope: bool = False
    v1_file: str | None = None
    barcode: BarcodeConfig = field(default_factory=BarcodeConfig)
    files: Mapping[str, FileOverride] = field(default_factory=dict)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    game_code_table: Mapping[str, Mapping[str, str]] | None = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def override_for(self, file_name: str) -> FileOverride:
        return self.files.get(file_name, FileOverride())


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: schema file missing / not valid JSON, or the config violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _trim_policy(raw: Mapping[str, Any] | None, fixed_width: bool) -> TrimPolicy:
    raw = raw or {}
    return TrimPolicy(
        trim_digits=int(raw.get("trim_digits", 0)),
        prefix=str(raw.get("prefix") or ""),
        fixed_width=fixed_width,
    )


def _file_override(raw: Mapping[str, Any]) -> FileOverride:
    blocks = tuple(
        AvailabilityBlock(from_text=_text(b.get("from")) or "", to_text=_text(b.get("to")) or "")
        for b in raw.get("blocks") or []
    )
    breaks = raw.get("breaks") or {}
    return FileOverride(
        game=_text(raw.get("game")),
        draw=_text(raw.get("draw")),
        blocks=blocks,
        breaking_from=_text(breaks.get("from")),
        breaking_sizes=tuple(int(s) for s in breaks.get("sizes") or []),
        breaking_to=_text(breaks.get("to")),
    )


def _check_business_date(value: str | None) -> None:
    if value is None:
        return
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ConfigError(f"config validation failed: business_date {value!r} is not a calendar date") from e


def load_config(path: Path) -> ReconConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    # business_date は YAML で date 型になることがある
    if data.get("business_date") is not None:
        data["business_date"] = str(data["business_date"])

    _validate_config_schema(data)
    _check_business_date(data.get("business_date"))

    barcode_raw = data.get("barcode") or {}
    analysis_raw = data.get("analysis") or {}
    db_raw = data.get("database") or {}

    return ReconConfig(
        source_directory=data["source_directory"],
        output_directory=data.get("output_directory", "./output"),
        mode=data.get("mode", "erp"),
        business_date=data.get("business_date"),
        dealer_config_path=data.get("dealer_config_path", "config/dealers.yml"),
        games_path=data.get("games_path", "config/games.yml"),
        gap_fill=bool(data.get("gap_fill", True)),
        strict_scope=bool(data.get("strict_scope", False)),
        v1_file=data.get("v1_file"),
        barcode=BarcodeConfig(
            erp=_trim_policy(barcode_raw.get("erp"), fixed_width=False),
            returns=_trim_policy(barcode_raw.get("returns"), fixed_width=True),
        ),
        files={name: _file_override(raw or {}) for name, raw in (data.get("files") or {}).items()},
        analysis=AnalysisConfig(
            sales_directory=analysis_raw.get("sales_directory"),
            returns_directory=analysis_raw.get("returns_directory"),
            top_n=int(analysis_raw.get("top_n", 15)),
        ),
        game_code_table=data.get("game_code_table"),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def resolve_dsn(db: DatabaseConfig, environ: Mapping[str, str] | None = None) -> str | None:
    """DSN resolution order: DATABASE_URL / PGDSN -> PG* variables -> config file."""
    env = os.environ if environ is None else environ

    dsn = env.get("DATABASE_URL") or env.get("PGDSN")
    if dsn:
        return dsn

    pg_keys = {"host": "PGHOST", "port": "PGPORT", "user": "PGUSER", "password": "PGPASSWORD", "dbname": "PGDATABASE"}
    from_env = {k: env[v] for k, v in pg_keys.items() if env.get(v)}
    if from_env.get("host") and from_env.get("dbname"):
        return " ".join(f"{k}={v}" for k, v in from_env.items())

    if db.dsn:
        return db.dsn
    parts = {
        "host": db.host,
        "port": db.port,
        "user": db.user,
        "password": db.password,
        "dbname": db.database,
    }
    if not (db.host and db.database):
        return None
    return " ".join(f"{k}={v}" for k, v in parts.items() if v not in (None, ""))
