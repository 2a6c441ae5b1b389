from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..core.dealers import DEFAULT_MASTER_CODE, DealerConfigError, pad_dealer_code

"""Dealer config store (YAML document).

Layout::

    master_code: "000000"
    aliases:
      "012345": "054321"

The document is created with defaults on first access. Reads return raw strings;
padding and alias resolution happen in DealerConfig / DealerResolver.
"""

__all__ = [
    "DealerConfigStore",
]


class DealerConfigStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _ensure(self) -> dict[str, Any]:
        if not self.path.exists():
            data: dict[str, Any] = {"master_code": DEFAULT_MASTER_CODE, "aliases": {}}
            self._write(data)
            return data
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise DealerConfigError(f"cannot read dealer config {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise DealerConfigError(f"dealer config root must be a mapping: {self.path}")
        # aliases の形が壊れていたら空に戻す
        if not isinstance(data.get("aliases"), dict):
            data["aliases"] = {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(yaml.safe_dump(data, sort_keys=True, allow_unicode=True), encoding="utf-8")
        except OSError as e:
            raise DealerConfigError(f"cannot write dealer config {self.path}: {e}") from e

    def get_master_dealer_code(self) -> str:
        code = self._ensure().get("master_code")
        return str(code) if code not in (None, "") else DEFAULT_MASTER_CODE

    def set_master_dealer_code(self, code: str) -> None:
        data = self._ensure()
        data["master_code"] = pad_dealer_code(code) or DEFAULT_MASTER_CODE
        self._write(data)

    def get_dealer_aliases(self) -> dict[str, str]:
        items = self._ensure()["aliases"]
        return {str(k): str(v) for k, v in items.items() if k is not None and v is not None}

    def update_dealer_aliases(self, aliases: dict[str, str]) -> None:
        """Replace the whole alias table; keys and values are padded to 6 digits."""
        clean: dict[str, str] = {}
        for alias, target in (aliases or {}).items():
            a, t = pad_dealer_code(alias), pad_dealer_code(target)
            if a and t:
                clean[a] = t
        data = self._ensure()
        data["aliases"] = clean
        self._write(data)
