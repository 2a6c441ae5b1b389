from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

"""Dealer identity resolution.

A dealer code is always a 6-digit, zero-padded string. Raw codes arrive as 5 or 6 digit
numbers (Excel drops the leading zero of numeric cells) and may be aliases of another
dealer; the alias table and the master (house) dealer code are read once per run into a
DealerConfig snapshot which is passed explicitly to every parser entry point.
"""

__all__ = [
    "DEALER_CODE_WIDTH",
    "DEFAULT_MASTER_CODE",
    "DealerConfigError",
    "DealerConfigSource",
    "DealerConfig",
    "DealerResolver",
    "pad_dealer_code",
]

DEALER_CODE_WIDTH = 6
DEFAULT_MASTER_CODE = "000000"

_NON_DIGIT = re.compile(r"[^\d]")


class DealerConfigError(Exception):
    """Raised when the master code / alias table cannot be fetched."""


class DealerConfigSource(Protocol):
    def get_master_dealer_code(self) -> str: ...

    def get_dealer_aliases(self) -> dict[str, str]: ...


def pad_dealer_code(raw: Any) -> str:
    """Digits only, left-padded to 6. Returns "" when the input has no digits."""
    digits = _NON_DIGIT.sub("", str(raw if raw is not None else ""))
    if not digits:
        return ""
    return digits.zfill(DEALER_CODE_WIDTH)


@dataclass(frozen=True)
class DealerConfig:
    """Immutable per-run snapshot of the master dealer code and alias table."""
    master_code: str = DEFAULT_MASTER_CODE
    aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        master = pad_dealer_code(self.master_code) or DEFAULT_MASTER_CODE
        clean: dict[str, str] = {}
        for alias, target in dict(self.aliases).items():
            a, t = pad_dealer_code(alias), pad_dealer_code(target)
            if a and t:
                clean[a] = t
        object.__setattr__(self, "master_code", master)
        object.__setattr__(self, "aliases", MappingProxyType(clean))

    @classmethod
    def load(cls, source: DealerConfigSource) -> DealerConfig:
        """Fetch master code and aliases once from ``source``."""
        try:
            master = source.get_master_dealer_code()
            aliases = source.get_dealer_aliases()
        except DealerConfigError:
            raise
        except Exception as e:
            raise DealerConfigError(f"failed to load dealer config: {e}") from e
        return cls(master_code=master, aliases=aliases)


class DealerResolver:
    """Normalizes raw dealer codes against a DealerConfig snapshot."""

    def __init__(self, config: DealerConfig | None = None) -> None:
        self.config = config or DealerConfig()

    @property
    def master_code(self) -> str:
        return self.config.master_code

    def normalize_dealer_code(self, raw: Any) -> str:
        """Pad to 6 digits and resolve the alias target.

        Chained aliases are followed to a fixed point (cycles stop at the first repeat),
        so normalizing an already normalized code returns it unchanged.
        """
        code = pad_dealer_code(raw)
        if not code:
            return ""
        seen: set[str] = set()
        while code in self.config.aliases and code not in seen:
            seen.add(code)
            code = self.config.aliases[code]
        return code
