from __future__ import annotations

import pytest

from ticket_recon.core.dealers import (
    DEFAULT_MASTER_CODE,
    DealerConfig,
    DealerConfigError,
    DealerResolver,
    pad_dealer_code,
)


def test_pad_dealer_code():
    assert pad_dealer_code(12345) == "012345"
    assert pad_dealer_code("D-54321") == "054321"
    assert pad_dealer_code("") == ""
    assert pad_dealer_code(None) == ""


def test_config_pads_master_and_aliases():
    cfg = DealerConfig(master_code="99", aliases={"12345": "54321", "bad": "1"})
    assert cfg.master_code == "000099"
    assert dict(cfg.aliases) == {"012345": "054321"}


def test_config_is_immutable():
    cfg = DealerConfig()
    assert cfg.master_code == DEFAULT_MASTER_CODE
    with pytest.raises(TypeError):
        cfg.aliases["000001"] = "000002"  # type: ignore[index]


def test_normalize_resolves_alias_and_is_idempotent():
    r = DealerResolver(DealerConfig(aliases={"12345": "54321"}))
    once = r.normalize_dealer_code(12345)
    assert once == "054321"
    assert r.normalize_dealer_code(once) == once
    assert r.normalize_dealer_code("777777") == "777777"
    assert r.normalize_dealer_code("abc") == ""


def test_normalize_follows_chains_and_stops_on_cycles():
    r = DealerResolver(DealerConfig(aliases={"1": "2", "2": "3", "5": "6", "6": "5"}))
    assert r.normalize_dealer_code("1") == "000003"
    assert r.normalize_dealer_code("5") in ("000005", "000006")


class _FailingSource:
    def get_master_dealer_code(self) -> str:
        raise OSError("store offline")

    def get_dealer_aliases(self) -> dict[str, str]:
        return {}


class _Source:
    def get_master_dealer_code(self) -> str:
        return "123"

    def get_dealer_aliases(self) -> dict[str, str]:
        return {"11111": "22222"}


def test_load_wraps_source_errors():
    with pytest.raises(DealerConfigError, match="store offline"):
        DealerConfig.load(_FailingSource())


def test_load_snapshot():
    cfg = DealerConfig.load(_Source())
    assert cfg.master_code == "000123"
    assert dict(cfg.aliases) == {"011111": "022222"}
