from __future__ import annotations
import pytest
from pathlib import Path
from ticket_recon.config.loader import DatabaseConfig, ConfigError, FileOverride, load_config, resolve_dsn
from ticket_recon.models.ticket_range import AvailabilityBlock


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_directory == "./data"
    assert cfg.mode == "erp"
    assert cfg.business_date == "2025-12-02"
    assert cfg.gap_fill is True
    assert cfg.strict_scope is False
    assert cfg.barcode.erp.fixed_width is False
    assert cfg.barcode.returns.fixed_width is True
    assert cfg.database.port == 5432
    assert cfg.analysis.top_n == 15


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError):
        load_config(missing)


def test_load_config_missing_required(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("source_directory: ./data\n", "")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_unknown_mode(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("mode: erp", "mode: stock")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_load_config_non_mapping_root(temp_workdir: Path):
    path = temp_workdir / "config" / "list.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(path)
    assert "mapping" in str(e.value)


def test_unquoted_business_date_is_coerced_to_text(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace('business_date: "2025-12-02"', "business_date: 2025-12-02")
    write_config.write_text(text, encoding="utf-8")
    assert load_config(write_config).business_date == "2025-12-02"


@pytest.mark.parametrize("bad_date", ["02/12/2025", "2025-13-45"])
def test_load_config_rejects_malformed_business_date(write_config: Path, bad_date: str):
    text = write_config.read_text(encoding="utf-8").replace('"2025-12-02"', f'"{bad_date}"')
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_trim_prefix_must_be_at_most_two_digits(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace(
        "  returns:\n    trim_digits: 0\n", "  returns:\n    trim_digits: 2\n    prefix: '123'\n"
    )
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_file_overrides(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + (
        "files:\n"
        "  erp_a.xlsx:\n"
        "    game: SFT\n"
        "    blocks:\n"
        "      - {from: 1000100, to: '1000199'}\n"
        "    breaks:\n"
        "      from: '1000100'\n"
        "      sizes: [50, 50]\n"
    )
    write_config.write_text(text, encoding="utf-8")
    cfg = load_config(write_config)

    ov = cfg.override_for("erp_a.xlsx")
    assert ov.game == "SFT"
    assert ov.draw is None
    assert ov.blocks == (AvailabilityBlock("1000100", "1000199"),)
    assert ov.breaking_sizes == (50, 50)
    assert ov.has_breaking
    assert cfg.override_for("other.xlsx") == FileOverride()
    assert not FileOverride().has_breaking


def test_resolve_dsn_prefers_environment():
    db = DatabaseConfig(host="cfg-host", database="cfg-db")
    assert resolve_dsn(db, {"DATABASE_URL": "postgresql://u@h/db"}) == "postgresql://u@h/db"
    assert resolve_dsn(db, {"PGHOST": "envhost", "PGDATABASE": "envdb"}) == "host=envhost dbname=envdb"


def test_resolve_dsn_falls_back_to_config():
    assert resolve_dsn(DatabaseConfig(dsn="dbname=x"), {}) == "dbname=x"
    db = DatabaseConfig(host="localhost", port=5432, user="recon", database="recon")
    assert resolve_dsn(db, {"PGHOST": "only-host"}) == "host=localhost port=5432 user=recon dbname=recon"
    assert resolve_dsn(DatabaseConfig(host="localhost"), {}) is None
