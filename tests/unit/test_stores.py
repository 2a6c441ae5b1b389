from __future__ import annotations

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import psycopg2
import pytest

from ticket_recon.core.dealers import DealerConfig, DealerConfigError
from ticket_recon.stores.dealer_config import DealerConfigStore
from ticket_recon.stores.games import GameStore, GameStoreError
from ticket_recon.stores.uploads import KIND_TABLES, StoreError, UploadHistoryStore, UploadRecord


class TestDealerConfigStore:

    def test_missing_document_is_created_with_defaults(self, tmp_path: Path):
        store = DealerConfigStore(tmp_path / "config" / "dealers.yml")
        assert store.get_master_dealer_code() == "000000"
        assert store.get_dealer_aliases() == {}
        assert store.path.exists()

    def test_set_master_and_aliases_are_padded(self, tmp_path: Path):
        store = DealerConfigStore(tmp_path / "dealers.yml")
        store.set_master_dealer_code("30520")
        store.update_dealer_aliases({"12345": "54321", "": "1", "x": "y"})

        reopened = DealerConfigStore(tmp_path / "dealers.yml")
        assert reopened.get_master_dealer_code() == "030520"
        assert reopened.get_dealer_aliases() == {"012345": "054321"}

    def test_update_replaces_whole_table(self, tmp_path: Path):
        store = DealerConfigStore(tmp_path / "dealers.yml")
        store.update_dealer_aliases({"111111": "222222"})
        store.update_dealer_aliases({"333333": "444444"})
        assert store.get_dealer_aliases() == {"333333": "444444"}

    def test_unquoted_yaml_codes_are_read_as_text(self, tmp_path: Path):
        path = tmp_path / "dealers.yml"
        path.write_text("master_code: 30520\naliases:\n  12345: 54321\n", encoding="utf-8")
        cfg = DealerConfig.load(DealerConfigStore(path))
        assert cfg.master_code == "030520"
        assert dict(cfg.aliases) == {"012345": "054321"}

    def test_broken_document_raises(self, tmp_path: Path):
        path = tmp_path / "dealers.yml"
        path.write_text("master_code: [unclosed\n", encoding="utf-8")
        with pytest.raises(DealerConfigError):
            DealerConfigStore(path).get_master_dealer_code()


class TestGameStore:

    def test_crud(self, tmp_path: Path):
        store = GameStore(tmp_path / "games.yml")
        assert store.fetch_games() == []

        sft = store.create_game("supiri Dhana Sampatha", short_code="SFT", board="NLB")
        ada = store.create_game("Ada Kotipathi", short_code="AKT")
        assert [g.name for g in store.fetch_games()] == ["Ada Kotipathi", "supiri Dhana Sampatha"]

        updated = store.update_game(sft.id, name="Supiri Dhana Sampatha")
        assert updated.name == "Supiri Dhana Sampatha" and updated.short_code == "SFT"
        assert store.find_by_short_code("sft") == updated

        store.delete_game(ada.id)
        assert [g.id for g in store.fetch_games()] == [sft.id]

    def test_errors(self, tmp_path: Path):
        store = GameStore(tmp_path / "games.yml")
        game = store.create_game("Mahajana Sampatha")
        with pytest.raises(GameStoreError):
            store.update_game("missing", name="x")
        with pytest.raises(GameStoreError):
            store.update_game(game.id, colour="red")
        with pytest.raises(GameStoreError):
            store.delete_game("missing")
        assert store.find_by_short_code("ZZZ") is None


class TestUploadHistoryStore:

    def test_ensure_tables(self):
        cursor = MagicMock()
        UploadHistoryStore(cursor).ensure_tables()
        assert cursor.execute.call_count == len(KIND_TABLES)
        assert "CREATE TABLE IF NOT EXISTS erp_uploads" in cursor.execute.call_args_list[0].args[0]

    def test_save_upload_inserts_bytes(self, tmp_path: Path):
        path = tmp_path / "erp_a.xlsx"
        path.write_bytes(b"xlsx-bytes")
        cursor = MagicMock()
        cursor.fetchone.return_value = (7, "erp_a.xlsx", "g1", "SFT", date(2025, 12, 2), 10, None)

        record = UploadHistoryStore(cursor).save_upload("erp", path, "2025-12-02", game_id="g1", game_name="SFT")

        sql, params = cursor.execute.call_args.args
        assert sql.startswith("INSERT INTO erp_uploads") and "RETURNING" in sql
        assert params[:5] == ("erp_a.xlsx", "g1", "SFT", "2025-12-02", 10)
        assert record == UploadRecord(7, "erp", "erp_a.xlsx", "g1", "SFT", "2025-12-02", 10, None)

    def test_list_and_fetch(self):
        cursor = MagicMock()
        cursor.fetchall.return_value = [(1, "r.xlsx", "", "", "2025-12-02", 3, None)]
        cursor.fetchone.return_value = (memoryview(b"abc"),)
        store = UploadHistoryStore(cursor)

        records = store.list_uploads_by_date("returns", "2025-12-02")
        assert [r.file_name for r in records] == ["r.xlsx"]
        assert "FROM return_uploads" in cursor.execute.call_args.args[0]
        assert store.list_uploads_by_date("returns", "") == []
        assert store.fetch_upload_file("returns", 1) == b"abc"

    def test_missing_rows_raise(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = None
        cursor.rowcount = 0
        store = UploadHistoryStore(cursor)
        with pytest.raises(StoreError):
            store.fetch_upload_file("erp", 99)
        with pytest.raises(StoreError):
            store.delete_upload("erp", 99)
        with pytest.raises(StoreError):
            store.list_uploads_by_date("sales", "2025-12-02")

    def test_driver_errors_are_wrapped(self, tmp_path: Path):
        path = tmp_path / "erp_a.xlsx"
        path.write_bytes(b"x")
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.Error("connection lost")
        with pytest.raises(StoreError) as e:
            UploadHistoryStore(cursor).save_upload("erp", path, "2025-12-02")
        assert "erp_a.xlsx" in str(e.value)
