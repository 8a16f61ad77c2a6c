"""
Tests for recordFreezeLog: history append plus the Freezers row update.
"""

from freezer_server.app.db import WorkbookStore
from freezer_server.app.models import (
    FREEZERS_SHEET, HISTORY_COLUMNS, HISTORY_SHEET,
    STATUS_FREEZING, STATUS_LOADED, STATUS_READY,
)
from tests.conftest import call


def freezer(store, fid):
    return next(r for r in store.list_rows(FREEZERS_SHEET) if r["ID"] == fid)


def log(client, event, timestamp, freezer_id="F01", **params):
    return call(client, "recordFreezeLog", freezerId=freezer_id, event=event,
                timestamp=timestamp, employee="EMP01", **params)


class TestRecordFreezeLog:

    def test_start_sets_freezing_state(self, client, store):
        data = log(client, "Start", "2025-03-01T08:00:00", meterStart="1200",
                   estimatedCompletion="2025-03-01T16:00:00")

        assert data["success"] is True
        row = freezer(store, "F01")
        assert row["Status"] == STATUS_FREEZING
        assert row["CurrentMeter"] == "1200"
        assert row["CurrentStartTimestamp"] == "2025-03-01T08:00:00"
        assert row["EstimatedCompletion"] == "2025-03-01T16:00:00"
        assert row["TotalFreezeTime"] == 0
        assert row["RefreezeCount"] == 0
        assert row["LastEmployee"] == "EMP01"
        assert row["LastEventTimestamp"] == "2025-03-01T08:00:00"

    def test_start_then_stop_two_hours(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00", meterStart="1200")
        data = log(client, "Stop", "2025-03-01T10:00:00", meterEnd="1250")

        assert data["success"] is True
        row = freezer(store, "F01")
        assert row["Status"] == STATUS_LOADED
        assert row["TotalFreezeTime"] == 2.0
        assert row["CurrentStartTimestamp"] == ""
        assert row["CurrentMeter"] == "1250"

    def test_stop_rounds_to_two_decimals(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00")
        log(client, "Stop", "2025-03-01T08:20:00")

        assert freezer(store, "F01")["TotalFreezeTime"] == 0.33

    def test_stop_without_start_keeps_total(self, client, store):
        log(client, "Stop", "2025-03-01T10:00:00", meterEnd="1250")

        row = freezer(store, "F01")
        assert row["Status"] == STATUS_LOADED
        assert row["TotalFreezeTime"] == 0

    def test_refreeze_accumulates(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00")
        log(client, "Stop", "2025-03-01T10:00:00")
        log(client, "Refreeze", "2025-03-01T12:00:00", meterStart="1300")

        row = freezer(store, "F01")
        assert row["Status"] == STATUS_FREEZING
        assert row["RefreezeCount"] == 1
        assert row["EstimatedCompletion"] == ""
        assert row["CurrentMeter"] == "1300"
        assert row["CurrentStartTimestamp"] == "2025-03-01T12:00:00"

        log(client, "Stop", "2025-03-01T13:30:00")
        assert freezer(store, "F01")["TotalFreezeTime"] == 3.5

    def test_clear_resets(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00", meterStart="1200", estimatedCompletion="x")
        log(client, "Stop", "2025-03-01T10:00:00")
        log(client, "Clear", "2025-03-01T11:00:00", notes="ขนของออกแล้ว")

        row = freezer(store, "F01")
        assert row["Status"] == STATUS_READY
        assert row["EstimatedCompletion"] == ""
        assert row["CurrentMeter"] == ""
        assert row["CurrentStartTimestamp"] == ""
        assert row["TotalFreezeTime"] == 0
        assert row["RefreezeCount"] == 0
        assert row["Notes"] == "ขนของออกแล้ว"

    def test_unknown_event_only_touches_last_fields(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00", meterStart="1200")
        log(client, "Inspect", "2025-03-01T09:00:00", notes="checked")

        row = freezer(store, "F01")
        assert row["Status"] == STATUS_FREEZING
        assert row["CurrentMeter"] == "1200"
        assert row["CurrentStartTimestamp"] == "2025-03-01T08:00:00"
        assert row["LastEventTimestamp"] == "2025-03-01T09:00:00"
        assert row["Notes"] == "checked"

    def test_notes_cleared_when_absent(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00", notes="first")
        log(client, "Stop", "2025-03-01T09:00:00")

        assert freezer(store, "F01")["Notes"] == ""

    def test_other_freezer_untouched(self, client, store):
        before = freezer(store, "F02")

        log(client, "Start", "2025-03-01T08:00:00")

        assert freezer(store, "F02") == before

    def test_history_row_appended(self, client, store):
        log(client, "Start", "2025-03-01T08:00:00", meterStart="1200",
            estimatedCompletion="2025-03-01T16:00:00")

        rows = store.list_rows(HISTORY_SHEET)
        assert rows == [{
            "Timestamp": "2025-03-01T08:00:00",
            "FreezerID": "F01",
            "Event": "Start",
            "MeterStart": "1200",
            "MeterEnd": "",
            "Employee": "EMP01",
            "EstimatedCompletion": "2025-03-01T16:00:00",
            "Notes": "",
            "TotalFreezeTime": "",
            "RefreezeCount": "",
        }]

    def test_unmapped_history_columns_left_empty(self, client_for, tmp_path):
        store = WorkbookStore(tmp_path / "extra.xlsx")
        store.ensure_tables({
            FREEZERS_SHEET: ["ID", "Name", "Status", "EstimatedCompletion", "CurrentMeter",
                             "LastEmployee", "LastEventTimestamp", "CurrentStartTimestamp",
                             "RefreezeCount", "TotalFreezeTime", "Notes"],
            HISTORY_SHEET: HISTORY_COLUMNS + ["Shift"],
        })
        store.append_row(FREEZERS_SHEET, {"ID": "F09", "Name": "ตู้ 9"})

        data = log(client_for(store), "Start", "2025-03-01T08:00:00", freezer_id="F09")

        assert data["success"] is True
        assert store.list_rows(HISTORY_SHEET)[0]["Shift"] == ""

    def test_unknown_freezer_no_writes(self, client, store):
        before = store.list_rows(FREEZERS_SHEET)

        data = log(client, "Start", "2025-03-01T08:00:00", freezer_id="NOPE")

        assert data == {"success": False, "message": "Freezer with ID 'NOPE' not found."}
        assert store.list_rows(HISTORY_SHEET) == []
        assert store.list_rows(FREEZERS_SHEET) == before

    def test_numeric_id_matches(self, client, store):
        store.append_row(FREEZERS_SHEET, {"ID": 7, "Name": "ตู้ 7"})

        data = log(client, "Start", "2025-03-01T08:00:00", freezer_id="7")

        assert data["success"] is True

    def test_missing_freezer_id(self, client, store):
        data = call(client, "recordFreezeLog", event="Start")

        assert data == {"success": False, "message": "Missing or invalid parameter(s): freezerId"}
        assert store.list_rows(HISTORY_SHEET) == []

    def test_missing_freezer_column_fails_before_write(self, client_for, tmp_path):
        store = WorkbookStore(tmp_path / "narrow.xlsx")
        store.ensure_tables({FREEZERS_SHEET: ["ID", "Name", "Status"], HISTORY_SHEET: HISTORY_COLUMNS})
        store.append_row(FREEZERS_SHEET, {"ID": "F01", "Name": "ตู้ 1"})

        data = log(client_for(store), "Start", "2025-03-01T08:00:00")

        assert data["success"] is False
        assert data["message"].startswith("Sheet 'Freezers' is missing column(s): EstimatedCompletion")
        assert store.list_rows(HISTORY_SHEET) == []

    def test_failed_update_keeps_history_row(self, client, store, monkeypatch):
        def broken(table, row_key, values):
            raise RuntimeError("write quota exceeded")

        monkeypatch.setattr(store, "update_cells", broken)

        data = log(client, "Start", "2025-03-01T08:00:00", meterStart="1200")

        assert data == {"success": False, "message": "write quota exceeded"}
        history = store.list_rows(HISTORY_SHEET)
        assert len(history) == 1
        assert history[0]["FreezerID"] == "F01"
        assert history[0]["Event"] == "Start"
        assert freezer(store, "F01")["Status"] == STATUS_READY
