# freezer_server/app/handlers.py
"""Command operations behind the GET dispatcher.

Every handler takes the store and the flat query mapping and returns the
response object ``{"success": ..., "message": ..., "data": ...}``. Store
and validation errors propagate to the dispatcher, which turns them into
failure responses.
"""
import logging

from pydantic import ValidationError

from .config import settings
from .db import SheetStore, SheetNotFoundError, require_columns
from .models import (
    FREEZER_ALIASES, FREEZER_STATE_COLUMNS, FREEZERS_SHEET, HISTORY_SHEET,
    LOGIN_SHEET, USERS_SHEET, ChartQuery, FreezeLogIn, FreezerRecord, LoginIn,
)
from .utils import apply_freeze_event, compute_chart_data, now_iso

logger = logging.getLogger("uvicorn.error")


def _read_sheet(store: SheetStore, table: str) -> dict:
    try:
        rows = store.list_rows(table)
    except SheetNotFoundError as e:
        return {"success": False, "message": str(e)}
    return {"success": True, "data": rows}


def get_users(store: SheetStore, params: dict) -> dict:
    return _read_sheet(store, USERS_SHEET)


def get_freezers(store: SheetStore, params: dict) -> dict:
    result = _read_sheet(store, FREEZERS_SHEET)
    if result["success"]:
        data = []
        for row in result["data"]:
            item = dict(row)
            for header, key in FREEZER_ALIASES.items():
                if header in row:
                    item[key] = row[header]
            data.append(item)
        result["data"] = data
    return result


def get_freeze_history(store: SheetStore, params: dict) -> dict:
    return _read_sheet(store, HISTORY_SHEET)


def log_login(store: SheetStore, params: dict) -> dict:
    login = LoginIn.model_validate(params)
    store.append_row(LOGIN_SHEET, {
        "Timestamp": login.timestamp or now_iso(settings.TIMEZONE),
        "Email": login.email,
        "StaffCode": login.staff_code,
    })
    logger.info("login recorded for %s", login.email)
    return {"success": True}


def record_freeze_log(store: SheetStore, params: dict) -> dict:
    log = FreezeLogIn.model_validate(params)

    require_columns(FREEZERS_SHEET, store.get_headers(FREEZERS_SHEET), ["ID"] + FREEZER_STATE_COLUMNS)
    rows = store.list_rows(FREEZERS_SHEET)
    row_key = None
    freezer = None
    for i, row in enumerate(rows):
        if row.get("ID") is not None and str(row.get("ID")) == log.freezer_id:
            row_key = i
            freezer = FreezerRecord.model_validate(row)
            break
    if freezer is None:
        logger.warning("recordFreezeLog: freezer %s not found", log.freezer_id)
        return {"success": False, "message": f"Freezer with ID '{log.freezer_id}' not found."}

    store.append_row(HISTORY_SHEET, log.history_row())

    updates = apply_freeze_event(freezer, log, settings.TIMEZONE)
    store.update_cells(FREEZERS_SHEET, row_key, updates)
    logger.info("freezer %s: %s by %s -> %s", log.freezer_id, log.event, log.employee,
                updates.get("Status", freezer.status))
    return {"success": True, "message": "Log recorded successfully."}


def get_chart_data(store: SheetStore, params: dict) -> dict:
    try:
        query = ChartQuery.model_validate({"month": params.get("month"), "year": params.get("year")})
    except ValidationError:
        return {"success": False, "message": "Invalid month or year."}
    history = store.list_rows(HISTORY_SHEET)
    freezers = store.list_rows(FREEZERS_SHEET)
    data = compute_chart_data(history, freezers, query.month, query.year, settings.TIMEZONE)
    return {"success": True, "data": data}


COMMANDS = {
    "getUsers": get_users,
    "getFreezers": get_freezers,
    "getFreezeHistory": get_freeze_history,
    "logLogin": log_login,
    "recordFreezeLog": record_freeze_log,
    "getChartData": get_chart_data,
}
