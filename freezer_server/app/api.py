# freezer_server/app/api.py
import csv
import io
import json
import logging
import re
from typing import Optional

import pandas as pd
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .db import SheetNotFoundError, SheetStore, get_store, init_db
from .handlers import COMMANDS
from .models import HISTORY_SHEET
from .utils import parse_timestamp

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Freezer Log API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)

# JSONP callback: dotted JS identifiers only (e.g. cb, jQuery123.handle)
CALLBACK_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


# Startup: make sure every sheet exists
@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/health")
def health():
    return {"status": "healthy"}


def dispatch(store: SheetStore, params: dict) -> dict:
    command = params.get("command")
    handler = COMMANDS.get(command)
    if handler is None:
        logger.warning("invalid command: %r", command)
        return {"success": False, "message": "Invalid command"}
    logger.info("command %s", command)
    try:
        return handler(store, params)
    except ValidationError as e:
        names = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        return {"success": False, "message": f"Missing or invalid parameter(s): {', '.join(names)}"}
    except Exception as e:
        logger.exception("command %s failed", command)
        return {"success": False, "message": str(e)}


def render(result: dict, callback: Optional[str]) -> Response:
    body = json.dumps(jsonable_encoder(result), ensure_ascii=False)
    if not callback:
        return Response(content=body, media_type="application/json")
    return Response(content=f"{callback}({body})", media_type="text/javascript")


# ---------------------------
# Command endpoint (JSONP)
# ---------------------------
@app.get("/api")
def exec_command(request: Request, store: SheetStore = Depends(get_store)):
    params = dict(request.query_params)
    callback = params.get("callback")
    # unsafe callback names get plain JSON instead of a wrapped script
    if callback and not CALLBACK_RE.match(callback):
        return JSONResponse({"success": False, "message": "Invalid callback"})
    return render(dispatch(store, params), callback)


@app.post("/api")
def exec_post():
    return JSONResponse({
        "success": False,
        "message": "POST method is not used. Please use GET with a callback (JSONP).",
    })


# ---------------------------
# Reports: history export
# ---------------------------
@app.get("/api/reports/history/export")
def export_history(fmt: str = Query("csv", pattern="^(csv|xlsx)$"),
                   month: Optional[int] = Query(None, ge=1, le=12),
                   year: Optional[int] = None,
                   store: SheetStore = Depends(get_store)):
    try:
        headers = store.get_headers(HISTORY_SHEET)
        rows = store.list_rows(HISTORY_SHEET)
    except SheetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if month is not None or year is not None:
        picked = []
        for r in rows:
            ts = parse_timestamp(r.get("Timestamp"), settings.TIMEZONE)
            if ts is None:
                continue
            if month is not None and ts.month != month:
                continue
            if year is not None and ts.year != year:
                continue
            picked.append(r)
        rows = picked

    period = f"{year or 'all'}{'' if month is None else f'{month:02d}'}"
    filename = f"freeze_history_{period}.{fmt}"
    rows = jsonable_encoder(rows)

    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=headers or ["Timestamp"], extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
        # BOM so Excel opens Thai text correctly
        return Response(content="\ufeff" + buffer.getvalue(), media_type="text/csv; charset=utf-8",
                        headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    df = pd.DataFrame(rows, columns=headers or None)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=HISTORY_SHEET)
    buffer.seek(0)
    return Response(content=buffer.read(),
                    media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})
