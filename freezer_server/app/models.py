# freezer_server/app/models.py
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ชื่อชีตในสเปรดชีต
USERS_SHEET = "Users"
FREEZERS_SHEET = "Freezers"
HISTORY_SHEET = "FreezeHistory"
LOGIN_SHEET = "LoginHistory"

# สถานะตู้
STATUS_READY = "พร้อมใช้งาน"
STATUS_FREEZING = "กำลัง Freeze"
STATUS_LOADED = "มีสินค้าในตู้"

# เหตุการณ์ใน FreezeHistory
EVENT_START = "Start"
EVENT_STOP = "Stop"
EVENT_CLEAR = "Clear"
EVENT_REFREEZE = "Refreeze"

STD_TIME_COLUMN = "STD.time (hours)"

FREEZER_COLUMNS = [
    "ID", "Name", "Details", "Status", "EstimatedCompletion", "CurrentMeter",
    "LastEmployee", "LastEventTimestamp", "CurrentStartTimestamp",
    "RefreezeCount", "TotalFreezeTime", STD_TIME_COLUMN, "Notes",
]

# columns recordFreezeLog may write back to a Freezers row
FREEZER_STATE_COLUMNS = [
    "Status", "EstimatedCompletion", "CurrentMeter", "LastEmployee",
    "LastEventTimestamp", "CurrentStartTimestamp", "RefreezeCount",
    "TotalFreezeTime", "Notes",
]

HISTORY_COLUMNS = [
    "Timestamp", "FreezerID", "Event", "MeterStart", "MeterEnd", "Employee",
    "EstimatedCompletion", "Notes", "TotalFreezeTime", "RefreezeCount",
]

LOGIN_COLUMNS = ["Timestamp", "Email", "StaffCode"]

USER_COLUMNS = ["Email", "StaffCode", "Name", "Role"]

# header rows written when a sheet is created
SHEET_HEADERS = {
    USERS_SHEET: USER_COLUMNS,
    FREEZERS_SHEET: FREEZER_COLUMNS,
    HISTORY_SHEET: HISTORY_COLUMNS,
    LOGIN_SHEET: LOGIN_COLUMNS,
}

# header -> camelCase key added to getFreezers objects
FREEZER_ALIASES = {
    "ID": "id",
    "Name": "name",
    "Details": "details",
    "Status": "status",
    "EstimatedCompletion": "estimatedCompletion",
    "CurrentMeter": "currentMeter",
    "LastEmployee": "lastEmployee",
    "LastEventTimestamp": "lastEventTimestamp",
    "CurrentStartTimestamp": "currentStartTimestamp",
    "RefreezeCount": "refreezeCount",
    "TotalFreezeTime": "totalFreezeTime",
    STD_TIME_COLUMN: "stdTime",
    "Notes": "notes",
}


class FreezerRecord(BaseModel):
    """One Freezers row. Field aliases are the sheet headers."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="ID")
    name: str = Field("", alias="Name")
    details: Any = Field("", alias="Details")
    status: Any = Field("", alias="Status")
    estimated_completion: Any = Field("", alias="EstimatedCompletion")
    current_meter: Any = Field("", alias="CurrentMeter")
    last_employee: Any = Field("", alias="LastEmployee")
    last_event_timestamp: Any = Field("", alias="LastEventTimestamp")
    current_start_timestamp: Any = Field("", alias="CurrentStartTimestamp")
    refreeze_count: Any = Field("", alias="RefreezeCount")
    total_freeze_time: Any = Field("", alias="TotalFreezeTime")
    std_time: Any = Field("", alias=STD_TIME_COLUMN)
    notes: Any = Field("", alias="Notes")

    @field_validator("id", "name", mode="before")
    @classmethod
    def _as_text(cls, v):
        return "" if v is None else str(v)


class FreezeLogIn(BaseModel):
    """Query parameters of recordFreezeLog (all strings)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    freezer_id: str = Field(alias="freezerId", min_length=1)
    event: str = ""
    timestamp: str = ""
    meter_start: str = Field("", alias="meterStart")
    meter_end: str = Field("", alias="meterEnd")
    employee: str = ""
    estimated_completion: str = Field("", alias="estimatedCompletion")
    notes: str = ""
    total_freeze_time: str = Field("", alias="totalFreezeTime")
    refreeze_count: str = Field("", alias="refreezeCount")

    def history_row(self) -> dict:
        return {
            "Timestamp": self.timestamp,
            "FreezerID": self.freezer_id,
            "Event": self.event,
            "MeterStart": self.meter_start,
            "MeterEnd": self.meter_end,
            "Employee": self.employee,
            "EstimatedCompletion": self.estimated_completion,
            "Notes": self.notes,
            "TotalFreezeTime": self.total_freeze_time,
            "RefreezeCount": self.refreeze_count,
        }


class LoginIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str = ""
    staff_code: str = Field("", alias="staffCode")
    timestamp: str = ""


class ChartQuery(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int
