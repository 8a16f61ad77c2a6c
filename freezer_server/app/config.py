# freezer_server/app/config.py
from pathlib import Path
from pydantic_settings import BaseSettings

# file is freezer_server/app/config.py -> parents[2] => project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    # Store: "workbook" (local .xlsx via openpyxl) or "gsheet" (Google Sheets via gspread)
    STORE_BACKEND: str = "workbook"
    WORKBOOK_PATH: str = str(PROJECT_ROOT / "freezer.xlsx")

    # Google Sheets
    GOOGLE_SPREADSHEET_KEY: str = ""
    GOOGLE_SERVICE_ACCOUNT_FILE: str = "service_account.json"

    # Timestamps without an offset are read in this zone
    TIMEZONE: str = "Asia/Bangkok"

    # CORS (only matters for non-JSONP clients)
    CORS_ORIGINS: str = "*"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "info"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
