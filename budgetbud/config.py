"""Application configuration."""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_USER = os.getenv("DB_USER", "budgetbud")
DB_PASSWORD = os.getenv("DB_PASSWORD", "budgetbud")
DB_NAME = os.getenv("DB_NAME", "budgetbud")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}?charset=utf8mb4",
)

MCP_HOST = os.getenv("MCP_HOST", "0.0.0.0")
MCP_PORT = int(os.getenv("MCP_PORT", "8000"))

USER_ID_HEADER = os.getenv("BUDGETBUD_USER_ID_HEADER", "x-budgetbud-user-id")

PAYCHECK_AMOUNT_CEILING = Decimal(os.getenv("PAYCHECK_AMOUNT_CEILING", "100000"))
TRANSACTION_AMOUNT_CEILING = Decimal(os.getenv("TRANSACTION_AMOUNT_CEILING", "10000"))
RECENT_PAYCHECK_LIMIT = int(os.getenv("RECENT_PAYCHECK_LIMIT", "10"))

MAX_TOTAL_PERCENTAGE = Decimal("100")
PIN_LENGTH = 6

EXPORT_VERSION = "1.0"

DEFAULT_CATEGORY_COLOR = "#3B82F6"
ARCHIVED_CATEGORY_COLOR = "#6B7280"
UNKNOWN_CATEGORY_NAME = "Unknown"

PROFILE_THEMES = ("auto", "light", "dark", "system")
DEFAULT_THEME = "auto"
RESET_THEME = "system"

CATEGORY_COLOR_PALETTE = [
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
    "#6366F1",
    "#84CC16",
]
