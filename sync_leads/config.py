import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

# Engine construction raises ConfigurationError when this is missing
DATABASE_URL = os.getenv("DATABASE_URL")

SCHEMA = os.getenv("DB_SCHEMA") or None

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
]

# Master loop
MASTER_LOOP_INTERVAL_SECONDS = float(os.getenv("MASTER_LOOP_INTERVAL_SECONDS", "10"))
MASTER_LOOP_ENABLED = os.getenv("MASTER_LOOP_ENABLED", "false").lower() == "true"
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "10"))

# Classifier
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1/")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# Google Sheets sink
GOOGLE_SHEET_ID = os.getenv("GOOGLE_SHEET_ID")
GOOGLE_CLIENT_EMAIL = os.getenv("GOOGLE_CLIENT_EMAIL")
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY")
GOOGLE_SERVICE_ACCOUNT_JSON_PATH = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON_PATH")
CLIENT_SHEET_NAME = os.getenv("CLIENT_SHEET_NAME", "Client")
SHEET_BATCH_SIZE = int(os.getenv("SHEET_BATCH_SIZE", "10"))
SHEET_BATCH_TIMEOUT_SECONDS = float(os.getenv("SHEET_BATCH_TIMEOUT_SECONDS", "2.0"))
SHEET_CACHE_TTL_SECONDS = int(os.getenv("SHEET_CACHE_TTL_SECONDS", "300"))
SHEET_MAX_RETRIES = int(os.getenv("SHEET_MAX_RETRIES", "3"))

CREDENTIALS_CACHE_TTL_SECONDS = int(os.getenv("CREDENTIALS_CACHE_TTL_SECONDS", "300"))
