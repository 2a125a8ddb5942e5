import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import structlog

from sync_leads.config import CLIENT_SHEET_NAME
from sync_leads.db.engine import create_db_engine
from sync_leads.logging_config import setup_logging
from sync_leads.services.client_sheet import sync_client_sheet_headers
from sync_leads.services.credentials import CredentialsProvider
from sync_leads.sheets.client import GoogleSheetsSink

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Create the Client sheet if needed and rewrite its header row.
    """
    sink = GoogleSheetsSink(CredentialsProvider(create_db_engine()), sheet_name=CLIENT_SHEET_NAME)
    try:
        sync_client_sheet_headers(sink)
    except Exception:
        logger.exception("sheet_header_sync_failed", sheet_name=CLIENT_SHEET_NAME)
        raise


if __name__ == "__main__":
    main()
