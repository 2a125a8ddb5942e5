import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import structlog

from sync_leads.logging_config import setup_logging
from sync_leads.worker import build_master_loop, shutdown

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Run one master loop tick (drain the queue, then sync the client sheet) and exit.
    """
    loop = build_master_loop()
    logger.info("single_tick_started")
    try:
        loop.tick()
    finally:
        shutdown(loop)
    logger.info("single_tick_finished")


if __name__ == "__main__":
    main()
