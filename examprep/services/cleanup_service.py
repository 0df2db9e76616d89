"""Periodic maintenance: the server-side expiry sweep."""
import logging
import threading
import time

from examprep.config import EXPIRY_SWEEP_INTERVAL_SECONDS
from examprep.database import SessionLocal
from examprep.services.attempt_service import AttemptOrchestrator
from examprep.services.notification_service import DatabaseNotifier

logger = logging.getLogger(__name__)


def run_maintenance() -> int:
    """One sweep pass in a fresh session; returns attempts auto-submitted."""
    db = SessionLocal()
    try:
        return AttemptOrchestrator(db, notifier=DatabaseNotifier(db)).sweep_expired()
    finally:
        db.close()


def schedule_expiry_sweep(interval: int = EXPIRY_SWEEP_INTERVAL_SECONDS) -> threading.Thread | None:
    """Start the background thread that submits timed-out attempts."""
    if interval <= 0:
        logger.info("Expiry sweep disabled")
        return None

    def _worker() -> None:
        while True:
            time.sleep(interval)
            try:
                run_maintenance()
            except Exception:
                logger.exception("Attempt expiry sweep failed")

    thread = threading.Thread(
        target=_worker,
        name="attempts_expiry_sweep",
        daemon=True,
    )
    thread.start()
    return thread
