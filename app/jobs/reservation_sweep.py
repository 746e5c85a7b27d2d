"""
Background sweeps run by the scheduler in app.main:

- expire reservation holds past their TTL and release their slots
- move sessions that started to active and sessions that ended to completed
"""
from app.core.clock import get_clock
from app.core.logging_config import get_logger
from app.db.session import SessionLocal
from app.services.holds import expire_stale_holds
from app.services.reservations import advance_sessions

logger = get_logger()


def run_reservation_sweep_job(session_factory=SessionLocal, clock=None) -> None:
    now = (clock or get_clock()).now()
    db = session_factory()
    try:
        expired = expire_stale_holds(db, now)
        db.commit()

        started, finished = advance_sessions(db, now)

        if expired or started or finished:
            logger.info(
                f"Reservation sweep | expired={len(expired)} | started={started} | completed={finished}"
            )
    except Exception as e:
        db.rollback()
        logger.exception(f"Reservation sweep failed: {e}")
    finally:
        db.close()
