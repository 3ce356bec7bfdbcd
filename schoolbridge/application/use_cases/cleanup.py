import structlog
from sqlalchemy.exc import SQLAlchemyError

from ...infrastructure.db import SessionLocal
from ...infrastructure.metrics import cleanup_deleted_total, cleanup_runs_total
from ...infrastructure.models import utcnow
from ...infrastructure.repositories import InvitationRepository, SessionRepository

logger = structlog.get_logger()


class CleanupExpired:
    """Delete invitations that expired without being accepted, and dead sessions."""

    def __init__(self, db):
        self.db = db

    def execute(self) -> dict[str, int]:
        now = utcnow()
        invitations = InvitationRepository(self.db).delete_stale(now)
        sessions = SessionRepository(self.db).purge_expired(now)
        self.db.commit()
        cleanup_deleted_total.labels(kind="invitations").inc(invitations)
        cleanup_deleted_total.labels(kind="sessions").inc(sessions)
        return {"invitations": invitations, "sessions": sessions}


def run_cleanup(session_factory=SessionLocal) -> dict[str, int] | None:
    """Scheduler entry point: owns its DB session and never raises."""
    db = session_factory()
    try:
        removed = CleanupExpired(db).execute()
    except SQLAlchemyError as e:
        db.rollback()
        cleanup_runs_total.labels(outcome="error").inc()
        logger.error("cleanup_failed", error=str(e))
        return None
    finally:
        db.close()
    cleanup_runs_total.labels(outcome="success").inc()
    logger.info("cleanup_finished", **removed)
    return removed
