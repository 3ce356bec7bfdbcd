from datetime import timedelta
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from schoolbridge.application.use_cases.cleanup import CleanupExpired, run_cleanup
from schoolbridge.infrastructure.db import SessionLocal
from schoolbridge.infrastructure.models import InvitationORM, SessionORM, utcnow
from schoolbridge.infrastructure.scheduler import scheduler, shutdown_scheduler, start_scheduler
from schoolbridge.infrastructure.security import new_invitation_token


def add_invitation(db, email, status, expires_in):
    db.add(InvitationORM(
        email=email,
        role="Student",
        token=new_invitation_token(),
        status=status,
        expires_at=utcnow() + expires_in,
    ))


def test_cleanup_removes_only_expired_unaccepted(db, teacher):
    """Expired pending/failed/revoked rows go; accepted and live rows stay"""
    past, future = timedelta(hours=-1), timedelta(hours=1)
    add_invitation(db, "expired-pending@x.edu", "pending", past)
    add_invitation(db, "expired-failed@x.edu", "failed", past)
    add_invitation(db, "revoked@x.edu", "expired", past)
    add_invitation(db, "accepted-long-ago@x.edu", "accepted", past)
    add_invitation(db, "live@x.edu", "pending", future)
    db.add(SessionORM(id="a" * 32, user_id=teacher.id, token_hash="1" * 64, expires_at=utcnow() - timedelta(days=1)))
    db.add(SessionORM(id="b" * 32, user_id=teacher.id, token_hash="2" * 64, expires_at=utcnow() + timedelta(days=1)))
    db.commit()

    removed = CleanupExpired(db).execute()
    assert removed == {"invitations": 3, "sessions": 1}

    db.expire_all()
    remaining = set(db.execute(select(InvitationORM.email)).scalars())
    assert remaining == {"accepted-long-ago@x.edu", "live@x.edu"}
    assert [s.id for s in db.execute(select(SessionORM)).scalars()] == ["b" * 32]


def test_run_cleanup_swallows_database_errors(tables):
    """A failing run is logged and reported, never raised"""
    with patch.object(CleanupExpired, "execute", side_effect=OperationalError("DELETE", {}, Exception("db down"))):
        assert run_cleanup(SessionLocal) is None


def test_run_cleanup_uses_its_own_session(db):
    add_invitation(db, "old@x.edu", "pending", timedelta(days=-4))
    db.commit()
    assert run_cleanup(SessionLocal) == {"invitations": 1, "sessions": 0}


def test_scheduler_registers_daily_job():
    try:
        start_scheduler(lambda: None)
        job = scheduler.get_job("cleanup_expired_invitations")
        assert job is not None
        assert "hour='3'" in str(job.trigger)
        # registering twice replaces rather than duplicates
        start_scheduler(lambda: None)
        assert len(scheduler.get_jobs()) == 1
    finally:
        shutdown_scheduler()
