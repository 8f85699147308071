# modules/battle/services/maintenance_service.py
from datetime import datetime, timedelta, timezone

from brainbattle_app.models import BattleSession, db
from brainbattle_app.modules.shared.utils import safe_commit


def sweep_stale_sessions(app, now: datetime = None) -> int:
    """
    Mark issued sessions that were never submitted as abandoned.

    Runs as a Flask-APScheduler interval job, hence the explicit app context.
    Returns the number of sessions closed.
    """
    with app.app_context():
        hours = int(app.config.get('STALE_SESSION_HOURS', 24))
        now = now or datetime.now(timezone.utc)
        # SQLite returns naive UTC timestamps for server_default=func.now()
        cutoff = (now - timedelta(hours=hours)).replace(tzinfo=None)

        stale = BattleSession.query.filter(
            BattleSession.status == BattleSession.STATUS_ISSUED,
            BattleSession.created_at < cutoff,
        ).all()
        if not stale:
            app.logger.debug("Stale session sweep: nothing to close.")
            return 0

        def stage():
            for battle in stale:
                battle.status = BattleSession.STATUS_ABANDONED
                battle.ended_at = now

        try:
            stage()
            safe_commit(db.session, stage=stage)
        except Exception as e:
            db.session.rollback()
            app.logger.error(f"Stale session sweep failed: {e}", exc_info=True)
            return 0

        app.logger.info(f"Stale session sweep: abandoned {len(stale)} session(s) older than {hours}h.")
        return len(stale)
