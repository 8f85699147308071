"""Tests for the stale session sweep and battle configuration."""

from datetime import datetime, timedelta, timezone

from brainbattle_app.models import BattleSession, db
from brainbattle_app.modules.battle.services.battle_config_service import BattleConfigService
from brainbattle_app.modules.battle.services.maintenance_service import sweep_stale_sessions
from brainbattle_app.modules.battle.services.session_issue_service import BattleSessionService


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def issued_at(user_id, questions, hours_ago):
    battle = BattleSessionService.issue_session(user_id, questions, topic='Physics')
    battle.created_at = (NOW - timedelta(hours=hours_ago)).replace(tzinfo=None)
    db.session.commit()
    return battle.session_id


class TestStaleSessionSweep:

    def test_only_old_issued_sessions_are_abandoned(self, app, make_user, sample_questions):
        user_id = make_user()
        old_id = issued_at(user_id, sample_questions, hours_ago=30)
        fresh_id = issued_at(user_id, sample_questions, hours_ago=2)
        submitted_id = issued_at(user_id, sample_questions, hours_ago=48)
        db.session.get(BattleSession, submitted_id).status = BattleSession.STATUS_SUBMITTED
        db.session.commit()

        assert sweep_stale_sessions(app, now=NOW) == 1

        db.session.expire_all()
        assert db.session.get(BattleSession, old_id).status == BattleSession.STATUS_ABANDONED
        assert db.session.get(BattleSession, fresh_id).status == BattleSession.STATUS_ISSUED
        assert db.session.get(BattleSession, submitted_id).status == BattleSession.STATUS_SUBMITTED

    def test_nothing_to_sweep(self, app):
        assert sweep_stale_sessions(app, now=NOW) == 0

    def test_abandoned_session_rejects_results(self, app, client, make_user, sample_questions):
        from conftest import CORRECT_ANSWERS, login_client

        user_id = make_user()
        session_id = issued_at(user_id, sample_questions, hours_ago=30)
        sweep_stale_sessions(app, now=NOW)

        login_client(client, user_id)
        response = client.post('/api/battle/results', json={'sessionId': session_id, 'answers': CORRECT_ANSWERS})
        assert response.status_code == 400


class TestBattleConfig:

    def test_defaults(self, app):
        settings = BattleConfigService.engine_settings()
        assert settings.mcq_time_limit == 30
        assert settings.open_ended_time_limit == 60
        assert settings.cheat_threshold_ms == 2500
        assert settings.xp_constants['xp_per_correct'] == 10

    def test_app_config_overrides(self, app):
        app.config['FUZZY_MATCH_THRESHOLD'] = 0.5
        app.config['XP_PER_CORRECT'] = 25
        settings = BattleConfigService.engine_settings()
        assert settings.fuzzy_threshold == 0.5
        assert settings.evaluator_options()['fuzzy_threshold'] == 0.5
        assert settings.xp_constants['xp_per_correct'] == 25
