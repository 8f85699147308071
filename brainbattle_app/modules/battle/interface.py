"""Public API of the battle module for hosts and other modules."""
from typing import Any, Dict, Iterable, Optional

from .engine.controller import SessionController
from .engine.question_timer import BaseTicker
from .engine.result_submitter import LocalScoringClient, ResultSubmitter
from .schemas import EngineSettings


def issue_battle_session(user_id: int, questions: Iterable[Any], topic: str = None,
                         difficulty: str = 'medium') -> str:
    """Store a generated question set; returns the new session id."""
    from .services.session_issue_service import BattleSessionService
    return BattleSessionService.issue_session(user_id, questions, topic, difficulty).session_id


def submit_battle_result(user_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    from .services.scoring_service import BattleScoringService
    return BattleScoringService.record_result(user_id, payload)


def get_player_battle_stats(user_id: int) -> Dict[str, Any]:
    from .services.scoring_service import BattleScoringService
    return BattleScoringService.get_player_stats(user_id)


def get_engine_settings() -> EngineSettings:
    from .services.battle_config_service import BattleConfigService
    return BattleConfigService.engine_settings()


def start_local_battle(app, user_id: int, session_id: str, ticker: Optional[BaseTicker] = None) -> SessionController:
    """
    Build a SessionController for a stored session, wired to the in-process
    scoring backend, and load its questions.

    Raises:
        NotFoundError / AuthorizationError: unknown or foreign session.
        ValidationError / SessionIdentityMismatch: from SessionController.load().
    """
    from .services.battle_config_service import BattleConfigService
    from .services.scoring_service import BattleScoringService
    from .services.session_issue_service import BattleSessionService

    with app.app_context():
        battle = BattleSessionService.get_owned_session(user_id, session_id)
        settings = BattleConfigService.engine_settings()
        stats = BattleScoringService.get_player_stats(user_id)
        stored_id, topic, difficulty, questions = battle.session_id, battle.topic, battle.difficulty, battle.questions
        retries = int(BattleConfigService.get_config('SUBMIT_RETRIES'))

    controller = SessionController(
        session_id=session_id,
        topic=topic,
        difficulty=difficulty,
        settings=settings,
        ticker=ticker,
        submitter=ResultSubmitter(LocalScoringClient(app, user_id), retries=retries),
        player_xp=stats['xp'],
        win_streak=stats['win_streak'],
    )
    controller.load(questions, stored_session_id=stored_id)
    return controller
