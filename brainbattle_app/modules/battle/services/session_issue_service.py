# modules/battle/services/session_issue_service.py
import uuid
from typing import Any, Iterable, Optional

from flask import current_app

from brainbattle_app.core.error_handlers import AuthorizationError, NotFoundError, ValidationError
from brainbattle_app.models import BattleSession, db
from brainbattle_app.modules.shared.utils import safe_commit
from ..logics.question_parser import parse_questions
from .battle_config_service import BattleConfigService


class BattleSessionService:
    """Issues battle sessions and guards access to them."""

    @staticmethod
    def issue_session(user_id: int, questions: Optional[Iterable[Any]], topic: str = None,
                      difficulty: str = 'medium') -> BattleSession:
        """
        Validate a generated question list and store it under a fresh session id.

        Raises:
            ValidationError: empty/malformed questions or unknown difficulty.
        """
        difficulty = str(difficulty or 'medium').lower()
        if difficulty not in BattleConfigService.get_config('DIFFICULTY_MULTIPLIERS'):
            raise ValidationError(f"Unknown difficulty '{difficulty}'", errors={'difficulty': ['unknown value']})

        parsed = parse_questions(questions)
        battle = BattleSession(
            session_id=uuid.uuid4().hex,
            user_id=user_id,
            topic=(topic or 'General').strip()[:200] or 'General',
            difficulty=difficulty,
            questions=[question.to_dict() for question in parsed],
            status=BattleSession.STATUS_ISSUED,
        )
        try:
            db.session.add(battle)
            safe_commit(db.session, stage=lambda: db.session.add(battle))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to issue battle session for user {user_id}: {e}", exc_info=True)
            raise

        current_app.logger.info(
            f"Issued battle session {battle.session_id} to user {user_id} ({len(parsed)} questions)"
        )
        return battle

    @staticmethod
    def get_owned_session(user_id: int, session_id: str) -> BattleSession:
        """
        Raises:
            NotFoundError: unknown session id.
            AuthorizationError: the session belongs to someone else.
        """
        battle = db.session.get(BattleSession, str(session_id or ''))
        if battle is None:
            raise NotFoundError('Battle session not found', resource='battle_session')
        if battle.user_id != user_id:
            current_app.logger.warning(f"User {user_id} tried to access session {session_id} of another user")
            raise AuthorizationError('This battle session belongs to another player')
        return battle

    @staticmethod
    def to_dict(battle: BattleSession) -> dict:
        return {
            'sessionId': battle.session_id,
            'topic': battle.topic,
            'difficulty': battle.difficulty,
            'status': battle.status,
            'questions': battle.questions,
            'createdAt': battle.created_at.isoformat() if battle.created_at else None,
        }
