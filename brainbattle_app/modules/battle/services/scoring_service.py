"""
Battle Scoring Service
Authoritative grading, XP award and player statistics for finished battles.
"""
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from brainbattle_app.core.error_handlers import ValidationError
from brainbattle_app.core.signals import battle_result_recorded
from brainbattle_app.models import BattleSession, CheatEventLog, GameResult, PlayerStats, db
from brainbattle_app.modules.shared.utils import safe_commit
from ..logics.answer_evaluator import evaluate_answer
from ..logics.question_parser import parse_questions, time_budget
from ..logics.xp_engine import build_xp_result, calculate_level, check_level_up, xp_to_next_level
from ..schemas import CheatEventType, GameOutcome
from .battle_config_service import BattleConfigService
from .session_issue_service import BattleSessionService


class BattleScoringService:
    """Server side of result submission: regrade, award XP once, keep stats."""

    @staticmethod
    def _result_response(result: GameResult, duplicate: bool) -> Dict[str, Any]:
        return {
            'success': True,
            'sessionId': result.session_id,
            'gameResultId': result.result_id,
            'xpEarned': result.xp_earned,
            'oldXP': result.old_xp,
            'newXP': result.new_xp,
            'xpBreakdown': list(result.breakdown or []),
            'leveledUp': check_level_up(result.old_xp, result.new_xp, BattleConfigService.get_config('XP_PER_LEVEL')),
            'correctAnswers': result.correct_answers,
            'score': result.final_score,
            'totalQuestions': result.questions_answered,
            'duplicate': duplicate,
        }

    @staticmethod
    def _get_or_create_stats(user_id: int) -> PlayerStats:
        stats = db.session.get(PlayerStats, user_id)
        if stats is None:
            stats = PlayerStats(
                user_id=user_id, xp=0, level=1, total_games=0, total_wins=0, win_streak=0,
                best_streak=0, total_questions_answered=0, correct_answers=0, accuracy=0.0,
            )
            db.session.add(stats)
        return stats

    @staticmethod
    def _favorite_subject(user_id: int, latest_topic: str) -> Optional[str]:
        topics = [row.topic for row in GameResult.query.filter_by(user_id=user_id).with_entities(GameResult.topic)]
        topics.append(latest_topic)
        counts = Counter(topic for topic in topics if topic)
        return counts.most_common(1)[0][0] if counts else None

    @staticmethod
    def record_result(user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Accept a finished battle exactly once.

        The client's answers are regraded against the stored questions and its
        duration is clamped to the session's time budget; the client score and
        XP are never trusted. A second submission for the same session returns
        the stored result with ``duplicate: True`` and changes nothing.

        Raises:
            ValidationError: missing session id or malformed answers.
            NotFoundError / AuthorizationError: unknown or foreign session.
        """
        data = data or {}
        session_id = str(data.get('sessionId') or data.get('session_id') or '').strip()
        if not session_id:
            raise ValidationError('sessionId is required', errors={'sessionId': ['missing']})

        battle = BattleSessionService.get_owned_session(user_id, session_id)

        existing = GameResult.query.filter_by(session_id=session_id).first()
        if existing is not None:
            current_app.logger.info(f"Duplicate result submission for session {session_id}")
            return BattleScoringService._result_response(existing, duplicate=True)

        if battle.status == BattleSession.STATUS_ABANDONED:
            raise ValidationError('Battle session has expired', errors={'sessionId': ['abandoned']})

        answers = data.get('answers')
        if not isinstance(answers, list):
            raise ValidationError('answers must be a list', errors={'answers': ['expected a list']})

        questions = parse_questions(battle.questions)
        total = len(questions)
        # Missing trailing answers count as unanswered, extra ones are ignored
        answers = (answers + [None] * total)[:total]

        settings = BattleConfigService.engine_settings()
        options = settings.evaluator_options()
        correct = sum(1 for question, answer in zip(questions, answers) if evaluate_answer(question, answer, **options))

        budget = sum(time_budget(q, settings.mcq_time_limit, settings.open_ended_time_limit) for q in questions)
        try:
            duration = float(data.get('duration') or 0)
        except (TypeError, ValueError):
            duration = 0.0
        duration = min(max(0.0, duration), float(budget))

        client_score = data.get('score')
        if client_score is not None and client_score != correct:
            current_app.logger.warning(
                f"Session {session_id}: client reported score {client_score}, regraded {correct}"
            )

        def stage() -> GameResult:
            stats = BattleScoringService._get_or_create_stats(user_id)
            old_xp = stats.xp or 0
            outcome = GameOutcome(
                correct_answers=correct,
                total_questions=total,
                average_time_per_question=duration / total if total else 0.0,
                difficulty=battle.difficulty,
                win_streak=stats.win_streak or 0,
                is_perfect_score=total > 0 and correct == total,
            )
            xp = build_xp_result(outcome, old_xp, **settings.xp_constants)

            result = GameResult(
                session_id=session_id,
                user_id=user_id,
                topic=battle.topic,
                final_score=correct,
                questions_answered=total,
                correct_answers=correct,
                total_time=duration,
                answers=answers,
                xp_earned=xp.xp_earned,
                old_xp=xp.old_xp,
                new_xp=xp.new_xp,
                breakdown=list(xp.breakdown),
            )
            stats.favorite_subject = BattleScoringService._favorite_subject(user_id, battle.topic)
            db.session.add(result)

            # Single-player battles never touch games / wins / streak counters
            stats.xp = xp.new_xp
            stats.level = calculate_level(xp.new_xp, BattleConfigService.get_config('XP_PER_LEVEL'))
            stats.total_questions_answered = (stats.total_questions_answered or 0) + total
            stats.correct_answers = (stats.correct_answers or 0) + correct
            if stats.total_questions_answered:
                stats.accuracy = stats.correct_answers / stats.total_questions_answered * 100

            battle.status = BattleSession.STATUS_SUBMITTED
            battle.ended_at = datetime.now(timezone.utc)
            return result

        try:
            result = stage()
            safe_commit(db.session, stage=stage)
        except IntegrityError:
            # Lost a race with a concurrent submission of the same session
            db.session.rollback()
            existing = GameResult.query.filter_by(session_id=session_id).first()
            if existing is None:
                raise
            return BattleScoringService._result_response(existing, duplicate=True)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to record result for session {session_id}: {e}", exc_info=True)
            raise

        # Re-read in case a retry staged a new object
        result = GameResult.query.filter_by(session_id=session_id).first() or result
        current_app.logger.info(
            f"Recorded session {session_id} for user {user_id}: {correct}/{total}, +{result.xp_earned} XP"
        )
        battle_result_recorded.send(
            None,
            user_id=user_id,
            session_id=session_id,
            xp_earned=result.xp_earned,
            old_xp=result.old_xp,
            new_xp=result.new_xp,
        )
        return BattleScoringService._result_response(result, duplicate=False)

    @staticmethod
    def recent_results(user_id: int, limit: int = None) -> List[Dict[str, Any]]:
        limit = limit or current_app.config.get('RECENT_BATTLES_LIMIT', 10)
        results = GameResult.query.filter_by(user_id=user_id)\
            .order_by(GameResult.completed_at.desc(), GameResult.result_id.desc())\
            .limit(limit).all()
        return [result.to_dict() for result in results]

    @staticmethod
    def get_player_stats(user_id: int) -> Dict[str, Any]:
        stats = db.session.get(PlayerStats, user_id)
        xp_per_level = BattleConfigService.get_config('XP_PER_LEVEL')
        xp = stats.xp if stats else 0
        data = stats.to_dict() if stats else {
            'xp': 0,
            'total_games': 0,
            'total_wins': 0,
            'win_streak': 0,
            'best_streak': 0,
            'total_questions_answered': 0,
            'correct_answers': 0,
            'accuracy': 0.0,
        }
        data['level'] = calculate_level(xp, xp_per_level)
        data['xp_to_next_level'] = xp_to_next_level(xp, xp_per_level)
        data['favorite_subject'] = stats.favorite_subject if stats else None
        return data

    @staticmethod
    def record_cheat_event(user_id: int, data: Dict[str, Any]) -> CheatEventLog:
        """
        Persist a focus-loss violation reported by the client.

        Raises:
            ValidationError: unknown violation type or negative duration.
            NotFoundError / AuthorizationError: unknown or foreign session.
        """
        data = data or {}
        errors = {}
        session_id = str(data.get('session_id') or data.get('sessionId') or '').strip()
        if not session_id:
            errors['session_id'] = ['missing']

        violation_type = str(data.get('violation_type') or '').strip()
        valid_types = {item.value for item in CheatEventType}
        if violation_type not in valid_types:
            errors['violation_type'] = [f'must be one of {sorted(valid_types)}']

        duration_ms = data.get('duration_ms')
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)) or duration_ms < 0:
            errors['duration_ms'] = ['must be a non-negative number']

        if errors:
            raise ValidationError('Invalid cheat event', errors=errors)

        BattleSessionService.get_owned_session(user_id, session_id)

        log = CheatEventLog(
            session_id=session_id,
            user_id=user_id,
            violation_type=violation_type,
            duration_ms=int(duration_ms),
        )
        try:
            db.session.add(log)
            safe_commit(db.session, stage=lambda: db.session.add(log))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to store cheat event for session {session_id}: {e}", exc_info=True)
            raise

        current_app.logger.warning(
            f"Cheat event for session {session_id}: {violation_type} ({int(duration_ms)}ms)"
        )
        return log
