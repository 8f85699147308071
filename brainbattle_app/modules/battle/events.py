"""
Event Handlers for the Battle Module.

Listens to the battle signals so hosts and other modules stay decoupled from
the engine. The engine fires some of these outside any app context, so the
handlers log through the module logger rather than current_app.
"""
import logging

from brainbattle_app.core.signals import battle_completed, battle_result_recorded, cheat_detected

logger = logging.getLogger(__name__)


@cheat_detected.connect
def on_cheat_detected(sender, **kwargs):
    """
    Expected kwargs:
        - event: CheatEvent
    """
    event = kwargs.get('event')
    if event is None:
        return
    logger.warning(f"[Battle] Session {sender}: {event.type.value} for {event.duration_ms}ms")


@battle_completed.connect
def on_battle_completed(sender, **kwargs):
    estimate = kwargs.get('estimate')
    outcome = kwargs.get('outcome')
    if estimate is None or outcome is None:
        return
    logger.info(
        f"[Battle] Session {sender} finished {outcome.correct_answers}/{outcome.total_questions}, "
        f"estimated +{estimate.xp_earned} XP"
    )


@battle_result_recorded.connect
def on_battle_result_recorded(sender, **kwargs):
    """
    Expected kwargs:
        - user_id: int
        - session_id: str
        - xp_earned: int
        - old_xp: int
        - new_xp: int
    """
    logger.info(
        f"[Battle] User {kwargs.get('user_id')} earned {kwargs.get('xp_earned')} XP "
        f"({kwargs.get('old_xp')} -> {kwargs.get('new_xp')}) for session {kwargs.get('session_id')}"
    )
