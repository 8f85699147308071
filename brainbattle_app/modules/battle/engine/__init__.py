# Battle Engine
# Stateful orchestration of a single battle session. Nothing here needs a
# Flask app context; the services layer builds EngineSettings for it.
#
# Timer: question_timer.py
# Anti-cheat: anti_cheat.py
# Session state machine: controller.py
# Result delivery: result_submitter.py

from .anti_cheat import AntiCheatMonitor, CheatAlertBoard
from .controller import SessionController
from .question_timer import QuestionTimer, SchedulerTicker
from .result_submitter import HttpScoringClient, LocalScoringClient, ResultSubmitter, ScoringClient

__all__ = [
    'AntiCheatMonitor',
    'CheatAlertBoard',
    'SessionController',
    'QuestionTimer',
    'SchedulerTicker',
    'HttpScoringClient',
    'LocalScoringClient',
    'ResultSubmitter',
    'ScoringClient',
]
