# File: brainbattle_app/modules/battle/engine/anti_cheat.py
# Focus-loss detection. The monitor only observes: it listens to the host's
# focus_changed signal and publishes cheat_detected, nothing else.

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from brainbattle_app.core.signals import cheat_detected, focus_changed
from ..config import BattleDefaultConfig
from ..schemas import CheatEvent, CheatEventType

logger = logging.getLogger(__name__)

AWAY_KINDS = {
    'blur': CheatEventType.WINDOW_BLUR,
    'hidden': CheatEventType.VISIBILITY_CHANGE,
}
BACK_KINDS = {'focus', 'visible'}


def _now_ms() -> int:
    return int(time.time() * 1000)


class AntiCheatMonitor:
    """
    Measures how long the player is away from the battle.

    A blur/hidden transition starts an away period, the first focus/visible
    transition ends it. Periods of at least ``threshold_ms`` produce exactly one
    CheatEvent. Nothing is emitted while detached.
    """

    def __init__(self, session_id: str,
                 threshold_ms: int = BattleDefaultConfig.CHEAT_THRESHOLD_MS,
                 clock: Callable[[], int] = _now_ms):
        self.session_id = session_id
        self.threshold_ms = threshold_ms
        self.clock = clock
        self.attached = False
        self.events: List[CheatEvent] = []
        self._away_since: Optional[int] = None
        self._away_type: Optional[CheatEventType] = None

    def attach(self) -> None:
        if self.attached:
            return
        focus_changed.connect(self._on_focus_changed, weak=False)
        self.attached = True

    def detach(self) -> None:
        if not self.attached:
            return
        focus_changed.disconnect(self._on_focus_changed)
        self.attached = False
        self._away_since = None
        self._away_type = None

    def _on_focus_changed(self, sender, **kwargs):
        if sender != self.session_id:
            return
        self.handle_transition(kwargs.get('kind'), kwargs.get('timestamp_ms'))

    def handle_transition(self, kind: str, timestamp_ms: Optional[int] = None) -> Optional[CheatEvent]:
        """Apply one focus/visibility transition; returns the emitted event, if any."""
        if not self.attached:
            return None
        now = int(timestamp_ms) if timestamp_ms is not None else self.clock()

        if kind in AWAY_KINDS:
            if self._away_since is None:
                self._away_since = now
                self._away_type = AWAY_KINDS[kind]
            return None

        if kind not in BACK_KINDS or self._away_since is None:
            return None

        duration = max(0, now - self._away_since)
        event_type = self._away_type
        self._away_since = None
        self._away_type = None
        if duration < self.threshold_ms:
            return None

        event = CheatEvent(type=event_type, duration_ms=duration, timestamp_ms=now)
        self.events.append(event)
        logger.warning('Session %s: player away for %sms (%s)', self.session_id, duration, event_type.value)
        cheat_detected.send(self.session_id, event=event)
        return event


@dataclass(frozen=True)
class CheatAlert:
    event: CheatEvent
    shown_at_ms: int
    expires_at_ms: int


class CheatAlertBoard:
    """Alerts shown to the player; each one hides itself ``display_ms`` after it was shown."""

    def __init__(self, display_ms: int = BattleDefaultConfig.CHEAT_ALERT_DISPLAY_MS):
        self.display_ms = display_ms
        self._alerts: List[CheatAlert] = []

    def push(self, event: CheatEvent, shown_at_ms: int) -> CheatAlert:
        alert = CheatAlert(event=event, shown_at_ms=shown_at_ms, expires_at_ms=shown_at_ms + self.display_ms)
        self._alerts.append(alert)
        return alert

    def visible(self, now_ms: int) -> List[CheatAlert]:
        self._alerts = [alert for alert in self._alerts if alert.expires_at_ms > now_ms]
        return list(self._alerts)

    def clear(self) -> None:
        self._alerts = []
