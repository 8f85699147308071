"""
Central Signal Registry for Event-Driven Architecture.

Uses blinker (Flask's signal library) to decouple the battle engine from the
host that renders it and from the modules that react to its results.

Usage:
    # Publisher (sender)
    from brainbattle_app.core.signals import focus_changed
    focus_changed.send(session_id, kind='blur', timestamp_ms=...)

    # Subscriber (receiver)
    @cheat_detected.connect
    def on_cheat_detected(sender, **kwargs):
        ...
"""
from blinker import Namespace

# ============================================
# Host environment signals
# ============================================
host_signals = Namespace()

# Signal: Fired by the host UI on every focus / visibility transition
# Sender: session_id
# Payload: kind ('blur', 'focus', 'hidden', 'visible'), timestamp_ms (optional)
focus_changed = host_signals.signal('focus_changed')

# ============================================
# Battle engine signals
# ============================================
battle_signals = Namespace()

# Signal: Fired by AntiCheatMonitor when an away period crosses the threshold
# Sender: session_id
# Payload: event (CheatEvent)
cheat_detected = battle_signals.signal('cheat_detected')

# Signal: Fired when a session reaches Complete
# Sender: session_id
# Payload: outcome (GameOutcome), estimate (XPResult)
battle_completed = battle_signals.signal('battle_completed')

# Signal: Fired when the server-confirmed result supersedes the estimate
# Sender: session_id
# Payload: ack (ServerAck)
battle_result_confirmed = battle_signals.signal('battle_result_confirmed')

# ============================================
# Scoring backend signals
# ============================================
scoring_signals = Namespace()

# Signal: Fired after the authoritative backend stores a new game result
# Sender: None
# Payload: user_id, session_id, xp_earned, old_xp, new_xp
battle_result_recorded = scoring_signals.signal('battle_result_recorded')
