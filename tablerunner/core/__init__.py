"""Core components: session state, strategy, round orchestration, bot loop"""

from .strategy import Action, StrategyResolver, StrategyTable, resolve
from .models import BotSettings, CaptureEvent
from .session_state import SessionState
from .delay import HumanDelay
from .round import RoundOrchestrator, RoundOutcome, RoundResult
from .bot import BlackjackBot, RunningStats, StopReason
from .supervisor import BotSupervisor

__all__ = [
    "Action",
    "StrategyResolver",
    "StrategyTable",
    "resolve",
    "BotSettings",
    "CaptureEvent",
    "SessionState",
    "HumanDelay",
    "RoundOrchestrator",
    "RoundOutcome",
    "RoundResult",
    "BlackjackBot",
    "RunningStats",
    "StopReason",
    "BotSupervisor",
]
