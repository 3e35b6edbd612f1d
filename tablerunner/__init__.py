"""
Tablerunner: scripted blackjack session runner

Replays the game server's request sequence for a captured session and
chooses actions from a static strategy table.

Basic Usage:
    >>> from tablerunner import BotSupervisor, StrategyTable, CaptureEvent, BotSettings
    >>> supervisor = BotSupervisor(StrategyTable.basic())
    >>> await supervisor.capture("tab-1", CaptureEvent.model_validate(captured))
    >>> await supervisor.start("tab-1", BotSettings(betUnit="0.1", wagerTarget="50"))
    >>> reason = await supervisor.wait("tab-1")
"""

from .__version__ import __version__
from .core import (
    Action,
    BlackjackBot,
    BotSettings,
    BotSupervisor,
    CaptureEvent,
    SessionState,
    StopReason,
    StrategyResolver,
    StrategyTable,
)

__all__ = [
    "__version__",
    "Action",
    "BlackjackBot",
    "BotSettings",
    "BotSupervisor",
    "CaptureEvent",
    "SessionState",
    "StopReason",
    "StrategyResolver",
    "StrategyTable",
]
