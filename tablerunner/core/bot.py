"""Bot loop: plays rounds until a stop condition"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from ..infrastructure.http_executor import ActionExecutor
from ..utils.config import Config
from ..utils.exceptions import (
    ConfigurationError,
    GameFrozenError,
    ProtocolDesync,
    StrategyGapError,
    TransportError,
)
from ..utils.logger import logger
from .round import RoundOrchestrator, RoundOutcome, RoundResult
from .session_state import SessionState
from .strategy import StrategyResolver


class StopReason(str, Enum):
    TARGET_REACHED = "target_reached"
    STOPPED = "stopped"
    FROZEN = "frozen"
    STRATEGY_GAP = "strategy_gap"
    CONFIGURATION = "configuration"


@dataclass
class RunningStats:
    """Totals across all rounds played by one bot"""
    rounds_played: int = 0
    rounds_won: int = 0
    rounds_lost: int = 0
    rounds_pushed: int = 0
    rounds_abandoned: int = 0
    total_wagered: Decimal = Decimal("0")
    total_returned: Decimal = Decimal("0")
    # First and latest balance reported by the server
    start_balance: Optional[Decimal] = None
    balance: Optional[Decimal] = None

    @property
    def profit(self) -> Decimal:
        return self.total_returned - self.total_wagered

    def record(self, result: RoundResult) -> None:
        self.total_wagered += result.wagered
        self.total_returned += result.returned
        if result.balance is not None:
            if self.start_balance is None:
                self.start_balance = result.balance
            self.balance = result.balance

        if result.outcome is RoundOutcome.ABANDONED:
            self.rounds_abandoned += 1
            return

        self.rounds_played += 1
        if result.outcome is RoundOutcome.WIN:
            self.rounds_won += 1
        elif result.outcome is RoundOutcome.LOSS:
            self.rounds_lost += 1
        else:
            self.rounds_pushed += 1

    def to_dict(self) -> dict:
        return {
            "rounds_played": self.rounds_played,
            "rounds_won": self.rounds_won,
            "rounds_lost": self.rounds_lost,
            "rounds_pushed": self.rounds_pushed,
            "rounds_abandoned": self.rounds_abandoned,
            "total_wagered": str(self.total_wagered),
            "total_returned": str(self.total_returned),
            "profit": str(self.profit),
            "start_balance": str(self.start_balance) if self.start_balance is not None else None,
            "balance": str(self.balance) if self.balance is not None else None,
        }


RoundListener = Callable[[RoundResult, RunningStats], None]


class BlackjackBot:
    """
    Owns one session and plays rounds on it until told to stop.

    Terminal conditions (target reached, stop request, frozen session,
    strategy gap, configuration error) end the loop; transport failures
    and unexpected errors pause for ``backoff`` seconds and try a fresh
    round.
    """

    def __init__(
        self,
        session: SessionState,
        executor: ActionExecutor,
        resolver: StrategyResolver,
        backoff: Optional[float] = None
    ):
        self.session = session
        self.executor = executor
        self.resolver = resolver
        self.backoff = backoff if backoff is not None else Config.get_round_backoff()
        self.stats = RunningStats()
        self.stop_reason: Optional[StopReason] = None
        self._stop_event = asyncio.Event()
        self._listeners: List[RoundListener] = []
        self.orchestrator = RoundOrchestrator(
            session=session,
            executor=executor,
            resolver=resolver,
            stop_event=self._stop_event,
        )

    @property
    def running(self) -> bool:
        return self.stop_reason is None and not self._stop_event.is_set()

    def add_listener(self, listener: RoundListener) -> None:
        """Register a callback receiving (round result, running stats)"""
        self._listeners.append(listener)

    def stop(self) -> None:
        """Request a cooperative stop; an in-flight request still completes"""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
        self._stop_event.set()

    def _notify(self, result: RoundResult) -> None:
        for listener in self._listeners:
            try:
                listener(result, self.stats)
            except Exception as e:
                logger.warning(f"Round listener failed: {e}")

    async def _pause(self) -> None:
        """Back off, waking early if a stop arrives"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.backoff)
        except asyncio.TimeoutError:
            pass

    def _record_aborted(self) -> None:
        """Count the stakes of a round that ended before settlement"""
        result = self.orchestrator.aborted_result()
        if result.wagered > 0:
            self.stats.record(result)
            self._notify(result)

    def _halt(self, reason: StopReason, message: str) -> StopReason:
        logger.error(message)
        self._record_aborted()
        self.stop_reason = reason
        return reason

    async def run(self) -> StopReason:
        """
        Play rounds until a stop condition

        Returns:
            Why the loop ended
        """
        if not self.session.is_initialized:
            return self._halt(
                StopReason.CONFIGURATION,
                "Configuration error: session not initialized - capture required"
            )

        target = self.session.wager_target
        logger.info(
            f"Bot started: bet {self.session.bet_unit}, "
            f"target {target if target > 0 else 'unlimited'}"
        )

        while True:
            if self._stop_event.is_set():
                logger.info("Bot stopped")
                self.stop_reason = StopReason.STOPPED
                break

            if self.session.target_reached:
                logger.info(f"Target wager reached: {self.session.total_wagered}")
                self.stop_reason = StopReason.TARGET_REACHED
                break

            try:
                result = await self.orchestrator.play_round()
            except GameFrozenError as e:
                return self._halt(StopReason.FROZEN, f"Game frozen - recapture required: {e}")
            except ProtocolDesync as e:
                return self._halt(StopReason.FROZEN, f"Protocol desync - recapture required: {e}")
            except StrategyGapError as e:
                return self._halt(StopReason.STRATEGY_GAP, f"Strategy gap - stopping: {e}")
            except ConfigurationError as e:
                return self._halt(StopReason.CONFIGURATION, f"Configuration error: {e}")
            except TransportError as e:
                logger.warning(
                    f"Round aborted while {self.orchestrator.phase.value}: {e}; "
                    f"retrying in {self.backoff:.0f}s"
                )
                self._record_aborted()
                await self._pause()
                continue
            except Exception as e:
                logger.error(f"Error in bot loop: {type(e).__name__}: {e}")
                self._record_aborted()
                await self._pause()
                continue

            self.stats.record(result)
            self._notify(result)

            played = self.stats.rounds_played
            if target <= 0 and played and played % Config.PROGRESS_LOG_EVERY == 0:
                logger.info(f"Infinite mode - {played} rounds played")

        return self.stop_reason
