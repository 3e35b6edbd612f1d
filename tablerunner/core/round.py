"""Round orchestrator: deal, insurance, per-hand play, settlement"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from ..infrastructure.http_executor import ActionExecutor, ActionResult, ResultKind
from ..infrastructure.wire import (
    WIRE_FOR_ACTION,
    GameSnapshot,
    HandState,
    HandStatus,
    WireAction,
    build_bet_string,
)
from ..utils.config import Config
from ..utils.exceptions import (
    ConfigurationError,
    GameFrozenError,
    ProtocolDesync,
    TransportError,
)
from ..utils.logger import logger
from .session_state import SessionState
from .strategy import PLAYER_ACTIONS, Action, StrategyResolver


class RoundPhase(str, Enum):
    DEALING = "dealing"
    INSURANCE = "insurance"
    PLAYING = "playing"
    SETTLING = "settling"
    DONE = "done"


class RoundOutcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    PUSH = "PUSH"
    ABANDONED = "ABANDONED"  # stopped mid-round


@dataclass
class RoundResult:
    """Accounting for one completed (or abandoned) round"""
    outcome: RoundOutcome
    wagered: Decimal
    returned: Decimal
    hands_dealt: int = 0
    dealer_upcard: Optional[int] = None
    actions: List[str] = field(default_factory=list)
    # Last balance the server reported during the round
    balance: Optional[Decimal] = None

    @property
    def profit(self) -> Decimal:
        return self.returned - self.wagered

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "wagered": str(self.wagered),
            "returned": str(self.returned),
            "profit": str(self.profit),
            "hands_dealt": self.hands_dealt,
            "dealer_upcard": self.dealer_upcard,
            "actions": list(self.actions),
            "balance": str(self.balance) if self.balance is not None else None,
        }


def _fallback(preferred: Action, permitted: frozenset) -> Optional[Action]:
    """Hit/Stand substitute when the resolved action is not allowed"""
    order = (Action.STAND, Action.HIT) if preferred is Action.HIT else (Action.HIT, Action.STAND)
    for candidate in order:
        if candidate in permitted:
            return candidate
    return None


class RoundOrchestrator:
    """Drives one round of play for a single session"""

    def __init__(
        self,
        session: SessionState,
        executor: ActionExecutor,
        resolver: StrategyResolver,
        stop_event: Optional[asyncio.Event] = None
    ):
        self.session = session
        self.executor = executor
        self.resolver = resolver
        self.stop_event = stop_event or asyncio.Event()
        self.phase = RoundPhase.DONE

        # Per-round accounting, reset by play_round
        self._wagered = Decimal("0")
        self._max_hands_seen = 0
        self._actions: List[str] = []
        self._balance: Optional[Decimal] = None

    @property
    def _stopping(self) -> bool:
        return self.stop_event.is_set()

    def _enter(self, phase: RoundPhase) -> None:
        if phase is not self.phase:
            logger.debug(f"Round phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _stake(self, units: int) -> None:
        amount = self.session.bet_unit * units
        self._wagered += amount
        self.session.record_wager(amount)

    async def _send(
        self,
        action: WireAction,
        cid: int = 0,
        bet_string: Optional[str] = None,
        insurance: Optional[int] = None
    ) -> GameSnapshot:
        """Execute one action and turn non-OK results into exceptions"""
        result: ActionResult = await self.executor.execute(
            action, cid=cid, bet_string=bet_string, insurance=insurance
        )
        self._actions.append(f"{action.value}:{cid}")

        if result.kind is ResultKind.FROZEN:
            raise GameFrozenError(f"{result.error} on {action.value}")
        if result.kind is ResultKind.DESYNC:
            raise ProtocolDesync(f"{result.error} on {action.value}")
        if result.kind is ResultKind.TRANSPORT:
            raise TransportError(f"{action.value} failed: {result.error}")
        snapshot = result.snapshot
        if snapshot.balance is not None:
            self._balance = snapshot.balance
        return snapshot

    def _choose_wire_action(self, snapshot: GameSnapshot, hand: HandState) -> WireAction:
        """
        Resolve the table action and cross-check it against server permissions

        A response without any permission flags restricts nothing; the table
        action is sent as resolved.
        """
        if not snapshot.permissions_reported:
            action = self.resolver.resolve(
                snapshot.require_upcard(), hand.require_signature(), PLAYER_ACTIONS
            )
            return WIRE_FOR_ACTION[action]

        action = self.resolver.resolve(
            snapshot.require_upcard(),
            hand.require_signature(),
            snapshot.permitted,
        )

        if action not in snapshot.permitted:
            substitute = _fallback(action, snapshot.permitted)
            if substitute is None:
                raise ProtocolDesync(
                    f"No permitted action for hand {hand.index} "
                    f"(wanted {action.value}, allowed: {sorted(a.value for a in snapshot.permitted)})"
                )
            logger.warning(f"Hand {hand.index}: {action.value} not allowed, using {substitute.value}")
            action = substitute

        return WIRE_FOR_ACTION[action]

    def _track_new_hands(self, snapshot: GameSnapshot, split: bool) -> None:
        """Charge one unit per hand that appeared since the last response"""
        grown = len(snapshot.hands) - self._max_hands_seen
        if split and grown < 1:
            grown = 1
        if grown > 0:
            self._stake(grown)
            self._max_hands_seen += grown
            logger.debug(f"Split: {grown} new hand(s), round wagered {self._wagered}")

    async def _decline_insurance(self, snapshot: GameSnapshot) -> GameSnapshot:
        prompts = 0
        while snapshot.insurance_offered and not snapshot.ended:
            if prompts >= Config.INSURANCE_PROMPT_LIMIT:
                raise ProtocolDesync(f"Insurance still offered after {prompts} declines")
            logger.debug("Declining insurance")
            snapshot = await self._send(WireAction.INSURANCE, 0, insurance=0)
            prompts += 1
        return snapshot

    async def _play_hand(self, snapshot: GameSnapshot, hand: HandState) -> Optional[GameSnapshot]:
        """
        Play one hand until it stops being active

        Returns:
            Latest snapshot, or None if a stop was requested
        """
        index = hand.index
        logger.debug(f"Hand {index}: {hand.total_signature} vs dealer {snapshot.dealer_upcard}")

        while hand is not None and hand.is_active and not snapshot.ended:
            if self._stopping:
                return None

            wire_action = self._choose_wire_action(snapshot, hand)
            snapshot = await self._send(wire_action, index)
            self._track_new_hands(snapshot, split=wire_action is WireAction.SPLIT)

            if wire_action is WireAction.DOUBLE:
                self._stake(1)
                break
            if wire_action in (WireAction.SPLIT, WireAction.STAND, WireAction.SURRENDER):
                break
            if snapshot.current_hand != index:
                break
            hand = snapshot.hand(index)

        return snapshot

    def aborted_result(self, snapshot: Optional[GameSnapshot] = None) -> RoundResult:
        """Accounting for a round that ended before settlement; stakes placed so far are lost"""
        return RoundResult(
            outcome=RoundOutcome.ABANDONED,
            wagered=self._wagered,
            returned=Decimal("0"),
            hands_dealt=len(snapshot.hands) if snapshot else self._max_hands_seen,
            dealer_upcard=snapshot.dealer_upcard if snapshot else None,
            actions=list(self._actions),
            balance=self._balance,
        )

    def _abandon(self, snapshot: GameSnapshot) -> RoundResult:
        logger.info(f"Stop requested while {self.phase.value}; leaving the round unfinished")
        result = self.aborted_result(snapshot)
        self._enter(RoundPhase.DONE)
        return result

    async def play_round(self) -> RoundResult:
        """
        Play one full round

        Raises:
            ConfigurationError: Session not initialized
            GameFrozenError: Server reported the frozen state
            ProtocolDesync: Required fields missing or counters out of step
            TransportError: A request failed before a response arrived
            StrategyGapError: Strategy table has no entry for a decision
        """
        self._wagered = Decimal("0")
        self._max_hands_seen = 0
        self._actions = []
        self._balance = None

        if not self.session.is_initialized:
            raise ConfigurationError("Session is not initialized - capture required")

        self._enter(RoundPhase.DEALING)
        bet_string = build_bet_string(self.session.bet_unit)
        snapshot = await self._send(WireAction.DEAL, 0, bet_string=bet_string)
        if not snapshot.hands:
            raise ProtocolDesync("Deal response contains no hands")

        hands_dealt = len(snapshot.hands)
        self._max_hands_seen = hands_dealt
        self._stake(hands_dealt)
        logger.info(
            f"Deal: {hands_dealt} hand(s), dealer: "
            f"{'A' if snapshot.dealer_upcard in (1, 11) else snapshot.dealer_upcard}"
        )
        for hand in snapshot.hands:
            if hand.status is HandStatus.BLACKJACK:
                logger.info(f"Hand {hand.index}: Blackjack!")

        if snapshot.insurance_offered and not snapshot.ended:
            self._enter(RoundPhase.INSURANCE)
            snapshot = await self._decline_insurance(snapshot)

        self._enter(RoundPhase.PLAYING)
        while not snapshot.ended:
            if self._stopping:
                return self._abandon(snapshot)

            hand = snapshot.hand(snapshot.current_hand)
            if hand is None or not hand.is_active:
                break

            played = await self._play_hand(snapshot, hand)
            if played is None:
                return self._abandon(snapshot)
            snapshot = played

        if not snapshot.ended:
            raise ProtocolDesync(
                f"Round did not end but hand {snapshot.current_hand} is not playable"
            )

        self._enter(RoundPhase.SETTLING)
        if snapshot.total_win > 0 or snapshot.has_blackjack:
            await self._send(WireAction.WIN, 0)
            returned = snapshot.total_win
        elif snapshot.has_losing_hand:
            returned = Decimal("0")
        else:
            returned = self._wagered

        self._enter(RoundPhase.DONE)
        profit = returned - self._wagered
        if profit > 0:
            outcome = RoundOutcome.WIN
        elif profit < 0:
            outcome = RoundOutcome.LOSS
        else:
            outcome = RoundOutcome.PUSH

        sign = "+" if profit >= 0 else ""
        balance = f", balance {self._balance}" if self._balance is not None else ""
        logger.info(f"Round complete: {outcome.value} ({sign}{profit}){balance}")

        return RoundResult(
            outcome=outcome,
            wagered=self._wagered,
            returned=returned,
            hands_dealt=hands_dealt,
            dealer_upcard=snapshot.dealer_upcard,
            actions=list(self._actions),
            balance=self._balance,
        )
