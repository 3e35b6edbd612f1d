"""Per-session protocol state: sequence counters, session key and wager totals"""

from decimal import Decimal
from typing import Iterable, Optional

from ..utils.exceptions import ConfigurationError, ProtocolDesync
from ..utils.logger import logger
from .models import BotSettings, CaptureEvent


def choose_bet_unit(requested: Decimal, available: Optional[Iterable[Decimal]]) -> Decimal:
    """
    Keep the requested stake if the table accepts it, else use the lowest one

    An unknown or empty list of accepted stakes keeps the requested value.
    """
    bets = sorted(Decimal(bet) for bet in available or ())
    if not bets or Decimal(requested) in bets:
        return Decimal(requested)
    logger.warning(
        f"Bet size {requested} not accepted by the table "
        f"(valid: {', '.join(str(bet) for bet in bets)}); using lowest: {bets[0]}"
    )
    return bets[0]


class SessionState:
    """
    Single source of truth for one game session.

    ``index`` and ``counter`` always hold the values to send on the *next*
    request. ``None`` means the session has not been initialized yet, which
    is distinct from a counter of zero.
    """

    def __init__(self):
        self.index: Optional[int] = None
        self.counter: Optional[int] = None
        self.session_key: str = ""
        self.bet_unit: Decimal = Decimal("0")
        self.wager_target: Decimal = Decimal("0")
        self.total_wagered: Decimal = Decimal("0")

    @classmethod
    def from_capture(cls, capture: CaptureEvent, settings: BotSettings) -> "SessionState":
        """
        Build a session from a capture event and start settings

        The capture carries the last index/counter the server echoed, so
        the first request goes out one past them.
        """
        state = cls()
        state.initialize(
            index=capture.index + 1,
            counter=capture.counter + 1,
            session_key=capture.session_key,
            bet_unit=choose_bet_unit(settings.bet_unit, capture.available_bets),
            wager_target=settings.wager_target,
        )
        return state

    @classmethod
    def resume(
        cls,
        previous: "SessionState",
        settings: BotSettings,
        available_bets: Optional[Iterable[Decimal]] = None
    ) -> "SessionState":
        """
        Continue a stopped session without a new capture

        Counters and key carry over from the previous run, whose counters
        already point past the last server echo. Wager totals start over.

        Raises:
            ConfigurationError: If the previous session was invalidated
        """
        if not previous.is_initialized:
            raise ConfigurationError("Previous session is not initialized - capture required")
        state = cls()
        state.initialize(
            index=previous.index,
            counter=previous.counter,
            session_key=previous.session_key,
            bet_unit=choose_bet_unit(settings.bet_unit, available_bets),
            wager_target=settings.wager_target,
        )
        return state

    def initialize(
        self,
        index: int,
        counter: int,
        session_key: str,
        bet_unit: Decimal,
        wager_target: Decimal = Decimal("0")
    ) -> None:
        """
        Set initial values

        Args:
            index: Sequence index for the next request
            counter: Sequence counter for the next request
            session_key: Opaque session credential
            bet_unit: Stake per hand
            wager_target: Stop once this much has been wagered (<= 0: never)

        Raises:
            ConfigurationError: If the session key is empty or counters negative
        """
        if not session_key:
            raise ConfigurationError("Session key is empty - recapture required")
        if index < 0 or counter < 0:
            raise ConfigurationError(
                f"Invalid starting counters: index={index}, counter={counter}"
            )

        self.index = index
        self.counter = counter
        self.session_key = session_key
        self.bet_unit = Decimal(bet_unit)
        self.wager_target = Decimal(wager_target)
        self.total_wagered = Decimal("0")
        logger.debug(f"Session initialized: index={index}, counter={counter}")

    @property
    def is_initialized(self) -> bool:
        return self.index is not None and self.counter is not None and bool(self.session_key)

    def advance(self, server_index: int, server_counter: int) -> None:
        """
        Store the counters for the next request (server value + 1)

        Raises:
            ProtocolDesync: If the echoed values would move counters backwards
        """
        next_index = server_index + 1
        next_counter = server_counter + 1

        if self.index is not None and next_index < self.index:
            raise ProtocolDesync(
                f"Server index {server_index} is behind local index {self.index}"
            )
        if self.counter is not None and next_counter < self.counter:
            raise ProtocolDesync(
                f"Server counter {server_counter} is behind local counter {self.counter}"
            )

        self.index = next_index
        self.counter = next_counter

    def rotate_session_key(self, new_key: str) -> None:
        """Replace the session key in place; counters are untouched"""
        if not new_key:
            raise ConfigurationError("Rotated session key is empty")
        if new_key != self.session_key:
            logger.debug("Session key rotated")
        self.session_key = new_key

    def record_wager(self, amount: Decimal) -> None:
        self.total_wagered += Decimal(amount)

    @property
    def target_reached(self) -> bool:
        return self.wager_target > 0 and self.total_wagered >= self.wager_target

    def invalidate(self) -> None:
        """Drop the counters; the session must be recaptured before use"""
        self.index = None
        self.counter = None

    def __repr__(self) -> str:
        return (
            f"<SessionState index={self.index} counter={self.counter} "
            f"wagered={self.total_wagered}/{self.wager_target}>"
        )
