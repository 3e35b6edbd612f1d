"""Game server wire format

Requests are form-shaped bodies whose field order is fixed; the server
matches requests by format, so values are written verbatim (the session
key contains characters such as "@" and "~" that must not be escaped).

Responses are ampersand/equals delimited but not reliably URL-encoded.
They are split naively and never run through a URL decoder.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from ..core.strategy import Action
from ..utils.config import Config
from ..utils.exceptions import ProtocolDesync


class WireAction(str, Enum):
    """Action names understood by the game server"""
    DEAL = "doDeal"
    HIT = "doHit"
    STAND = "doStand"
    DOUBLE = "doDouble"
    SPLIT = "doSplit"
    SURRENDER = "doSurrender"
    INSURANCE = "doInsurance"
    WIN = "doWin"


WIRE_FOR_ACTION = {
    Action.HIT: WireAction.HIT,
    Action.STAND: WireAction.STAND,
    Action.DOUBLE: WireAction.DOUBLE,
    Action.SPLIT: WireAction.SPLIT,
    Action.SURRENDER: WireAction.SURRENDER,
}

PERMISSION_FLAGS = {
    "hiip": Action.HIT,
    "stip": Action.STAND,
    "doip": Action.DOUBLE,
    "spip": Action.SPLIT,
    "suip": Action.SURRENDER,
}

FROZEN_KEY = "frozen"
ERROR_CODE_KEY = "msg_code"
FROZEN_ERROR_CODE = 7
SYSTEM_ERROR_MARKER = "SystemError"


def format_amount(amount: Decimal) -> str:
    """Plain decimal string without trailing zeros: 1.00 -> "1", 0.10 -> "0.1" """
    return format(Decimal(amount).normalize(), "f")


def build_bet_string(
    bet_unit: Decimal,
    hands: int = Config.HANDS_PER_DEAL,
    slots: int = Config.BET_SLOTS
) -> str:
    """
    Stake per slot, wagered hands on every other position

    >>> build_bet_string(Decimal("1"))
    '1,0,1,0,1,0,0,0'
    """
    if hands * 2 > slots:
        raise ValueError(f"{hands} hands do not fit in {slots} bet slots")
    stake = format_amount(bet_unit)
    values = ["0"] * slots
    for hand in range(hands):
        values[hand * 2] = stake
    return ",".join(values)


def build_request_body(
    action: WireAction,
    symbol: str,
    cid: int,
    index: int,
    counter: int,
    session_key: str,
    bet_string: Optional[str] = None,
    insurance: Optional[int] = None
) -> str:
    """Serialize one request in the server's field order"""
    parts = [
        f"action={WireAction(action).value}",
        f"symbol={symbol}",
        f"cid={cid}",
    ]
    if bet_string:
        parts.append(f"c={bet_string}")
    parts.extend([
        f"index={index}",
        f"counter={counter}",
        "repeat=0",
        f"{Config.SESSION_KEY_FIELD}={session_key}",
    ])
    if insurance is not None:
        parts.append(f"insf={insurance}")
    return "&".join(parts)


class ResponseFields:
    """Permissive key/value view of a response with explicit required accessors"""

    def __init__(self, values: Dict[str, str]):
        self._values = values

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def flag(self, key: str) -> bool:
        return self._values.get(key) == "1"

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self._values.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ProtocolDesync(f"Response field '{key}' is not an integer: {value!r}")

    def get_decimal(self, key: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
        value = self._values.get(key)
        if value is None or value == "":
            return default
        try:
            return Decimal(value)
        except InvalidOperation:
            raise ProtocolDesync(f"Response field '{key}' is not a number: {value!r}")

    def require(self, key: str) -> str:
        value = self._values.get(key)
        if value is None:
            raise ProtocolDesync(f"Response is missing required field '{key}'")
        return value

    def require_int(self, key: str) -> int:
        self.require(key)
        return self.get_int(key)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)


def parse_response(text: str) -> ResponseFields:
    """Split a response body on '&' then on the first '='; last duplicate wins"""
    values: Dict[str, str] = {}
    for pair in text.strip().split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        values[key] = value
    return ResponseFields(values)


def detect_frozen(text: str, fields: ResponseFields) -> Optional[str]:
    """Return the marker that flags a frozen/error response, or None"""
    if FROZEN_KEY in fields:
        return f"{FROZEN_KEY}="
    code = fields.get(ERROR_CODE_KEY)
    if code is not None and code.strip() == str(FROZEN_ERROR_CODE):
        return f"{ERROR_CODE_KEY}={FROZEN_ERROR_CODE}"
    if SYSTEM_ERROR_MARKER in text:
        return SYSTEM_ERROR_MARKER
    return None


class HandStatus(Enum):
    ACTIVE = "active"
    BUSTED = "busted"
    BLACKJACK = "blackjack"
    STOOD = "stood"
    LOST = "lost"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: int) -> "HandStatus":
        return _STATUS_CODES.get(code, cls.OTHER)


_STATUS_CODES = {
    1: HandStatus.ACTIVE,
    2: HandStatus.BUSTED,
    3: HandStatus.BLACKJACK,
    4: HandStatus.STOOD,
    5: HandStatus.LOST,
    14: HandStatus.BLACKJACK,
}

ACTIVE_STATUS_CODE = 1


@dataclass
class HandState:
    """One player hand as last reported by the server"""
    index: int
    cards: List[int]
    status: HandStatus
    total_signature: Optional[str] = None
    status_code: int = ACTIVE_STATUS_CODE

    @property
    def is_active(self) -> bool:
        return self.status is HandStatus.ACTIVE

    def require_signature(self) -> str:
        if not self.total_signature:
            raise ProtocolDesync(f"Response is missing the total for hand {self.index}")
        return self.total_signature


@dataclass
class GameSnapshot:
    """Round state parsed from one response"""
    hands: List[HandState] = field(default_factory=list)
    dealer_upcard: Optional[int] = None
    current_hand: int = 0
    insurance_offered: bool = False
    ended: bool = False
    total_win: Decimal = Decimal("0")
    permitted: FrozenSet[Action] = frozenset()
    # False when the response carried none of the permission flags
    permissions_reported: bool = False
    balance: Optional[Decimal] = None

    @classmethod
    def from_fields(cls, fields: ResponseFields) -> "GameSnapshot":
        hands = []
        for i in range(Config.MAX_HAND_INDEX + 1):
            cards = fields.get(f"cp{i}")
            if not cards:
                continue
            try:
                card_values = [int(card) for card in cards.split(",") if card != ""]
            except ValueError:
                raise ProtocolDesync(f"Unreadable cards for hand {i}: {cards!r}")
            code = fields.get_int(f"stat{i}", ACTIVE_STATUS_CODE)
            hands.append(HandState(
                index=i,
                cards=card_values,
                status=HandStatus.from_code(code),
                total_signature=fields.get(f"sp{i}") or None,
                status_code=code,
            ))

        return cls(
            hands=hands,
            dealer_upcard=fields.get_int("sd"),
            current_hand=fields.get_int("hnd", 0),
            insurance_offered=fields.flag("inip"),
            ended=fields.flag("end"),
            total_win=fields.get_decimal("win", Decimal("0")),
            permitted=frozenset(
                action for flag, action in PERMISSION_FLAGS.items() if fields.flag(flag)
            ),
            permissions_reported=any(flag in fields for flag in PERMISSION_FLAGS),
            balance=fields.get_decimal("balance"),
        )

    def hand(self, index: int) -> Optional[HandState]:
        for hand in self.hands:
            if hand.index == index:
                return hand
        return None

    def require_upcard(self) -> int:
        if self.dealer_upcard is None:
            raise ProtocolDesync("Response is missing the dealer upcard")
        return self.dealer_upcard

    @property
    def has_blackjack(self) -> bool:
        return any(hand.status is HandStatus.BLACKJACK for hand in self.hands)

    @property
    def has_losing_hand(self) -> bool:
        return any(hand.status in (HandStatus.BUSTED, HandStatus.LOST) for hand in self.hands)
