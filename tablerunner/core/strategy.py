"""Strategy table and resolver

The table maps a dealer key ("2".."10", "1/11") to a mapping of hand
signatures to actions. Hand signatures use the server's own encoding:

    "16"     hard 16
    "6/16"   soft 16 (low/high)
    "16s"    pair of eights
    "2/12s"  pair of aces
"""

import json
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..utils.exceptions import ConfigurationError, StrategyGapError
from ..utils.logger import logger


class Action(str, Enum):
    """Strategy table actions"""
    HIT = "Hit"
    STAND = "Stand"
    DOUBLE = "Double"
    DOUBLE_STAND = "DoubleStand"  # Double if allowed, else stand
    SPLIT = "Split"
    SURRENDER = "Surrender"


DEALER_KEYS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "1/11")
ACE_KEY = "1/11"

# Every action the server can allow on a hand
PLAYER_ACTIONS = frozenset({Action.HIT, Action.STAND, Action.DOUBLE, Action.SPLIT, Action.SURRENDER})


# Row codes, one per dealer key in DEALER_KEYS order
_CODES = {
    "H": Action.HIT,
    "S": Action.STAND,
    "D": Action.DOUBLE,
    "Ds": Action.DOUBLE_STAND,
    "P": Action.SPLIT,
    "R": Action.SURRENDER,
}

# Multi-deck, dealer stands on soft 17, double after split, late surrender
_BASIC_ROWS = {
    # hard
    "4": "H H H H H H H H H H",
    "5": "H H H H H H H H H H",
    "6": "H H H H H H H H H H",
    "7": "H H H H H H H H H H",
    "8": "H H H H H H H H H H",
    "9": "H D D D D H H H H H",
    "10": "D D D D D D D D H H",
    "11": "D D D D D D D D D H",
    "12": "H H S S S H H H H H",
    "13": "S S S S S H H H H H",
    "14": "S S S S S H H H H H",
    "15": "S S S S S H H H R H",
    "16": "S S S S S H H R R R",
    "17": "S S S S S S S S S S",
    "18": "S S S S S S S S S S",
    "19": "S S S S S S S S S S",
    "20": "S S S S S S S S S S",
    "21": "S S S S S S S S S S",
    # soft
    "2/12": "H H H H H H H H H H",
    "3/13": "H H H D D H H H H H",
    "4/14": "H H H D D H H H H H",
    "5/15": "H H D D D H H H H H",
    "6/16": "H H D D D H H H H H",
    "7/17": "H D D D D H H H H H",
    "8/18": "S Ds Ds Ds Ds S S H H H",
    "9/19": "S S S S S S S S S S",
    "10/20": "S S S S S S S S S S",
    "11/21": "S S S S S S S S S S",
    # pairs
    "2/12s": "P P P P P P P P P P",
    "4s": "P P P P P P H H H H",
    "6s": "P P P P P P H H H H",
    "8s": "H H H P P H H H H H",
    "10s": "D D D D D D D D H H",
    "12s": "P P P P P H H H H H",
    "14s": "P P P P P P H H H H",
    "16s": "P P P P P P P P P P",
    "18s": "P P P P P S P P S S",
    "20s": "S S S S S S S S S S",
}


def dealer_key(upcard: int) -> str:
    """Normalize a dealer upcard value to a table key (ace -> "1/11")"""
    if upcard in (1, 11):
        return ACE_KEY
    if 2 <= upcard <= 10:
        return str(upcard)
    raise ConfigurationError(f"Invalid dealer upcard value: {upcard}")


def non_pair_signature(signature: str) -> str:
    """Strip the pair suffix: "16s" -> "16", "2/12s" -> "2/12" """
    return signature[:-1] if signature.endswith("s") else signature


class StrategyTable:
    """Immutable dealer-key -> hand-signature -> action mapping"""

    def __init__(self, entries: Mapping[str, Mapping[str, Action]], source: str = "<memory>"):
        self.source = source
        self._entries = MappingProxyType({
            key: MappingProxyType(dict(hands))
            for key, hands in entries.items()
        })

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, str]], source: str = "<memory>") -> "StrategyTable":
        """
        Build and validate a table from plain JSON-shaped data

        Raises:
            ConfigurationError: Missing dealer key, unknown dealer key or unknown action
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Strategy table {source} must be a JSON object")

        missing = [key for key in DEALER_KEYS if key not in data]
        if missing:
            raise ConfigurationError(
                f"Strategy table {source} is missing dealer keys: {', '.join(missing)}"
            )

        entries: Dict[str, Dict[str, Action]] = {}
        for key, hands in data.items():
            if key not in DEALER_KEYS:
                raise ConfigurationError(f"Strategy table {source} has unknown dealer key '{key}'")
            if not isinstance(hands, Mapping):
                raise ConfigurationError(f"Strategy table {source}: dealer '{key}' must map hands to actions")
            entries[key] = {}
            for signature, name in hands.items():
                try:
                    entries[key][str(signature)] = Action(name)
                except ValueError:
                    raise ConfigurationError(
                        f"Strategy table {source}: unknown action '{name}' "
                        f"for hand '{signature}' vs dealer '{key}'"
                    )

        return cls(entries, source=source)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "StrategyTable":
        """Load a table from a JSON file"""
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            raise ConfigurationError(f"Strategy table not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Strategy table {path} is not valid JSON: {e}")

        table = cls.from_dict(data, source=str(path))
        logger.info(f"Loaded strategy table from {path} ({table.entry_count()} entries)")
        return table

    @classmethod
    def basic(cls) -> "StrategyTable":
        """Built-in basic strategy table"""
        entries: Dict[str, Dict[str, Action]] = {key: {} for key in DEALER_KEYS}
        for signature, row in _BASIC_ROWS.items():
            codes = row.split()
            for key, code in zip(DEALER_KEYS, codes):
                entries[key][signature] = _CODES[code]
        return cls(entries, source="<basic>")

    def get(self, dealer: str, signature: str) -> Optional[Action]:
        hands = self._entries.get(dealer)
        if hands is None:
            return None
        return hands.get(signature)

    def signatures(self) -> List[str]:
        """All hand signatures, in first-seen order"""
        seen: Dict[str, None] = {}
        for hands in self._entries.values():
            for signature in hands:
                seen.setdefault(signature, None)
        return list(seen)

    def entry_count(self) -> int:
        return sum(len(hands) for hands in self._entries.values())

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            key: {signature: action.value for signature, action in hands.items()}
            for key, hands in self._entries.items()
        }


def _downgrade(action: Action, permitted: frozenset) -> Action:
    """Replace actions the server does not allow with their closest legal form"""
    if action is Action.DOUBLE_STAND:
        return Action.DOUBLE if Action.DOUBLE in permitted else Action.STAND
    if action is Action.DOUBLE and Action.DOUBLE not in permitted:
        return Action.HIT
    if action is Action.SURRENDER and Action.SURRENDER not in permitted:
        return Action.HIT
    return action


def resolve(
    table: StrategyTable,
    upcard: int,
    signature: str,
    permitted: Iterable[Action]
) -> Action:
    """
    Pick the action for one decision

    Args:
        table: Loaded strategy table
        upcard: Dealer upcard value (1 or 11 for an ace)
        signature: Hand signature as reported by the server
        permitted: Actions the server currently allows

    Returns:
        Hit, Stand, Double, Split or Surrender (never DoubleStand)

    Raises:
        StrategyGapError: If the table has no entry for the lookup
    """
    permitted = frozenset(permitted)
    key = dealer_key(upcard)

    # The server may report a pair of aces without the pair suffix
    if signature == "2/12" and Action.SPLIT in permitted:
        signature = "2/12s"

    entry = table.get(key, signature)
    if entry is None:
        raise StrategyGapError(key, signature)

    if entry is Action.SPLIT and Action.SPLIT not in permitted:
        fallback = non_pair_signature(signature)
        entry = table.get(key, fallback)
        if entry is None:
            raise StrategyGapError(key, fallback, "split not allowed, no non-pair entry")
        if entry is Action.SPLIT:
            raise StrategyGapError(key, fallback, "split not allowed, non-pair entry is Split")
        logger.debug(f"Split not allowed for {signature} vs {key}; using {fallback} -> {entry.value}")

    return _downgrade(entry, permitted)


class StrategyResolver:
    """Resolver bound to one loaded table"""

    def __init__(self, table: StrategyTable):
        self.table = table

    def resolve(self, upcard: int, signature: str, permitted: Iterable[Action]) -> Action:
        action = resolve(self.table, upcard, signature, permitted)
        logger.debug(f"Strategy: {signature} vs {dealer_key(upcard)} -> {action.value}")
        return action
