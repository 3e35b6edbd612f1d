"""CLI command implementations"""

import asyncio
import json
import signal
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple

import yaml
from pydantic import ValidationError
from tabulate import tabulate

from ..core.bot import BlackjackBot, RunningStats, StopReason
from ..core.delay import HumanDelay
from ..core.models import BotSettings, CaptureEvent
from ..core.round import RoundResult
from ..core.session_state import SessionState
from ..core.strategy import DEALER_KEYS, PLAYER_ACTIONS, Action, StrategyResolver, StrategyTable
from ..infrastructure.http_executor import ActionExecutor
from ..utils.config import Config
from ..utils.exceptions import ConfigurationError
from ..utils.logger import logger
from .state import StateManager, key_fingerprint


def load_strategy(path: Optional[str]) -> StrategyTable:
    """Load the strategy table from a path, the env, or the built-in table"""
    path = path or Config.get_strategy_path()
    if path:
        return StrategyTable.load(path)
    logger.debug("Using built-in basic strategy")
    return StrategyTable.basic()


def load_capture(path: str) -> CaptureEvent:
    """Load a capture event from a JSON file"""
    try:
        data = json.loads(Path(path).read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"Capture file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Capture file {path} is not valid JSON: {e}")

    try:
        return CaptureEvent.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid capture in {path}: {e}")


def load_settings(config_path: Optional[str], overrides: Dict[str, Any]) -> BotSettings:
    """Merge a YAML settings file with CLI overrides (None values ignored)"""
    data: Dict[str, Any] = {}
    if config_path:
        try:
            data = yaml.safe_load(Path(config_path).read_text()) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Settings file not found: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Settings file {config_path} is not valid YAML: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {config_path} must contain a mapping")

    aliases = {info.alias: field for field, info in BotSettings.model_fields.items() if info.alias}
    data = {aliases.get(key, key): value for key, value in data.items()}
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return BotSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}")


def recorded_counters(
    record: Optional[Dict[str, Any]],
    capture: CaptureEvent
) -> Optional[Tuple[int, int]]:
    """
    Next index/counter saved by an earlier run on the same session

    Returns None unless the record matches the capture's symbol and session
    key and is further along than the capture.
    """
    if not record or record.get("symbol") != capture.symbol:
        return None
    if record.get("key_fingerprint") != key_fingerprint(capture.session_key):
        return None
    index, counter = record.get("index"), record.get("counter")
    if index is None or counter is None:
        return None
    if index <= capture.index or counter <= capture.counter:
        return None
    return index, counter


def stats_rows(stats: RunningStats) -> List[List[str]]:
    return [
        [key.replace("_", " "), value if value is not None else "-"]
        for key, value in stats.to_dict().items()
    ]


async def run_bot(
    capture_path: str,
    strategy_path: Optional[str],
    config_path: Optional[str],
    overrides: Dict[str, Any],
    name: Optional[str],
    state_manager: Optional[StateManager] = None
) -> StopReason:
    """Run one bot until a stop condition and print the final stats"""
    capture = load_capture(capture_path)
    settings = load_settings(config_path, overrides)
    table = load_strategy(strategy_path)

    session_name = name or capture.symbol
    state_manager = state_manager or StateManager(Config.get_state_file())

    session = SessionState.from_capture(capture, settings)
    recorded = recorded_counters(state_manager.get_session(session_name), capture)
    if recorded:
        index, counter = recorded
        session.initialize(index, counter, capture.session_key, session.bet_unit, session.wager_target)
        logger.info(f"Resuming '{session_name}' at index={index}, counter={counter}")

    state_manager.register_session(
        name=session_name,
        symbol=capture.symbol,
        origin=capture.origin,
        session_key=capture.session_key,
        index=session.index,
        counter=session.counter,
        bet_unit=str(session.bet_unit),
        wager_target=str(session.wager_target),
    )

    executor = ActionExecutor(
        session=session,
        capture=capture,
        delay=HumanDelay(settings.action_delay, settings.delay_std_dev),
    )
    bot = BlackjackBot(
        session=session,
        executor=executor,
        resolver=StrategyResolver(table),
        backoff=settings.round_backoff,
    )

    def on_round(result: RoundResult, stats: RunningStats) -> None:
        state_manager.update_progress(session_name, session.index, session.counter, stats.to_dict())

    bot.add_listener(on_round)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, bot.stop)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported; use Ctrl+C twice to abort")

    try:
        reason = await bot.run()
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await executor.close()

    state_manager.update_status(session_name, reason.value)
    state_manager.update_progress(session_name, session.index, session.counter, bot.stats.to_dict())

    print(tabulate(stats_rows(bot.stats), headers=["STAT", "VALUE"], tablefmt='simple'))
    logger.info(f"Bot finished: {reason.value}")
    return reason


def resolve_action(
    dealer: int,
    hand: str,
    allowed: Optional[List[str]],
    strategy_path: Optional[str]
) -> Action:
    """Resolve one decision and print it"""
    table = load_strategy(strategy_path)
    if allowed is None:
        permitted = PLAYER_ACTIONS
    else:
        try:
            permitted = [Action(name.strip()) for name in allowed if name.strip()]
        except ValueError as e:
            raise ConfigurationError(f"Unknown action in --allow: {e}")

    action = StrategyResolver(table).resolve(dealer, hand, permitted)
    print(action.value)
    return action


_SHORT = {
    Action.HIT: "H",
    Action.STAND: "S",
    Action.DOUBLE: "D",
    Action.DOUBLE_STAND: "Ds",
    Action.SPLIT: "P",
    Action.SURRENDER: "R",
}


def show_strategy(strategy_path: Optional[str], export_path: Optional[str]) -> None:
    """Print the strategy grid or export it as JSON"""
    table = load_strategy(strategy_path)

    if export_path:
        Path(export_path).write_text(json.dumps(table.to_dict(), indent=2))
        logger.info(f"Strategy table written to {export_path}")
        return

    headers = ["HAND"] + ["A" if key == "1/11" else key for key in DEALER_KEYS]
    rows = []
    for signature in table.signatures():
        row = [signature]
        for key in DEALER_KEYS:
            action = table.get(key, signature)
            row.append(_SHORT[action] if action else "-")
        rows.append(row)
    print(tabulate(rows, headers=headers, tablefmt='simple'))


def list_sessions(json_output: bool, state_manager: Optional[StateManager] = None) -> None:
    """List sessions recorded in the state file"""
    state_manager = state_manager or StateManager(Config.get_state_file())
    sessions = state_manager.list_sessions()

    if not sessions:
        logger.info("No sessions found")
        return

    if json_output:
        print(json.dumps(sessions, indent=2))
        return

    headers = ["NAME", "SYMBOL", "STATUS", "INDEX", "COUNTER", "WAGERED", "PROFIT", "BALANCE"]
    rows = []
    for session in sessions:
        stats = session.get("stats") or {}
        rows.append([
            session["name"],
            session.get("symbol", "-"),
            session.get("status", "-"),
            session.get("index") if session.get("index") is not None else "-",
            session.get("counter") if session.get("counter") is not None else "-",
            stats.get("total_wagered", "0"),
            stats.get("profit", "0"),
            stats.get("balance") or "-",
        ])
    print(tabulate(rows, headers=headers, tablefmt='simple'))


def remove_session(name: str, state_manager: Optional[StateManager] = None) -> None:
    """Forget a session recorded in the state file"""
    state_manager = state_manager or StateManager(Config.get_state_file())
    if state_manager.get_session(name) is None:
        raise ConfigurationError(f"Session '{name}' not found in {state_manager.state_file}")
    state_manager.unregister_session(name)
    logger.info(f"Session '{name}' removed")
