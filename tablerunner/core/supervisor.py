"""Supervisor mapping external session ids to independent bots"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx

from ..infrastructure.http_executor import ActionExecutor
from ..utils.exceptions import ConfigurationError, SessionNotFoundError
from ..utils.logger import logger
from .bot import BlackjackBot, RunningStats, StopReason
from .delay import HumanDelay
from .models import BotSettings, CaptureEvent
from .session_state import SessionState
from .strategy import StrategyResolver, StrategyTable


@dataclass
class SessionEntry:
    """Everything owned by one external session (e.g. one browser tab)"""
    session_id: str
    capture: CaptureEvent
    bot: Optional[BlackjackBot] = None
    task: Optional["asyncio.Task"] = None
    # True until a bot has started from the current capture
    fresh_capture: bool = True

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


class BotSupervisor:
    """
    Keeps one SessionState and bot per external session id.

    Sessions never share mutable state; each bot runs in its own task and
    may proceed concurrently with the others.
    """

    def __init__(
        self,
        table: StrategyTable,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None
    ):
        """
        Args:
            table: Strategy table shared read-only by all bots
            client_factory: Builds the HTTP client for each new bot
        """
        self.resolver = StrategyResolver(table)
        self._client_factory = client_factory
        self._entries: Dict[str, SessionEntry] = {}
        self._lock = asyncio.Lock()

    def _get(self, session_id: str) -> SessionEntry:
        entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found")
        return entry

    async def capture(self, session_id: str, capture: CaptureEvent) -> None:
        """
        Record a fresh capture for a session

        A running bot keeps its state; the capture applies on the next start.
        A stopped bot's state is discarded since the page has navigated.
        """
        async with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                self._entries[session_id] = SessionEntry(session_id=session_id, capture=capture)
                logger.info(f"Session '{session_id}' captured ({capture.symbol})")
                return

            entry.capture = capture
            entry.fresh_capture = True
            if not entry.running and entry.bot is not None:
                entry.bot.session.invalidate()
                entry.bot = None
            logger.info(f"Session '{session_id}' recaptured")

    async def start(self, session_id: str, settings: BotSettings) -> BlackjackBot:
        """
        Start a bot for a captured session

        Without a new capture since the last run, the session continues from
        the previous bot's counters instead of the captured ones.

        Raises:
            SessionNotFoundError: If the session was never captured
            ConfigurationError: If the bot is already running
        """
        async with self._lock:
            entry = self._get(session_id)
            if entry.running:
                raise ConfigurationError(f"Session '{session_id}' is already running")

            if entry.bot is not None and not entry.fresh_capture:
                session = SessionState.resume(entry.bot.session, settings, entry.capture.available_bets)
                logger.info(
                    f"Session '{session_id}' resuming at index={session.index}, counter={session.counter}"
                )
            else:
                session = SessionState.from_capture(entry.capture, settings)
            entry.fresh_capture = False

            client = self._client_factory() if self._client_factory else None
            executor = ActionExecutor(
                session=session,
                capture=entry.capture,
                delay=HumanDelay(settings.action_delay, settings.delay_std_dev),
                client=client,
            )
            bot = BlackjackBot(
                session=session,
                executor=executor,
                resolver=self.resolver,
                backoff=settings.round_backoff,
            )
            entry.bot = bot
            entry.task = asyncio.create_task(self._run(entry, bot))
            logger.info(f"Session '{session_id}' started")
            return bot

    async def _run(self, entry: SessionEntry, bot: BlackjackBot) -> StopReason:
        try:
            return await bot.run()
        finally:
            await bot.executor.close()
            logger.info(f"Session '{entry.session_id}' finished: {bot.stop_reason}")

    async def stop(self, session_id: str) -> None:
        entry = self._get(session_id)
        if entry.bot is not None:
            entry.bot.stop()

    async def wait(self, session_id: str) -> Optional[StopReason]:
        """Wait for a session's bot to finish; None if it never started"""
        entry = self._get(session_id)
        if entry.task is None:
            return None
        return await entry.task

    async def rotate_session_key(self, session_id: str, new_key: str) -> None:
        """Apply a server-side session rotation to the capture and live state"""
        entry = self._get(session_id)
        entry.capture = entry.capture.model_copy(update={"session_key": new_key})
        if entry.bot is not None:
            entry.bot.session.rotate_session_key(new_key)

    def stats(self, session_id: str) -> Optional[RunningStats]:
        entry = self._get(session_id)
        return entry.bot.stats if entry.bot is not None else None

    def list_sessions(self) -> List[dict]:
        return [
            {
                "session_id": entry.session_id,
                "symbol": entry.capture.symbol,
                "running": entry.running,
                "stop_reason": entry.bot.stop_reason.value if entry.bot and entry.bot.stop_reason else None,
            }
            for entry in self._entries.values()
        ]

    async def shutdown(self) -> None:
        """Stop every bot and wait for them to finish"""
        tasks = []
        for entry in self._entries.values():
            if entry.bot is not None:
                entry.bot.stop()
            if entry.task is not None:
                tasks.append(entry.task)

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"Bot ended with error during shutdown: {result}")

    def __repr__(self) -> str:
        running = sum(1 for entry in self._entries.values() if entry.running)
        return f"<BotSupervisor {running}/{len(self._entries)} running>"
