"""HTTP action executor: one wire action per call, no retries"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx

from ..core.delay import HumanDelay
from ..core.models import CaptureEvent
from ..core.session_state import SessionState
from ..utils.config import Config
from ..utils.exceptions import ConfigurationError, ProtocolDesync
from ..utils.logger import logger
from .wire import (
    GameSnapshot,
    ResponseFields,
    WireAction,
    build_request_body,
    detect_frozen,
    parse_response,
)


class ResultKind(str, Enum):
    OK = "ok"
    FROZEN = "frozen"
    DESYNC = "desync"
    TRANSPORT = "transport"


@dataclass
class ActionResult:
    """Outcome of one request/response pair"""
    kind: ResultKind
    action: WireAction
    fields: ResponseFields = field(default_factory=lambda: ResponseFields({}))
    raw: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind is ResultKind.OK

    @property
    def snapshot(self) -> GameSnapshot:
        return GameSnapshot.from_fields(self.fields)


class ActionExecutor:
    """Sends wire actions for a single session, strictly one at a time"""

    def __init__(
        self,
        session: SessionState,
        capture: CaptureEvent,
        delay: Optional[HumanDelay] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        """
        Args:
            session: Session state to read counters from and advance
            capture: Captured request URL, origin and game symbol
            delay: Pre-request delay policy (default: no delay)
            client: HTTP client to use (default: a new AsyncClient)
            timeout: Request timeout in seconds (default: Config)
        """
        self.session = session
        self.capture = capture
        self.delay = delay or HumanDelay()
        self.timeout = timeout if timeout is not None else Config.get_request_timeout()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.timeout,
            limits=httpx.Limits(
                max_connections=1,
                max_keepalive_connections=1
            )
        )
        self.request_count = 0
        logger.debug(f"ActionExecutor initialized: {capture.request_url} (symbol: {capture.symbol})")

    def _headers(self) -> dict:
        return {
            "accept": "*/*",
            "cache-control": "no-cache",
            "content-type": "application/x-www-form-urlencoded",
            "origin": self.capture.origin,
            "pragma": "no-cache",
        }

    async def execute(
        self,
        action: WireAction,
        cid: int = 0,
        bet_string: Optional[str] = None,
        insurance: Optional[int] = None
    ) -> ActionResult:
        """
        Send one action and advance the session from the reply

        Args:
            action: Wire action to send
            cid: Target hand index (0 for table-level actions)
            bet_string: Stake string, doDeal only
            insurance: Insurance flag (0 declines)

        Returns:
            ActionResult; transport failures leave the session untouched
        """
        if not self.session.is_initialized:
            raise ConfigurationError("Session is not initialized - capture required")

        action = WireAction(action)
        body = build_request_body(
            action=action,
            symbol=self.capture.symbol,
            cid=cid,
            index=self.session.index,
            counter=self.session.counter,
            session_key=self.session.session_key,
            bet_string=bet_string,
            insurance=insurance,
        )

        await self.delay.wait()

        logger.debug(f"Request: {action.value} cid={cid} index={self.session.index} counter={self.session.counter}")
        try:
            response = await self.client.post(
                self.capture.request_url,
                content=body.encode(),
                headers=self._headers(),
                timeout=self.timeout,
            )
            self.request_count += 1
            response.raise_for_status()
            text = response.text
        except httpx.HTTPStatusError as e:
            logger.warning(f"{action.value} failed: HTTP {e.response.status_code}")
            return ActionResult(
                kind=ResultKind.TRANSPORT,
                action=action,
                error=f"HTTP {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            logger.warning(f"{action.value} failed: {type(e).__name__}: {e}")
            return ActionResult(
                kind=ResultKind.TRANSPORT,
                action=action,
                error=f"{type(e).__name__}: {e}",
            )

        logger.debug(f"Response: {text[:200]}")

        fields = parse_response(text)
        marker = detect_frozen(text, fields)
        if marker:
            return ActionResult(
                kind=ResultKind.FROZEN,
                action=action,
                fields=fields,
                raw=text,
                error=f"Game frozen ({marker})",
            )

        try:
            self.session.advance(fields.require_int("index"), fields.require_int("counter"))
        except ProtocolDesync as e:
            return ActionResult(
                kind=ResultKind.DESYNC,
                action=action,
                fields=fields,
                raw=text,
                error=str(e),
            )

        return ActionResult(kind=ResultKind.OK, action=action, fields=fields, raw=text)

    async def close(self):
        """Close HTTP client if this executor created it"""
        if self._owns_client:
            await self.client.aclose()
