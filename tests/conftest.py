"""Shared fixtures: a scripted fake game server on httpx.MockTransport"""

from decimal import Decimal
from typing import Dict, List, Tuple, Union

import httpx
import pytest

from tablerunner.core.delay import HumanDelay
from tablerunner.core.models import BotSettings, CaptureEvent
from tablerunner.core.session_state import SessionState
from tablerunner.core.strategy import DEALER_KEYS, StrategyResolver, StrategyTable
from tablerunner.infrastructure.http_executor import ActionExecutor


REQUEST_URL = "https://game.example/gs2c/ge/v3/gameService"
SESSION_KEY = "AUTHTOKEN@abc~def~123"


class ScriptedServer:
    """
    Replies to each request with the next scripted response.

    A dict response is rendered as a body that echoes the request's
    index/counter followed by the dict's fields; a str is sent verbatim;
    an exception instance is raised as a transport failure; a
    (status, text) tuple sets the HTTP status.
    """

    def __init__(self, responses: List[Union[Dict[str, str], str, Exception, Tuple[int, str]]]):
        self.responses = list(responses)
        self.requests: List[List[Tuple[str, str]]] = []
        self.raw_bodies: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = request.content.decode()
        self.raw_bodies.append(body)
        pairs = [tuple(pair.split("=", 1)) for pair in body.split("&")]
        self.requests.append(pairs)

        if not self.responses:
            raise AssertionError(f"Unexpected request: {body}")
        response = self.responses.pop(0)

        if isinstance(response, Exception):
            raise response
        if isinstance(response, tuple):
            status, text = response
            return httpx.Response(status, text=text)
        if isinstance(response, str):
            return httpx.Response(200, text=response)

        sent = dict(pairs)
        fields = {"index": sent["index"], "counter": sent["counter"]}
        fields.update(response)
        return httpx.Response(200, text="&".join(f"{k}={v}" for k, v in fields.items()))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def actions(self) -> List[str]:
        return [dict(pairs)["action"] for pairs in self.requests]

    def request(self, n: int) -> Dict[str, str]:
        return dict(self.requests[n])


def deal(hands: Dict[int, Tuple[str, str]], dealer: int = 10, **extra) -> Dict[str, str]:
    """Deal/action response: hands maps index -> (cards, total)"""
    fields = {}
    for index, (cards, total) in hands.items():
        fields[f"cp{index}"] = cards
        fields[f"sp{index}"] = total
        fields[f"stat{index}"] = "1"
    fields["sd"] = str(dealer)
    fields["hnd"] = str(min(hands)) if hands else "0"
    fields.update({"hiip": "1", "stip": "1", "doip": "1"})
    fields.update({key: str(value) for key, value in extra.items()})
    return fields


def table_resolver(entries: Dict[Tuple[str, str], str]) -> StrategyResolver:
    """Resolver over a table with every dealer key present and only the given entries"""
    data = {key: {} for key in DEALER_KEYS}
    for (dealer, signature), action in entries.items():
        data[dealer][signature] = action
    return StrategyResolver(StrategyTable.from_dict(data))


@pytest.fixture
def capture() -> CaptureEvent:
    return CaptureEvent(
        origin="https://game.example",
        symbol="bjmb",
        sessionKey=SESSION_KEY,
        requestUrl=REQUEST_URL,
        index=4,
        counter=9,
    )


@pytest.fixture
def settings() -> BotSettings:
    return BotSettings(betUnit=Decimal("1"), wagerTarget=Decimal("0"))


@pytest.fixture
def session(capture, settings) -> SessionState:
    return SessionState.from_capture(capture, settings)


@pytest.fixture
def resolver() -> StrategyResolver:
    return StrategyResolver(StrategyTable.basic())


@pytest.fixture
def make_executor(session, capture):
    def _make(server: ScriptedServer) -> ActionExecutor:
        return ActionExecutor(
            session=session,
            capture=capture,
            delay=HumanDelay(0, 0),
            client=server.client(),
        )
    return _make
