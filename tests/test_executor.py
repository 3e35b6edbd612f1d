import httpx
import pytest

from conftest import SESSION_KEY, ScriptedServer, deal
from tablerunner.infrastructure.http_executor import ResultKind
from tablerunner.infrastructure.wire import WireAction
from tablerunner.utils.exceptions import ConfigurationError


@pytest.mark.asyncio
async def test_success_advances_counters(session, make_executor):
    server = ScriptedServer([{"end": "0"}])
    executor = make_executor(server)

    result = await executor.execute(WireAction.HIT, cid=1)

    assert result.success
    sent = server.request(0)
    assert (sent["index"], sent["counter"]) == ("5", "10")
    assert (session.index, session.counter) == (6, 11)
    assert executor.request_count == 1


@pytest.mark.asyncio
async def test_request_is_sent_verbatim(make_executor):
    server = ScriptedServer([deal({0: ("10,6", "16")})])
    executor = make_executor(server)

    await executor.execute(WireAction.DEAL, bet_string="1,0,1,0,1,0,0,0")

    assert server.raw_bodies[0] == (
        "action=doDeal&symbol=bjmb&cid=0&c=1,0,1,0,1,0,0,0"
        f"&index=5&counter=10&repeat=0&mgckey={SESSION_KEY}"
    )


@pytest.mark.asyncio
async def test_next_request_chains_from_response(session, make_executor):
    server = ScriptedServer([
        "index=20&counter=40&end=0",
        {"end": "0"},
    ])
    executor = make_executor(server)

    await executor.execute(WireAction.HIT)
    await executor.execute(WireAction.STAND)

    second = server.request(1)
    assert (second["index"], second["counter"]) == ("21", "41")
    assert (session.index, session.counter) == (22, 42)


@pytest.mark.parametrize("body", [
    "frozen=1&msg_code=7",
    "frozen=1",
    "msg_code=7&index=5&counter=10",
    "status=SystemError&index=5&counter=10",
])
@pytest.mark.asyncio
async def test_frozen_markers(body, session, make_executor):
    server = ScriptedServer([body])
    executor = make_executor(server)

    result = await executor.execute(WireAction.HIT)

    assert result.kind is ResultKind.FROZEN
    assert not result.success
    assert (session.index, session.counter) == (5, 10)


@pytest.mark.asyncio
async def test_transport_error_leaves_session_untouched(session, make_executor):
    server = ScriptedServer([httpx.ConnectError("connection refused")])
    executor = make_executor(server)

    result = await executor.execute(WireAction.DEAL, bet_string="1,0,1,0,1,0,0,0")

    assert result.kind is ResultKind.TRANSPORT
    assert "ConnectError" in result.error
    assert (session.index, session.counter) == (5, 10)


@pytest.mark.asyncio
async def test_http_error_status_is_transport_failure(session, make_executor):
    server = ScriptedServer([(502, "bad gateway")])
    executor = make_executor(server)

    result = await executor.execute(WireAction.HIT)

    assert result.kind is ResultKind.TRANSPORT
    assert result.error == "HTTP 502"
    assert (session.index, session.counter) == (5, 10)


@pytest.mark.asyncio
async def test_missing_counters_is_desync(session, make_executor):
    server = ScriptedServer(["index=5&end=0"])
    executor = make_executor(server)

    result = await executor.execute(WireAction.HIT)

    assert result.kind is ResultKind.DESYNC
    assert "counter" in result.error
    assert (session.index, session.counter) == (5, 10)


@pytest.mark.asyncio
async def test_backwards_counters_is_desync(session, make_executor):
    server = ScriptedServer(["index=1&counter=1"])
    executor = make_executor(server)

    result = await executor.execute(WireAction.HIT)

    assert result.kind is ResultKind.DESYNC


@pytest.mark.asyncio
async def test_uninitialized_session_refuses_to_send(session, make_executor):
    server = ScriptedServer([])
    executor = make_executor(server)
    session.invalidate()

    with pytest.raises(ConfigurationError):
        await executor.execute(WireAction.DEAL)
    assert server.requests == []


@pytest.mark.asyncio
async def test_rotated_key_used_on_next_request(session, make_executor):
    server = ScriptedServer([{"end": "0"}])
    executor = make_executor(server)
    session.rotate_session_key("ROTATED@key")

    await executor.execute(WireAction.STAND)

    assert server.request(0)["mgckey"] == "ROTATED@key"
