import asyncio
import logging
from decimal import Decimal

import httpx
import pytest

from conftest import ScriptedServer, deal, table_resolver
from tablerunner.core.bot import BlackjackBot, RunningStats, StopReason
from tablerunner.core.round import RoundOutcome, RoundResult


SIXTEENS = {0: ("10,6", "16"), 1: ("9,7", "16"), 2: ("7,9", "16")}


def lost_round():
    """Deal response that ends the round immediately with every hand lost"""
    return deal(SIXTEENS, stat0=5, stat1=5, stat2=5, end=1)


def make_bot(session, make_executor, server, resolver=None):
    return BlackjackBot(
        session=session,
        executor=make_executor(server),
        resolver=resolver or table_resolver({("10", "16"): "Stand"}),
        backoff=0,
    )


@pytest.mark.asyncio
async def test_stops_when_target_reached(session, make_executor):
    session.wager_target = Decimal("6")
    server = ScriptedServer([lost_round(), lost_round()])
    bot = make_bot(session, make_executor, server)

    reason = await bot.run()

    assert reason is StopReason.TARGET_REACHED
    assert bot.stats.rounds_played == 2
    assert bot.stats.rounds_lost == 2
    assert bot.stats.total_wagered == Decimal("6")
    assert session.total_wagered == Decimal("6")
    assert not bot.running


@pytest.mark.asyncio
async def test_frozen_halts_with_single_error(session, make_executor, caplog):
    caplog.set_level(logging.INFO, logger="tablerunner")
    server = ScriptedServer([lost_round(), "frozen=1&msg_code=7"])
    bot = make_bot(session, make_executor, server)

    reason = await bot.run()

    assert reason is StopReason.FROZEN
    assert len(server.requests) == 2
    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "frozen" in errors[0].getMessage().lower()


@pytest.mark.asyncio
async def test_desync_halts_as_frozen(session, make_executor):
    server = ScriptedServer(["index=5&end=0"])
    bot = make_bot(session, make_executor, server)

    assert await bot.run() is StopReason.FROZEN


@pytest.mark.asyncio
async def test_strategy_gap_halts(session, make_executor, caplog):
    caplog.set_level(logging.INFO, logger="tablerunner")
    server = ScriptedServer([deal(SIXTEENS)])
    bot = make_bot(session, make_executor, server, resolver=table_resolver({}))

    reason = await bot.run()

    assert reason is StopReason.STRATEGY_GAP
    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "16" in errors[0].getMessage()


@pytest.mark.asyncio
async def test_transport_error_retries_fresh_round(session, make_executor):
    session.wager_target = Decimal("3")
    server = ScriptedServer([
        httpx.ReadTimeout("timed out"),
        lost_round(),
    ])
    bot = make_bot(session, make_executor, server)

    reason = await bot.run()

    assert reason is StopReason.TARGET_REACHED
    assert server.actions == ["doDeal", "doDeal"]
    assert server.request(1)["counter"] == "10"
    assert bot.stats.rounds_played == 1


@pytest.mark.asyncio
async def test_uninitialized_session_is_configuration_stop(session, make_executor):
    session.invalidate()
    server = ScriptedServer([])
    bot = make_bot(session, make_executor, server)

    assert await bot.run() is StopReason.CONFIGURATION
    assert server.requests == []


@pytest.mark.asyncio
async def test_stop_before_next_round(session, make_executor):
    server = ScriptedServer([lost_round()])
    bot = make_bot(session, make_executor, server)
    bot.add_listener(lambda result, stats: bot.stop())

    reason = await bot.run()

    assert reason is StopReason.STOPPED
    assert bot.stats.rounds_played == 1
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_stop_wakes_backoff_early(session, make_executor):
    server = ScriptedServer([httpx.ConnectError("refused")])
    bot = make_bot(session, make_executor, server)
    bot.backoff = 60

    task = asyncio.create_task(bot.run())
    while not server.requests:
        await asyncio.sleep(0)
    bot.stop()
    reason = await asyncio.wait_for(task, timeout=5)

    assert reason is StopReason.STOPPED
    assert bot.stats.rounds_played == 0


@pytest.mark.asyncio
async def test_listeners_receive_results_and_stats(session, make_executor):
    session.wager_target = Decimal("3")
    server = ScriptedServer([lost_round()])
    bot = make_bot(session, make_executor, server)
    seen = []

    def broken(result, stats):
        raise RuntimeError("listener bug")

    bot.add_listener(broken)
    bot.add_listener(lambda result, stats: seen.append((result.outcome, stats.rounds_played)))

    await bot.run()

    assert seen == [(RoundOutcome.LOSS, 1)]


def test_running_stats_record():
    stats = RunningStats()
    stats.record(RoundResult(RoundOutcome.WIN, Decimal("3"), Decimal("6")))
    stats.record(RoundResult(RoundOutcome.PUSH, Decimal("3"), Decimal("3")))
    stats.record(RoundResult(RoundOutcome.ABANDONED, Decimal("3"), Decimal("0")))

    assert stats.rounds_played == 2
    assert stats.rounds_won == 1
    assert stats.rounds_pushed == 1
    assert stats.rounds_abandoned == 1
    assert stats.profit == Decimal("0")
    assert stats.to_dict()["total_wagered"] == "9"


@pytest.mark.asyncio
async def test_transport_error_mid_round_counts_placed_stakes(session, make_executor):
    session.wager_target = Decimal("6")
    server = ScriptedServer([
        deal(SIXTEENS),
        httpx.ConnectError("connection reset"),
        lost_round(),
    ])
    bot = make_bot(session, make_executor, server)
    seen = []
    bot.add_listener(lambda result, stats: seen.append(result.outcome))

    reason = await bot.run()

    assert reason is StopReason.TARGET_REACHED
    assert server.actions == ["doDeal", "doStand", "doDeal"]
    assert server.request(2)["counter"] == "11"
    assert bot.stats.total_wagered == session.total_wagered == Decimal("6")
    assert bot.stats.rounds_abandoned == 1
    assert bot.stats.rounds_played == 1
    assert seen == [RoundOutcome.ABANDONED, RoundOutcome.LOSS]


@pytest.mark.asyncio
async def test_halt_mid_round_counts_placed_stakes(session, make_executor):
    server = ScriptedServer([deal(SIXTEENS), "frozen=1&msg_code=7"])
    bot = make_bot(session, make_executor, server)

    assert await bot.run() is StopReason.FROZEN
    assert bot.stats.total_wagered == session.total_wagered == Decimal("3")
    assert bot.stats.rounds_abandoned == 1


def test_running_stats_track_balance():
    stats = RunningStats()
    stats.record(RoundResult(RoundOutcome.LOSS, Decimal("3"), Decimal("0")))
    assert stats.to_dict()["balance"] is None

    stats.record(RoundResult(RoundOutcome.LOSS, Decimal("3"), Decimal("0"), balance=Decimal("97")))
    stats.record(RoundResult(RoundOutcome.WIN, Decimal("3"), Decimal("6"), balance=Decimal("100")))

    assert stats.start_balance == Decimal("97")
    assert stats.balance == Decimal("100")
    assert stats.to_dict()["start_balance"] == "97"
    assert stats.to_dict()["balance"] == "100"
