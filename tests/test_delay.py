import asyncio
import random

import pytest

from tablerunner.core.delay import HumanDelay


@pytest.mark.parametrize("base,std", [(1000, 200), (100, 300), (50, 0), (1, 1)])
def test_samples_stay_within_five_sigma(base, std):
    delay = HumanDelay(base, std, rng=random.Random(1234))
    low, high = max(0, base - 5 * std), base + 5 * std
    exceedances = 0
    for _ in range(100000):
        value = delay.sample()
        if value < low or value > high:
            exceedances += 1
    assert exceedances == 0


def test_zero_base_delay_is_always_zero():
    delay = HumanDelay(0, 500, rng=random.Random(7))
    assert all(delay.sample() == 0 for _ in range(1000))


def test_sample_mean_is_close_to_base():
    delay = HumanDelay(1000, 100, rng=random.Random(42))
    samples = [delay.sample() for _ in range(20000)]
    assert abs(sum(samples) / len(samples) - 1000) < 10


def test_clamps_after_max_attempts():
    class Extreme(random.Random):
        def __init__(self):
            super().__init__()
            self.calls = 0

        def random(self):
            self.calls += 1
            # u1 = 2**-53 gives z ~ 8.6 sigma; u2 = 0 keeps it positive
            return 1.0 - 2 ** -53 if self.calls % 2 else 0.0

    delay = HumanDelay(100, 10, max_attempts=3, rng=Extreme())
    assert delay.sample() == 150


def test_negative_values_rejected():
    with pytest.raises(ValueError):
        HumanDelay(-1, 0)


@pytest.mark.asyncio
async def test_wait_skips_sleep_for_zero_delay(monkeypatch):
    calls = []

    async def fake_sleep(seconds):
        calls.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    assert await HumanDelay(0, 0).wait() == 0
    assert calls == []


@pytest.mark.asyncio
async def test_wait_sleeps_in_seconds(monkeypatch):
    calls = []

    async def fake_sleep(seconds):
        calls.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    waited = await HumanDelay(250, 0).wait()
    assert waited == 250
    assert calls == [0.25]
