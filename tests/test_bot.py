from __future__ import annotations

import asyncio
import signal

import pytest

from conftest import MARKET, FakeLedger, FakePriceFeed, make_config, make_position
from liquidator.api.errors import ConfigurationError, NotLiquidatable, TransientNetworkError
from liquidator.core.bot import BotState, LiquidationBot


def _bot(ledger: FakeLedger, feed: FakePriceFeed = None, **cfg_overrides) -> LiquidationBot:
    return LiquidationBot(
        ledger,
        feed or FakePriceFeed(),
        cfg=make_config(**cfg_overrides),
        market_id=MARKET,
        install_signal_handlers=False,
    )


def _underwater_ledger(count: int) -> FakeLedger:
    return FakeLedger(
        positions={i: make_position(i, size=2.0) for i in range(1, count + 1)},
        health={i: (True, 4000.0, 0.8) for i in range(1, count + 1)},
    )


def test_cycle_liquidates_and_folds_statistics() -> None:
    ledger = _underwater_ledger(3)
    ledger.health[2] = (False, 4000.0, 1.3)
    ledger.liquidate_script[3] = [NotLiquidatable("competitor won")]
    bot = _bot(ledger)

    results = asyncio.run(bot.run_cycle())

    assert sorted(r.token_id for r in results) == [1, 3]
    assert bot.stats.cycles == 1
    assert bot.stats.total_scanned == 3
    assert bot.stats.liquidatable_found == 2
    assert bot.stats.successful_liquidations == 1
    assert bot.stats.failed_liquidations == 1
    assert bot.stats.successful_liquidations + bot.stats.failed_liquidations == len(results)
    assert 2 not in ledger.liquidate_calls


def test_shutdown_mid_cycle_finishes_group_and_prints_summary_once(capsys) -> None:
    ledger = _underwater_ledger(6)
    ledger.liquidate_script[1] = [TransientNetworkError("slow"), None]
    bot = _bot(ledger, max_concurrent_liquidations=2, scan_interval_sec=60.0)
    ledger.on_liquidate = lambda token_id: bot.request_stop()

    asyncio.run(bot.run())

    # First group (ids 1, 2 by profit tie-break) completes, including the retry
    assert set(ledger.liquidate_calls) == {1, 2}
    assert ledger.liquidate_calls[1] == 2
    assert bot.stats.cycles == 1
    assert bot.stats.successful_liquidations == 2
    assert bot.state is BotState.STOPPED

    bot.print_summary()
    out = capsys.readouterr().out
    assert out.count("LIQUIDATION BOT STATISTICS") == 1


def test_bad_cycle_does_not_stop_the_loop() -> None:
    ledger = FakeLedger()
    feed = FakePriceFeed()
    bot = _bot(ledger, feed)

    def on_fetch(call: int) -> None:
        if call == 1:
            raise RuntimeError("boom")
        bot.request_stop()

    feed.on_fetch = on_fetch
    asyncio.run(bot.run())

    assert feed.calls == 2
    assert bot.stats.cycles == 1
    assert list(bot.stats.errors) == ["Cycle error: boom"]


def test_failed_startup_configuration_is_fatal() -> None:
    ledger = FakeLedger(liquidation_config=None)
    ledger.config_write_errors = [TransientNetworkError("x")] * 3
    bot = _bot(ledger, retry_backoff_sec=0.0)

    with pytest.raises(ConfigurationError):
        asyncio.run(bot.run())

    assert ledger.total_liquidate_calls == 0


def test_manual_path_skips_healthy_position(capsys) -> None:
    ledger = _underwater_ledger(1)
    ledger.health[1] = (False, 4000.0, 1.6)
    bot = _bot(ledger)

    assert asyncio.run(bot.check_and_liquidate(1)) is None

    out = capsys.readouterr().out
    assert "Health Factor:    1.6000" in out
    assert "Liquidatable:     NO" in out
    assert ledger.total_liquidate_calls == 0


def test_manual_path_liquidates_without_touching_loop_state() -> None:
    ledger = _underwater_ledger(1)
    bot = _bot(ledger)

    result = asyncio.run(bot.check_and_liquidate(1))

    assert result.success is True
    assert result.attempts == 1
    assert bot.state is BotState.STOPPED
    assert bot.stats.cycles == 0
    assert bot.stats.successful_liquidations == 0


def test_manual_path_unknown_position() -> None:
    bot = _bot(FakeLedger())
    assert asyncio.run(bot.check_and_liquidate(5)) is None


def test_fallback_signal_handlers_are_restored(monkeypatch) -> None:
    bot = _bot(FakeLedger())
    original_int = signal.getsignal(signal.SIGINT)
    original_term = signal.getsignal(signal.SIGTERM)

    async def install_and_remove():
        loop = asyncio.get_running_loop()

        def unsupported(*args):
            raise NotImplementedError

        monkeypatch.setattr(loop, "add_signal_handler", unsupported)
        bot._add_signal_handlers()
        installed = signal.getsignal(signal.SIGINT)
        bot._remove_signal_handlers()
        return installed

    installed = asyncio.run(install_and_remove())

    assert installed is not original_int
    assert signal.getsignal(signal.SIGINT) is original_int
    assert signal.getsignal(signal.SIGTERM) is original_term
