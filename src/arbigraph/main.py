#!/usr/bin/env python3
"""Main entry point for the Arbigraph scanner."""
import asyncio
import signal
import threading
from pathlib import Path
from typing import Optional
from loguru import logger
from rich.console import Console

from arbigraph.config import ArbigraphConfig, config as default_config
from arbigraph.core.detection_engine import DetectionEngine
from arbigraph.core.rate_sources import CoinGeckoRateSource, ExchangeRateSource, RateSource
from arbigraph.infrastructure.error_handling import ArbigraphError
from arbigraph.models import Token
from arbigraph.monitoring.monitor import OpportunityMonitor


def build_rate_source(cfg: ArbigraphConfig) -> RateSource:
    """Create the rate source named in the configuration."""
    tokens = [Token(t.identity, t.symbol, t.decimals, t.price_id) for t in cfg.tokens]
    if cfg.rate_source == "exchange":
        return ExchangeRateSource(tokens, exchange_name=cfg.exchange_name)
    return CoinGeckoRateSource(tokens)


class ArbigraphScanner:
    """Runs detection passes on a fixed cadence and reports them."""

    def __init__(
        self,
        cfg: Optional[ArbigraphConfig] = None,
        rate_source: Optional[RateSource] = None,
        console: Optional[Console] = None,
    ):
        self.config = cfg or default_config
        self.rate_source = rate_source or build_rate_source(self.config)
        self.engine = DetectionEngine(self.config, self.rate_source)
        self.console = console or Console()
        self.monitor = OpportunityMonitor(self.console)
        self.running = False
        self.cancel_event = threading.Event()
        self.stop_event = asyncio.Event()

        Path(self.config.log_dir).mkdir(parents=True, exist_ok=True)
        logger.add(
            str(Path(self.config.log_dir) / "arbigraph_{time}.log"),
            rotation="1 day",
            retention="7 days",
            level=self.config.log_level,
        )

    async def scan_once(self):
        """Run one pass and report it; failures are logged, not raised."""
        try:
            result = await self.engine.run_pass(self.cancel_event)
        except ArbigraphError as e:
            logger.error(f"Detection pass failed: {e}")
            self.engine.errors.record_error(type(e).__name__)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error in detection pass: {e}")
            self.engine.errors.record_error(type(e).__name__)
            return None

        self.monitor.update_result(result)
        self.monitor.log_result(result)
        return result

    async def scan_loop(self):
        """Main loop: a pass every ``scan_interval_seconds``."""
        while self.running:
            await self.scan_once()
            if self.running:
                self.console.print(self.monitor.create_dashboard(self.monitor.latest_result))
                await self._wait_interval()

    async def _wait_interval(self):
        """Sleep until the next pass is due or the scanner is stopped."""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=self.config.scan_interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self):
        """Run the scanner until stopped."""
        self.running = True
        logger.info(
            f"Starting Arbigraph: {len(self.config.tokens)} tokens, "
            f"hop limit {self.config.search.hop_limit}, "
            f"band {self.config.acceptance.min_profit_pct}%..{self.config.acceptance.max_profit_pct}%"
        )
        try:
            await self.scan_loop()
        finally:
            await self.shutdown()

    def stop(self):
        """Stop after the current pass, waking the loop if it is waiting."""
        self.running = False
        self.cancel_event.set()
        self.stop_event.set()

    async def shutdown(self):
        """Graceful shutdown."""
        self.running = False
        await self.rate_source.close()
        stats = self.engine.errors.get_error_stats()
        logger.info(f"Recovered errors: {stats['error_types']}")
        self.engine.performance.log_summary()
        logger.success("Shutdown complete")


async def main():
    scanner = ArbigraphScanner()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, scanner.stop)

    await scanner.run()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
