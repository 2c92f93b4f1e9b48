"""Rate sources that hand materialised quote snapshots to the engine."""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import aiohttp
import ccxt
from loguru import logger

from arbigraph.infrastructure.error_handling import RateSourceError
from arbigraph.models import Quote, Token

Pair = Tuple[str, str]

COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"


class RateSource(ABC):
    """Supplies a full snapshot of token -> token quotes per call."""

    name: str = "rate-source"

    @abstractmethod
    async def fetch_quotes(self) -> Dict[Pair, Quote]:
        """Return quotes keyed by ordered (source, target) identity pairs."""

    async def close(self):
        """Release any resources held by the source."""


class StaticRateSource(RateSource):
    """Serves a fixed quote mapping."""

    name = "static"

    def __init__(self, quotes: Optional[Mapping[Pair, Quote]] = None):
        self.quotes: Dict[Pair, Quote] = dict(quotes or {})

    def set_quotes(self, quotes: Mapping[Pair, Quote]):
        self.quotes = dict(quotes)

    async def fetch_quotes(self) -> Dict[Pair, Quote]:
        return dict(self.quotes)


class PriceTableRateSource(RateSource):
    """Derives every ordered cross rate from a reference price per token.

    A token without a usable price contributes no edges; rates are never
    invented for it.
    """

    name = "price-table"

    def __init__(
        self,
        tokens: Sequence[Token],
        prices: Optional[Mapping[str, float]] = None,
        liquidity: Optional[Mapping[Pair, float]] = None,
        default_liquidity: float = 50000.0,
        fee: Optional[float] = None,
        exchange: Optional[str] = None,
    ):
        self.tokens = list(tokens)
        self.prices: Dict[str, float] = dict(prices or {})
        self.liquidity = dict(liquidity or {})
        self.default_liquidity = default_liquidity
        self.fee = fee
        self.exchange = exchange or self.name

    async def fetch_prices(self) -> Dict[str, float]:
        """Return reference prices keyed by token identity."""
        return dict(self.prices)

    async def fetch_quotes(self) -> Dict[Pair, Quote]:
        prices = await self.fetch_prices()
        return self.build_quotes(prices)

    def build_quotes(self, prices: Mapping[str, float], now: Optional[datetime] = None) -> Dict[Pair, Quote]:
        """Cross every priced token with every other priced token."""
        now = now or datetime.now()
        priced = [t for t in self.tokens if (prices.get(t.identity) or 0) > 0]
        quotes: Dict[Pair, Quote] = {}

        for source in priced:
            for target in priced:
                if source.identity == target.identity:
                    continue
                pair = (source.identity, target.identity)
                quotes[pair] = Quote(
                    rate=prices[source.identity] / prices[target.identity],
                    fee=self.fee,
                    liquidity=self.liquidity.get(pair, self.default_liquidity),
                    timestamp=now,
                    exchange=self.exchange,
                )

        missing = len(self.tokens) - len(priced)
        if missing:
            logger.warning(f"{missing} token(s) have no price; their edges are omitted")
        logger.debug(f"Built {len(quotes)} cross rates from {len(priced)} prices")
        return quotes


class CoinGeckoRateSource(PriceTableRateSource):
    """Price table fed by the CoinGecko simple price endpoint."""

    name = "coingecko"

    def __init__(self, tokens: Sequence[Token], timeout: float = 10.0, **kwargs):
        super().__init__(tokens, **kwargs)
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_json(self, url: str, params: Dict[str, str]) -> Any:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        async with self.session.get(
            url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            if response.status != 200:
                raise RateSourceError(f"CoinGecko returned HTTP {response.status}")
            return await response.json()

    async def fetch_prices(self) -> Dict[str, float]:
        by_price_id = {t.price_id: t.identity for t in self.tokens if t.price_id}
        if not by_price_id:
            raise RateSourceError("no token has a CoinGecko price id")

        try:
            data = await self._get_json(
                COINGECKO_PRICE_URL,
                {"ids": ",".join(by_price_id), "vs_currencies": "usd"},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RateSourceError(f"CoinGecko request failed: {e}") from e

        prices: Dict[str, float] = {}
        for price_id, identity in by_price_id.items():
            usd = (data.get(price_id) or {}).get("usd")
            if usd:
                prices[identity] = float(usd)
        logger.info(f"Loaded {len(prices)}/{len(by_price_id)} prices from CoinGecko")
        return prices

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()


class ExchangeRateSource(RateSource):
    """Quotes built from a ccxt exchange's top of book.

    For a market ``BASE/QUOTE`` selling base at the bid gives ``BASE -> QUOTE``
    and buying base at the ask gives ``QUOTE -> BASE`` at ``1 / ask``.
    """

    name = "exchange"

    def __init__(self, tokens: Sequence[Token], exchange_name: str = "kraken", exchange=None):
        self.tokens = list(tokens)
        self.exchange_name = exchange_name
        self.exchange = exchange or self._initialize_exchange(exchange_name)
        self.markets: Dict[str, dict] = {}
        self._by_symbol = {t.symbol: t for t in self.tokens}

    @staticmethod
    def _initialize_exchange(name: str):
        try:
            exchange_class = getattr(ccxt, name)
        except AttributeError as e:
            raise RateSourceError(f"unknown ccxt exchange: {name}") from e
        return exchange_class({
            'enableRateLimit': True,
            'options': {'defaultType': 'spot'},
        })

    async def load_markets(self) -> Dict[str, dict]:
        """Load the exchange's markets once."""
        self.markets = await asyncio.to_thread(self.exchange.load_markets)
        logger.info(f"Loaded {len(self.markets)} markets from {self.exchange_name}")
        return self.markets

    def relevant_symbols(self) -> List[str]:
        """Markets whose base and quote are both in the token universe."""
        symbols = []
        for symbol in self.markets:
            base, _, quote = symbol.partition('/')
            if base in self._by_symbol and quote in self._by_symbol:
                symbols.append(symbol)
        return symbols

    async def _fetch_ticker(self, symbol: str) -> Optional[dict]:
        try:
            return await asyncio.to_thread(self.exchange.fetch_ticker, symbol)
        except ccxt.BaseError as e:
            logger.debug(f"Failed to fetch ticker for {symbol}: {e}")
            return None

    async def fetch_quotes(self) -> Dict[Pair, Quote]:
        if not self.markets:
            try:
                await self.load_markets()
            except ccxt.BaseError as e:
                raise RateSourceError(f"failed to load markets: {e}") from e

        symbols = self.relevant_symbols()
        tickers = await asyncio.gather(*(self._fetch_ticker(s) for s in symbols))

        quotes: Dict[Pair, Quote] = {}
        for symbol, ticker in zip(symbols, tickers):
            if ticker:
                quotes.update(self.quotes_from_ticker(symbol, ticker))

        logger.debug(f"Fetched {len(quotes)} quotes from {len(symbols)} markets")
        return quotes

    def quotes_from_ticker(self, symbol: str, ticker: dict) -> Dict[Pair, Quote]:
        base_symbol, _, quote_symbol = symbol.partition('/')
        base = self._by_symbol[base_symbol].identity
        quote = self._by_symbol[quote_symbol].identity
        fee = self.markets.get(symbol, {}).get('taker')
        stamp = ticker.get('timestamp')
        timestamp = datetime.fromtimestamp(stamp / 1000) if stamp else datetime.now()

        quotes = {}
        bid = ticker.get('bid')
        ask = ticker.get('ask')
        if bid:
            quotes[(base, quote)] = Quote(
                rate=float(bid),
                fee=float(fee) if fee is not None else None,
                liquidity=float(ticker.get('bidVolume') or 0),
                timestamp=timestamp,
                exchange=self.exchange_name,
            )
        if ask:
            quotes[(quote, base)] = Quote(
                rate=1.0 / float(ask),
                fee=float(fee) if fee is not None else None,
                liquidity=float(ticker.get('askVolume') or 0),
                timestamp=timestamp,
                exchange=self.exchange_name,
            )
        return quotes

    async def close(self):
        if hasattr(self.exchange, 'close'):
            try:
                await asyncio.to_thread(self.exchange.close)
            except ccxt.BaseError as e:
                logger.debug(f"Error closing exchange: {e}")
