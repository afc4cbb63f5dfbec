"""Tests for the REST price sources (HTTP mocked with httpx.MockTransport)."""

import httpx
import pytest

from pricefeed.binance import BinanceTickerSource
from pricefeed.coingecko import CoinGeckoSource
from pricefeed.errors import DecodeError, InvalidRequest, NotFound, TransportError
from pricefeed.interface import SourceKind
from pricefeed.spot import CoinbaseSpotClient, SpotPriceSource


def _json(payload, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return handler


@pytest.mark.asyncio
class TestBinanceTickerSource:
    """Exchange ticker decoding and error mapping."""

    async def test_decodes_string_price(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"symbol": "BTCUSDT", "price": "67000.12000000"})

        async with mock_http(handler) as http:
            quote = await BinanceTickerSource(http).fetch_quote("bitcoin")

        assert quote.canonical_id == "bitcoin"
        assert quote.price == 67000.12
        assert quote.source == "binance"
        assert seen[0].url.path == "/api/v3/ticker/price"
        assert seen[0].url.params["symbol"] == "BTCUSDT"

    async def test_unmapped_id_used_verbatim(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request.url.params["symbol"])
            return httpx.Response(200, json={"price": "1.5"})

        async with mock_http(handler) as http:
            await BinanceTickerSource(http).fetch_quote("xyz")
        assert seen == ["XYZUSDT"]

    async def test_invalid_symbol_is_not_found(self, mock_http):
        payload = {"code": -1121, "msg": "Invalid symbol."}
        async with mock_http(_json(payload, status=400)) as http:
            with pytest.raises(NotFound):
                await BinanceTickerSource(http).fetch_quote("nosuchcoin")

    async def test_missing_price_is_decode_error(self, mock_http):
        async with mock_http(_json({"symbol": "BTCUSDT"})) as http:
            with pytest.raises(DecodeError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_non_numeric_price_is_decode_error(self, mock_http):
        async with mock_http(_json({"price": "n/a"})) as http:
            with pytest.raises(DecodeError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_price_too_large_for_float_is_decode_error(self, mock_http):
        async with mock_http(_json({"price": 10**400})) as http:
            with pytest.raises(DecodeError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_zero_price_is_decode_error(self, mock_http):
        async with mock_http(_json({"price": "0.00000000"})) as http:
            with pytest.raises(DecodeError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_id_with_illegal_characters_is_invalid_request(self, mock_http):
        async with mock_http(_json({"price": "1"})) as http:
            with pytest.raises(InvalidRequest):
                await BinanceTickerSource(http).fetch_quote("avalanche 2/../x")

    async def test_timeout_is_transport_error(self, mock_http):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_http(handler) as http:
            with pytest.raises(TransportError):
                await BinanceTickerSource(http, timeout=0.5).fetch_quote("bitcoin")

    async def test_connection_error_is_transport_error(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with mock_http(handler) as http:
            with pytest.raises(TransportError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_rate_limit_is_transport_error(self, mock_http):
        async with mock_http(_json({}, status=429)) as http:
            with pytest.raises(TransportError, match="429"):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_server_error_is_transport_error(self, mock_http):
        async with mock_http(_json({}, status=502)) as http:
            with pytest.raises(TransportError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")

    async def test_non_json_body_is_decode_error(self, mock_http):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with mock_http(handler) as http:
            with pytest.raises(DecodeError):
                await BinanceTickerSource(http).fetch_quote("bitcoin")


@pytest.mark.asyncio
class TestCoinGeckoSource:
    """Aggregator simple-price and market-chart decoding."""

    async def test_single_quote(self, mock_http):
        async with mock_http(_json({"bitcoin": {"usd": 67000.5}})) as http:
            quote = await CoinGeckoSource(http).fetch_quote("bitcoin")
        assert quote.price == 67000.5
        assert quote.source == "coingecko"

    async def test_batch_request_joins_ids(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"bitcoin": {"usd": 67000.5}, "ethereum": {"usd": 3500}})

        async with mock_http(handler) as http:
            quotes = await CoinGeckoSource(http).fetch_quotes(["bitcoin", "ethereum", "bitcoin"])

        assert len(seen) == 1
        assert seen[0].url.path == "/api/v3/simple/price"
        assert seen[0].url.params["ids"] == "bitcoin,ethereum"
        assert seen[0].url.params["vs_currencies"] == "usd"
        assert {cid: q.price for cid, q in quotes.items()} == {"bitcoin": 67000.5, "ethereum": 3500.0}

    async def test_batch_omits_missing_ids(self, mock_http):
        async with mock_http(_json({"bitcoin": {"usd": 1.0}})) as http:
            quotes = await CoinGeckoSource(http).fetch_quotes(["bitcoin", "nosuchcoin"])
        assert set(quotes) == {"bitcoin"}

    async def test_absent_id_is_not_found(self, mock_http):
        async with mock_http(_json({})) as http:
            with pytest.raises(NotFound):
                await CoinGeckoSource(http).fetch_quote("nosuchcoin")

    async def test_malformed_entry_is_decode_error(self, mock_http):
        async with mock_http(_json({"bitcoin": {"eur": 1.0}})) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_quote("bitcoin")

    async def test_non_object_payload_is_decode_error(self, mock_http):
        async with mock_http(_json([1, 2, 3])) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_quote("bitcoin")

    async def test_invalid_id_is_invalid_request(self, mock_http):
        async with mock_http(_json({})) as http:
            with pytest.raises(InvalidRequest):
                await CoinGeckoSource(http).fetch_quote("Bad Id")

    async def test_invalid_ids_dropped_from_batch(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request.url.params["ids"])
            return httpx.Response(200, json={"bitcoin": {"usd": 2.0}})

        async with mock_http(handler) as http:
            quotes = await CoinGeckoSource(http).fetch_quotes(["bitcoin", "Bad Id"])
        assert seen == ["bitcoin"]
        assert set(quotes) == {"bitcoin"}

    async def test_market_chart(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"prices": [[1707580800000, 47000.0], [1707584400000, 47100.5]], "total_volumes": []},
            )

        async with mock_http(handler) as http:
            points = await CoinGeckoSource(http).fetch_market_chart("bitcoin", days=7)

        assert seen[0].url.path == "/api/v3/coins/bitcoin/market_chart"
        assert seen[0].url.params["days"] == "7"
        assert seen[0].url.params["vs_currency"] == "usd"
        assert [(p.timestamp, p.price) for p in points] == [
            (1707580800.0, 47000.0),
            (1707584400.0, 47100.5),
        ]

    async def test_market_chart_malformed_row(self, mock_http):
        async with mock_http(_json({"prices": [[1707580800000]]})) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_market_chart("bitcoin")

    async def test_market_chart_object_row(self, mock_http):
        async with mock_http(_json({"prices": [{"t": 1, "p": 2}]})) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_market_chart("bitcoin")

    async def test_market_chart_non_positive_price(self, mock_http):
        async with mock_http(_json({"prices": [[1707580800000, -1.0]]})) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_market_chart("bitcoin")

    async def test_market_chart_missing_prices(self, mock_http):
        async with mock_http(_json({"error": "coin not found"})) as http:
            with pytest.raises(DecodeError):
                await CoinGeckoSource(http).fetch_market_chart("bitcoin")


@pytest.mark.asyncio
class TestSpotPriceSource:
    """Primary spot source wrapping a collaborator client."""

    async def test_coinbase_client(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"data": {"amount": "3500.25", "base": "ETH", "currency": "USD"}})

        async with mock_http(handler) as http:
            source = SpotPriceSource(CoinbaseSpotClient(http))
            quote = await source.fetch_quote("ethereum")

        assert seen == ["/v2/prices/ETH-USD/spot"]
        assert quote.price == 3500.25
        assert quote.source == "coinbase"
        assert source.kind is SourceKind.SPOT

    async def test_coinbase_missing_amount(self, mock_http):
        async with mock_http(_json({"data": {}})) as http:
            with pytest.raises(DecodeError):
                await SpotPriceSource(CoinbaseSpotClient(http)).fetch_quote("bitcoin")

    async def test_coinbase_unknown_product(self, mock_http):
        async with mock_http(_json({"errors": [{"id": "not_found"}]}, status=404)) as http:
            with pytest.raises(NotFound):
                await SpotPriceSource(CoinbaseSpotClient(http)).fetch_quote("xyz")

    async def test_collaborator_exception_becomes_transport_error(self):
        class Broken:
            name = "broken"

            async def fetch_spot_price(self, canonical_id):
                raise ConnectionResetError("peer went away")

        with pytest.raises(TransportError, match="ConnectionResetError"):
            await SpotPriceSource(Broken()).fetch_quote("bitcoin")

    async def test_collaborator_bad_value_is_decode_error(self):
        class Negative:
            name = "negative"

            async def fetch_spot_price(self, canonical_id):
                return -5.0

        with pytest.raises(DecodeError):
            await SpotPriceSource(Negative()).fetch_quote("bitcoin")

    async def test_feed_errors_pass_through(self):
        class Missing:
            name = "missing"

            async def fetch_spot_price(self, canonical_id):
                raise NotFound("missing: no such coin")

        with pytest.raises(NotFound):
            await SpotPriceSource(Missing()).fetch_quote("bitcoin")

    async def test_name_override(self):
        class Fixed:
            name = "fixed"

            async def fetch_spot_price(self, canonical_id):
                return 2.0

        quote = await SpotPriceSource(Fixed(), name="desk").fetch_quote("bitcoin")
        assert quote.source == "desk"
