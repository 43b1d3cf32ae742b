"""Tests for the routing and wallet provider modules."""

from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio

from forgebot.chains import COMMON_TOKENS, NATIVE_TOKEN_ADDRESS
from forgebot.config import Settings
from forgebot.errors import UpstreamError
from forgebot.pipeline.gas import resolve_gas_params
from forgebot.routing.dry_run import SIMULATED_ROUTER, DryRunAggregator
from forgebot.routing.factory import create_aggregator
from forgebot.routing.openocean import OpenOceanAggregator, _to_gwei
from forgebot.wallet.base import TxParams
from forgebot.wallet.dryrun import DryRunWalletProvider
from forgebot.wallet.evm import EvmWalletProvider
from forgebot.wallet.factory import create_wallet_provider
from forgebot.wallet.keystore import create_key_encryptor, generate_encryption_key

USDC = COMMON_TOKENS["USDC"].address
ACCOUNT = "0x1111111111111111111111111111111111111111"


class TestDryRunAggregator:
    """Tests for the DryRunAggregator."""

    @pytest.mark.asyncio
    async def test_quote_applies_fee(self):
        """0.05 ETH at 3000 USD less 0.3% fee."""
        quote = await DryRunAggregator().get_quote(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 10**9)

        assert quote.out_amount == "149550000"
        assert quote.in_amount == "0.05"

    @pytest.mark.asyncio
    async def test_native_swap_carries_value(self):
        swap = await DryRunAggregator().get_swap(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 10**9, 1.0, ACCOUNT)

        assert swap.to == SIMULATED_ROUTER
        assert swap.value == 5 * 10**16
        assert swap.in_amount == 5 * 10**16

    @pytest.mark.asyncio
    async def test_token_swap_has_no_value(self):
        swap = await DryRunAggregator().get_swap(USDC, NATIVE_TOKEN_ADDRESS, "10", 10**9, 1.0, ACCOUNT)

        assert swap.value == 0
        assert swap.in_amount == 10 * 10**6

    @pytest.mark.asyncio
    async def test_registered_token_decimals(self):
        token = "0x4444444444444444444444444444444444444444"
        aggregator = DryRunAggregator(extra_tokens={token: ("FORGE", 9)})

        quote = await aggregator.get_quote(USDC, token, "1", 10**9)

        assert quote.out_amount == str(997 * 10**6)

    @pytest.mark.asyncio
    async def test_bad_amount(self):
        with pytest.raises(UpstreamError):
            await DryRunAggregator().get_quote(NATIVE_TOKEN_ADDRESS, USDC, "-1", 10**9)


def openocean(handler) -> OpenOceanAggregator:
    return OpenOceanAggregator(
        base_url="https://oo.test/v3/base",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )


class TestOpenOceanAggregator:
    """Tests for the OpenOcean client against a mocked transport."""

    def test_gas_price_in_gwei(self):
        assert _to_gwei(5 * 10**9) == "5"
        assert _to_gwei(1_500_000_000) == "1.5"

    @pytest.mark.asyncio
    async def test_quote_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={"code": 200, "data": {"outAmount": "149000000", "estimatedGas": "180000"}})

        quote = await openocean(handler).get_quote(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 2 * 10**9)

        assert seen["path"] == "/v3/base/quote"
        assert seen["params"]["amount"] == "0.05"
        assert seen["params"]["gasPrice"] == "2"
        assert seen["apikey"] == "secret"
        assert quote.out_amount == "149000000"
        assert quote.estimated_gas == 180000

    @pytest.mark.asyncio
    async def test_swap_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/base/swap_quote"
            assert request.url.params["account"] == ACCOUNT
            assert request.url.params["slippage"] == "1.0"
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "data": {
                        "to": SIMULATED_ROUTER,
                        "data": "0xabcdef",
                        "value": "50000000000000000",
                        "gasPrice": "2000000000",
                        "inAmount": "50000000000000000",
                        "outAmount": "149000000",
                        "estimatedGas": "200000",
                    },
                },
            )

        swap = await openocean(handler).get_swap(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 2 * 10**9, 1.0, ACCOUNT)

        assert swap.to == SIMULATED_ROUTER
        assert swap.value == 5 * 10**16
        assert swap.out_amount == 149000000
        assert swap.estimated_gas == 200000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="oops"),
            httpx.Response(200, json={"code": 400, "data": None}),
            httpx.Response(200, json={"code": 200, "data": {}}),
        ],
    )
    async def test_error_responses(self, response):
        with pytest.raises(UpstreamError):
            await openocean(lambda request: response).get_quote(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 10**9)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamError):
            await openocean(handler).get_quote(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 10**9)

    @pytest.mark.asyncio
    async def test_malformed_swap(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 200, "data": {"value": "1"}})

        with pytest.raises(UpstreamError):
            await openocean(handler).get_swap(NATIVE_TOKEN_ADDRESS, USDC, "0.05", 10**9, 1.0, ACCOUNT)


class TestFactories:
    def test_dry_run_aggregator(self):
        assert isinstance(create_aggregator(Settings(dry_run=True)), DryRunAggregator)

    def test_live_aggregator(self):
        aggregator = create_aggregator(Settings(dry_run=False, openocean_api_url="https://oo.test/v3/base/"))

        assert isinstance(aggregator, OpenOceanAggregator)
        assert aggregator.base_url == "https://oo.test/v3/base"

    def test_aggregator_gas_follows_injected_settings(self):
        settings = Settings(dry_run=True, gas_price_gwei_medium=Decimal("2"))

        assert DryRunAggregator(settings=settings).get_gas_params("medium").price == 2 * 10**9
        assert create_aggregator(settings).get_gas_params("medium").price == 2 * 10**9

    def test_live_aggregator_gas_follows_injected_settings(self):
        settings = Settings(dry_run=False, gas_price_gwei_high=Decimal("7"))

        gas = create_aggregator(settings).get_gas_params("high")

        assert gas.price == 7 * 10**9
        assert gas.max_fee_per_gas == 14 * 10**9

    def test_dry_run_wallets(self, session_factory):
        provider = create_wallet_provider(session_factory, Settings(dry_run=True))

        assert isinstance(provider, DryRunWalletProvider)

    def test_production_requires_encryption_key(self):
        with pytest.raises(ValueError):
            create_key_encryptor(Settings(environment="production", wallet_encryption_key=None))

    def test_configured_encryption_key(self):
        key = generate_encryption_key()
        encryptor = create_key_encryptor(Settings(wallet_encryption_key=key))

        assert encryptor.verify()


class TestEvmSigning:
    """Transaction type selection in the web3 provider, with the node stubbed out."""

    @pytest_asyncio.fixture
    async def provider(self, session_factory, encryptor):
        provider = EvmWalletProvider(session_factory, encryptor, "http://rpc.test")
        sent = []

        async def get_transaction_count(address, block):
            return 7

        async def send_raw_transaction(raw):
            sent.append(bytes(raw))
            return b"\x12" * 32

        async def estimate_gas(params):
            return 21000

        provider.w3 = SimpleNamespace(
            eth=SimpleNamespace(
                get_transaction_count=get_transaction_count,
                send_raw_transaction=send_raw_transaction,
                estimate_gas=estimate_gas,
            )
        )
        provider.sent = sent
        return provider

    @pytest.mark.asyncio
    async def test_fee_caps_sign_type_2(self, provider, registered_user, test_settings):
        wallet = await provider.generate_wallet(registered_user)
        tx = TxParams(to=ACCOUNT, value=1).with_fees(resolve_gas_params("medium", test_settings))

        tx_hash = await provider.send_transaction(wallet, tx)

        assert tx_hash == "0x" + "12" * 32
        assert provider.sent[0][0] == 2

    @pytest.mark.asyncio
    async def test_plain_gas_price_signs_legacy(self, provider, registered_user):
        wallet = await provider.generate_wallet(registered_user)

        await provider.send_transaction(wallet, TxParams(to=ACCOUNT, value=1, gas_price=10**9))

        assert provider.sent[0][0] >= 0xC0
