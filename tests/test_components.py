"""Component tests for ForgeBot modules.

Tests the locks, validators, amount parsing, gas resolution, formatters,
key encryption and the handler registry.
"""

import asyncio
from decimal import Decimal

import pytest

from forgebot.bot.events import Callback, Command, FreeformText, Reply
from forgebot.bot.router import Router, callbacks, text
from forgebot.bot.states import BuyAmount, BuyTokenSelect, load_state
from forgebot.config import Settings
from forgebot.errors import SessionStateError, UserInputError
from forgebot.pipeline.amounts import normalize_amount, parse_amount, to_base_units
from forgebot.pipeline.gas import resolve_gas_params
from forgebot.sessions.models import Session
from forgebot.utils import locks
from forgebot.utils.formatters import format_eth_balance, format_units, shorten_address
from forgebot.utils.locks import (
    LockTimeoutError,
    SessionLock,
    active_session_locks,
    clear_session_locks,
)
from forgebot.utils.validators import (
    is_valid_address,
    is_valid_private_key,
    normalize_private_key,
    parse_gas_priority,
    parse_slippage,
)
from forgebot.wallet.keystore import KeyEncryptor, generate_encryption_key

ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


class TestSessionLocks:
    """Tests for the per-session lease."""

    @pytest.fixture(autouse=True)
    def setup(self):
        """Clear locks before each test."""
        clear_session_locks()

    @pytest.mark.asyncio
    async def test_same_session_shares_lock(self):
        async with SessionLock("abc", operation="test") as lease:
            assert lease._lock is locks._session_locks["abc"].lock
            assert lease._lock.locked()

    @pytest.mark.asyncio
    async def test_different_sessions_do_not_block(self):
        async with SessionLock("abc"):
            async with SessionLock("def", timeout=0.05):
                assert active_session_locks() == 2

    @pytest.mark.asyncio
    async def test_entry_removed_after_context(self):
        async with SessionLock("abc", operation="test"):
            assert active_session_locks() == 1

        assert active_session_locks() == 0

    @pytest.mark.asyncio
    async def test_lock_serializes_requests(self):
        """Second holder only enters after the first leaves."""
        order = []

        async def worker(name: str, delay: float):
            async with SessionLock("abc", timeout=5.0):
                order.append(f"{name}-in")
                await asyncio.sleep(delay)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a", 0.05), worker("b", 0))

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert active_session_locks() == 0

    @pytest.mark.asyncio
    async def test_waiter_keeps_entry_alive(self):
        first = SessionLock("abc")
        await first.__aenter__()
        waiter = asyncio.create_task(SessionLock("abc", timeout=5.0).__aenter__())
        await asyncio.sleep(0)

        assert locks._session_locks["abc"].users == 2

        await first.__aexit__(None, None, None)
        second = await waiter
        assert active_session_locks() == 1

        await second.__aexit__(None, None, None)
        assert active_session_locks() == 0

    @pytest.mark.asyncio
    async def test_lock_timeout(self):
        async with SessionLock("abc"):
            with pytest.raises(LockTimeoutError):
                async with SessionLock("abc", timeout=0.05):
                    pass

            assert locks._session_locks["abc"].users == 1

        assert active_session_locks() == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_exception(self):
        with pytest.raises(RuntimeError):
            async with SessionLock("abc"):
                raise RuntimeError("boom")

        assert active_session_locks() == 0

    @pytest.mark.asyncio
    async def test_many_sessions_leave_no_entries(self):
        for i in range(500):
            async with SessionLock(f"session-{i}"):
                pass

        assert active_session_locks() == 0


class TestValidators:
    """Tests for chat input validators."""

    def test_valid_address(self):
        assert is_valid_address(ADDRESS)
        assert is_valid_address(f"  {ADDRESS} ")

    def test_invalid_address(self):
        assert not is_valid_address("0x1234")
        assert not is_valid_address(ADDRESS[2:])
        assert not is_valid_address("0xZZ3589fCD6eDb6E08f4c7C32D4f71b54bdA02913")
        assert not is_valid_address("")
        assert not is_valid_address(None)

    def test_private_key(self):
        key = "ab" * 32
        assert is_valid_private_key(key)
        assert is_valid_private_key("0x" + key)
        assert not is_valid_private_key(key[:-2])
        assert normalize_private_key(key) == "0x" + key
        assert normalize_private_key("0x" + key) == "0x" + key

    def test_slippage_options(self):
        assert parse_slippage("0.5") == 0.5
        assert parse_slippage("1.0") == 1.0
        assert parse_slippage("2") == 2.0
        assert parse_slippage("3.0") is None
        assert parse_slippage("abc") is None

    def test_gas_priority_options(self):
        assert parse_gas_priority("low") == "low"
        assert parse_gas_priority("HIGH") == "high"
        assert parse_gas_priority("turbo") is None


class TestAmounts:
    """Tests for amount parsing and unit conversion."""

    def test_leading_dot_normalized(self):
        assert normalize_amount(".5") == "0.5"
        assert parse_amount(".5", 18) == ("0.5", 5 * 10**17)

    def test_plain_amount(self):
        assert parse_amount("0.05", 18) == ("0.05", 5 * 10**16)
        assert parse_amount(" 12 ", 6) == ("12", 12_000_000)

    @pytest.mark.parametrize("value", ["", "abc", "-1", "0", "0.0", "1e5", "1,5", "1.2.3", "."])
    def test_rejects_malformed_or_non_positive(self, value):
        with pytest.raises(UserInputError):
            parse_amount(value, 18)

    def test_rejects_excess_precision(self):
        with pytest.raises(UserInputError):
            parse_amount("0.0000001", 6)

    def test_large_values_exact(self):
        assert to_base_units(Decimal("123456789.123456789123456789"), 18) == 123456789123456789123456789


class TestGasResolution:
    """Tests for gas parameter resolution."""

    def test_medium_defaults(self):
        gas = resolve_gas_params("medium", Settings())

        assert gas.price == 5 * 10**9
        assert gas.max_fee_per_gas == 10 * 10**9
        assert gas.max_priority_fee_per_gas == 5 * 10**9 * 95 // 100
        assert gas.price_gwei == "5"

    def test_priorities_are_ordered(self):
        settings = Settings()
        low, medium, high = (resolve_gas_params(p, settings) for p in ("low", "medium", "high"))

        assert low.price < medium.price < high.price

    def test_configured_table(self):
        gas = resolve_gas_params("low", Settings(gas_price_gwei_low=Decimal("0.5")))

        assert gas.price == 5 * 10**8

    def test_unknown_priority(self):
        with pytest.raises(ValueError):
            resolve_gas_params("turbo", Settings())


class TestFormatters:
    def test_format_units_strips_zeros(self):
        assert format_units(1_500_000, 6) == "1.5"
        assert format_units(10**18, 18) == "1"
        assert format_units(0, 18) == "0"

    def test_format_eth_balance(self):
        assert format_eth_balance(10**17) == "0.100000"

    def test_shorten_address(self):
        assert shorten_address(ADDRESS) == "0x8335...2913"


class TestKeyEncryptor:
    def test_round_trip(self):
        encryptor = KeyEncryptor(generate_encryption_key())
        secret = "0x" + "11" * 32

        encrypted = encryptor.encrypt(secret)

        assert encrypted != secret
        assert encryptor.decrypt(encrypted) == secret
        assert encryptor.verify()

    def test_wrong_key(self):
        encrypted = KeyEncryptor(generate_encryption_key()).encrypt("secret")

        with pytest.raises(ValueError):
            KeyEncryptor(generate_encryption_key()).decrypt(encrypted)

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            KeyEncryptor("not-a-fernet-key")


class TestRouter:
    """Tests for the handler registry."""

    @pytest.fixture
    def router(self):
        router = Router("test")

        @router.command("buy")
        async def cmd_buy(ctx, event, state):
            return Reply(response="buy")

        @router.callback("help")
        async def cb_help(ctx, event, state):
            return Reply(response="help")

        @router.callback_prefix("sell_")
        async def cb_sell(ctx, event, state):
            return Reply(response="sell")

        @router.callback_prefix("sell_token_")
        async def cb_sell_token(ctx, event, state):
            return Reply(response="sell_token")

        @router.step(BuyAmount, accepts=text)
        async def step_amount(ctx, event, state):
            return Reply(response="amount")

        return router

    def test_command_resolution_normalizes(self, router):
        assert router.resolve_command("/BUY") is not None
        assert router.resolve_command("sell") is None

    def test_exact_callback_before_prefix(self, router):
        assert router.resolve_callback("help") is not None
        assert router.resolve_callback("unknown") is None

    @pytest.mark.asyncio
    async def test_longest_prefix_wins(self, router):
        handler = router.resolve_callback(f"sell_token_{ADDRESS}")
        reply = await handler(None, None, None)

        assert reply.response == "sell_token"

    def test_step_requires_matching_event(self, router):
        state = BuyAmount(wallet_address=ADDRESS, balance=1, to_token=ADDRESS, to_symbol="USDC", to_decimals=6)

        assert router.resolve_step(state, FreeformText("0.1")) is not None
        assert router.resolve_step(state, Callback("confirm_yes")) is None
        assert router.resolve_step(state, FreeformText("   ")) is None

    def test_step_not_registered_for_other_state(self, router):
        state = BuyTokenSelect(wallet_address=ADDRESS, balance=1)

        assert router.resolve_step(state, FreeformText("0.1")) is None

    def test_duplicate_command_rejected(self, router):
        other = Router("other")

        @other.command("buy")
        async def another_buy(ctx, event, state):
            return Reply(response="again")

        with pytest.raises(ValueError):
            router.include_router(other)

    def test_callbacks_predicate(self):
        predicate = callbacks("confirm_yes", "confirm_no")

        assert predicate(Callback("confirm_yes"))
        assert not predicate(Callback("confirm_maybe"))
        assert not predicate(Command("confirm_yes"))


class TestWorkflowStates:
    """Tests for typed workflow state loading."""

    def test_idle_session_has_no_state(self):
        assert load_state(Session(id="s")) is None

    def test_enter_then_load(self):
        session = Session(id="s")
        session.enter(BuyTokenSelect(wallet_address=ADDRESS, balance=10))

        state = load_state(session)

        assert session.current_action == "buy_token"
        assert isinstance(state, BuyTokenSelect)
        assert state.balance == 10
        assert "action" not in session.temp_data

    def test_incoherent_temp_data(self):
        session = Session(id="s", current_action="buy_amount", temp_data={"balance": "lots"})

        with pytest.raises(SessionStateError):
            load_state(session)

    def test_unknown_action(self):
        session = Session(id="s", current_action="teleport", temp_data={})

        with pytest.raises(SessionStateError):
            load_state(session)

    def test_reset(self):
        session = Session(id="s")
        session.enter(BuyTokenSelect(wallet_address=ADDRESS, balance=10))
        session.reset()

        assert session.current_action is None
        assert session.temp_data == {}
