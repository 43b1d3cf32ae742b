"""Typed workflow states.

Each `current_action` value names one model below; the session's temp_data
is that model's fields. Resuming a step parses temp_data against the model,
so a handler only ever sees a complete, well-typed state.
"""

import time
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from forgebot.chains import NATIVE_DECIMALS, NATIVE_SYMBOL, NATIVE_TOKEN_ADDRESS
from forgebot.errors import SessionStateError
from forgebot.pipeline.gas import GasParams
from forgebot.sessions.models import Session


class WorkflowState(BaseModel):
    """Common fields of every workflow step."""

    touched_at: float = Field(default_factory=time.time)


class GasSnapshot(BaseModel):
    """Fee parameters (wei) fixed when the amount was accepted."""

    price: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @classmethod
    def capture(cls, gas: GasParams) -> "GasSnapshot":
        return cls(
            price=gas.price,
            max_fee_per_gas=gas.max_fee_per_gas,
            max_priority_fee_per_gas=gas.max_priority_fee_per_gas,
        )

    def params(self) -> GasParams:
        return GasParams(
            price=self.price,
            max_fee_per_gas=self.max_fee_per_gas,
            max_priority_fee_per_gas=self.max_priority_fee_per_gas,
        )


class QuoteSnapshot(BaseModel):
    """Quote captured at amount entry and reused verbatim at execution."""

    to_amount: str  # Base units of the output token
    gas: GasSnapshot
    quoted_at: float
    operation_id: str


# ======================
# Buy
# ======================


class _BuyBase(WorkflowState):
    wallet_address: str
    balance: int  # Native balance in wei at workflow start
    from_token: str = NATIVE_TOKEN_ADDRESS
    from_symbol: str = NATIVE_SYMBOL
    from_decimals: int = NATIVE_DECIMALS


class BuyTokenSelect(_BuyBase):
    action: Literal["buy_token"] = "buy_token"


class BuyCustomToken(_BuyBase):
    action: Literal["buy_custom_token"] = "buy_custom_token"


class BuyAmount(_BuyBase):
    action: Literal["buy_amount"] = "buy_amount"
    to_token: str
    to_symbol: str
    to_decimals: int


class BuyConfirm(_BuyBase):
    action: Literal["buy_confirm"] = "buy_confirm"
    to_token: str
    to_symbol: str
    to_decimals: int
    amount_text: str
    from_amount: int
    quote: QuoteSnapshot


# ======================
# Sell
# ======================


class SellTokenSelect(WorkflowState):
    action: Literal["sell_token"] = "sell_token"
    wallet_address: str


class SellCustomToken(WorkflowState):
    action: Literal["sell_custom_token"] = "sell_custom_token"
    wallet_address: str


class _SellBase(WorkflowState):
    wallet_address: str
    from_token: str
    from_symbol: str
    from_decimals: int
    token_balance: int  # Base units at selection time
    to_token: str = NATIVE_TOKEN_ADDRESS
    to_symbol: str = NATIVE_SYMBOL
    to_decimals: int = NATIVE_DECIMALS


class SellAmount(_SellBase):
    action: Literal["sell_amount"] = "sell_amount"


class SellConfirm(_SellBase):
    action: Literal["sell_confirm"] = "sell_confirm"
    amount_text: str
    from_amount: int
    quote: QuoteSnapshot


# ======================
# Withdraw
# ======================


class WithdrawAddress(WorkflowState):
    action: Literal["withdraw_address"] = "withdraw_address"
    wallet_address: str
    balance: int


class WithdrawAmount(WorkflowState):
    action: Literal["withdraw_amount"] = "withdraw_amount"
    wallet_address: str
    balance: int
    to_address: str


class WithdrawConfirm(WorkflowState):
    action: Literal["withdraw_confirm"] = "withdraw_confirm"
    wallet_address: str
    to_address: str
    amount: int
    gas: GasSnapshot
    operation_id: str


# ======================
# Wallet management
# ======================


class ImportConfirm(WorkflowState):
    """Overwrite confirmation shown when a wallet already exists."""

    action: Literal["import_confirm"] = "import_confirm"
    existing_address: str


class ImportKey(WorkflowState):
    action: Literal["import_wallet"] = "import_wallet"


class CreateConfirm(WorkflowState):
    action: Literal["create_confirm"] = "create_confirm"
    existing_address: str


class ExportConfirm(WorkflowState):
    action: Literal["export_wallet"] = "export_wallet"


# ======================
# Settings
# ======================


class SettingsSlippage(WorkflowState):
    action: Literal["settings_slippage"] = "settings_slippage"


class SettingsGasPriority(WorkflowState):
    action: Literal["settings_gasPriority"] = "settings_gasPriority"


AnyWorkflowState = Annotated[
    Union[
        BuyTokenSelect,
        BuyCustomToken,
        BuyAmount,
        BuyConfirm,
        SellTokenSelect,
        SellCustomToken,
        SellAmount,
        SellConfirm,
        WithdrawAddress,
        WithdrawAmount,
        WithdrawConfirm,
        ImportConfirm,
        ImportKey,
        CreateConfirm,
        ExportConfirm,
        SettingsSlippage,
        SettingsGasPriority,
    ],
    Field(discriminator="action"),
]

_state_adapter: TypeAdapter = TypeAdapter(AnyWorkflowState)

BUY_STATES = (BuyTokenSelect, BuyCustomToken, BuyAmount, BuyConfirm)


def action_of(state_cls: type[WorkflowState]) -> str:
    """The current_action value a state class is stored under."""
    return state_cls.model_fields["action"].default


def load_state(session: Session) -> Optional[WorkflowState]:
    """Parse the session's active workflow step.

    Returns:
        None when idle

    Raises:
        SessionStateError: if temp_data does not fit current_action
    """
    if session.current_action is None:
        return None

    try:
        return _state_adapter.validate_python(
            {**session.temp_data, "action": session.current_action}
        )
    except ValidationError as e:
        raise SessionStateError() from e
