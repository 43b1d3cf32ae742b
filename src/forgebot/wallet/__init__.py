"""Custodial wallet providers."""

from forgebot.wallet.base import TokenInfo, TxParams, TxReceipt, WalletData, WalletProvider

__all__ = ["TokenInfo", "TxParams", "TxReceipt", "WalletData", "WalletProvider"]
