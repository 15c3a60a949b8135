from wallet.manager import InvalidKeyFormat, TransactionSigningError, WalletInfo, WalletManager

__all__ = ["InvalidKeyFormat", "TransactionSigningError", "WalletInfo", "WalletManager"]
