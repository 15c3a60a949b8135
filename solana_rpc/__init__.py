from solana_rpc.client import ConfirmationOutcome, SolanaRpc, TokenAccount, TxStatus

__all__ = ["ConfirmationOutcome", "SolanaRpc", "TokenAccount", "TxStatus"]
