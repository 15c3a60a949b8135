from trading.locks import UserLocks
from trading.orchestrator import (
    TokenLookup,
    TradeOrchestrator,
    TradeRequest,
    TradeResult,
    TradeState,
    WalletOverview,
    WalletResult,
)

__all__ = [
    "TokenLookup",
    "TradeOrchestrator",
    "TradeRequest",
    "TradeResult",
    "TradeState",
    "UserLocks",
    "WalletOverview",
    "WalletResult",
]
