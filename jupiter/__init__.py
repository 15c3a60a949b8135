from jupiter.client import MAX_PRICE_IMPACT_PCT, JupiterClient
from jupiter.models import Quote, SwapResult, SwapTransaction

__all__ = ["MAX_PRICE_IMPACT_PCT", "JupiterClient", "Quote", "SwapResult", "SwapTransaction"]
