from middlewares.user import LedgerUserMiddleware
from middlewares.whitelist import WhitelistMiddleware

__all__ = ["LedgerUserMiddleware", "WhitelistMiddleware"]
