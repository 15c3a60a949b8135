# trading/orchestrator.py
"""
Buy/sell pipeline: quote, guard, explicit confirmation, execution, ledger.

A trade is requested first (``request_buy`` / ``request_sell``), which only
quotes and parks the request. Nothing is signed until the same user calls
``confirm_trade`` with the request id. Confirmation runs under a per-user lock
so two trades of one wallet never interleave their balance updates.

Public coroutines never raise; failures come back as ``TradeResult`` with a
message that can be shown to the user as is.
"""
import functools
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from loguru import logger

from config import SOL_DECIMALS, SOL_MINT, TOKEN_SYMBOLS
from jupiter import JupiterClient, Quote
from ledger import (
    DuplicateKeyError,
    LedgerStore,
    TokenBalance,
    TokenBalanceUpsert,
    TradingSettings,
    Transaction,
    TransactionCreate,
    TransactionStatus,
    TransactionType,
    User,
    UserCreate,
)
from market import MarketCache, TokenInfo
from solana_rpc import ConfirmationOutcome, SolanaRpc, TokenAccount
from trading.locks import UserLocks
from utils.amounts import format_amount, quantize_ledger, to_decimal, to_smallest_unit
from wallet import InvalidKeyFormat, WalletInfo, WalletManager


class TradeState(str, Enum):
    REQUESTED = "requested"
    QUOTED = "quoted"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    RECORDED = "recorded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class TradeRequest:
    user_id: str
    side: TransactionType
    token_address: str
    token_info: TokenInfo
    input_mint: str
    output_mint: str
    input_amount: int
    slippage_bps: int
    sol_amount: Optional[Decimal] = None
    token_amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    quote: Optional[Quote] = None
    expected_output: Optional[str] = None
    price_impact: float = 0.0
    high_impact: bool = False
    state: TradeState = TradeState.REQUESTED
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: float = field(default_factory=time.monotonic)

    @property
    def output_symbol(self) -> str:
        return self.token_info.symbol if self.side == TransactionType.BUY else "SOL"


@dataclass
class TradeResult:
    success: bool
    state: TradeState
    error: Optional[str] = None
    warning: Optional[str] = None
    request: Optional[TradeRequest] = None
    transaction: Optional[Transaction] = None
    signature: Optional[str] = None
    explorer_url: Optional[str] = None


@dataclass
class WalletResult:
    success: bool
    public_key: Optional[str] = None
    wallet: Optional[WalletInfo] = None
    error: Optional[str] = None


@dataclass
class WalletOverview:
    address: str
    sol_balance: float
    balances: list[TokenBalance]
    on_chain: list[TokenAccount] = field(default_factory=list)
    sol_price: Optional[float] = None
    # token address -> USD value, only for tokens that could be priced
    token_values: dict[str, float] = field(default_factory=dict)

    @property
    def sol_value(self) -> Optional[float]:
        if self.sol_price is None:
            return None
        return self.sol_balance * self.sol_price

    @property
    def total_value(self) -> float:
        return (self.sol_value or 0.0) + sum(self.token_values.values())


@dataclass
class TokenLookup:
    info: TokenInfo
    price: Optional[float] = None


def never_raises(message: str):
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except Exception as e:
                logger.exception(f"{func.__name__} failed: {type(e).__name__} {e}")
                return TradeResult(success=False, state=TradeState.FAILED, error=message)
        return wrapper
    return decorator


class TradeOrchestrator:

    def __init__(
        self,
        store: LedgerStore,
        wallet: WalletManager,
        market: MarketCache,
        jupiter: JupiterClient,
        rpc: SolanaRpc,
        price_impact_warning: float = 5.0,
        price_impact_limit: float = 10.0,
        quote_ttl: float = 60.0,
        confirm_timeout: float = 60.0,
        confirm_poll_interval: float = 1.0,
        clock=time.monotonic,
    ):
        self.store = store
        self.wallet = wallet
        self.market = market
        self.jupiter = jupiter
        self.rpc = rpc
        self.price_impact_warning = price_impact_warning
        self.price_impact_limit = price_impact_limit
        self.quote_ttl = quote_ttl
        self.confirm_timeout = confirm_timeout
        self.confirm_poll_interval = confirm_poll_interval
        self.clock = clock

        self.user_locks = UserLocks()
        self._pending: dict[str, TradeRequest] = {}

    # ---------- users & wallets ----------

    async def register_user(
        self,
        telegram_id,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        user = await self.store.get_user_by_telegram_id(telegram_id)
        if user is not None:
            return user

        try:
            user = await self.store.create_user(UserCreate(
                telegram_id=telegram_id,
                username=username,
                first_name=first_name,
                last_name=last_name,
            ))
        except DuplicateKeyError:
            # another update for the same chat won the race
            return await self.store.get_user_by_telegram_id(telegram_id)

        await self.store.create_or_update_trading_settings(user.id)
        logger.success(f"Registered telegram user {telegram_id} as {user.id}")
        return user

    async def create_wallet(self, user_id: str, replace: bool = False) -> WalletResult:
        user = await self.store.get_user(user_id)
        if user is None:
            return WalletResult(success=False, error="User not found")
        if user.has_wallet and not replace:
            return WalletResult(success=False, error="You already have a wallet connected.")

        wallet = self.wallet.generate_wallet()
        await self.store.update_user(
            user_id, wallet_address=wallet.public_key, wallet_private_key=wallet.private_key
        )
        return WalletResult(success=True, public_key=wallet.public_key, wallet=wallet)

    async def import_wallet(self, user_id: str, private_key: str, replace: bool = False) -> WalletResult:
        user = await self.store.get_user(user_id)
        if user is None:
            return WalletResult(success=False, error="User not found")
        if user.has_wallet and not replace:
            return WalletResult(success=False, error="You already have a wallet connected.")

        try:
            keypair = self.wallet.derive_keypair(private_key)
        except InvalidKeyFormat as e:
            logger.warning(f"Rejected wallet import for user {user_id}: {e}")
            return WalletResult(success=False, error=str(e))

        public_key = str(keypair.pubkey())
        await self.store.update_user(
            user_id, wallet_address=public_key, wallet_private_key=private_key.strip()
        )
        logger.info(f"User {user_id} imported wallet {public_key}")
        return WalletResult(success=True, public_key=public_key)

    async def get_wallet_overview(self, user_id: str) -> Optional[WalletOverview]:
        user = await self.store.get_user(user_id)
        if user is None or not user.has_wallet:
            return None

        balances = [b for b in await self.store.get_user_token_balances(user_id) if b.balance > 0]
        token_values = {}
        for balance in balances:
            price = await self.market.get_token_price(balance.token_address)
            if price:
                token_values[balance.token_address] = float(balance.balance) * price

        return WalletOverview(
            address=user.wallet_address,
            sol_balance=await self.rpc.get_balance(user.wallet_address),
            balances=balances,
            on_chain=await self.rpc.get_all_token_balances(user.wallet_address),
            sol_price=await self.market.get_sol_price(),
            token_values=token_values,
        )

    async def request_airdrop(self, user_id: str, sol_amount: float = 1.0) -> Optional[str]:
        user = await self.store.get_user(user_id)
        if user is None or not user.has_wallet:
            return None
        try:
            return await self.rpc.request_airdrop(user.wallet_address, sol_amount)
        except Exception as e:
            logger.error(f"Airdrop for user {user_id} failed: {type(e).__name__} {e}")
            return None

    # ---------- settings & history ----------

    async def get_settings(self, user_id: str) -> TradingSettings:
        settings = await self.store.get_trading_settings(user_id)
        if settings is None:
            settings = await self.store.create_or_update_trading_settings(user_id)
        return settings

    async def update_settings(self, user_id: str, **fields) -> TradingSettings:
        return await self.store.create_or_update_trading_settings(user_id, **fields)

    async def toggle_auto_confirm(self, user_id: str) -> TradingSettings:
        settings = await self.get_settings(user_id)
        return await self.update_settings(user_id, auto_confirm=not settings.auto_confirm)

    async def toggle_notifications(self, user_id: str) -> TradingSettings:
        settings = await self.get_settings(user_id)
        return await self.update_settings(user_id, notifications=not settings.notifications)

    async def get_history(self, user_id: str, limit: int = 10) -> list[Transaction]:
        return await self.store.get_user_transactions(user_id, limit)

    # ---------- token resolution ----------

    async def resolve_token(self, token: str) -> Optional[str]:
        token = token.strip()
        if self.wallet.is_valid_public_key(token):
            return token

        known = TOKEN_SYMBOLS.get(token.upper())
        if known and self.wallet.is_valid_public_key(known):
            return known

        return await self.market.get_token_by_symbol(token)

    async def lookup_token(self, token: str) -> Optional[TokenLookup]:
        token_address = await self.resolve_token(token)
        if token_address is None:
            return None

        return TokenLookup(
            info=await self.market.get_token_info(token_address),
            price=await self.market.get_token_price(token_address),
        )

    # ---------- request -> quote -> guard ----------

    @never_raises("Error processing buy order. Please try again.")
    async def request_buy(self, user_id: str, token: str, sol_amount) -> TradeResult:
        user = await self.store.get_user(user_id)
        if user is None or not user.has_wallet:
            return self._fail("Please connect a wallet first!")

        try:
            amount = quantize_ledger(sol_amount)
        except ValueError:
            return self._fail(f"Invalid amount: {sol_amount}")
        if amount <= 0:
            return self._fail("Amount must be greater than zero.")

        token_address = await self.resolve_token(token)
        if token_address is None:
            return self._fail(f"Token not found: {token}")
        if token_address == SOL_MINT:
            return self._fail("SOL cannot be bought with SOL.")

        settings = await self.get_settings(user_id)
        if amount > settings.max_transaction_amount:
            return self._reject(
                f"Amount {amount.normalize():f} SOL exceeds your max transaction amount "
                f"of {settings.max_transaction_amount.normalize():f} SOL."
            )

        sol_balance = await self.rpc.get_balance(user.wallet_address)
        if Decimal(str(sol_balance)) < amount:
            return self._reject(
                f"Insufficient balance. You have {sol_balance} SOL but need {amount.normalize():f} SOL."
            )

        request = TradeRequest(
            user_id=user_id,
            side=TransactionType.BUY,
            token_address=token_address,
            token_info=await self.market.get_token_info(token_address),
            input_mint=SOL_MINT,
            output_mint=token_address,
            input_amount=to_smallest_unit(amount, SOL_DECIMALS),
            slippage_bps=settings.slippage_bps,
            sol_amount=amount,
        )
        return await self._quote(request)

    @never_raises("Error processing sell order. Please try again.")
    async def request_sell(self, user_id: str, token: str, percentage) -> TradeResult:
        user = await self.store.get_user(user_id)
        if user is None or not user.has_wallet:
            return self._fail("Please connect a wallet first!")

        try:
            percent = to_decimal(percentage)
        except ValueError:
            return self._fail(f"Invalid percentage: {percentage}")
        if not 0 < percent <= 100:
            return self._fail("Percentage must be between 0 and 100.")

        token_address = await self.resolve_token(token)
        if token_address is None:
            return self._fail(f"Token not found: {token}")

        balance = await self.store.get_token_balance(user_id, token_address)
        if balance is None or balance.balance <= 0:
            return self._reject("You don't hold any of this token.")

        token_info = await self.market.get_token_info(token_address)
        token_amount = quantize_ledger(balance.balance * percent / 100)
        raw_amount = to_smallest_unit(token_amount, token_info.decimals)
        if raw_amount <= 0:
            return self._reject("Sell amount is too small.")

        settings = await self.get_settings(user_id)
        request = TradeRequest(
            user_id=user_id,
            side=TransactionType.SELL,
            token_address=token_address,
            token_info=token_info,
            input_mint=token_address,
            output_mint=SOL_MINT,
            input_amount=raw_amount,
            slippage_bps=settings.slippage_bps,
            token_amount=token_amount,
            percentage=percent,
        )
        return await self._quote(request)

    async def _quote(self, request: TradeRequest) -> TradeResult:
        quote = await self.jupiter.get_quote(
            request.input_mint, request.output_mint, request.input_amount, request.slippage_bps
        )
        if quote is None:
            request.state = TradeState.FAILED
            return self._fail("Unable to get price quote. Try again later.", request)

        request.quote = quote
        request.state = TradeState.QUOTED
        request.price_impact = quote.price_impact
        out_decimals = request.token_info.decimals if request.side == TransactionType.BUY else SOL_DECIMALS
        request.expected_output = format_amount(quote.out_amount, out_decimals)

        if request.price_impact > self.price_impact_limit:
            request.state = TradeState.REJECTED
            return self._reject(
                f"High price impact: {request.price_impact:.2f}% exceeds the "
                f"{self.price_impact_limit:g}% limit.",
                request,
            )

        warning = None
        if request.price_impact > self.price_impact_warning:
            request.high_impact = True
            warning = f"High price impact: {request.price_impact:.2f}%"

        self._drop_expired()
        request.created_at = self.clock()
        request.state = TradeState.AWAITING_CONFIRMATION
        self._pending[request.id] = request
        logger.info(
            f"Trade {request.id} for user {request.user_id}: {request.side.value} "
            f"{request.token_address} awaiting confirmation (impact {request.price_impact:.2f}%)"
        )
        return TradeResult(
            success=True, state=TradeState.AWAITING_CONFIRMATION, warning=warning, request=request
        )

    def get_pending(self, user_id: str, request_id: str) -> Optional[TradeRequest]:
        request = self._pending.get(request_id)
        if request is None or request.user_id != user_id:
            return None
        return request

    def cancel_trade(self, user_id: str, request_id: str) -> bool:
        if self.get_pending(user_id, request_id) is None:
            return False
        self._pending.pop(request_id, None)
        logger.info(f"Trade {request_id} cancelled by user {user_id}")
        return True

    def _expired(self, request: TradeRequest) -> bool:
        return self.clock() - request.created_at > self.quote_ttl

    def _drop_expired(self):
        for request_id, request in list(self._pending.items()):
            if self._expired(request):
                self._pending.pop(request_id, None)

    # ---------- confirm -> execute -> record ----------

    @never_raises("Transaction failed: unexpected error. Please try again.")
    async def confirm_trade(self, user_id: str, request_id: str) -> TradeResult:
        if self.get_pending(user_id, request_id) is None:
            return self._fail("Trade request not found or already handled.")

        async with self.user_locks.hold(user_id):
            # re-checked under the lock: a double tap must not execute twice
            request = self.get_pending(user_id, request_id)
            if request is None:
                return self._fail("Trade request not found or already handled.")
            self._pending.pop(request_id, None)

            if self._expired(request):
                request.state = TradeState.FAILED
                return self._fail("Quote expired. Please request a new quote.", request)

            request.state = TradeState.EXECUTING
            return await self._execute(request)

    async def _execute(self, request: TradeRequest) -> TradeResult:
        user = await self.store.get_user(request.user_id)
        if user is None or not user.has_wallet:
            request.state = TradeState.FAILED
            return self._fail("Please connect a wallet first!", request)

        if request.side == TransactionType.SELL:
            balance = await self.store.get_token_balance(user.id, request.token_address)
            held = balance.balance if balance else Decimal(0)
            if held < request.token_amount:
                request.state = TradeState.REJECTED
                return self._reject(
                    f"Insufficient token balance: you hold {held.normalize():f} but the order sells "
                    f"{request.token_amount.normalize():f}.",
                    request,
                )
        else:
            sol_balance = await self.rpc.get_balance(user.wallet_address)
            if Decimal(str(sol_balance)) < request.sol_amount:
                request.state = TradeState.REJECTED
                return self._reject(
                    f"Insufficient balance. You have {sol_balance} SOL but need "
                    f"{request.sol_amount.normalize():f} SOL.",
                    request,
                )

        swap = await self.jupiter.execute_swap(
            request.input_mint,
            request.output_mint,
            request.input_amount,
            user.wallet_private_key,
            request.slippage_bps,
        )
        if swap.quote is not None:
            request.quote = swap.quote
        if not swap.success:
            request.state = TradeState.FAILED
            logger.warning(f"Trade {request.id} failed: {swap.error}")
            return self._fail(f"Transaction failed: {swap.error}", request)

        try:
            return await self._record(user, request, swap.signature)
        except Exception as e:
            # the swap is already on chain; a retry would trade twice
            logger.exception(
                f"Trade {request.id} sent as {swap.signature} but could not be recorded: {type(e).__name__} {e}"
            )
            request.state = TradeState.FAILED
            return TradeResult(
                success=False,
                state=TradeState.FAILED,
                error="Swap was sent but could not be recorded. Do not retry, check the explorer.",
                request=request,
                signature=swap.signature,
                explorer_url=self.rpc.explorer_url(swap.signature),
            )

    async def _record(self, user: User, request: TradeRequest, signature: str) -> TradeResult:
        quote = request.quote
        token_info = request.token_info
        settings = await self.get_settings(user.id)
        price = await self.market.get_token_price(request.token_address)

        if request.side == TransactionType.BUY:
            amount = format_amount(quote.out_amount, token_info.decimals)
            sol_amount = request.sol_amount
        else:
            amount = format_amount(quote.out_amount, SOL_DECIMALS)
            sol_amount = amount

        metadata = {
            "priceImpact": quote.price_impact_pct,
            "inAmount": quote.in_amount,
            "outAmount": quote.out_amount,
            "requestId": request.id,
        }
        if request.side == TransactionType.SELL:
            metadata["soldAmount"] = str(request.token_amount)
            metadata["percentage"] = str(request.percentage)

        transaction = await self.store.create_transaction(TransactionCreate(
            user_id=user.id,
            type=request.side,
            token_address=request.token_address,
            token_symbol=token_info.symbol,
            token_name=token_info.name,
            amount=amount,
            sol_amount=sol_amount,
            price=str(price) if price else None,
            signature=signature,
            slippage=settings.default_slippage,
            metadata=metadata,
        ))

        outcome = await self.rpc.wait_for_confirmation(
            signature, timeout=self.confirm_timeout, poll_interval=self.confirm_poll_interval
        )
        explorer_url = self.rpc.explorer_url(signature)

        if outcome == ConfirmationOutcome.FAILED:
            transaction = await self.store.update_transaction(
                transaction.id, status=TransactionStatus.FAILED
            )
            request.state = TradeState.FAILED
            return TradeResult(
                success=False,
                state=TradeState.FAILED,
                error="Transaction failed on chain.",
                request=request,
                transaction=transaction,
                signature=signature,
                explorer_url=explorer_url,
            )

        request.state = TradeState.RECORDED
        if outcome == ConfirmationOutcome.UNKNOWN:
            return TradeResult(
                success=False,
                state=TradeState.RECORDED,
                error="Transaction sent but confirmation status is unknown. Check the explorer.",
                request=request,
                transaction=transaction,
                signature=signature,
                explorer_url=explorer_url,
            )

        transaction = await self.store.update_transaction(
            transaction.id, status=TransactionStatus.CONFIRMED
        )
        await self._apply_balance(user, request, Decimal(amount))
        logger.success(
            f"Trade {request.id} recorded: {request.side.value} {request.token_address} "
            f"for user {user.id} >>> {explorer_url}"
        )
        return TradeResult(
            success=True,
            state=TradeState.RECORDED,
            request=request,
            transaction=transaction,
            signature=signature,
            explorer_url=explorer_url,
        )

    async def _apply_balance(self, user: User, request: TradeRequest, received: Decimal):
        existing = await self.store.get_token_balance(user.id, request.token_address)
        current = existing.balance if existing else Decimal(0)

        if request.side == TransactionType.BUY:
            new_balance = current + received
        else:
            new_balance = max(current - request.token_amount, Decimal(0))

        await self.store.create_or_update_token_balance(TokenBalanceUpsert(
            user_id=user.id,
            token_address=request.token_address,
            token_symbol=request.token_info.symbol,
            token_name=request.token_info.name,
            balance=new_balance,
        ))

    @staticmethod
    def _fail(error: str, request: Optional[TradeRequest] = None) -> TradeResult:
        return TradeResult(success=False, state=TradeState.FAILED, error=error, request=request)

    @staticmethod
    def _reject(error: str, request: Optional[TradeRequest] = None) -> TradeResult:
        return TradeResult(success=False, state=TradeState.REJECTED, error=error, request=request)
