# bot/texts.py
from html import escape

from ledger import TransactionType
from trading import TokenLookup, TradeRequest, TradeResult, WalletOverview
from utils import short


def quote_text(request: TradeRequest, warning: str | None = None) -> str:
    info = request.token_info
    if request.side == TransactionType.BUY:
        head = f"🟢 <b>Buy {escape(info.symbol)}</b>\nSpend: <b>{request.sol_amount.normalize():f} SOL</b>"
    else:
        head = (
            f"🔴 <b>Sell {escape(info.symbol)}</b>\n"
            f"Sell: <b>{request.token_amount.normalize():f} {escape(info.symbol)}</b> ({request.percentage.normalize():f}%)"
        )

    lines = [
        head,
        f"Receive ≈ <b>{request.expected_output} {escape(request.output_symbol)}</b>",
        f"Price impact: {request.price_impact:.2f}%",
        f"Slippage: {request.slippage_bps / 100:g}%",
        f"<code>{request.token_address}</code>",
    ]
    if warning:
        lines.append(f"\n⚠️ {escape(warning)}")
    return "\n".join(lines)


def result_text(result: TradeResult) -> str:
    if result.success:
        tx = result.transaction
        symbol = escape(tx.token_symbol or "")
        if tx.type == TransactionType.BUY:
            body = f"✅ Bought <b>{tx.amount.normalize():f} {symbol}</b> for {tx.sol_amount.normalize():f} SOL"
        else:
            body = f"✅ Sold {symbol} for <b>{tx.sol_amount.normalize():f} SOL</b>"
        return f"{body}\n<a href=\"{result.explorer_url}\">View transaction</a>"

    text = f"❌ {escape(result.error or 'Unknown error')}"
    if result.explorer_url:
        text += f"\n<a href=\"{result.explorer_url}\">View transaction</a>"
    return text


def _usd(value) -> str:
    return f" (${value:,.2f})" if value is not None else ""


def overview_text(overview: WalletOverview, network: str) -> str:
    lines = [
        f"👛 <b>Wallet</b> ({network})",
        f"<code>{overview.address}</code>",
        f"SOL: <b>{overview.sol_balance:.4f}</b>{_usd(overview.sol_value)}",
    ]
    if overview.balances:
        lines.append("\n<b>Tokens</b>")
        for balance in overview.balances:
            symbol = escape(balance.token_symbol or balance.token_address[:6])
            value = overview.token_values.get(balance.token_address)
            lines.append(f"{symbol}: {balance.balance.normalize():f}{_usd(value)}")
    if overview.on_chain:
        lines.append("\n<b>On-chain accounts</b>")
        for account in overview.on_chain:
            lines.append(f"<code>{short(account.mint, 6)}</code>: {account.balance}")
    if overview.sol_price is not None or overview.token_values:
        lines.append(f"\n💰 Total value: <b>${overview.total_value:,.2f}</b>")
    return "\n".join(lines)


def token_text(lookup: TokenLookup) -> str:
    info = lookup.info
    price = f"${lookup.price:.6g}" if lookup.price else "unavailable"
    return (
        f"📈 <b>{escape(info.name)}</b> ({escape(info.symbol)})\n"
        f"<code>{info.address}</code>\n"
        f"Price: {price}"
    )


def history_text(transactions) -> str:
    if not transactions:
        return "📜 No trades yet."

    status_emoji = {"pending": "⏳", "confirmed": "✅", "failed": "❌"}
    lines = ["📜 <b>Recent trades</b>"]
    for tx in transactions:
        symbol = escape(tx.token_symbol or tx.token_address[:6])
        lines.append(
            f"{status_emoji.get(tx.status.value, '•')} {tx.created_at:%Y-%m-%d %H:%M} "
            f"{tx.type.value.upper()} {symbol} {tx.amount.normalize():f} / {tx.sol_amount.normalize():f} SOL"
        )
    return "\n".join(lines)


def tokens_text(tokens) -> str:
    if not tokens:
        return "🪙 Token list is unavailable right now."

    lines = ["🪙 <b>Verified tokens</b>"]
    for token in tokens:
        lines.append(f"<b>{escape(token.symbol)}</b> {escape(token.name)}\n<code>{token.address}</code>")
    return "\n".join(lines)
