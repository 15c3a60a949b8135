# bot/handlers.py
from html import escape

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from loguru import logger

from bot.keyboards import back_button, confirm_menu, main_menu, sell_menu, settings_menu, token_menu, wallet_menu
from bot.states import BuyFlow, ImportWallet, PriceLookup, SellFlow
from bot.texts import history_text, overview_text, quote_text, result_text, token_text, tokens_text
from ledger import User
from trading import TradeOrchestrator, TradeResult

router = Router()

MAIN_MENU_TEXT = "🤖 <b>Solana trading bot</b>\nBuy and sell SPL tokens through Jupiter."


async def _menu(orchestrator: TradeOrchestrator, user: User):
    # user from the middleware can be stale after a wallet change
    user = await orchestrator.store.get_user(user.id)
    return MAIN_MENU_TEXT, main_menu(user.has_wallet)


# command /start
@router.message(CommandStart())
async def start_handler(message: Message, state: FSMContext, orchestrator: TradeOrchestrator, user: User):
    logger.info(f"User {message.from_user.id} started the bot.")
    await state.clear()
    text, kb = await _menu(orchestrator, user)
    await message.answer(text, reply_markup=kb)


@router.callback_query(F.data == "menu:main")
async def back_to_main(cb: CallbackQuery, state: FSMContext, orchestrator: TradeOrchestrator, user: User):
    await state.clear()
    text, kb = await _menu(orchestrator, user)
    await cb.message.edit_text(text, reply_markup=kb)


# Wallet
async def _wallet_view(orchestrator: TradeOrchestrator, user: User):
    overview = await orchestrator.get_wallet_overview(user.id)
    devnet = orchestrator.rpc.is_devnet()
    if overview is None:
        return "👛 No wallet connected yet.", wallet_menu(False, devnet)
    return overview_text(overview, orchestrator.rpc.network), wallet_menu(True, devnet)


@router.message(Command("wallet", "balance"))
async def wallet_command(message: Message, orchestrator: TradeOrchestrator, user: User):
    text, kb = await _wallet_view(orchestrator, user)
    await message.answer(text, reply_markup=kb)


@router.callback_query(F.data == "menu:wallet")
async def wallet_menu_handler(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    text, kb = await _wallet_view(orchestrator, user)
    try:
        await cb.message.edit_text(text, reply_markup=kb)
    except TelegramBadRequest:
        # "message is not modified" on refresh without changes
        pass
    await cb.answer()


@router.callback_query(F.data.startswith("wallet:create"))
async def create_wallet(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    result = await orchestrator.create_wallet(user.id, replace=cb.data.endswith(":replace"))
    if not result.success:
        await cb.answer(result.error, show_alert=True)
        return

    await cb.message.edit_text(
        "✅ Wallet created\n"
        f"Address: <code>{result.public_key}</code>\n\n"
        "🔑 Private key (save it now, it is shown only once):\n"
        f"<tg-spoiler><code>{result.wallet.private_key}</code></tg-spoiler>",
        reply_markup=back_button()
    )


@router.callback_query(F.data.startswith("wallet:import"))
async def import_wallet_start(cb: CallbackQuery, state: FSMContext):
    await state.set_state(ImportWallet.waiting_for_key)
    await state.update_data(replace=cb.data.endswith(":replace"))
    await cb.message.edit_text(
        "📥 Send the base58 private key of the wallet.\n"
        "The message will be deleted right after import.",
        reply_markup=back_button()
    )


@router.message(ImportWallet.waiting_for_key)
async def import_wallet_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator, user: User):
    data = await state.get_data()
    private_key = (msg.text or "").strip()

    try:
        await msg.delete()
    except TelegramBadRequest:
        logger.warning(f"Could not delete private key message from {msg.from_user.id}")

    result = await orchestrator.import_wallet(user.id, private_key, replace=data.get("replace", False))
    if not result.success:
        await msg.answer(f"❌ {result.error}\nSend the key again or press Back.", reply_markup=back_button())
        return

    await state.clear()
    text, kb = await _menu(orchestrator, user)
    await msg.answer(f"✅ Wallet <code>{result.public_key}</code> imported")
    await msg.answer(text, reply_markup=kb)


@router.callback_query(F.data == "wallet:airdrop")
async def airdrop(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    signature = await orchestrator.request_airdrop(user.id)
    if signature is None:
        await cb.answer("❌ Airdrop failed, try again later", show_alert=True)
        return
    await cb.answer("🚰 Airdrop requested")


# Trades
async def _show_request(message: Message, orchestrator: TradeOrchestrator, user: User, result: TradeResult):
    if not result.success:
        await message.answer(f"❌ {escape(result.error)}")
        return

    request = result.request
    settings = await orchestrator.get_settings(user.id)
    if settings.auto_confirm and not request.high_impact:
        status = await message.answer(quote_text(request) + "\n\n⏳ Executing...")
        outcome = await orchestrator.confirm_trade(user.id, request.id)
        await status.edit_text(result_text(outcome), disable_web_page_preview=True)
        return

    await message.answer(quote_text(request, result.warning), reply_markup=confirm_menu(request.id))


@router.message(Command("buy"))
async def buy_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    orchestrator: TradeOrchestrator,
    user: User,
):
    args = (command.args or "").split()
    if len(args) != 2:
        await state.set_state(BuyFlow.waiting_for_token)
        await message.answer("🟢 Send the token symbol or mint address to buy.")
        return

    result = await orchestrator.request_buy(user.id, args[0], args[1])
    await _show_request(message, orchestrator, user, result)


@router.callback_query(F.data == "trade:buy")
async def buy_start(cb: CallbackQuery, state: FSMContext):
    await state.set_state(BuyFlow.waiting_for_token)
    await cb.message.edit_text("🟢 Send the token symbol or mint address to buy.", reply_markup=back_button())


@router.message(BuyFlow.waiting_for_token)
async def buy_token_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator):
    token_address = await orchestrator.resolve_token(msg.text or "")
    if token_address is None:
        await msg.answer("❌ Token not found. Send another symbol or address.")
        return

    info = await orchestrator.market.get_token_info(token_address)
    await state.update_data(token=token_address)
    await state.set_state(BuyFlow.waiting_for_amount)
    await msg.answer(f"How much SOL to spend on <b>{info.symbol}</b>?")


@router.message(BuyFlow.waiting_for_amount)
async def buy_amount_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator, user: User):
    data = await state.get_data()
    await state.clear()
    result = await orchestrator.request_buy(user.id, data["token"], (msg.text or "").strip())
    await _show_request(msg, orchestrator, user, result)


@router.message(Command("sell"))
async def sell_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    orchestrator: TradeOrchestrator,
    user: User,
):
    args = (command.args or "").split()
    if len(args) == 1:
        args.append("100")
    if len(args) != 2:
        await state.set_state(SellFlow.waiting_for_token)
        await message.answer("🔴 Send the token symbol or mint address to sell.")
        return

    result = await orchestrator.request_sell(user.id, args[0], args[1].rstrip("%"))
    await _show_request(message, orchestrator, user, result)


@router.callback_query(F.data == "trade:sell")
async def sell_start(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    overview = await orchestrator.get_wallet_overview(user.id)
    if overview is None or not overview.balances:
        await cb.answer("You don't hold any tokens yet", show_alert=True)
        return
    await cb.message.edit_text("🔴 Pick a token and amount to sell", reply_markup=sell_menu(overview.balances))


@router.callback_query(F.data.startswith("sell:"))
async def sell_pick(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    _, token_address, percentage = cb.data.split(":")
    await cb.answer()
    result = await orchestrator.request_sell(user.id, token_address, percentage)
    await _show_request(cb.message, orchestrator, user, result)


@router.message(SellFlow.waiting_for_token)
async def sell_token_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator):
    token_address = await orchestrator.resolve_token(msg.text or "")
    if token_address is None:
        await msg.answer("❌ Token not found. Send another symbol or address.")
        return

    await state.update_data(token=token_address)
    await state.set_state(SellFlow.waiting_for_percentage)
    await msg.answer("Which percentage of your balance to sell? (1-100)")


@router.message(SellFlow.waiting_for_percentage)
async def sell_percentage_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator, user: User):
    data = await state.get_data()
    await state.clear()
    result = await orchestrator.request_sell(user.id, data["token"], (msg.text or "").strip().rstrip("%"))
    await _show_request(msg, orchestrator, user, result)


@router.callback_query(F.data.startswith("confirm:"))
async def confirm_trade(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    request_id = cb.data.split(":", 1)[1]
    await cb.answer("⏳ Executing...")
    await cb.message.edit_reply_markup(reply_markup=None)

    result = await orchestrator.confirm_trade(user.id, request_id)
    logger.info(f"User {cb.from_user.id} trade {request_id} finished as {result.state.value}")
    await cb.message.answer(result_text(result), disable_web_page_preview=True)


@router.callback_query(F.data.startswith("cancel:"))
async def cancel_trade(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    request_id = cb.data.split(":", 1)[1]
    orchestrator.cancel_trade(user.id, request_id)
    await cb.answer("Cancelled")
    await cb.message.edit_text("❌ Trade cancelled", reply_markup=back_button())


# Token price
async def _show_token(message: Message, orchestrator: TradeOrchestrator, token: str) -> bool:
    lookup = await orchestrator.lookup_token(token)
    if lookup is None:
        await message.answer("❌ Token not found. Send another symbol or address.")
        return False
    await message.answer(token_text(lookup), reply_markup=token_menu(lookup.info.address))
    return True


@router.message(Command("price"))
async def price_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    orchestrator: TradeOrchestrator,
):
    if not command.args:
        await state.set_state(PriceLookup.waiting_for_token)
        await message.answer("📈 Send the token symbol or mint address.")
        return
    await _show_token(message, orchestrator, command.args)


@router.callback_query(F.data == "menu:price")
async def price_start(cb: CallbackQuery, state: FSMContext):
    await state.set_state(PriceLookup.waiting_for_token)
    await cb.message.edit_text("📈 Send the token symbol or mint address.", reply_markup=back_button())


@router.message(PriceLookup.waiting_for_token)
async def price_token_input(msg: Message, state: FSMContext, orchestrator: TradeOrchestrator):
    if await _show_token(msg, orchestrator, msg.text or ""):
        await state.clear()


@router.callback_query(F.data.startswith("buy:"))
async def buy_from_lookup(cb: CallbackQuery, state: FSMContext, orchestrator: TradeOrchestrator):
    token_address = cb.data.split(":", 1)[1]
    info = await orchestrator.market.get_token_info(token_address)
    await state.update_data(token=token_address)
    await state.set_state(BuyFlow.waiting_for_amount)
    await cb.answer()
    await cb.message.answer(f"How much SOL to spend on <b>{escape(info.symbol)}</b>?")


# Tokens
@router.message(Command("tokens"))
async def tokens_command(message: Message, orchestrator: TradeOrchestrator):
    await message.answer(tokens_text(await orchestrator.market.get_top_tokens(10)))


# History
@router.message(Command("history"))
async def history_command(message: Message, orchestrator: TradeOrchestrator, user: User):
    await message.answer(history_text(await orchestrator.get_history(user.id)))


@router.callback_query(F.data == "menu:history")
async def history_menu(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    await cb.message.edit_text(
        history_text(await orchestrator.get_history(user.id)),
        reply_markup=back_button()
    )


# Settings
@router.callback_query(F.data == "menu:settings")
async def settings_handler(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    settings = await orchestrator.get_settings(user.id)
    await cb.message.edit_text("⚙️ <b>Trading settings</b>", reply_markup=settings_menu(settings))


@router.callback_query(F.data.startswith("settings:"))
async def settings_change(cb: CallbackQuery, orchestrator: TradeOrchestrator, user: User):
    parts = cb.data.split(":")

    if parts[1] == "auto_confirm":
        settings = await orchestrator.toggle_auto_confirm(user.id)
    elif parts[1] == "notifications":
        settings = await orchestrator.toggle_notifications(user.id)
    elif parts[1] == "slippage":
        settings = await orchestrator.update_settings(user.id, default_slippage=parts[2])
    elif parts[1] == "max":
        settings = await orchestrator.update_settings(user.id, max_transaction_amount=parts[2])
    else:
        await cb.answer()
        return

    logger.info(f"User {cb.from_user.id} changed {parts[1]}")
    await cb.answer("Saved")
    try:
        await cb.message.edit_reply_markup(reply_markup=settings_menu(settings))
    except TelegramBadRequest:
        pass
