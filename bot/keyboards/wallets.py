# bot/keyboards/wallets.py
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton


def wallet_menu(has_wallet: bool, devnet: bool = False):
    kb = []

    if has_wallet:
        kb.append([InlineKeyboardButton(text="🔄 Refresh", callback_data="menu:wallet")])
        if devnet:
            kb.append([InlineKeyboardButton(text="🚰 Airdrop 1 SOL", callback_data="wallet:airdrop")])
        kb.append([
            InlineKeyboardButton(text="♻️ New wallet", callback_data="wallet:create:replace"),
            InlineKeyboardButton(text="📥 Import", callback_data="wallet:import:replace"),
        ])
    else:
        kb.append([InlineKeyboardButton(text="➕ Create wallet", callback_data="wallet:create")])
        kb.append([InlineKeyboardButton(text="📥 Import wallet", callback_data="wallet:import")])

    kb.append([
        InlineKeyboardButton(text="⬅ Back", callback_data="menu:main")
    ])

    return InlineKeyboardMarkup(inline_keyboard=kb)
