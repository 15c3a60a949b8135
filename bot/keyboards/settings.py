# bot/keyboards/settings.py
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

SLIPPAGE_CHOICES = ("0.5", "1", "2", "5")
MAX_AMOUNT_CHOICES = ("0.1", "0.5", "1", "5")


def settings_menu(settings):
    auto = "🟢" if settings.auto_confirm else "🔴"
    notify = "🟢" if settings.notifications else "🔴"

    def mark(value, current):
        return f"• {value}" if current == float(value) else value

    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=f"{auto} Auto-confirm", callback_data="settings:auto_confirm")],
        [InlineKeyboardButton(text=f"{notify} Notifications", callback_data="settings:notifications")],
        [
            InlineKeyboardButton(
                text=f"{mark(v, float(settings.default_slippage))}%",
                callback_data=f"settings:slippage:{v}"
            )
            for v in SLIPPAGE_CHOICES
        ],
        [
            InlineKeyboardButton(
                text=f"{mark(v, float(settings.max_transaction_amount))} SOL",
                callback_data=f"settings:max:{v}"
            )
            for v in MAX_AMOUNT_CHOICES
        ],
        [InlineKeyboardButton(text="⬅ Back", callback_data="menu:main")],
    ])
