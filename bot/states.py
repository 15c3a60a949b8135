# bot/states.py
from aiogram.fsm.state import State, StatesGroup


class ImportWallet(StatesGroup):
    waiting_for_key = State()


class BuyFlow(StatesGroup):
    waiting_for_token = State()
    waiting_for_amount = State()


class SellFlow(StatesGroup):
    waiting_for_token = State()
    waiting_for_percentage = State()


class PriceLookup(StatesGroup):
    waiting_for_token = State()
