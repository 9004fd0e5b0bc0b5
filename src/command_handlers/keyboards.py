from dataclasses import dataclass
from typing import Iterable, List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup

from models.models import User
from templates import Key


@dataclass(frozen=True)
class CallbackData:
    user_select: str = "user_select_"
    change_name: str = "action_changename_"
    toggle_status: str = "action_toggle_"
    transfer: str = "action_transfer_"
    back_to_list: str = "back_to_list"
    close_menu: str = "close_menu"
    confirm_change_name: str = "confirm_changename_"
    cancel_change_name: str = "cancel_changename"
    edit_change_name: str = "edit_changename"
    receiver: str = "receiver_"
    confirm_transfer: str = "confirm_transfer_"
    cancel_transfer: str = "cancel_transfer"


def _chunk(buttons: List[InlineKeyboardButton], per_row: int) -> List[List[InlineKeyboardButton]]:
    return [buttons[i:i + per_row] for i in range(0, len(buttons), per_row)]


class UserKeyboards:
    """
    Keyboards of the user manager.

    - The main menu is a persistent reply keyboard whose button texts are the
      text triggers registered with the dispatcher.
    - Everything else is inline, with callback data built from ``CallbackData``
      prefixes followed by a user id where one applies.
    """

    callback_data = CallbackData()

    USERS_PER_ROW = 3
    RECEIVERS_PER_ROW = 2

    @classmethod
    def main_menu(cls) -> ReplyKeyboardMarkup:
        return ReplyKeyboardMarkup(
            [[KeyboardButton(Key.buttons.user_manager), KeyboardButton(Key.buttons.help)]],
            resize_keyboard=True,
        )

    @classmethod
    def user_list(cls, users: Iterable[User]) -> InlineKeyboardMarkup:
        buttons = [
            InlineKeyboardButton(
                Key.buttons.user.format(name=user.name, balance=user.balance, icon=user.status_icon),
                callback_data=f"{cls.callback_data.user_select}{user.id}",
            )
            for user in users
        ]
        keyboard = _chunk(buttons, cls.USERS_PER_ROW)
        keyboard.append([InlineKeyboardButton(Key.buttons.close_menu, callback_data=cls.callback_data.close_menu)])
        return InlineKeyboardMarkup(keyboard)

    @classmethod
    def user_actions(cls, user: User) -> InlineKeyboardMarkup:
        data = cls.callback_data
        return InlineKeyboardMarkup([
            [InlineKeyboardButton(Key.buttons.change_name, callback_data=f"{data.change_name}{user.id}")],
            [InlineKeyboardButton(Key.buttons.toggle_status, callback_data=f"{data.toggle_status}{user.id}")],
            [InlineKeyboardButton(Key.buttons.transfer, callback_data=f"{data.transfer}{user.id}")],
            [InlineKeyboardButton(Key.buttons.back_to_list, callback_data=data.back_to_list)],
        ])

    @classmethod
    def receivers(cls, users: Iterable[User], sender_id: int) -> InlineKeyboardMarkup:
        """Every enabled user except the sender, two per row, plus a cancel button."""
        buttons = [
            InlineKeyboardButton(
                Key.buttons.receiver.format(name=user.name, balance=user.balance),
                callback_data=f"{cls.callback_data.receiver}{user.id}",
            )
            for user in users
            if user.enabled and user.id != sender_id
        ]
        keyboard = _chunk(buttons, cls.RECEIVERS_PER_ROW)
        keyboard.append([
            InlineKeyboardButton(Key.buttons.cancel_transfer, callback_data=cls.callback_data.cancel_transfer)
        ])
        return InlineKeyboardMarkup(keyboard)

    @classmethod
    def confirm_name_change(cls, user_id: int) -> InlineKeyboardMarkup:
        data = cls.callback_data
        return InlineKeyboardMarkup([[
            InlineKeyboardButton(Key.buttons.yes, callback_data=f"{data.confirm_change_name}{user_id}"),
            InlineKeyboardButton(Key.buttons.edit_name, callback_data=data.edit_change_name),
            InlineKeyboardButton(Key.buttons.no, callback_data=data.cancel_change_name),
        ]])

    @classmethod
    def confirm_transfer(cls, sender_id: int) -> InlineKeyboardMarkup:
        data = cls.callback_data
        return InlineKeyboardMarkup([[
            InlineKeyboardButton(Key.buttons.confirm_transfer, callback_data=f"{data.confirm_transfer}{sender_id}"),
            InlineKeyboardButton(Key.buttons.cancel, callback_data=data.cancel_transfer),
        ]])

    @classmethod
    def back_to_list(cls) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup([
            [InlineKeyboardButton(Key.buttons.back_to_list, callback_data=cls.callback_data.back_to_list)]
        ])
