from decimal import Decimal

from telegram import InlineKeyboardMarkup, ReplyKeyboardMarkup

from command_handlers.keyboards import UserKeyboards
from controllers.user_controller import sample_users
from models.models import User
from templates import Key


def _callbacks(markup: InlineKeyboardMarkup):
    return [button.callback_data for row in markup.inline_keyboard for button in row]


def test_main_menu_buttons_match_text_triggers():
    markup = UserKeyboards.main_menu()

    assert isinstance(markup, ReplyKeyboardMarkup)
    assert [button.text for button in markup.keyboard[0]] == [Key.buttons.user_manager, Key.buttons.help]


def test_user_list_three_per_row_with_close_button():
    markup = UserKeyboards.user_list(sample_users())
    rows = markup.inline_keyboard

    assert [len(row) for row in rows] == [3, 3, 2, 1]
    assert rows[0][0].text == "👤 Alice Smith ($150) ✅"
    assert rows[0][2].text == "👤 Carol Williams ($200) ❌"
    assert rows[-1][0].callback_data == "close_menu"
    assert _callbacks(markup)[:2] == ["user_select_1", "user_select_2"]


def test_user_actions():
    user = User(id=4, name="Dave Brown", balance=Decimal("0"))

    assert _callbacks(UserKeyboards.user_actions(user)) == [
        "action_changename_4",
        "action_toggle_4",
        "action_transfer_4",
        "back_to_list",
    ]


def test_receivers_exclude_sender_and_disabled_users():
    markup = UserKeyboards.receivers(sample_users(), sender_id=1)

    assert _callbacks(markup) == [
        "receiver_2",
        "receiver_4",
        "receiver_5",
        "receiver_7",
        "receiver_8",
        "cancel_transfer",
    ]
    assert [len(row) for row in markup.inline_keyboard] == [2, 2, 1, 1]


def test_confirmation_keyboards():
    assert _callbacks(UserKeyboards.confirm_name_change(3)) == [
        "confirm_changename_3",
        "edit_changename",
        "cancel_changename",
    ]
    assert _callbacks(UserKeyboards.confirm_transfer(1)) == ["confirm_transfer_1", "cancel_transfer"]
    assert _callbacks(UserKeyboards.back_to_list()) == ["back_to_list"]
