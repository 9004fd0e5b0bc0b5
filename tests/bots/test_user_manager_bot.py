import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import CallbackQuery, Message, Update, User as TgUser
from telegram.error import BadRequest
from telegram.ext import CallbackQueryHandler, MessageHandler

from bots.bot_core import BotCore
from bots.user_manager_bot import UserManagerBot
from config.settings import Settings
from controllers.user_controller import FakeUserController, UserController
from flow_engine import Dispatcher, EventKind, FlowConflictPolicy
from models.enums import AccessCategory

TOKEN = "123456:TEST-TOKEN"


def _settings(**overrides):
    values = dict(telegram_bot_token=TOKEN, admin_user_ids=[1], session_idle_timeout_seconds=0)
    values.update(overrides)
    return Settings(**values)


def test_bot_wires_engine_from_settings():
    bot = UserManagerBot(_settings(flow_conflict_policy=FlowConflictPolicy.REJECT))

    assert bot.registry.frozen
    assert sorted(bot.registry.names()) == ["change_name", "transfer_balance"]
    assert bot.store.conflict_policy == FlowConflictPolicy.REJECT
    assert bot.access.category_for(1) == AccessCategory.ADMIN
    assert isinstance(bot.controller, FakeUserController)
    assert bot.dispatcher.exit_commands == {"cancel", "exit"}

    handler_types = {type(handler) for handler in bot.core.application.handlers[0]}
    assert handler_types == {MessageHandler, CallbackQueryHandler}


def test_bot_uses_real_controller_without_fake_data():
    bot = UserManagerBot(_settings(use_fake_data=False))

    assert isinstance(bot.controller, UserController)


def test_debug_forces_debug_logging():
    assert _settings(debug=True, log_level="warning").effective_log_level == "DEBUG"
    assert _settings(log_level="warning").effective_log_level == "WARNING"


def _core_with_dispatcher():
    core = BotCore(TOKEN)
    dispatcher = MagicMock(spec=Dispatcher)
    dispatcher.handle_event = AsyncMock()
    dispatcher.store = MagicMock()
    core.attach(dispatcher)
    return core, dispatcher


@pytest.mark.asyncio
async def test_callback_query_is_answered_and_dispatched():
    core, dispatcher = _core_with_dispatcher()
    update = MagicMock(spec=Update)
    update.effective_user = MagicMock(spec=TgUser, id=7)
    update.callback_query = MagicMock(spec=CallbackQuery, data="close_menu")
    update.callback_query.answer = AsyncMock()
    update.callback_query.message = MagicMock(spec=Message, chat_id=7, message_id=1)

    await core._on_callback_query(update, MagicMock())

    update.callback_query.answer.assert_awaited_once()
    user_id, event = dispatcher.handle_event.await_args.args
    assert user_id == 7
    assert event.kind == EventKind.CALLBACK
    assert event.callback_data == "close_menu"


@pytest.mark.asyncio
async def test_stale_callback_query_is_still_dispatched():
    core, dispatcher = _core_with_dispatcher()
    update = MagicMock(spec=Update)
    update.effective_user = MagicMock(spec=TgUser, id=7)
    update.callback_query = MagicMock(spec=CallbackQuery, id="q1", data="close_menu")
    update.callback_query.answer = AsyncMock(side_effect=BadRequest("Query is too old"))
    update.callback_query.message = MagicMock(spec=Message, chat_id=7, message_id=1)

    await core._on_callback_query(update, MagicMock())

    dispatcher.handle_event.assert_awaited_once()


@pytest.mark.asyncio
async def test_updates_without_user_are_ignored():
    core, dispatcher = _core_with_dispatcher()
    update = MagicMock(spec=Update)
    update.update_id = 1
    update.effective_user = None
    update.callback_query = None
    update.message = MagicMock(spec=Message, text="hi", chat_id=1, message_id=1)

    await core._on_message(update, MagicMock())

    dispatcher.handle_event.assert_not_awaited()


@pytest.mark.asyncio
async def test_reaper_expires_idle_sessions_until_shutdown():
    core = BotCore(TOKEN, reap_interval_seconds=0.001, idle_timeout_seconds=60)
    core.store = MagicMock()
    reaped = asyncio.Event()

    async def expire_idle(max_idle_seconds):
        assert max_idle_seconds == 60
        reaped.set()
        return [42]

    core.store.expire_idle = expire_idle
    application = MagicMock()
    application.bot.set_my_commands = AsyncMock()

    await core._post_init(application)
    await asyncio.wait_for(reaped.wait(), timeout=1)
    await core._post_shutdown(application)

    application.bot.set_my_commands.assert_awaited_once()
    commands = application.bot.set_my_commands.await_args.kwargs["commands"]
    assert [command.command for command in commands] == ["start", "help", "cancel"]
    assert core._reaper is None
