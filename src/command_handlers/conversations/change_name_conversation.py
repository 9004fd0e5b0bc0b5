import logging
from html import escape

from command_handlers.conversations.conversation_flow import ConversationFlow
from command_handlers.keyboards import UserKeyboards
from command_handlers.validators import name_validator
from controllers.user_controller import UserControlling
from flow_engine import (
    BusinessRuleError,
    ContextKey,
    Flow,
    FlowBuilder,
    FlowContext,
    FlowError,
    GoTo,
    StepInput,
    StepOutcome,
    StepResult,
)
from templates import Key

logger = logging.getLogger(__name__)

FLOW_NAME = "change_name"

TARGET_USER_ID = ContextKey("target_user_id", int)
NEW_NAME = ContextKey("new_name", str)


class ChangeNameConversation(ConversationFlow):
    """
    Renames a user in two steps.

    1. ``enter_name``: show the current name and read the new one (validated).
    2. ``confirm``: Yes writes the record and completes the flow, Edit goes
       back to ``enter_name``, No cancels.

    Started by the ``action_changename_<id>`` callback with ``TARGET_USER_ID``
    seeded into the context.
    """

    def __init__(self, controller: UserControlling):
        self.controller = controller

    @property
    def flow(self) -> Flow:
        return (
            FlowBuilder(FLOW_NAME)
            .step("enter_name", on_enter=self.ask_for_name, on_input=self.receive_name, validator=name_validator)
            .step("confirm", on_enter=self.ask_for_confirmation, on_input=self.receive_confirmation)
            .on_complete(self.name_changed)
            .on_cancel(self.name_change_cancelled)
            .build()
        )

    async def ask_for_name(self, ctx: FlowContext) -> None:
        user = await self.controller.get_user(self._target_id(ctx))
        await ctx.reply(Key.current_name.format(name=user.html_name))

    async def receive_name(self, ctx: FlowContext, step_input: StepInput) -> StepOutcome:
        if not step_input.has_text:
            await ctx.reply(Key.type_answer)
            return StepOutcome.STAY
        ctx.set(NEW_NAME, step_input.text.strip())
        return StepOutcome.CONTINUE

    async def ask_for_confirmation(self, ctx: FlowContext) -> None:
        new_name = ctx.get(NEW_NAME, "")
        await ctx.reply(
            Key.confirm_name_change.format(name=escape(new_name)),
            UserKeyboards.confirm_name_change(self._target_id(ctx)),
        )

    async def receive_confirmation(self, ctx: FlowContext, step_input: StepInput) -> StepResult:
        data = UserKeyboards.callback_data
        if not step_input.is_callback:
            await ctx.reply(Key.use_buttons)
            return StepOutcome.STAY

        if step_input.callback_data == data.cancel_change_name:
            return StepOutcome.CANCEL

        if step_input.callback_data == data.edit_change_name:
            return GoTo("enter_name")

        if step_input.callback_data.startswith(data.confirm_change_name):
            target_id = self._target_id(ctx)
            try:
                user = await self.controller.update_user_name(target_id, ctx.get(NEW_NAME, ""))
            except BusinessRuleError as e:
                logger.warning(f"Renaming user {target_id} failed: {str(e)}")
                await ctx.reply(e.user_message)
                return StepOutcome.ERROR
            logger.info(f"User {ctx.user_id} renamed user {target_id} to '{user.name}'")
            await ctx.reply(Key.name_change_success.format(name=user.html_name), UserKeyboards.back_to_list())
            return StepOutcome.CONTINUE

        await ctx.reply(Key.use_buttons)
        return StepOutcome.STAY

    async def name_changed(self, ctx: FlowContext) -> None:
        await ctx.log_access("change_name_confirmed")

    async def name_change_cancelled(self, ctx: FlowContext) -> None:
        await self.announce_cancel(ctx, Key.name_change_cancelled)

    @staticmethod
    def _target_id(ctx: FlowContext) -> int:
        target_id = ctx.get(TARGET_USER_ID)
        if target_id is None:
            raise FlowError("change_name started without a target user", user_message=Key.errors.missing_flow_data)
        return target_id
