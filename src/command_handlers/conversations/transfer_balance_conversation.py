import logging
from decimal import Decimal

from command_handlers.conversations.conversation_flow import ConversationFlow
from command_handlers.keyboards import UserKeyboards
from command_handlers.validators import amount_validator, parse_amount
from controllers.user_controller import UserControlling
from flow_engine import (
    BusinessRuleError,
    ContextKey,
    Flow,
    FlowBuilder,
    FlowContext,
    FlowError,
    StepInput,
    StepOutcome,
)
from models.models import CENT
from templates import Key

logger = logging.getLogger(__name__)

FLOW_NAME = "transfer_balance"

SENDER_ID = ContextKey("sender_id", int)
TRANSFER_AMOUNT = ContextKey("transfer_amount", Decimal)
RECEIVER_ID = ContextKey("receiver_id", int)


class TransferBalanceConversation(ConversationFlow):
    """
    Moves balance from the selected user to another one.

    Steps: ``amount`` (typed and validated, then checked against the sender's
    balance), ``receiver`` (buttons listing the other enabled users) and
    ``confirm`` (shows both balances after the transfer). Problems found along
    the way are reported and the user stays on the same step.
    """

    def __init__(self, controller: UserControlling):
        self.controller = controller

    @property
    def flow(self) -> Flow:
        return (
            FlowBuilder(FLOW_NAME)
            .step("amount", on_enter=self.ask_for_amount, on_input=self.receive_amount, validator=amount_validator)
            .step("receiver", on_enter=self.ask_for_receiver, on_input=self.receive_receiver)
            .step("confirm", on_enter=self.ask_for_confirmation, on_input=self.receive_confirmation)
            .on_complete(self.transfer_completed)
            .on_cancel(self.transfer_cancelled)
            .build()
        )

    # amount

    async def ask_for_amount(self, ctx: FlowContext) -> None:
        sender = await self.controller.get_user(self._required(ctx, SENDER_ID))
        await ctx.reply(Key.request_transfer_amount.format(name=sender.html_name, balance=sender.balance))

    async def receive_amount(self, ctx: FlowContext, step_input: StepInput) -> StepOutcome:
        if not step_input.has_text:
            await ctx.reply(Key.type_answer)
            return StepOutcome.STAY

        amount = parse_amount(step_input.text).quantize(CENT)
        sender = await self.controller.get_user(self._required(ctx, SENDER_ID))
        if not sender.can_transfer(amount):
            await ctx.reply(
                Key.errors.insufficient_balance.format(name=sender.html_name, balance=sender.balance, amount=amount)
            )
            return StepOutcome.ERROR

        ctx.set(TRANSFER_AMOUNT, amount)
        return StepOutcome.CONTINUE

    # receiver

    async def ask_for_receiver(self, ctx: FlowContext) -> None:
        sender_id = self._required(ctx, SENDER_ID)
        sender = await self.controller.get_user(sender_id)
        users = await self.controller.get_active_users()
        await ctx.reply(
            Key.select_receiver.format(amount=self._required(ctx, TRANSFER_AMOUNT), name=sender.html_name),
            UserKeyboards.receivers(users, sender_id),
        )

    async def receive_receiver(self, ctx: FlowContext, step_input: StepInput) -> StepOutcome:
        data = UserKeyboards.callback_data
        if not step_input.is_callback:
            await ctx.reply(Key.use_buttons)
            return StepOutcome.STAY

        if step_input.callback_data == data.cancel_transfer:
            return StepOutcome.CANCEL

        if not step_input.callback_data.startswith(data.receiver):
            await ctx.reply(Key.use_buttons)
            return StepOutcome.STAY

        try:
            receiver_id = int(step_input.callback_data[len(data.receiver):])
        except ValueError:
            await ctx.reply(Key.errors.invalid_selection)
            return StepOutcome.ERROR

        if receiver_id == self._required(ctx, SENDER_ID):
            await ctx.reply(Key.errors.same_user_transfer)
            return StepOutcome.ERROR

        receiver = await self.controller.get_user(receiver_id)
        if not receiver.enabled:
            await ctx.reply(Key.errors.invalid_selection)
            return StepOutcome.ERROR

        ctx.set(RECEIVER_ID, receiver_id)
        return StepOutcome.CONTINUE

    # confirm

    async def ask_for_confirmation(self, ctx: FlowContext) -> None:
        sender_id = self._required(ctx, SENDER_ID)
        amount = self._required(ctx, TRANSFER_AMOUNT)
        sender = await self.controller.get_user(sender_id)
        receiver = await self.controller.get_user(self._required(ctx, RECEIVER_ID))
        await ctx.reply(
            Key.confirm_transfer.format(
                sender=sender.html_name,
                sender_balance=sender.balance,
                receiver=receiver.html_name,
                receiver_balance=receiver.balance,
                amount=amount,
                sender_after=sender.balance - amount,
                receiver_after=receiver.balance + amount,
            ),
            UserKeyboards.confirm_transfer(sender_id),
        )

    async def receive_confirmation(self, ctx: FlowContext, step_input: StepInput) -> StepOutcome:
        data = UserKeyboards.callback_data
        if not step_input.is_callback:
            await ctx.reply(Key.use_buttons)
            return StepOutcome.STAY

        if step_input.callback_data == data.cancel_transfer:
            return StepOutcome.CANCEL

        if not step_input.callback_data.startswith(data.confirm_transfer):
            await ctx.reply(Key.use_buttons)
            return StepOutcome.STAY

        amount = self._required(ctx, TRANSFER_AMOUNT)
        try:
            sender, receiver = await self.controller.transfer_balance(
                self._required(ctx, SENDER_ID), self._required(ctx, RECEIVER_ID), amount
            )
        except BusinessRuleError as e:
            logger.warning(f"Transfer requested by user {ctx.user_id} failed: {str(e)}")
            await ctx.reply(e.user_message)
            return StepOutcome.ERROR

        logger.info(f"User {ctx.user_id} transferred ${amount:.2f} from user {sender.id} to user {receiver.id}")
        await ctx.reply(
            Key.transfer_success.format(sender=sender.html_name, receiver=receiver.html_name, amount=amount),
            UserKeyboards.back_to_list(),
        )
        return StepOutcome.CONTINUE

    async def transfer_completed(self, ctx: FlowContext) -> None:
        await ctx.log_access("transfer_completed")

    async def transfer_cancelled(self, ctx: FlowContext) -> None:
        await self.announce_cancel(ctx, Key.transfer_cancelled)

    @staticmethod
    def _required(ctx: FlowContext, key: ContextKey):
        value = ctx.get(key)
        if value is None:
            raise FlowError(f"{FLOW_NAME} is missing '{key.name}'", user_message=Key.errors.missing_flow_data)
        return value
