"""Clear history command handler."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


class ClearCommand(CommandHandler):
    """Forget the conversation history, keeping any paid session."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="clear",
            description="Clear conversation history",
            group=CommandGroup.SESSION,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        state = await context.states.get(message.user_id)
        state.conversation_history = []
        if state.current_session:
            state.current_session.history = []
        await context.states.save(message.user_id, state)
        return CommandResult(response="Conversation history cleared.")
