"""
Conversation flows for the Telegram bot.

Each conversation describes a specific sequence of interactions with the user
as a flow of steps, registered with the dispatcher by name.
"""
