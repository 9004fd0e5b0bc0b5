"""
Command Handlers package.

This package contains the handlers the dispatcher routes user events to:
- start_handler: Handles /start, /help and the help menu button
- cancel_handler: Handles /cancel outside a conversation and unrecognized text
- user_manager_handler: User list, user details, status toggle and conversation entry points
- keyboards / validators: Reply markup and input validation shared by the handlers
- conversations/: Multi-step conversation flows (change name, transfer balance)
"""
