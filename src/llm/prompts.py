"""System prompt templates."""

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful, concise AI assistant. Provide clear, well-structured responses. "
    "When appropriate, use markdown formatting for readability. "
    "If you're unsure about something, say so rather than guessing."
)

TITLE_GENERATION_PROMPT = (
    "- you will generate a short title based on the first message a user begins a conversation with\n"
    "- ensure it is not more than 80 characters long\n"
    "- the title should be a summary of the user's message\n"
    "- do not use quotes or colons"
)

TITLE_TEMPERATURE = 0.8
TITLE_MAX_LENGTH = 80


def build_system_prompt(custom_instructions: str | None = None) -> str:
    if not custom_instructions:
        return DEFAULT_SYSTEM_PROMPT
    return f"{DEFAULT_SYSTEM_PROMPT}\n\nThe user has asked you to follow these instructions:\n{custom_instructions.strip()}"
