"""Database table name constants and type references."""

# Table names, the single source of truth for Supabase queries
THREADS = "threads"
MESSAGES = "messages"
MODELS = "models"
USER_SETTINGS = "user_settings"
USAGE = "usage"
USER_CUSTOMERS = "user_customers"

# Postgres functions called over RPC
RPC_INCREMENT_USAGE = "increment_usage"
RPC_DECREMENT_USAGE = "decrement_usage"

# Thread status
STATUS_READY = "ready"
STATUS_STREAMING = "streaming"

# Role constants
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"

# Usage counters
USAGE_KINDS = {"credits", "search", "research"}
