# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "EDUQUEST_APP_NAME": "App display name (default: eduquest).",
    "EDUQUEST_LOG_LEVEL": "Console logging level (default: INFO).",
    "EDUQUEST_RECONCILER_LOG_LEVEL": "Console level for the background reward reconciler (default: WARNING).",
    # Console
    "EDUQUEST_CONSOLE_ENABLED": "Enable the console REPL (true/false). When false only the reconciler runs.",
    # Session
    "EDUQUEST_USER_ID": "User whose task progress the console drives (default: demo_user).",
    "EDUQUEST_CATALOG_PATH": "Optional JSON task catalog; the built-in curriculum is used when empty.",
    "EDUQUEST_DEFAULT_MAX_RETRIES": "Retry budget for tasks that do not set max_retries (default: 3, min 1).",
    # Reward ledger
    "EDUQUEST_LEDGER_MODE": "memory | http (default: http when a base URL is set, else memory).",
    "EDUQUEST_LEDGER_BASE_URL": "Base URL of the award-playcoins / update-xp-level functions.",
    "SUPABASE_FUNCTIONS_URL": "Fallback for EDUQUEST_LEDGER_BASE_URL.",
    "EDUQUEST_LEDGER_API_KEY": "Bearer token sent to the ledger functions.",
    "SUPABASE_ANON_KEY": "Fallback for EDUQUEST_LEDGER_API_KEY.",
    "EDUQUEST_LEDGER_TIMEOUT_SECONDS": "Per-request ledger timeout (default: 10).",
    "EDUQUEST_RECONCILE_INTERVAL_SECONDS": "How often pending rewards are retried (default: 30).",
    # Paths (gitignored)
    "EDUQUEST_DATA_DIR": "Local data directory for logs and the database (default: .local/eduquest).",
    "EDUQUEST_TASKS_DB_PATH": "UserTaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
}
