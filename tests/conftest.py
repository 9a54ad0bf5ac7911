"""
Shared pytest configuration for the summariser test suite.

The config module (config.py) executes BotConfig.from_env() at import time.
We set dummy platform tokens here so that every module that transitively
imports `config` sees a runnable configuration.
"""

import os
import sys

# Ensure the project root is on sys.path so that `import config`, etc. work.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Set env vars BEFORE any application module is imported.
_REQUIRED_ENV_DEFAULTS = {
    "DISCORD_TOKEN": "test-discord-token",
    "TELEGRAM_BOT_TOKEN": "123456:test-telegram-token",
    "PUBLIC_BASE_URL": "https://summaries.example.com",
}

for key, value in _REQUIRED_ENV_DEFAULTS.items():
    os.environ.setdefault(key, value)
