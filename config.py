"""
Configuration management module for the summariser bot.
Provides a type-safe configuration class that loads settings from environment variables.

Platform tokens (at least one is required, checked by BotConfig.validate()):
- DISCORD_TOKEN: Discord bot authentication token
- TELEGRAM_BOT_TOKEN: Telegram bot token

Optional environment variables:
- GOOGLE_API_KEY: Gemini API key (without it summaries use the deterministic fallback)
- PUBLIC_BASE_URL: Base URL used in payment links and x402 resources
- PAY_TO / NETWORK / ENTRYPOINT_PRICE / FACILITATOR_URL: x402 payment settings
- LOG_LEVEL: Logging level (default: INFO)
"""

from dataclasses import dataclass
from typing import Optional
import os


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name, '').strip()
    return int(value) if value else None


@dataclass
class BotConfig:
    """
    Configuration container for the summariser bot.
    Provides type hints and validation for all configuration values.

    Use BotConfig.from_env() to create an instance from environment variables.
    """

    # Platform credentials
    DISCORD_TOKEN: Optional[str] = None  # Discord bot authentication token
    TELEGRAM_BOT_TOKEN: Optional[str] = None  # Telegram bot token

    # LLM
    GOOGLE_API_KEY: Optional[str] = None  # Google API key for Gemini
    GEMINI_MODEL: str = 'gemini-2.0-flash'  # Gemini model ID
    LLM_TIMEOUT_SECONDS: float = 30.0  # Seconds before falling back

    # HTTP server
    PUBLIC_BASE_URL: str = 'http://localhost:8080'  # Public URL of the web server
    WEB_HOST: str = '0.0.0.0'
    PORT: int = 8080

    # x402 payments
    FACILITATOR_URL: str = 'https://facilitator.x402.rs'
    PAY_TO: str = '0xb308ed39d67D0d4BAe5BC2FAEF60c66BBb6AE429'  # Receiving wallet
    NETWORK: str = 'base'
    ENTRYPOINT_PRICE: str = '0.10'  # Price per summary in USDC
    PAYMENT_CURRENCY: str = 'USDC'

    # Presentation and ops
    SUMMARY_TIMEZONE: str = 'UTC'  # Timezone used for the greeting clock
    ERROR_CHANNEL_ID: Optional[int] = None  # Discord channel for error reports
    LOG_LEVEL: str = 'INFO'  # Logging level (INFO, DEBUG, etc.)
    LOG_FILE: str = 'bot.log'

    @classmethod
    def from_env(cls) -> 'BotConfig':
        """
        Create a configuration instance from environment variables.

        Returns:
            BotConfig: Configuration instance

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        return cls(
            DISCORD_TOKEN=os.environ.get('DISCORD_TOKEN') or None,
            TELEGRAM_BOT_TOKEN=os.environ.get('TELEGRAM_BOT_TOKEN') or None,
            GOOGLE_API_KEY=os.environ.get('GOOGLE_API_KEY') or None,
            GEMINI_MODEL=os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash'),
            LLM_TIMEOUT_SECONDS=float(os.environ.get('LLM_TIMEOUT_SECONDS', '30')),
            PUBLIC_BASE_URL=os.environ.get('PUBLIC_BASE_URL', 'http://localhost:8080').rstrip('/'),
            WEB_HOST=os.environ.get('WEB_HOST', '0.0.0.0'),
            PORT=int(os.environ.get('PORT', '8080')),
            FACILITATOR_URL=os.environ.get('FACILITATOR_URL', 'https://facilitator.x402.rs').rstrip('/'),
            PAY_TO=os.environ.get('PAY_TO', '0xb308ed39d67D0d4BAe5BC2FAEF60c66BBb6AE429'),
            NETWORK=os.environ.get('NETWORK', 'base'),
            ENTRYPOINT_PRICE=os.environ.get('ENTRYPOINT_PRICE', '0.10'),
            PAYMENT_CURRENCY=os.environ.get('PAYMENT_CURRENCY', 'USDC'),
            SUMMARY_TIMEZONE=os.environ.get('SUMMARY_TIMEZONE', 'UTC'),
            ERROR_CHANNEL_ID=_optional_int('ERROR_CHANNEL_ID'),
            LOG_LEVEL=os.environ.get('LOG_LEVEL', 'INFO'),
            LOG_FILE=os.environ.get('LOG_FILE', 'bot.log'),
        )

    def validate(self) -> None:
        """
        Check that the process has something to run.

        Raises:
            ConfigurationError: If neither platform token is configured
        """
        if not self.DISCORD_TOKEN and not self.TELEGRAM_BOT_TOKEN:
            raise ConfigurationError(
                "Set DISCORD_TOKEN and/or TELEGRAM_BOT_TOKEN to start the bot"
            )

config = BotConfig.from_env()
