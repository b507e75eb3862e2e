"""
Configuration management.
"""

import os
from dataclasses import dataclass, field


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    # Ledger (empty path keeps state in memory only)
    ledger_path: str = field(default_factory=lambda: os.getenv("LEDGER_PATH", ""))
    max_commit_retries: int = field(
        default_factory=lambda: int(os.getenv("MAX_COMMIT_RETRIES", "5"))
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Caller tokens
    caller_token_hours: int = field(
        default_factory=lambda: int(os.getenv("CALLER_TOKEN_HOURS", "8"))
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "ledger_path": self.ledger_path,
            "max_commit_retries": self.max_commit_retries,
            "log_level": self.log_level,
            "caller_token_hours": self.caller_token_hours,
        }
