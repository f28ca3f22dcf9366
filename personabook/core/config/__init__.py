"""Configuration package for PersonaBook.

This package provides Pydantic configuration models and loading utilities.
"""

from personabook.core.config.loader import (
    check_unexpanded_vars,
    expand_env_vars,
    load_config,
)
from personabook.core.config.models import (
    BookingConfig,
    CacheConfig,
    ChannelConfig,
    Config,
    DatabaseConfig,
    LimitsConfig,
    LLMConfig,
    LoggingConfig,
    PaymentsConfig,
    PersonaConfig,
    SweeperConfig,
)

__all__ = [
    # Models
    "BookingConfig",
    "CacheConfig",
    "ChannelConfig",
    "Config",
    "DatabaseConfig",
    "LimitsConfig",
    "LLMConfig",
    "LoggingConfig",
    "PaymentsConfig",
    "PersonaConfig",
    "SweeperConfig",
    # Loaders
    "check_unexpanded_vars",
    "expand_env_vars",
    "load_config",
]
