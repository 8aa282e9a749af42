"""
Configuration management for facilitator_sync.

Loads settings from environment variables (.env supported) and optional
facilitator list files. Exposes SyncConfig as the single source of truth
for one sync run.
"""

from facilitator_sync.config.settings import (  # noqa: F401
    AGGRESSIVE_PROFILE,
    CONSERVATIVE_PROFILE,
    PROVIDER_DEFAULTS,
    TRANSFER_EVENT_SELECTOR,
    FacilitatorConfig,
    QueryProvider,
    RetryProfile,
    SyncConfig,
    TokenConfig,
    get_settings,
    load_facilitators,
)

__all__ = [
    "AGGRESSIVE_PROFILE",
    "CONSERVATIVE_PROFILE",
    "PROVIDER_DEFAULTS",
    "TRANSFER_EVENT_SELECTOR",
    "FacilitatorConfig",
    "QueryProvider",
    "RetryProfile",
    "SyncConfig",
    "TokenConfig",
    "get_settings",
    "load_facilitators",
]
