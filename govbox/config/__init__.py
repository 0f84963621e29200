"""
govbox Configuration

Loads all sections of govbox.toml. Environment variables override TOML values.
"""

from .loader import (
    CompilerConfig,
    DeployConfig,
    GovernanceSettings,
    NetworkConfig,
    ProjectConfig,
    load_config,
)

__all__ = [
    "CompilerConfig",
    "DeployConfig",
    "GovernanceSettings",
    "NetworkConfig",
    "ProjectConfig",
    "load_config",
]
