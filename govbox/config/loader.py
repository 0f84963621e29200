"""
govbox TOML Configuration Loader

Loads every section of govbox.toml with environment variable overrides.
Each section is a dataclass with ``from_dict`` and ``apply_env``.

Environment variable mapping:
    [network] provider  → GOVBOX_PROVIDER
    [network] rpc_url   → GOVBOX_RPC_URL
    [compiler] solc_version → GOVBOX_SOLC_VERSION
    ...

The deployer private key MUST come from GOVBOX_PRIVATE_KEY, never TOML.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    ADDRESS_ZERO,
    DEFAULT_CONFIRMATIONS,
    DEFAULT_RPC_URL,
    EVM_VERSION,
    GOVBOX_BUILD_DIR,
    GOVBOX_CACHE_DIR,
    GOVBOX_CONFIG,
    MIN_DELAY,
    OPENZEPPELIN_VERSION,
    OPTIMIZER_RUNS,
    QUORUM_FRACTION,
    SOLC_VERSION,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    VOTING_DELAY,
    VOTING_PERIOD,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PROVIDERS = ("tester", "http")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of govbox.example.toml
# ---------------------------------------------------------------------------


@dataclass
class NetworkConfig:
    """[network] section."""
    provider: str = "tester"
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: Optional[int] = None
    private_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        if "private_key" in data:
            raise ConfigurationError(
                "private_key must not be stored in TOML; set GOVBOX_PRIVATE_KEY"
            )
        return cls(
            provider=data.get("provider", "tester"),
            rpc_url=data.get("rpc_url", DEFAULT_RPC_URL),
            chain_id=data.get("chain_id"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVBOX_PROVIDER"):
            self.provider = v
        if v := os.environ.get("GOVBOX_RPC_URL"):
            self.rpc_url = v
        if v := os.environ.get("GOVBOX_CHAIN_ID"):
            self.chain_id = int(v)
        if v := os.environ.get("GOVBOX_PRIVATE_KEY"):
            self.private_key = v

    def validate(self) -> None:
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider {self.provider!r}, expected one of {PROVIDERS}"
            )
        if self.provider == "http" and not self.rpc_url:
            raise ConfigurationError("rpc_url is required for the http provider")


@dataclass
class CompilerConfig:
    """[compiler] section."""
    solc_version: str = SOLC_VERSION
    evm_version: str = EVM_VERSION
    optimize: bool = True
    optimizer_runs: int = OPTIMIZER_RUNS
    openzeppelin_version: str = OPENZEPPELIN_VERSION
    contracts_dir: Optional[str] = None
    build_dir: str = str(GOVBOX_BUILD_DIR)
    cache_dir: str = str(GOVBOX_CACHE_DIR)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompilerConfig":
        return cls(
            solc_version=data.get("solc_version", SOLC_VERSION),
            evm_version=data.get("evm_version", EVM_VERSION),
            optimize=data.get("optimize", True),
            optimizer_runs=data.get("optimizer_runs", OPTIMIZER_RUNS),
            openzeppelin_version=data.get("openzeppelin_version", OPENZEPPELIN_VERSION),
            contracts_dir=data.get("contracts_dir"),
            build_dir=data.get("build_dir", str(GOVBOX_BUILD_DIR)),
            cache_dir=data.get("cache_dir", str(GOVBOX_CACHE_DIR)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVBOX_SOLC_VERSION"):
            self.solc_version = v
        if v := os.environ.get("GOVBOX_BUILD_DIR"):
            self.build_dir = v
        if v := os.environ.get("GOVBOX_CACHE_DIR"):
            self.cache_dir = v

    def validate(self) -> None:
        if self.optimizer_runs < 1:
            raise ConfigurationError("optimizer_runs must be >= 1")


@dataclass
class GovernanceSettings:
    """[governance] section: constructor arguments of the four contracts."""
    token_name: str = TOKEN_NAME
    token_symbol: str = TOKEN_SYMBOL
    min_delay: int = MIN_DELAY
    quorum_fraction: int = QUORUM_FRACTION
    voting_delay: int = VOTING_DELAY
    voting_period: int = VOTING_PERIOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSettings":
        return cls(
            token_name=data.get("token_name", TOKEN_NAME),
            token_symbol=data.get("token_symbol", TOKEN_SYMBOL),
            min_delay=data.get("min_delay", MIN_DELAY),
            quorum_fraction=data.get("quorum_fraction", QUORUM_FRACTION),
            voting_delay=data.get("voting_delay", VOTING_DELAY),
            voting_period=data.get("voting_period", VOTING_PERIOD),
        )

    def validate(self) -> None:
        if not self.token_name or not self.token_symbol:
            raise ConfigurationError("token_name and token_symbol must be set")
        if self.min_delay < 0:
            raise ConfigurationError("min_delay must be >= 0")
        if not 0 < self.quorum_fraction <= 100:
            raise ConfigurationError("quorum_fraction must be within 1..100")
        if self.voting_delay < 0:
            raise ConfigurationError("voting_delay must be >= 0")
        if self.voting_period < 1:
            raise ConfigurationError("voting_period must be >= 1")


@dataclass
class DeployConfig:
    """[deploy] section."""
    confirmations: int = DEFAULT_CONFIRMATIONS
    delegate: bool = True
    renounce_admin: bool = False
    executor: str = ADDRESS_ZERO
    output: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeployConfig":
        return cls(
            confirmations=data.get("confirmations", DEFAULT_CONFIRMATIONS),
            delegate=data.get("delegate", True),
            renounce_admin=data.get("renounce_admin", False),
            executor=data.get("executor", ADDRESS_ZERO),
            output=data.get("output"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVBOX_CONFIRMATIONS"):
            self.confirmations = int(v)
        if v := os.environ.get("GOVBOX_RENOUNCE_ADMIN"):
            self.renounce_admin = _env_bool(v)
        if v := os.environ.get("GOVBOX_DEPLOYMENT_OUTPUT"):
            self.output = v

    def validate(self) -> None:
        if self.confirmations < 1:
            raise ConfigurationError("confirmations must be >= 1")


# ---------------------------------------------------------------------------
# Top-level configuration
# ---------------------------------------------------------------------------


@dataclass
class ProjectConfig:
    """Complete govbox configuration."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    governance: GovernanceSettings = field(default_factory=GovernanceSettings)
    deploy: DeployConfig = field(default_factory=DeployConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        return cls(
            network=NetworkConfig.from_dict(data.get("network", {})),
            compiler=CompilerConfig.from_dict(data.get("compiler", {})),
            governance=GovernanceSettings.from_dict(data.get("governance", {})),
            deploy=DeployConfig.from_dict(data.get("deploy", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "ProjectConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults are used, with environment
        overrides applied.
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.network.apply_env()
        self.compiler.apply_env()
        self.deploy.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.network.validate()
        self.compiler.validate()
        self.governance.validate()
        self.deploy.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics; the private key is omitted)."""
        result = asdict(self)
        result["network"].pop("private_key", None)
        return result


def load_config(path: Optional[str] = None) -> ProjectConfig:
    """
    Load project configuration.

    Resolution order:
        1. Explicit *path* argument
        2. GOVBOX_CONFIG env var
        3. ./govbox.toml in current directory (or GOVBOX_CONFIG from .env)
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("GOVBOX_CONFIG", str(GOVBOX_CONFIG))

    cfg = ProjectConfig.from_file(path)
    cfg.validate()
    return cfg
