"""
Solidity compilation via py-solc-x.

Compiles the sources under ``contracts/`` against the cached OpenZeppelin
release and keeps the resulting ABI/bytecode in a JSON artifact file, so
repeated test runs and deployments skip the compiler.
"""

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import solcx
from solcx.exceptions import DownloadError, SolcError, SolcInstallationError

from ..config import CompilerConfig
from ..constants import CONTRACT_NAMES, CONTRACTS_DIR, OPENZEPPELIN_REMAPPING
from ..exceptions import CompilationError, DependencyError
from ..logger import get_logger
from .dependencies import ensure_openzeppelin

logger = get_logger(__name__)

ARTIFACTS_FILE = "artifacts.json"


@dataclass
class ContractArtifact:
    """Compiled contract interface."""
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str

    def to_dict(self) -> Dict[str, Any]:
        return {"abi": self.abi, "bytecode": self.bytecode}

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ContractArtifact":
        return cls(name=name, abi=data["abi"], bytecode=data["bytecode"])

    def factory(self, w3):
        """Return a web3 contract factory for deployment."""
        return w3.eth.contract(abi=self.abi, bytecode=self.bytecode)

    def at(self, w3, address: str):
        """Return a web3 contract bound to a deployed *address*."""
        return w3.eth.contract(address=address, abi=self.abi)


def ensure_solc(version: str) -> None:
    """Install *version* of solc through py-solc-x if it is not present."""
    installed = {str(v) for v in solcx.get_installed_solc_versions()}
    if version in installed:
        return
    logger.info("Installing solc %s", version)
    try:
        solcx.install_solc(version)
    except (SolcInstallationError, DownloadError, OSError) as e:
        raise DependencyError(f"Could not install solc {version}: {e}") from e


def source_files(contracts_dir: Path) -> List[Path]:
    return sorted(Path(contracts_dir).glob("*.sol"))


def cache_key(sources: Iterable[Path], config: CompilerConfig) -> str:
    """Hash of the source contents and every setting that affects bytecode."""
    digest = hashlib.sha256()
    for path in sources:
        digest.update(path.name.encode())
        digest.update(path.read_bytes())
    settings = (
        config.solc_version,
        config.evm_version,
        str(config.optimize),
        str(config.optimizer_runs),
        config.openzeppelin_version,
    )
    digest.update("|".join(settings).encode())
    return digest.hexdigest()


def load_cached(build_dir: Path, key: str) -> Optional[Dict[str, ContractArtifact]]:
    path = Path(build_dir) / ARTIFACTS_FILE
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable artifact cache %s", path)
        return None
    if data.get("key") != key:
        return None
    return {
        name: ContractArtifact.from_dict(name, entry)
        for name, entry in data["contracts"].items()
    }


def save_cached(build_dir: Path, key: str, artifacts: Dict[str, ContractArtifact]) -> Path:
    path = Path(build_dir) / ARTIFACTS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "key": key,
        "contracts": {name: a.to_dict() for name, a in artifacts.items()},
    }
    path.write_text(json.dumps(payload, indent=2))
    return path


def select_artifacts(
    output: Dict[str, Dict[str, Any]],
    names: Iterable[str] = CONTRACT_NAMES,
) -> Dict[str, ContractArtifact]:
    """
    Pick the project contracts out of solc's combined output.

    solc keys its output ``<source path>:<ContractName>`` and includes every
    imported library contract; only ``<Name>.sol:<Name>`` entries are kept.
    """
    wanted = set(names)
    artifacts: Dict[str, ContractArtifact] = {}
    for key, entry in output.items():
        source, _, name = key.rpartition(":")
        if name not in wanted or Path(source).name != f"{name}.sol":
            continue
        artifacts[name] = ContractArtifact(name=name, abi=entry["abi"], bytecode=entry["bin"])

    missing = wanted - artifacts.keys()
    if missing:
        raise CompilationError(f"Compiler produced no artifact for: {', '.join(sorted(missing))}")
    return artifacts


def compile_contracts(config: CompilerConfig, force: bool = False) -> Dict[str, ContractArtifact]:
    """
    Compile the project contracts, reusing cached artifacts when possible.

    Args:
        config: Compiler section of the project configuration.
        force: Ignore the artifact cache.

    Returns:
        Mapping of contract name to ``ContractArtifact``.
    """
    contracts_dir = Path(config.contracts_dir) if config.contracts_dir else CONTRACTS_DIR
    sources = source_files(contracts_dir)
    if not sources:
        raise CompilationError(f"No Solidity sources in {contracts_dir}")

    key = cache_key(sources, config)
    if not force:
        cached = load_cached(Path(config.build_dir), key)
        if cached is not None:
            logger.debug("Using cached artifacts (%s)", key[:12])
            return cached

    oz_contracts = ensure_openzeppelin(config.openzeppelin_version, Path(config.cache_dir))
    ensure_solc(config.solc_version)

    logger.info(
        "Compiling %d sources with solc %s (optimizer %s)",
        len(sources), config.solc_version, "on" if config.optimize else "off",
    )
    try:
        output = solcx.compile_files(
            [str(p) for p in sources],
            output_values=["abi", "bin"],
            import_remappings={OPENZEPPELIN_REMAPPING: f"{oz_contracts}/"},
            allow_paths=[str(contracts_dir.resolve()), str(oz_contracts.parent.resolve())],
            evm_version=config.evm_version,
            optimize=config.optimize,
            optimize_runs=config.optimizer_runs if config.optimize else None,
            solc_version=config.solc_version,
        )
    except SolcError as e:
        raise CompilationError(f"solc failed: {e}") from e

    artifacts = select_artifacts(output)
    path = save_cached(Path(config.build_dir), key, artifacts)
    logger.info("Wrote %d artifacts to %s", len(artifacts), path)
    return artifacts
