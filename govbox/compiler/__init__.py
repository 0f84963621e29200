"""
govbox Contract Compilation

Fetches the OpenZeppelin library and compiles the project's Solidity sources.
"""

from .dependencies import ensure_openzeppelin, openzeppelin_path
from .solidity import ContractArtifact, compile_contracts, ensure_solc

__all__ = [
    "ContractArtifact",
    "compile_contracts",
    "ensure_openzeppelin",
    "ensure_solc",
    "openzeppelin_path",
]
