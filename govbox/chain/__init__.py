"""
govbox Chain Access

Web3 connection factory and development-network helpers.
"""

from .devchain import DevChain
from .provider import REVERT_ERRORS, connect

__all__ = ["DevChain", "REVERT_ERRORS", "connect"]
