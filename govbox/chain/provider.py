"""
Web3 connection factory.

``tester`` runs an in-process py-evm chain through eth-tester; every
transaction is mined into its own block immediately. ``http`` talks to a
JSON-RPC node (anvil, hardhat node, or a live network).
"""

from typing import Optional

from eth_account import Account
from eth_tester.exceptions import TransactionFailed
from web3 import EthereumTesterProvider, HTTPProvider, Web3
from web3.exceptions import ContractLogicError
from web3.middleware import SignAndSendRawMiddlewareBuilder

from ..config import NetworkConfig
from ..exceptions import NetworkError
from ..logger import get_logger

logger = get_logger(__name__)

# A revert surfaces as ContractLogicError over JSON-RPC and as
# TransactionFailed from the in-process tester; both carry the reason string.
REVERT_ERRORS = (ContractLogicError, TransactionFailed)


def connect(config: Optional[NetworkConfig] = None) -> Web3:
    """
    Build a ``Web3`` instance for *config* with ``default_account`` set.

    When a private key is configured, signing middleware is installed and
    the key's address becomes the default account; otherwise the node's
    first unlocked account is used.
    """
    config = config or NetworkConfig()
    config.validate()

    if config.provider == "tester":
        w3 = Web3(EthereumTesterProvider())
    else:
        w3 = Web3(HTTPProvider(config.rpc_url))
        if not w3.is_connected():
            raise NetworkError(f"Cannot reach JSON-RPC endpoint {config.rpc_url}")

    chain_id = w3.eth.chain_id
    if config.chain_id is not None and chain_id != config.chain_id:
        raise NetworkError(
            f"Connected to chain {chain_id}, configuration expects {config.chain_id}"
        )

    if config.private_key:
        account = Account.from_key(config.private_key)
        w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
        w3.eth.default_account = account.address
    else:
        accounts = w3.eth.accounts
        if not accounts:
            raise NetworkError("Node exposes no unlocked accounts and no private key is set")
        w3.eth.default_account = accounts[0]

    logger.info(
        "Connected to %s (chain %d) as %s",
        config.provider, chain_id, w3.eth.default_account,
    )
    return w3
