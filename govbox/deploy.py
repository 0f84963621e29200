"""
Governance deployment.

Deploys the governance token, timelock, governor and Box in a fixed order,
wires the timelock roles and hands Box ownership to the timelock:

    1. GovernanceToken(name, symbol)
    2. TimeLock(min_delay, [], [])
    3. MyGovernance(token, timelock, quorum_fraction, voting_delay, voting_period)
    4. PROPOSER_ROLE → governor, EXECUTOR_ROLE → zero address and deployer
    5. Box()
    6. box.transferOwnership(timelock)
"""

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from web3 import Web3
from web3.contract import Contract
from web3.exceptions import TimeExhausted

from .compiler import ContractArtifact
from .config import DeployConfig, GovernanceSettings
from .constants import RECEIPT_POLL_LATENCY, RECEIPT_TIMEOUT
from .exceptions import DeploymentError
from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class GovernanceDeployment:
    """Handles of the four deployed contracts."""
    token: Contract
    timelock: Contract
    governor: Contract
    box: Contract
    deployer: str
    chain_id: int

    def addresses(self) -> Dict[str, str]:
        return {
            "GovernanceToken": self.token.address,
            "TimeLock": self.timelock.address,
            "MyGovernance": self.governor.address,
            "Box": self.box.address,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "deployer": self.deployer,
            "contracts": self.addresses(),
        }

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Deployment record written to %s", path)
        return path

    @classmethod
    def load(cls, path: Path, w3: Web3, artifacts: Dict[str, ContractArtifact]) -> "GovernanceDeployment":
        """Rebind a saved deployment record to contract handles on *w3*."""
        try:
            record = json.loads(Path(path).read_text())
            contracts = record["contracts"]
            deployment = cls(
                token=artifacts["GovernanceToken"].at(w3, contracts["GovernanceToken"]),
                timelock=artifacts["TimeLock"].at(w3, contracts["TimeLock"]),
                governor=artifacts["MyGovernance"].at(w3, contracts["MyGovernance"]),
                box=artifacts["Box"].at(w3, contracts["Box"]),
                deployer=record["deployer"],
                chain_id=record["chain_id"],
            )
        except (OSError, ValueError, KeyError) as e:
            raise DeploymentError(f"Invalid deployment record {path}: {e}") from e
        if deployment.chain_id != w3.eth.chain_id:
            raise DeploymentError(
                f"Deployment record is for chain {deployment.chain_id}, "
                f"connected to {w3.eth.chain_id}"
            )
        for name, address in deployment.addresses().items():
            if not w3.eth.get_code(address):
                raise DeploymentError(
                    f"No contract code at {address} for {name}; "
                    f"the deployment in {path} is not on this chain"
                )
        return deployment


class Deployer:
    """
    Sends deployment and setup transactions from one account and waits for
    each to be confirmed.
    """

    def __init__(
        self,
        w3: Web3,
        artifacts: Dict[str, ContractArtifact],
        account: Optional[str] = None,
        confirmations: int = 1,
    ):
        self.w3 = w3
        self.artifacts = artifacts
        self.account = account or w3.eth.default_account
        if not self.account:
            raise DeploymentError("No deployer account available")
        self.confirmations = confirmations

    def deploy(self, name: str, *args) -> Contract:
        """Deploy contract *name* with constructor *args*."""
        try:
            artifact = self.artifacts[name]
        except KeyError:
            raise DeploymentError(f"No compiled artifact for {name}") from None
        tx_hash = artifact.factory(self.w3).constructor(*args).transact({"from": self.account})
        receipt = self.wait(tx_hash, label=f"deploy {name}")
        address = receipt["contractAddress"]
        logger.debug("%s deployed at %s (gas %d)", name, address, receipt["gasUsed"])
        return artifact.at(self.w3, address)

    def transact(self, fn: Callable, *args, value: int = 0):
        """Call contract function *fn* with *args* and return its receipt."""
        tx = {"from": self.account}
        if value:
            tx["value"] = value
        tx_hash = fn(*args).transact(tx)
        return self.wait(tx_hash, label=getattr(fn, "fn_name", "transaction"))

    def wait(self, tx_hash, label: str = "transaction"):
        """Wait for *tx_hash* to be mined and reach the required confirmations."""
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=RECEIPT_TIMEOUT, poll_latency=RECEIPT_POLL_LATENCY
            )
        except TimeExhausted as e:
            raise DeploymentError(f"{label} was not mined: {e}") from e
        if receipt["status"] != 1:
            raise DeploymentError(f"{label} failed in tx {tx_hash.hex()}")

        target = receipt["blockNumber"] + self.confirmations - 1
        # the in-process tester only mines on demand
        tester = getattr(self.w3.provider, "ethereum_tester", None)
        if tester is not None and self.w3.eth.block_number < target:
            tester.mine_blocks(target - self.w3.eth.block_number)

        deadline = time.monotonic() + RECEIPT_TIMEOUT
        while self.w3.eth.block_number < target:
            if time.monotonic() > deadline:
                raise DeploymentError(f"{label} did not reach {self.confirmations} confirmations")
            time.sleep(RECEIPT_POLL_LATENCY)
        return receipt


def setup_roles(deployer: Deployer, timelock: Contract, governor: Contract, executor: str, renounce_admin: bool = False) -> None:
    """
    Grant the timelock roles the governance flow needs.

    The governor becomes the sole proposer. Execution is opened to *executor*
    (the zero address makes it permissionless) and to the deployer.
    """
    proposer_role = timelock.functions.PROPOSER_ROLE().call()
    executor_role = timelock.functions.EXECUTOR_ROLE().call()
    admin_role = timelock.functions.TIMELOCK_ADMIN_ROLE().call()

    deployer.transact(timelock.functions.grantRole, proposer_role, governor.address)
    deployer.transact(timelock.functions.grantRole, executor_role, executor)
    deployer.transact(timelock.functions.grantRole, executor_role, deployer.account)

    if renounce_admin:
        deployer.transact(timelock.functions.renounceRole, admin_role, deployer.account)
        logger.info("Deployer renounced TIMELOCK_ADMIN_ROLE")


def deploy_governance(
    deployer: Deployer,
    settings: Optional[GovernanceSettings] = None,
    options: Optional[DeployConfig] = None,
) -> GovernanceDeployment:
    """Run the full deployment sequence and return the deployed handles."""
    settings = settings or GovernanceSettings()
    options = options or DeployConfig()

    token = deployer.deploy("GovernanceToken", settings.token_name, settings.token_symbol)
    timelock = deployer.deploy("TimeLock", settings.min_delay, [], [])
    governor = deployer.deploy(
        "MyGovernance",
        token.address,
        timelock.address,
        settings.quorum_fraction,
        settings.voting_delay,
        settings.voting_period,
    )

    setup_roles(deployer, timelock, governor, options.executor, renounce_admin=options.renounce_admin)

    box = deployer.deploy("Box")
    deployer.transact(box.functions.transferOwnership, timelock.address)

    # ERC20Votes only counts delegated balances
    if options.delegate:
        deployer.transact(token.functions.delegate, deployer.account)

    deployment = GovernanceDeployment(
        token=token,
        timelock=timelock,
        governor=governor,
        box=box,
        deployer=deployer.account,
        chain_id=deployer.w3.eth.chain_id,
    )
    for name, address in deployment.addresses().items():
        logger.info("%s deployed to: %s", name, address)

    if options.output:
        deployment.save(Path(options.output))
    return deployment
