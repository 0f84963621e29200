"""
Governance Workflow

Drives a proposal through the governor's fixed entry points:

    propose → castVoteWithReason → queue → execute

Vote tallying, quorum and the timelock delay are enforced on-chain; this
module only encodes calls, reads emitted events and, on development chains,
advances block height and time between the steps.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from eth_abi import encode
from eth_utils import keccak, to_bytes, to_checksum_address
from web3.contract import Contract
from web3.logs import DISCARD

from .chain import DevChain
from .deploy import Deployer, GovernanceDeployment
from .exceptions import GovernanceError, ProposalStateError
from .logger import get_logger

logger = get_logger(__name__)


class ProposalState(IntEnum):
    """Mirror of the governor's ``ProposalState`` enum."""
    PENDING = 0
    ACTIVE = 1
    CANCELED = 2
    DEFEATED = 3
    SUCCEEDED = 4
    QUEUED = 5
    EXPIRED = 6
    EXECUTED = 7


class VoteType(IntEnum):
    """Support values understood by GovernorCountingSimple."""
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2


@dataclass
class Proposal:
    """
    A bundle of target calls plus a description.

    The governor identifies a proposal by
    ``keccak256(abi.encode(targets, values, calldatas, keccak256(description)))``,
    so the same bundle always maps to the same id.
    """
    targets: List[str]
    values: List[int]
    calldatas: List[bytes]
    description: str
    proposal_id: Optional[int] = None

    def __post_init__(self):
        if not self.targets:
            raise GovernanceError("Proposal needs at least one target")
        if not len(self.targets) == len(self.values) == len(self.calldatas):
            raise GovernanceError(
                f"Proposal length mismatch: {len(self.targets)} targets, "
                f"{len(self.values)} values, {len(self.calldatas)} calldatas"
            )
        self.targets = [to_checksum_address(t) for t in self.targets]
        self.calldatas = [to_bytes(hexstr=c) if isinstance(c, str) else bytes(c) for c in self.calldatas]

    @property
    def description_hash(self) -> bytes:
        return keccak(text=self.description)

    def compute_id(self) -> int:
        """Proposal id as the governor's ``hashProposal`` computes it."""
        encoded = encode(
            ["address[]", "uint256[]", "bytes[]", "bytes32"],
            [self.targets, self.values, self.calldatas, self.description_hash],
        )
        return int.from_bytes(keccak(encoded), "big")


def store_proposal(box: Contract, value: int, description: str) -> Proposal:
    """Single-call proposal that stores *value* in the Box."""
    calldata = box.encode_abi("store", args=[value])
    return Proposal(
        targets=[box.address],
        values=[0],
        calldatas=[calldata],
        description=description,
    )


@dataclass
class LifecycleResult:
    """Events emitted while a proposal was driven to execution."""
    proposal_id: int
    created: dict
    vote: dict
    queued: dict
    executed: dict
    states: List[ProposalState] = field(default_factory=list)


class GovernanceClient:
    """Sends governance transactions from the deployer account."""

    def __init__(
        self,
        deployment: GovernanceDeployment,
        deployer: Deployer,
        chain: Optional[DevChain] = None,
    ):
        self.deployment = deployment
        self.deployer = deployer
        self.governor = deployment.governor
        self._chain = chain

    @property
    def chain(self) -> DevChain:
        if self._chain is None:
            self._chain = DevChain(self.deployer.w3)
        return self._chain

    # -- reads -------------------------------------------------------------

    def state(self, proposal_id: int) -> ProposalState:
        return ProposalState(self.governor.functions.state(proposal_id).call())

    def require_state(self, proposal_id: int, expected: ProposalState) -> None:
        actual = self.state(proposal_id)
        if actual != expected:
            raise ProposalStateError(proposal_id, expected, actual)

    def voting_delay(self) -> int:
        return self.governor.functions.votingDelay().call()

    def voting_period(self) -> int:
        return self.governor.functions.votingPeriod().call()

    def min_delay(self) -> int:
        return self.deployment.timelock.functions.getMinDelay().call()

    # -- entry points ------------------------------------------------------

    def propose(self, proposal: Proposal) -> dict:
        """Submit *proposal*; sets ``proposal.proposal_id`` and returns ``ProposalCreated``."""
        receipt = self.deployer.transact(
            self.governor.functions.propose,
            proposal.targets,
            proposal.values,
            proposal.calldatas,
            proposal.description,
        )
        event = self._single_event("ProposalCreated", receipt)
        proposal.proposal_id = event["args"]["proposalId"]
        logger.info("Proposal %d created: %s", proposal.proposal_id, proposal.description)
        return event

    def cast_vote(self, proposal_id: int, support: VoteType = VoteType.FOR, reason: str = "") -> dict:
        """Vote through ``castVoteWithReason`` and return the ``VoteCast`` event."""
        receipt = self.deployer.transact(
            self.governor.functions.castVoteWithReason,
            proposal_id,
            int(support),
            reason,
        )
        event = self._single_event("VoteCast", receipt)
        logger.info(
            "Voted %s on proposal %d with weight %d",
            VoteType(support).name, proposal_id, event["args"]["weight"],
        )
        return event

    def queue(self, proposal: Proposal) -> dict:
        """Schedule a succeeded proposal on the timelock; returns ``ProposalQueued``."""
        receipt = self.deployer.transact(
            self.governor.functions.queue,
            proposal.targets,
            proposal.values,
            proposal.calldatas,
            proposal.description_hash,
        )
        event = self._single_event("ProposalQueued", receipt)
        logger.info("Proposal %d queued, eta %d", event["args"]["proposalId"], event["args"]["eta"])
        return event

    def execute(self, proposal: Proposal) -> dict:
        """Execute a queued proposal through the timelock; returns ``ProposalExecuted``."""
        receipt = self.deployer.transact(
            self.governor.functions.execute,
            proposal.targets,
            proposal.values,
            proposal.calldatas,
            proposal.description_hash,
            value=sum(proposal.values),
        )
        event = self._single_event("ProposalExecuted", receipt)
        logger.info("Proposal %d executed", event["args"]["proposalId"])
        return event

    # -- full flow ---------------------------------------------------------

    def run_lifecycle(
        self,
        proposal: Proposal,
        support: VoteType = VoteType.FOR,
        reason: str = "",
    ) -> LifecycleResult:
        """
        Propose, vote, queue and execute *proposal* on a development chain.

        Blocks are mined past the voting delay and voting period, and the
        clock is moved past the timelock delay, between the steps.

        Raises:
            ProposalStateError: when a step finds the proposal in an
                unexpected state (for instance, DEFEATED after the vote).
        """
        states = []

        created = self.propose(proposal)
        proposal_id = proposal.proposal_id
        states.append(self.state(proposal_id))

        self.chain.mine(self.voting_delay() + 1)
        self.require_state(proposal_id, ProposalState.ACTIVE)
        states.append(ProposalState.ACTIVE)
        vote = self.cast_vote(proposal_id, support, reason)

        self.chain.mine(self.voting_period() + 1)
        self.require_state(proposal_id, ProposalState.SUCCEEDED)
        states.append(ProposalState.SUCCEEDED)
        queued = self.queue(proposal)

        self.require_state(proposal_id, ProposalState.QUEUED)
        states.append(ProposalState.QUEUED)
        self.chain.increase_time(self.min_delay() + 1)
        executed = self.execute(proposal)

        self.require_state(proposal_id, ProposalState.EXECUTED)
        states.append(ProposalState.EXECUTED)

        return LifecycleResult(
            proposal_id=proposal_id,
            created=created,
            vote=vote,
            queued=queued,
            executed=executed,
            states=states,
        )

    def _single_event(self, name: str, receipt) -> dict:
        events = getattr(self.governor.events, name)().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise GovernanceError(f"{name} was not emitted in tx {receipt['transactionHash'].hex()}")
        return events[0]
