"""
govbox Exceptions

Custom exception classes for compiling, deploying and driving the governance
contracts. Contract reverts are not wrapped: they surface as
``web3.exceptions.ContractLogicError`` with the library's revert message.
"""


class GovboxException(Exception):
    """Base exception for govbox."""
    pass


class ConfigurationError(GovboxException):
    """Configuration error."""
    pass


class DependencyError(GovboxException):
    """Contract library sources could not be fetched or extracted."""
    pass


class CompilationError(GovboxException):
    """Solidity compilation failed or produced no artifact."""
    pass


class NetworkError(GovboxException):
    """Chain connection error, or a dev-only RPC used on a live network."""
    pass


class DeploymentError(GovboxException):
    """A deployment or setup transaction failed."""
    pass


class GovernanceError(GovboxException):
    """Base class for proposal workflow errors."""
    pass


class ProposalStateError(GovernanceError):
    """Proposal is not in the state the next lifecycle step requires."""

    def __init__(self, proposal_id: int, expected, actual):
        self.proposal_id = proposal_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Proposal {proposal_id} is {getattr(actual, 'name', actual)}, "
            f"expected {getattr(expected, 'name', expected)}"
        )
