"""
Shared fixtures.

Contracts are compiled once per session and deployed once onto an in-process
py-evm chain; every test that uses ``deployment`` runs inside a chain
snapshot that is reverted afterwards, so tests never see each other's
transactions.
"""

import pytest

from govbox.chain import DevChain, connect
from govbox.compiler import compile_contracts
from govbox.config import CompilerConfig, NetworkConfig
from govbox.deploy import Deployer, deploy_governance
from govbox.governance import GovernanceClient


def pytest_collection_modifyitems(items):
    for item in items:
        if "deployment" in getattr(item, "fixturenames", ()) or "artifacts" in getattr(item, "fixturenames", ()):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def artifacts():
    return compile_contracts(CompilerConfig())


@pytest.fixture(scope="session")
def w3():
    return connect(NetworkConfig(provider="tester"))


@pytest.fixture(scope="session")
def chain(w3):
    return DevChain(w3)


@pytest.fixture(scope="session")
def deployer(w3, artifacts):
    return Deployer(w3, artifacts)


@pytest.fixture(scope="session")
def session_deployment(deployer):
    return deploy_governance(deployer)


@pytest.fixture
def deployment(session_deployment, chain):
    snapshot = chain.snapshot()
    yield session_deployment
    chain.revert(snapshot)


@pytest.fixture
def client(deployment, deployer, chain):
    return GovernanceClient(deployment, deployer, chain)
