"""
Compiler layer: OpenZeppelin fetching, artifact selection and caching.

solc and the network are mocked here; real compilation is exercised by the
integration fixtures in conftest.py.
"""

import io
import json
import tarfile
from unittest.mock import patch

import httpx
import pytest
from solcx.exceptions import SolcError

from govbox.compiler import ContractArtifact, ensure_openzeppelin, ensure_solc, openzeppelin_path
from govbox.compiler import solidity
from govbox.config import CompilerConfig
from govbox.constants import CONTRACT_NAMES, OPENZEPPELIN_REMAPPING
from govbox.exceptions import CompilationError, DependencyError


VERSION = "4.9.6"


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

def make_archive(files):
    """Gzipped tarball with *files* (name → text) under a release prefix."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, text in files.items():
            data = text.encode()
            info = tarfile.TarInfo(f"openzeppelin-contracts-{VERSION}/{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def mock_client(body=b"", status=200):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(status, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


def solc_output(names=CONTRACT_NAMES, extra=True):
    output = {
        f"/src/contracts/{name}.sol:{name}": {"abi": [{"type": "constructor"}], "bin": "6080" + name.encode().hex()}
        for name in names
    }
    if extra:
        output["/cache/oz/contracts/access/Ownable.sol:Ownable"] = {"abi": [], "bin": ""}
        # same contract name imported from a differently named file
        output["/cache/oz/contracts/Other.sol:Box"] = {"abi": [], "bin": "dead"}
    return output


@pytest.fixture
def sources(tmp_path):
    contracts = tmp_path / "contracts"
    contracts.mkdir()
    for name in CONTRACT_NAMES:
        (contracts / f"{name}.sol").write_text(f"contract {name} {{}}\n")
    return contracts


@pytest.fixture
def compiler_config(tmp_path, sources):
    return CompilerConfig(
        contracts_dir=str(sources),
        build_dir=str(tmp_path / "build"),
        cache_dir=str(tmp_path / "cache"),
    )


# ══════════════════════════════════════════════════════════════════════
#  OPENZEPPELIN DEPENDENCY
# ══════════════════════════════════════════════════════════════════════


class TestEnsureOpenZeppelin:

    def test_extracts_contracts_tree_only(self, tmp_path):
        archive = make_archive({
            "contracts/access/Ownable.sol": "// ownable",
            "contracts/governance/Governor.sol": "// governor",
            "test/Helper.sol": "// not shipped",
            "README.md": "readme",
        })
        client, requests = mock_client(archive)

        path = ensure_openzeppelin(VERSION, tmp_path, client=client)

        assert path == openzeppelin_path(VERSION, tmp_path) / "contracts"
        assert (path / "access" / "Ownable.sol").read_text() == "// ownable"
        assert (path / "governance" / "Governor.sol").exists()
        assert not (path.parent / "test").exists()
        assert not (path.parent / "README.md").exists()
        assert len(requests) == 1
        assert f"v{VERSION}.tar.gz" in str(requests[0].url)

    def test_cached_release_is_not_downloaded_again(self, tmp_path):
        archive = make_archive({"contracts/access/Ownable.sol": "// ownable"})
        client, requests = mock_client(archive)

        first = ensure_openzeppelin(VERSION, tmp_path, client=client)
        second = ensure_openzeppelin(VERSION, tmp_path, client=client)

        assert first == second
        assert len(requests) == 1

    def test_http_error(self, tmp_path):
        client, _ = mock_client(b"not found", status=404)
        with pytest.raises(DependencyError, match="Failed to download"):
            ensure_openzeppelin(VERSION, tmp_path, client=client)
        assert not openzeppelin_path(VERSION, tmp_path).exists()

    def test_malformed_archive(self, tmp_path):
        client, _ = mock_client(b"definitely not gzip")
        with pytest.raises(DependencyError, match="Malformed"):
            ensure_openzeppelin(VERSION, tmp_path, client=client)

    def test_archive_without_sources(self, tmp_path):
        client, _ = mock_client(make_archive({"README.md": "empty"}))
        with pytest.raises(DependencyError, match="No Solidity sources"):
            ensure_openzeppelin(VERSION, tmp_path, client=client)
        assert not openzeppelin_path(VERSION, tmp_path).exists()


# ══════════════════════════════════════════════════════════════════════
#  SOLC
# ══════════════════════════════════════════════════════════════════════


class TestEnsureSolc:

    def test_installed_version_skips_install(self):
        with patch.object(solidity.solcx, "get_installed_solc_versions", return_value=["0.8.24"]), \
                patch.object(solidity.solcx, "install_solc") as install:
            ensure_solc("0.8.24")
        install.assert_not_called()

    def test_missing_version_is_installed(self):
        with patch.object(solidity.solcx, "get_installed_solc_versions", return_value=[]), \
                patch.object(solidity.solcx, "install_solc") as install:
            ensure_solc("0.8.24")
        install.assert_called_once_with("0.8.24")

    def test_install_failure(self):
        with patch.object(solidity.solcx, "get_installed_solc_versions", return_value=[]), \
                patch.object(solidity.solcx, "install_solc", side_effect=OSError("no network")):
            with pytest.raises(DependencyError, match="0.8.24"):
                ensure_solc("0.8.24")


class TestSelectArtifacts:

    def test_picks_project_contracts(self):
        artifacts = solidity.select_artifacts(solc_output())
        assert set(artifacts) == set(CONTRACT_NAMES)
        assert artifacts["Box"].bytecode == "6080" + b"Box".hex()
        assert "Ownable" not in artifacts

    def test_missing_contract(self):
        with pytest.raises(CompilationError, match="MyGovernance"):
            solidity.select_artifacts(solc_output(names=("GovernanceToken", "TimeLock", "Box")))


class TestArtifactCache:

    def test_key_depends_on_sources_and_settings(self, sources, compiler_config):
        files = solidity.source_files(sources)
        key = solidity.cache_key(files, compiler_config)

        assert solidity.cache_key(files, compiler_config) == key
        assert solidity.cache_key(files, CompilerConfig(
            contracts_dir=compiler_config.contracts_dir, optimizer_runs=999,
        )) != key

        (sources / "Box.sol").write_text("contract Box { uint256 x; }\n")
        assert solidity.cache_key(files, compiler_config) != key

    def test_save_and_load(self, tmp_path):
        artifacts = {"Box": ContractArtifact(name="Box", abi=[{"type": "function"}], bytecode="6080")}
        path = solidity.save_cached(tmp_path, "abc", artifacts)

        assert json.loads(path.read_text())["key"] == "abc"
        assert solidity.load_cached(tmp_path, "abc") == artifacts
        assert solidity.load_cached(tmp_path, "other") is None

    def test_unreadable_cache(self, tmp_path):
        (tmp_path / solidity.ARTIFACTS_FILE).write_text("{not json")
        assert solidity.load_cached(tmp_path, "abc") is None


class TestCompileContracts:

    def test_compiles_with_remapping_and_caches(self, compiler_config, tmp_path):
        oz = tmp_path / "cache" / "openzeppelin-contracts-4.9.6" / "contracts"
        with patch.object(solidity, "ensure_openzeppelin", return_value=oz), \
                patch.object(solidity, "ensure_solc") as ensure, \
                patch.object(solidity.solcx, "compile_files", return_value=solc_output()) as compile_files:
            artifacts = solidity.compile_contracts(compiler_config)

        assert set(artifacts) == set(CONTRACT_NAMES)
        ensure.assert_called_once_with(compiler_config.solc_version)
        kwargs = compile_files.call_args.kwargs
        assert kwargs["import_remappings"] == {OPENZEPPELIN_REMAPPING: f"{oz}/"}
        assert kwargs["optimize"] is True
        assert kwargs["optimize_runs"] == compiler_config.optimizer_runs
        assert kwargs["evm_version"] == compiler_config.evm_version
        assert kwargs["solc_version"] == compiler_config.solc_version
        assert len(compile_files.call_args.args[0]) == len(CONTRACT_NAMES)

        # second run is served from build/artifacts.json
        with patch.object(solidity.solcx, "compile_files") as compile_files:
            cached = solidity.compile_contracts(compiler_config)
        compile_files.assert_not_called()
        assert cached == artifacts

    def test_force_recompiles(self, compiler_config, tmp_path):
        with patch.object(solidity, "ensure_openzeppelin", return_value=tmp_path), \
                patch.object(solidity, "ensure_solc"), \
                patch.object(solidity.solcx, "compile_files", return_value=solc_output()) as compile_files:
            solidity.compile_contracts(compiler_config)
            solidity.compile_contracts(compiler_config, force=True)
        assert compile_files.call_count == 2

    def test_solc_error(self, compiler_config, tmp_path):
        error = SolcError("boom", command=["solc"], return_code=1, stdout_data="", stderr_data="ParserError")
        with patch.object(solidity, "ensure_openzeppelin", return_value=tmp_path), \
                patch.object(solidity, "ensure_solc"), \
                patch.object(solidity.solcx, "compile_files", side_effect=error):
            with pytest.raises(CompilationError, match="solc failed"):
                solidity.compile_contracts(compiler_config)

    def test_no_sources(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(CompilationError, match="No Solidity sources"):
            solidity.compile_contracts(CompilerConfig(contracts_dir=str(empty), build_dir=str(tmp_path)))
