"""
Contract library dependencies.

The Solidity sources import ``@openzeppelin/contracts/...``. This module
fetches the pinned OpenZeppelin release archive, extracts its ``contracts/``
tree into a local cache and returns the path the compiler remaps the import
prefix to.
"""

import io
import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx

from ..constants import DOWNLOAD_TIMEOUT, OPENZEPPELIN_ARCHIVE_URL
from ..exceptions import DependencyError
from ..logger import get_logger

logger = get_logger(__name__)

COMPLETE_MARKER = ".complete"


def openzeppelin_path(version: str, cache_dir: Path) -> Path:
    """Directory holding the extracted ``contracts/`` tree for *version*."""
    return Path(cache_dir) / f"openzeppelin-contracts-{version}"


def ensure_openzeppelin(
    version: str,
    cache_dir: Path,
    client: Optional[httpx.Client] = None,
) -> Path:
    """
    Make the OpenZeppelin contracts for *version* available locally.

    Args:
        version: Release tag without the leading ``v`` (e.g. ``"4.9.6"``).
        cache_dir: Directory under which releases are cached.
        client: Optional ``httpx.Client`` (tests pass one with a mock transport).

    Returns:
        Path of the ``contracts/`` directory.

    Raises:
        DependencyError: if the archive cannot be downloaded or is malformed.
    """
    target = openzeppelin_path(version, cache_dir)
    contracts_dir = target / "contracts"
    if (target / COMPLETE_MARKER).exists():
        logger.debug("OpenZeppelin %s already cached at %s", version, target)
        return contracts_dir

    url = OPENZEPPELIN_ARCHIVE_URL.format(version=version)
    logger.info("Fetching OpenZeppelin contracts %s", version)
    archive = _download(url, client)

    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".oz-", dir=target.parent))
    try:
        count = _extract_contracts(archive, staging)
        if count == 0:
            raise DependencyError(f"No Solidity sources found in {url}")
        (staging / COMPLETE_MARKER).write_text(version)
        if target.exists():
            shutil.rmtree(target)
        staging.rename(target)
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    logger.info("Extracted %d OpenZeppelin sources to %s", count, contracts_dir)
    return contracts_dir


def _download(url: str, client: Optional[httpx.Client]) -> bytes:
    owns_client = client is None
    if owns_client:
        client = httpx.Client(follow_redirects=True, timeout=DOWNLOAD_TIMEOUT)
    try:
        response = client.get(url)
        response.raise_for_status()
        return response.content
    except httpx.HTTPError as e:
        raise DependencyError(f"Failed to download {url}: {e}") from e
    finally:
        if owns_client:
            client.close()


def _extract_contracts(archive: bytes, destination: Path) -> int:
    """
    Extract ``<top>/contracts/**`` from a release tarball into *destination*.

    Returns the number of ``.sol`` files written.
    """
    written = 0
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            for member in tar.getmembers():
                if not member.isfile():
                    continue
                parts = PurePosixPath(member.name).parts
                # Drop the "openzeppelin-contracts-<version>/" prefix
                if len(parts) < 3 or parts[1] != "contracts" or ".." in parts:
                    continue
                relative = Path(*parts[1:])
                out_path = destination / relative
                out_path.parent.mkdir(parents=True, exist_ok=True)
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source, open(out_path, "wb") as f:
                    shutil.copyfileobj(source, f)
                if out_path.suffix == ".sol":
                    written += 1
    except tarfile.TarError as e:
        raise DependencyError(f"Malformed OpenZeppelin archive: {e}") from e
    return written
