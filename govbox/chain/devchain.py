"""
Development-network helpers: block mining, time travel and snapshots.

Against the in-process tester these call eth-tester directly; against a
JSON-RPC development node they use the ``evm_*`` methods that anvil and the
hardhat node both implement.
"""

from typing import Any, List, Optional, Union

from web3 import Web3

from ..constants import DEV_CHAIN_IDS
from ..exceptions import NetworkError
from ..logger import get_logger

logger = get_logger(__name__)

SnapshotId = Union[int, str]


class DevChain:
    """Block height and clock control for a development chain."""

    def __init__(self, w3: Web3):
        self.w3 = w3
        self._tester = getattr(w3.provider, "ethereum_tester", None)
        if self._tester is None and w3.eth.chain_id not in DEV_CHAIN_IDS:
            raise NetworkError(
                f"Chain {w3.eth.chain_id} is not a development network; "
                "block and time manipulation is unavailable"
            )

    @property
    def is_tester(self) -> bool:
        return self._tester is not None

    @property
    def block_number(self) -> int:
        return self.w3.eth.block_number

    @property
    def timestamp(self) -> int:
        """Timestamp of the latest block."""
        return self.w3.eth.get_block("latest")["timestamp"]

    def mine(self, blocks: int = 1) -> int:
        """Mine *blocks* empty blocks and return the new block number."""
        if blocks < 0:
            raise ValueError("blocks must be >= 0")
        if blocks:
            if self._tester is not None:
                self._tester.mine_blocks(blocks)
            else:
                for _ in range(blocks):
                    self._rpc("evm_mine")
        logger.debug("Mined %d blocks, head is %d", blocks, self.block_number)
        return self.block_number

    def increase_time(self, seconds: int) -> int:
        """
        Move the chain clock forward by *seconds* and mine one block.

        Returns the timestamp of the mined block.
        """
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        if self._tester is not None:
            # eth-tester mines one block stamped a second before the target
            # and opens the pending block at the target
            pending = self._tester.get_block_by_number("pending")["timestamp"]
            target = max(pending, self.timestamp) + seconds
            if target > pending:
                self._tester.time_travel(target)
            else:
                self._tester.mine_blocks(1)
        else:
            self._rpc("evm_increaseTime", [seconds])
            self._rpc("evm_mine")
        timestamp = self.timestamp
        logger.debug("Advanced clock by %ds to %d", seconds, timestamp)
        return timestamp

    def snapshot(self) -> SnapshotId:
        if self._tester is not None:
            return self._tester.take_snapshot()
        return self._rpc("evm_snapshot")

    def revert(self, snapshot_id: SnapshotId) -> None:
        if self._tester is not None:
            self._tester.revert_to_snapshot(snapshot_id)
            return
        if not self._rpc("evm_revert", [snapshot_id]):
            raise NetworkError(f"Node refused to revert to snapshot {snapshot_id}")

    def _rpc(self, method: str, params: Optional[List[Any]] = None) -> Any:
        response = self.w3.provider.make_request(method, params or [])
        if "error" in response:
            raise NetworkError(f"{method} failed: {response['error']}")
        return response.get("result")
