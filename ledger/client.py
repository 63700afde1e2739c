"""
DropForge - Ledger Client

This module provides the narrow ledger capability the collection pipeline uses:
submit a transaction through the payer's wallet, wait for finality, read objects
and enumerate events. Blocking RPC calls are run on a worker pool so callers
simply await them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional

from .exceptions import (
    FinalityTimeoutError, LedgerError, RejectionError, RPCError, SubmissionError
)
from .rpc import LedgerRPCClient, is_transaction_not_found
from .transactions import TransactionBlock


class TransactionSigner(ABC):
    """Wallet capability: the payer identity that signs and executes transactions."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Account address of the connected wallet."""
        pass

    @abstractmethod
    async def sign_and_execute(self, transaction: TransactionBlock) -> Dict[str, Any]:
        """
        Sign and execute a transaction.

        Returns:
            Dict with at least "digest"; may include "effects"
        """
        pass


@dataclass
class LedgerConfig:
    """Finality and query behaviour."""
    finality_timeout: float = 60.0
    poll_interval: float = 1.0
    event_page_size: int = 50
    max_event_pages: int = 20

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LedgerConfig':
        """Create from the `ledger` section of the loaded configuration."""
        return cls(
            finality_timeout=float(config.get("finality_timeout", 60.0)),
            poll_interval=float(config.get("poll_interval", 1.0)),
            event_page_size=int(config.get("event_page_size", 50)),
            max_event_pages=int(config.get("max_event_pages", 20))
        )


@dataclass
class TransactionReceipt:
    """Final outcome of an executed transaction."""
    digest: str
    success: bool
    error: Optional[str] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    object_changes: List[Dict[str, Any]] = field(default_factory=list)

    def events_of_type(self, type_suffix: str) -> List[Dict[str, Any]]:
        """Events whose Move type ends with the given suffix (e.g. '::dropforge::CollectionCreated')."""
        return [e for e in self.events if str(e.get("type", "")).endswith(type_suffix)]

    def created_objects(self, type_suffix: str) -> List[str]:
        """Ids of created objects whose type ends with the given suffix."""
        return [
            change["objectId"] for change in self.object_changes
            if change.get("type") == "created"
            and str(change.get("objectType", "")).endswith(type_suffix)
            and change.get("objectId")
        ]

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> 'TransactionReceipt':
        """Build from a transaction block response."""
        effects = response.get("effects") or {}
        status = effects.get("status") or {}
        return cls(
            digest=response.get("digest", ""),
            success=status.get("status") == "success",
            error=status.get("error"),
            events=list(response.get("events") or []),
            object_changes=list(response.get("objectChanges") or [])
        )


class Ledger(ABC):
    """Abstract ledger capability."""

    @abstractmethod
    async def submit(self, transaction: TransactionBlock, signer: TransactionSigner) -> str:
        """
        Submit a transaction and return its digest.

        Raises:
            SubmissionError: Signing or delivery failed
            RejectionError: The ledger declined the transaction
        """
        pass

    @abstractmethod
    async def wait_for_finality(self, digest: str,
                                timeout: Optional[float] = None) -> TransactionReceipt:
        """
        Wait until a transaction is final.

        Raises:
            FinalityTimeoutError: Not final within the timeout
            RejectionError: Final but failed
        """
        pass

    @abstractmethod
    async def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        """Object data, or None when the id does not resolve."""
        pass

    @abstractmethod
    async def query_events(self, event_type: str) -> List[Dict[str, Any]]:
        """All events of a Move event type, newest first."""
        pass

    async def execute(self, transaction: TransactionBlock,
                      signer: TransactionSigner) -> TransactionReceipt:
        """Submit and wait for finality."""
        digest = await self.submit(transaction, signer)
        return await self.wait_for_finality(digest)


class LedgerClient(Ledger):
    """Ledger capability backed by the JSON-RPC full node client."""

    def __init__(self, rpc_client: LedgerRPCClient, config: Optional[LedgerConfig] = None):
        """
        Initialize ledger client.

        Args:
            rpc_client: JSON-RPC client
            config: Finality and query configuration
        """
        self.rpc_client = rpc_client
        self.config = config or LedgerConfig()
        self.logger = logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="ledger-rpc")

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args, **kwargs))

    async def submit(self, transaction: TransactionBlock, signer: TransactionSigner) -> str:
        """Sign and execute through the wallet. Never retried."""
        try:
            response = await signer.sign_and_execute(transaction)
        except (RejectionError, SubmissionError):
            raise
        except Exception as e:
            self.logger.error(f"Transaction submission failed: {e}")
            raise SubmissionError(str(e) or e.__class__.__name__) from e

        digest = (response or {}).get("digest")
        if not digest:
            raise SubmissionError("Wallet response did not include a transaction digest")

        if response.get("effects"):
            receipt = TransactionReceipt.from_response(response)
            if not receipt.success:
                raise RejectionError(receipt.error or "execution failed", digest)

        self.logger.info(f"Submitted transaction {digest}")
        return digest

    async def wait_for_finality(self, digest: str,
                                timeout: Optional[float] = None) -> TransactionReceipt:
        """Poll the full node until the transaction is indexed."""
        timeout = timeout if timeout is not None else self.config.finality_timeout
        try:
            receipt = await asyncio.wait_for(self._poll_transaction(digest), timeout=timeout)
        except asyncio.TimeoutError:
            raise FinalityTimeoutError(digest, timeout)

        if not receipt.success:
            raise RejectionError(receipt.error or "execution failed", digest)

        self.logger.info(f"Transaction {digest} is final")
        return receipt

    async def _poll_transaction(self, digest: str) -> TransactionReceipt:
        while True:
            try:
                response = await self._run(self.rpc_client.get_transaction_block, digest)
                return TransactionReceipt.from_response(response)
            except RPCError as e:
                if not is_transaction_not_found(e):
                    raise SubmissionError(f"Finality check for {digest} failed: {e}") from e
            self.logger.debug(f"Transaction {digest} not indexed yet")
            await asyncio.sleep(self.config.poll_interval)

    async def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        response = await self._run(self.rpc_client.get_object, object_id)
        response = response or {}

        if response.get("error"):
            code = response["error"].get("code")
            if code in ("notExists", "deleted", "dynamicFieldNotFound"):
                return None
            raise LedgerError(f"Object {object_id} lookup failed: {response['error']}")

        return response.get("data")

    async def query_events(self, event_type: str) -> List[Dict[str, Any]]:
        events: List[Dict[str, Any]] = []
        cursor = None

        for _ in range(self.config.max_event_pages):
            page = await self._run(
                self.rpc_client.query_events, event_type, cursor,
                self.config.event_page_size, True
            )
            events.extend(page.get("data") or [])
            if not page.get("hasNextPage") or not page.get("nextCursor"):
                break
            cursor = page["nextCursor"]
        else:
            self.logger.warning(
                f"Stopped paging {event_type} after {self.config.max_event_pages} pages"
            )

        return events

    def close(self):
        """Release the worker pool and HTTP session."""
        self._executor.shutdown(wait=False)
        self.rpc_client.close()
