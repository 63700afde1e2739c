"""
DropForge - Ledger JSON-RPC Client

This module provides the JSON-RPC client used to read collection objects,
enumerate creation events and poll transaction finality on the ledger full node.
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import RPCConnectionError, RPCError, RPCTimeoutError


DEFAULT_RPC_URL = "https://fullnode.testnet.sui.io:443"

# Full node error code for unknown transaction digests
TRANSACTION_NOT_FOUND_CODE = -32602


@dataclass
class RPCConfig:
    """Configuration for the ledger full node connection."""
    url: str = DEFAULT_RPC_URL
    timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 0.5
    pool_maxsize: int = 10

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.url or not self.url.startswith(("http://", "https://")):
            raise ValueError(f"RPC URL must be http(s): {self.url!r}")
        if self.timeout <= 0:
            raise ValueError("RPC timeout must be positive")

    @classmethod
    def from_env(cls) -> 'RPCConfig':
        """Create RPC config from environment variables."""
        return cls(
            url=os.getenv("DROPFORGE_RPC_URL", DEFAULT_RPC_URL),
            timeout=int(os.getenv("DROPFORGE_RPC_TIMEOUT", "30")),
            max_retries=int(os.getenv("DROPFORGE_RPC_MAX_RETRIES", "3"))
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'RPCConfig':
        """Create from the `network.rpc` section of the loaded configuration."""
        return cls(
            url=config.get("url", DEFAULT_RPC_URL),
            timeout=int(config.get("timeout", 30)),
            max_retries=int(config.get("max_retries", 3)),
            backoff_factor=float(config.get("backoff_factor", 0.5))
        )


@dataclass
class RPCResponse:
    """Represents an RPC response with metadata."""
    result: Any
    error: Optional[Dict[str, Any]] = None
    id: Optional[Union[str, int]] = None
    request_time: float = 0.0
    response_time: float = 0.0

    def is_success(self) -> bool:
        """Check if the RPC call was successful."""
        return self.error is None

    def get_error_code(self) -> Optional[int]:
        """Get error code if present."""
        return self.error.get("code") if self.error else None

    def get_error_message(self) -> Optional[str]:
        """Get error message if present."""
        return self.error.get("message") if self.error else None


class ConnectionPool:
    """Pooled HTTP session for JSON-RPC requests."""

    def __init__(self, config: RPCConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        if session is not None:
            self.session = session
        else:
            self.session = requests.Session()
            # Every method this client exposes is a read, so POST is safe to retry
            retry_strategy = Retry(
                total=config.max_retries,
                backoff_factor=config.backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["POST"]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=config.pool_maxsize)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

        self._request_counter = 0
        self._stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_time": 0.0,
            "last_request_time": None
        }
        self._stats_lock = threading.Lock()

    def _next_id(self) -> int:
        with self._stats_lock:
            self._request_counter += 1
            return self._request_counter

    def _fail(self) -> None:
        with self._stats_lock:
            self._stats["failed_requests"] += 1

    def request(self, method: str, params: List[Any]) -> RPCResponse:
        """Make an RPC request."""
        start_time = time.time()

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._next_id()
        }

        headers = {
            "Content-Type": "application/json",
            "User-Agent": "dropforge-rpc-client/1.0"
        }

        try:
            response = self.session.post(
                self.config.url,
                data=json.dumps(payload),
                headers=headers,
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout:
            self._fail()
            raise RPCTimeoutError(-1, f"Request timed out after {self.config.timeout}s")
        except requests.exceptions.ConnectionError as e:
            self._fail()
            raise RPCConnectionError(-1, f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            self._fail()
            raise RPCError(-1, f"Request failed: {e}")

        request_time = time.time() - start_time
        with self._stats_lock:
            self._stats["total_requests"] += 1
            self._stats["total_time"] += request_time
            self._stats["last_request_time"] = datetime.now(timezone.utc)

        if response.status_code != 200:
            self._fail()
            raise RPCConnectionError(
                response.status_code,
                f"HTTP {response.status_code}: {response.reason}"
            )

        try:
            response_data = response.json()
        except ValueError as e:
            self._fail()
            raise RPCError(-32700, f"Invalid JSON response: {e}")

        rpc_response = RPCResponse(
            result=response_data.get("result"),
            error=response_data.get("error"),
            id=response_data.get("id"),
            request_time=start_time,
            response_time=time.time()
        )

        if rpc_response.error:
            self._fail()
            raise RPCError(
                rpc_response.get_error_code(),
                rpc_response.get_error_message(),
                rpc_response.error.get("data")
            )

        with self._stats_lock:
            self._stats["successful_requests"] += 1

        return rpc_response

    def get_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics."""
        with self._stats_lock:
            stats = self._stats.copy()

        total = stats["total_requests"]
        return {
            **stats,
            "average_request_time": stats["total_time"] / total if total else 0,
            "success_rate": stats["successful_requests"] / total if total else 0,
            "config": {
                "url": self.config.url,
                "timeout": self.config.timeout,
                "max_retries": self.config.max_retries
            }
        }

    def close(self):
        """Close the connection pool."""
        self.session.close()


class LedgerRPCClient:
    """
    JSON-RPC client with the read methods the collection pipeline needs.
    """

    def __init__(self, config: Optional[RPCConfig] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize ledger RPC client.

        Args:
            config: RPC configuration (uses environment if None)
            session: Optional pre-configured HTTP session
        """
        self.config = config or RPCConfig.from_env()
        self.pool = ConnectionPool(self.config, session=session)
        self.logger = logging.getLogger(__name__)

    def _call(self, method: str, *params) -> Any:
        """
        Make an RPC call and return the result.

        Raises:
            RPCError: If RPC call fails
        """
        try:
            return self.pool.request(method, list(params)).result
        except RPCError as e:
            self.logger.debug(f"RPC call {method} failed: {e}")
            raise

    def get_object(self, object_id: str, show_content: bool = True,
                   show_type: bool = True, show_owner: bool = False) -> Dict[str, Any]:
        """
        Read an object.

        Returns:
            Raw response; either {"data": {...}} or {"error": {"code": "notExists", ...}}
        """
        options = {
            "showContent": show_content,
            "showType": show_type,
            "showOwner": show_owner
        }
        return self._call("sui_getObject", object_id, options)

    def query_events(self, move_event_type: str, cursor: Optional[Dict[str, Any]] = None,
                     limit: int = 50, descending: bool = True) -> Dict[str, Any]:
        """
        Query events of a Move event type.

        Returns:
            Page dict with data, nextCursor, hasNextPage
        """
        query = {"MoveEventType": move_event_type}
        return self._call("suix_queryEvents", query, cursor, limit, descending)

    def get_transaction_block(self, digest: str, show_effects: bool = True,
                              show_events: bool = True,
                              show_object_changes: bool = True) -> Dict[str, Any]:
        """Read an executed transaction block."""
        options = {
            "showEffects": show_effects,
            "showEvents": show_events,
            "showObjectChanges": show_object_changes
        }
        return self._call("sui_getTransactionBlock", digest, options)

    def get_chain_identifier(self) -> str:
        """Get the chain identifier of the connected network."""
        return self._call("sui_getChainIdentifier")

    def test_connection(self) -> bool:
        """Test the RPC connection."""
        try:
            return bool(self.get_chain_identifier())
        except RPCError as e:
            self.logger.error(f"Connection test failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics."""
        return self.pool.get_stats()

    def close(self):
        """Close the client."""
        self.pool.close()


def is_transaction_not_found(error: RPCError) -> bool:
    """True when a transaction lookup failed only because the digest is not indexed yet."""
    if error.code == TRANSACTION_NOT_FOUND_CODE:
        return True
    return "could not find" in str(error.message).lower()
