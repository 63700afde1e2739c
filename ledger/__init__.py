"""
DropForge - Ledger Access

JSON-RPC transport, transaction construction and the submit/finality/query
capability consumed by the collection registry.
"""

from .client import Ledger, LedgerClient, LedgerConfig, TransactionReceipt, TransactionSigner
from .exceptions import (
    FinalityTimeoutError,
    LedgerError,
    RejectionError,
    RPCConnectionError,
    RPCError,
    RPCTimeoutError,
    SubmissionError
)
from .rpc import LedgerRPCClient, RPCConfig
from .transactions import TransactionBlock, normalize_address

__all__ = [
    "Ledger",
    "LedgerClient",
    "LedgerConfig",
    "LedgerRPCClient",
    "RPCConfig",
    "TransactionBlock",
    "TransactionReceipt",
    "TransactionSigner",
    "normalize_address",
    "LedgerError",
    "RPCError",
    "RPCConnectionError",
    "RPCTimeoutError",
    "SubmissionError",
    "FinalityTimeoutError",
    "RejectionError"
]
