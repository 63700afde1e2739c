"""
DropForge - Ledger Exceptions

This module defines exceptions for ledger JSON-RPC transport and transaction
submission.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for ledger errors."""
    pass


class RPCError(LedgerError):
    """Base exception for JSON-RPC errors."""
    
    def __init__(self, code: Any, message: str, data: Optional[Any] = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC Error {code}: {message}")


class RPCConnectionError(RPCError):
    """Exception for RPC connection failures."""
    pass


class RPCTimeoutError(RPCError):
    """Exception for RPC timeout errors."""
    pass


class SubmissionError(LedgerError):
    """Raised when a transaction could not be signed or delivered to the ledger."""
    pass


class FinalityTimeoutError(SubmissionError):
    """Raised when a submitted transaction is not final within the allowed wait."""
    
    def __init__(self, digest: str, timeout: float):
        self.digest = digest
        self.timeout = timeout
        super().__init__(f"Transaction {digest} not final after {timeout:.0f}s")


class RejectionError(LedgerError):
    """Raised when the ledger declines a transaction (abort, malformed arguments, ...)."""
    
    def __init__(self, reason: str, digest: Optional[str] = None):
        self.reason = reason
        self.digest = digest
        message = f"Transaction rejected: {reason}"
        if digest:
            message += f" (digest {digest})"
        super().__init__(message)
