"""
DropForge - Transaction Builder

This module provides a programmable transaction builder for Move calls: pure
argument encoding (UTF-8 byte vectors, unsigned integers, addresses), object
references, gas coin splitting and JSON serialization for the wallet.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


U16_MAX = 2 ** 16 - 1
U64_MAX = 2 ** 64 - 1

ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{1,64}$')
TARGET_PATTERN = re.compile(r'^0x[a-fA-F0-9]{1,64}::[A-Za-z_][A-Za-z0-9_]*::[A-Za-z_][A-Za-z0-9_]*$')


class PureType(str, Enum):
    """Pure argument types used by the collection contract."""
    BYTES = "vector<u8>"
    U16 = "u16"
    U64 = "u64"
    ADDRESS = "address"


def normalize_address(address: str) -> str:
    """Normalize an account/object address to 0x + 64 lowercase hex characters."""
    if not isinstance(address, str) or not ADDRESS_PATTERN.match(address):
        raise ValueError(f"Invalid address: {address!r}")
    return "0x" + address[2:].lower().rjust(64, "0")


@dataclass(frozen=True)
class PureArg:
    """BCS-pure input value."""
    type: PureType
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "Pure", "type": self.type.value, "value": self.value}


@dataclass(frozen=True)
class ObjectArg:
    """Object input, resolved by the wallet to its current version."""
    object_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "Object", "objectId": self.object_id}


@dataclass(frozen=True)
class GasCoin:
    """The gas coin of the transaction."""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "GasCoin"}


@dataclass(frozen=True)
class CommandResult:
    """Reference to the output of an earlier command."""
    command_index: int
    result_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.result_index is None:
            return {"kind": "Result", "index": self.command_index}
        return {"kind": "NestedResult", "index": self.command_index,
                "resultIndex": self.result_index}


Argument = Union[PureArg, ObjectArg, GasCoin, CommandResult]


@dataclass
class SplitCoins:
    """Split the given amounts off a coin."""
    coin: Argument
    amounts: List[Argument]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "SplitCoins": {
                "coin": self.coin.to_dict(),
                "amounts": [a.to_dict() for a in self.amounts]
            }
        }


@dataclass
class MoveCall:
    """Call of a public Move function."""
    target: str
    arguments: List[Argument] = field(default_factory=list)
    type_arguments: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not TARGET_PATTERN.match(self.target):
            raise ValueError(f"Invalid Move call target: {self.target!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "MoveCall": {
                "target": self.target,
                "typeArguments": list(self.type_arguments),
                "arguments": [a.to_dict() for a in self.arguments]
            }
        }


class TransactionBlock:
    """Programmable transaction under construction."""

    def __init__(self, sender: Optional[str] = None):
        self.sender = normalize_address(sender) if sender else None
        self.commands: List[Union[SplitCoins, MoveCall]] = []
        self.gas = GasCoin()

    # Pure argument helpers

    @staticmethod
    def pure_string(text: str) -> PureArg:
        """UTF-8 encode text as vector<u8>."""
        if not isinstance(text, str):
            raise TypeError("Text argument must be a string")
        return PureArg(PureType.BYTES, list(text.encode("utf-8")))

    @staticmethod
    def pure_u64(value: int) -> PureArg:
        value = int(value)
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        # u64 travels as a decimal string to survive JSON number precision
        return PureArg(PureType.U64, str(value))

    @staticmethod
    def pure_u16(value: int) -> PureArg:
        value = int(value)
        if not 0 <= value <= U16_MAX:
            raise ValueError(f"u16 out of range: {value}")
        return PureArg(PureType.U16, value)

    @staticmethod
    def pure_address(address: str) -> PureArg:
        return PureArg(PureType.ADDRESS, normalize_address(address))

    @staticmethod
    def object(object_id: str) -> ObjectArg:
        return ObjectArg(normalize_address(object_id))

    # Commands

    def _add(self, command: Union[SplitCoins, MoveCall]) -> int:
        self.commands.append(command)
        return len(self.commands) - 1

    def split_coins(self, coin: Argument, amounts: List[int]) -> List[CommandResult]:
        """Split exact amounts off a coin; returns one result per amount."""
        if not amounts:
            raise ValueError("At least one amount is required")
        index = self._add(SplitCoins(coin, [self.pure_u64(a) for a in amounts]))
        return [CommandResult(index, i) for i in range(len(amounts))]

    def move_call(self, target: str, arguments: List[Argument],
                  type_arguments: Optional[List[str]] = None) -> CommandResult:
        """Append a Move call."""
        index = self._add(MoveCall(target, list(arguments), list(type_arguments or [])))
        return CommandResult(index)

    def move_calls(self) -> List[MoveCall]:
        """Move calls in command order."""
        return [c for c in self.commands if isinstance(c, MoveCall)]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the wallet."""
        result = {
            "version": 1,
            "commands": [c.to_dict() for c in self.commands]
        }
        if self.sender:
            result["sender"] = self.sender
        return result


def decode_bytes_arg(arg: PureArg) -> str:
    """Decode a vector<u8> argument back to text."""
    if arg.type != PureType.BYTES:
        raise ValueError(f"Not a byte vector argument: {arg.type}")
    return bytes(arg.value).decode("utf-8")
