"""
stackvm - Instruction Model

One decoded program line: the address it was declared at, its opcode and
its integer operands. Instructions are immutable once built; the program
store keys them by address.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple

from .opcodes import Opcode


@dataclass(frozen=True)
class Instruction:
    address: int
    opcode: Opcode
    operands: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, address: int, opcode: Opcode, *operands: int) -> "Instruction":
        """Convenience constructor: Instruction.of(10, Opcode.PUSH, 1, 2)."""
        return cls(address, opcode, tuple(operands))

    def format(self) -> str:
        """Render the instruction in program-text form (used by listings)."""
        parts = [str(self.address), self.opcode.mnemonic]
        parts.extend(str(op) for op in self.operands)
        return " ".join(parts)

    def __str__(self):
        return self.format()
