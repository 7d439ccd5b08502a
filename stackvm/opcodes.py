"""
stackvm - Opcode Table

Maps mnemonic tokens to the closed set of opcodes the engine executes, and
back again for listings.

Operand arity per opcode:
  PUSH     any number (each operand is pushed in order)
  POP      zero or one (pop count, default 1)
  IFEQ     exactly one (jump target)
  JUMP     exactly one (jump target)
  others   none (extra operands are ignored by the engine)

Mnemonics are case-sensitive. Anything not in the table decodes to NOP;
the loader reports that as a warning, not an error.
"""

import enum
from typing import Dict, Optional, Tuple


class Opcode(enum.Enum):
    PUSH = "PUSH"
    POP = "POP"
    IFEQ = "IFEQ"
    JUMP = "JUMP"
    ADD = "ADD"
    DUP = "DUP"
    PRINT = "PRINT"
    NOP = "NOP"
    STACKSZ = "STACKSZ"
    PUSHA = "PUSHA"
    LOADA = "LOADA"
    HALT = "HALT"

    @property
    def mnemonic(self) -> str:
        return OPCODE_TOKENS[self]


# ──────────────────────────────────────────────
# Mnemonic table
# ──────────────────────────────────────────────
# Format: token -> Opcode.  The inverse table is derived so the two can
# never drift apart.

MNEMONICS: Dict[str, Opcode] = {
    "PUSH":    Opcode.PUSH,
    "POP":     Opcode.POP,
    "IFEQ":    Opcode.IFEQ,
    "JUMP":    Opcode.JUMP,
    "ADD":     Opcode.ADD,
    "DUP":     Opcode.DUP,
    "PRINT":   Opcode.PRINT,
    "NOP":     Opcode.NOP,
    "STACKSZ": Opcode.STACKSZ,
    "PUSHA":   Opcode.PUSHA,
    "LOADA":   Opcode.LOADA,
    "HALT":    Opcode.HALT,
}

OPCODE_TOKENS: Dict[Opcode, str] = {op: tok for tok, op in MNEMONICS.items()}


# ──────────────────────────────────────────────
# Operand arity: opcode -> (min, max); max None = unbounded
# ──────────────────────────────────────────────
# Only opcodes the engine reads operands from are listed. Operands on any
# other opcode stay on the Instruction and are never looked at.

OPERAND_ARITY: Dict[Opcode, Tuple[int, Optional[int]]] = {
    Opcode.PUSH:    (0, None),
    Opcode.POP:     (0, 1),
    Opcode.IFEQ:    (1, 1),
    Opcode.JUMP:    (1, 1),
}


def decode_mnemonic(token: str) -> Optional[Opcode]:
    """Look up a mnemonic token. Returns None if the token is unknown."""
    return MNEMONICS.get(token)


def takes_operands(opcode: Opcode) -> bool:
    """True if the engine reads any operand of this opcode."""
    return opcode in OPERAND_ARITY


def arity_problem(opcode: Opcode, count: int) -> Optional[str]:
    """Describe why `count` operands do not fit `opcode`, or None if they do."""
    if opcode not in OPERAND_ARITY:
        return None
    lo, hi = OPERAND_ARITY[opcode]
    if count >= lo and (hi is None or count <= hi):
        return None
    if lo == hi:
        expected = f"exactly {lo}"
    elif hi is None:
        expected = f"at least {lo}"
    else:
        expected = f"at most {hi}"
    return f"{opcode.mnemonic} takes {expected} operand(s), got {count}"
