"""
stackvm - Error Taxonomy

Loader side:
  LoaderError / ProgramSyntaxError  one bad line; the loader skips it and
                                    keeps going

Engine side (all VMError, all fatal to the current run):
  EmptyProgramError      nothing was loaded before start_run()
  StackUnderflowError    an opcode needs more stack values than present
  InvalidOperandError    wrong operand count / value for the opcode
  UnresolvedJumpTarget   JUMP or IFEQ target is not a stored address

Every VMError carries the address and opcode of the offending instruction
(when there is one) so callers can report it without parsing the message.
"""

from typing import Optional

from .opcodes import Opcode


class LoaderError(Exception):
    """Raised on program text that cannot be decoded."""
    def __init__(self, message: str, line_num: int = 0, line_text: str = ""):
        self.line_num = line_num
        self.line_text = line_text
        self.reason = message
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class ProgramSyntaxError(LoaderError):
    """A line could not be split into address + mnemonic."""


class VMError(Exception):
    """Base class for execution faults."""
    def __init__(self, reason: str, address: Optional[int] = None,
                 opcode: Optional[Opcode] = None):
        self.reason = reason
        self.address = address
        self.opcode = opcode
        super().__init__(self._format())

    def at(self, address: int, opcode: Optional[Opcode]) -> "VMError":
        """Attach the faulting instruction's location if not already set."""
        if self.address is None:
            self.address = address
            self.opcode = opcode
            self.args = (self._format(),)
        return self

    def _format(self) -> str:
        if self.address is None:
            return self.reason
        if self.opcode is None:
            return f"{self.reason} (address {self.address})"
        return f"{self.reason} (address {self.address}, {self.opcode.mnemonic})"


class EmptyProgramError(VMError):
    def __init__(self, reason: str = "no instructions loaded"):
        super().__init__(reason)


class StackUnderflowError(VMError):
    def __init__(self, needed: int, available: int,
                 address: Optional[int] = None, opcode: Optional[Opcode] = None):
        self.needed = needed
        self.available = available
        super().__init__(
            f"stack underflow: need {needed} value(s), have {available}",
            address, opcode)


class InvalidOperandError(VMError):
    pass


class UnresolvedJumpTarget(VMError):
    def __init__(self, target: int, address: Optional[int] = None,
                 opcode: Optional[Opcode] = None):
        self.target = target
        super().__init__(f"jump target {target} is not a program address",
                         address, opcode)
