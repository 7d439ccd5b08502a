"""
stackvm - Program Loader

Decodes program text into Instructions and feeds them to a VirtualMachine.

Line format:
  <address> <MNEMONIC> [<operand> ...]     whitespace separated
  # comment                                first non-blank char is '#'
  (blank)                                  ignored

  10 PUSH 72 105
  20 PRINT
  30 HALT

How a line is decoded:
  - address: signed decimal integer; anything else is a syntax error
  - mnemonic: required; unknown tokens decode to NOP with a warning
  - operands: signed decimal integers; scanning stops at the first token
    that is not one (warning, the rest of the line is dropped)

A syntax error only costs its own line: the loader records it, logs it
and keeps going, so one typo does not hide the rest of the program.
"""

from __future__ import annotations
import logging
import re
from typing import List, Optional, Tuple

from .engine import VirtualMachine
from .errors import LoaderError, ProgramSyntaxError
from .instruction import Instruction
from .opcodes import Opcode, decode_mnemonic, takes_operands

__all__ = ['Loader', 'parse_line', 'load_source']

log = logging.getLogger(__name__)

COMMENT_CHAR = '#'
_INT_RE = re.compile(r'[+-]?[0-9]+\Z')


def _parse_int(token: str) -> Optional[int]:
    if _INT_RE.match(token):
        return int(token)
    return None


def parse_line(line: str, line_num: int = 0) -> Optional[Instruction]:
    """Decode one line of program text.

    Returns None for blank and comment lines.
    Raises ProgramSyntaxError when the address or mnemonic is missing/bad.
    """
    text = line.strip()
    if not text or text.startswith(COMMENT_CHAR):
        return None

    tokens = text.split()
    address = _parse_int(tokens[0])
    if address is None:
        raise ProgramSyntaxError(f"bad address: {tokens[0]!r}", line_num, line)
    if len(tokens) < 2:
        raise ProgramSyntaxError(f"missing mnemonic after address {address}",
                                 line_num, line)

    mnem = tokens[1]
    opcode = decode_mnemonic(mnem)
    if opcode is None:
        log.warning("Line %d: unknown mnemonic %r at address %d, decoded as NOP",
                    line_num, mnem, address)
        opcode = Opcode.NOP

    operands: List[int] = []
    for tok in tokens[2:]:
        value = _parse_int(tok)
        if value is None:
            log.warning("Line %d: operand %r is not an integer; ignoring the rest of the line",
                        line_num, tok)
            break
        operands.append(value)

    if operands and not takes_operands(opcode):
        log.warning("Line %d: %s takes no operands; %d ignored",
                    line_num, opcode.mnemonic, len(operands))

    return Instruction(address, opcode, tuple(operands))


class Loader:
    """Line-oriented program loader.

    Usage:
        loader = Loader()
        vm = VirtualMachine()
        loader.load(source_text, vm)
        if loader.errors:
            ...   # lines that were skipped
    """

    def __init__(self):
        self.errors: List[LoaderError] = []   # one entry per skipped line
        self.loaded: int = 0                  # instructions handed to the VM

    def parse(self, source: str) -> List[Instruction]:
        """Decode all lines; bad lines are recorded in self.errors and skipped."""
        self.errors = []
        instructions: List[Instruction] = []
        for i, line in enumerate(source.splitlines(), 1):
            try:
                instr = parse_line(line, i)
            except LoaderError as e:
                log.error("%s", e)
                self.errors.append(e)
                continue
            if instr is not None:
                instructions.append(instr)
        return instructions

    def load(self, source: str, vm: VirtualMachine) -> VirtualMachine:
        """Decode `source` and add every valid instruction to `vm`."""
        instructions = self.parse(source)
        for instr in instructions:
            vm.add_instruction(instr)
        self.loaded = len(instructions)
        log.info("Loaded %d instruction(s), %d line(s) rejected",
                 self.loaded, len(self.errors))
        return vm


def load_source(source: str, vm: Optional[VirtualMachine] = None
                ) -> Tuple[VirtualMachine, List[LoaderError]]:
    """Load program text into `vm` (a new VirtualMachine if None).

    Returns (vm, errors) where errors lists the rejected lines.
    """
    if vm is None:
        vm = VirtualMachine()
    loader = Loader()
    loader.load(source, vm)
    return vm, loader.errors
