"""
stackvm - a line-addressed stack virtual machine
================================================
Runs programs made of numbered lines against an operand stack and one
accumulator register.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌──────────────┐
    │ Program  │───>│  Loader  │───>│ ProgramStore │───>│    Engine    │
    │ (text)   │    │ (lines)  │    │ (addr->instr)│    │ (step / run) │
    └──────────┘    └──────────┘    └──────────────┘    └──────────────┘

    - opcodes.py:     closed opcode enum + mnemonic table
    - instruction.py: immutable (address, opcode, operands) record
    - loader.py:      text lines -> Instructions, bad lines skipped
    - program.py:     sparse sorted address map, next-address lookup
    - state.py:       stack, accumulator, program counter
    - engine.py:      fetch / execute / advance loop, stop reasons
    - errors.py:      loader and execution fault taxonomy
    - config.py:      run limits and jump policy, named profiles
"""

__version__ = "0.4.0"

from typing import Optional

from .opcodes import Opcode, MNEMONICS
from .instruction import Instruction
from .errors import (
    LoaderError, ProgramSyntaxError, VMError, EmptyProgramError,
    StackUnderflowError, InvalidOperandError, UnresolvedJumpTarget,
)
from .program import ProgramStore
from .state import ExecutionState
from .config import VMConfig, JumpPolicy, PROFILES, get_profile
from .engine import VirtualMachine, StopReason, MachineStatus, format_output
from .loader import Loader, parse_line, load_source


def run_source(source: str, *, config: Optional[VMConfig] = None, output=None):
    """Load and run program text in one call.

    Full pipeline: Loader -> ProgramStore -> VirtualMachine.run().

    Args:
        source: program text.
        config: run configuration (default VMConfig()).
        output: PRINT sink with a write(str) method (default sys.stdout).

    Returns:
        The VirtualMachine after the run, for inspecting stack,
        accumulator and stop_reason. Lines rejected by the loader are
        logged and skipped; execution faults propagate as VMError.
    """
    vm = VirtualMachine(config=config, output=output)
    load_source(source, vm)
    vm.run()
    return vm
