"""
stackvm - Execution Engine

Execution model:
  1. Fetch the instruction stored at PC
  2. Validate operands / stack depth for its opcode
  3. Execute the handler -> update stack, accumulator
  4. Advance PC: explicit jump target, or the next stored address
  5. Check termination conditions (halt, end of program, fault)

Termination reasons:
  HALT:     HALT instruction executed
  END:      sequential advance ran off the last address, or an unresolved
            jump under JumpPolicy.HALT
  BREAK:    breakpoint address reached (run() only, resumable)
  TIMEOUT:  step limit reached (run() only, resumable)
  ERROR:    an instruction faulted; the VMError is re-raised to the caller

Faults never leave the machine half-way through an instruction: every
handler checks its operands and stack depth before touching state.
"""

import enum
import logging
import sys
from typing import Callable, Dict, Iterable, List, Optional, Set, TextIO

from .config import JumpPolicy, VMConfig
from .errors import (
    EmptyProgramError, InvalidOperandError, UnresolvedJumpTarget, VMError,
)
from .instruction import Instruction
from .opcodes import Opcode, arity_problem
from .program import ProgramStore
from .state import ExecutionState

log = logging.getLogger(__name__)


class StopReason(enum.Enum):
    HALT = 'HALT'
    END = 'END'
    BREAK = 'BREAK'
    TIMEOUT = 'TIMEOUT'
    ERROR = 'ERROR'


class MachineStatus(enum.Enum):
    IDLE = 'IDLE'         # program may still be loading
    RUNNING = 'RUNNING'
    HALTED = 'HALTED'


def format_output(value: int) -> str:
    """Text PRINT emits for a value: the ASCII character for 0..127, else decimal."""
    if 0 <= value <= 0x7F:
        return chr(value)
    return str(value)


class VirtualMachine:
    """Stack machine with one accumulator over a sparse line-addressed program.

    Usage:
        vm = VirtualMachine()
        vm.add_instruction(Instruction.of(10, Opcode.PUSH, 3, 4))
        vm.add_instruction(Instruction.of(20, Opcode.ADD))
        vm.add_instruction(Instruction.of(30, Opcode.HALT))
        vm.start_run()
        while vm.step():
            pass
        vm.stack        # [7]
    """

    def __init__(self, config: Optional[VMConfig] = None,
                 output: Optional[TextIO] = None):
        self.config = config or VMConfig()
        self.program = ProgramStore()
        self.state = ExecutionState()
        self.status = MachineStatus.IDLE
        self.stop_reason: Optional[StopReason] = None
        self.fault: Optional[VMError] = None

        # PRINT sink; None means whatever sys.stdout is at write time
        self.output = output

        self._breakpoints: Set[int] = set()
        # Breakpoint address run() last stopped at; passed over once on resume
        self._resume_from: Optional[int] = None
        self._trace = self.config.trace
        self._trace_output: List[str] = []

        self._dispatch = self._build_dispatch()
        missing = set(Opcode) - set(self._dispatch)
        if missing:
            names = ", ".join(sorted(op.name for op in missing))
            raise RuntimeError(f"no handler for opcode(s): {names}")

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def add_instruction(self, instruction: Instruction):
        """Store an instruction. The program is frozen while a run is active."""
        if self.status is MachineStatus.RUNNING:
            raise RuntimeError("cannot add instructions while a run is active")
        self.program.insert(instruction)

    def load(self, instructions: Iterable[Instruction]):
        for instruction in instructions:
            self.add_instruction(instruction)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def start_run(self):
        """Begin a fresh run at the lowest stored address."""
        if not self.program:
            raise EmptyProgramError()
        self.state.reset(pc=self.program.min_key())
        self.status = MachineStatus.RUNNING
        self.stop_reason = None
        self.fault = None
        self._resume_from = None
        log.info("Run started: %d instruction(s), entry at %d, last at %d",
                 len(self.program), self.state.pc, self.program.max_key())

    @property
    def running(self) -> bool:
        return self.status is MachineStatus.RUNNING

    @property
    def stack(self) -> List[int]:
        """Copy of the operand stack, bottom first."""
        return list(self.state.stack)

    @property
    def accumulator(self) -> int:
        return self.state.accumulator

    def step(self) -> bool:
        """Execute one instruction. Returns True while the machine is still running.

        Raises the VMError of a faulting instruction after halting the machine.
        """
        if self.status is MachineStatus.IDLE:
            raise RuntimeError("start_run() has not been called")
        if self.status is MachineStatus.HALTED:
            return False

        pc = self.state.pc
        instr = self.program.lookup(pc)
        if instr is None:
            log.warning("Program counter %d does not address an instruction; halting", pc)
            self._halt(StopReason.END)
            return False

        self.state.steps += 1
        self.stop_reason = None
        self._resume_from = None
        try:
            target = self._execute(instr)
        except _HaltSignal as sig:
            self._record_trace(pc, instr)
            self._halt(sig.reason)
            return False
        except VMError as e:
            e.at(pc, instr.opcode)
            if self._trace:
                self._trace_output.append(f"{pc}: {instr.format()}")
                self._trace_output.append(f"  ERROR: {e}")
            self.fault = e
            self._halt(StopReason.ERROR)
            log.error("Run failed: %s", e)
            raise

        self._record_trace(pc, instr)

        if target is None:
            target = self.program.next_after(pc)
            if target is None:
                self._halt(StopReason.END)
                return False
        self.state.pc = target
        return True

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Step until the machine stops. Starts a run first if none is active.

        Args:
            max_steps: instruction budget for this call; defaults to the
                       config's max_steps (None = unlimited)

        Returns:
            StopReason. BREAK and TIMEOUT leave the machine RUNNING, so a
            later run() or step() continues where this one stopped.
        """
        if self.status is MachineStatus.IDLE:
            self.start_run()
        if self.status is MachineStatus.HALTED:
            return self.stop_reason

        limit = max_steps if max_steps is not None else self.config.max_steps
        executed = 0

        while self.status is MachineStatus.RUNNING:
            if limit is not None and executed >= limit:
                log.warning("Step limit reached (%d) at address %d", limit, self.state.pc)
                self.stop_reason = StopReason.TIMEOUT
                return StopReason.TIMEOUT

            pc = self.state.pc
            if pc in self._breakpoints and pc != self._resume_from:
                log.info("Breakpoint hit at address %d", pc)
                self.stop_reason = StopReason.BREAK
                self._resume_from = pc
                return StopReason.BREAK

            self.step()
            executed += 1

        return self.stop_reason

    def _halt(self, reason: StopReason):
        self.status = MachineStatus.HALTED
        self.stop_reason = reason
        log.debug("Halted (%s) at address %d after %d step(s)",
                  reason.value, self.state.pc, self.state.steps)

    # ══════════════════════════════════════════════
    # Instruction execution
    # ══════════════════════════════════════════════

    def _execute(self, instr: Instruction) -> Optional[int]:
        """Dispatch to the opcode handler.

        Operand counts are checked against OPERAND_ARITY before the handler
        runs. Handlers return None for sequential advance or the address to
        continue at. HALT raises _HaltSignal.
        """
        problem = arity_problem(instr.opcode, len(instr.operands))
        if problem:
            raise InvalidOperandError(problem)
        return self._dispatch[instr.opcode](instr)

    def _build_dispatch(self) -> Dict[Opcode, Callable[[Instruction], Optional[int]]]:
        """Build opcode -> handler dispatch table."""
        return {
            # ── Stack ──
            Opcode.PUSH:    self._op_push,
            Opcode.POP:     self._op_pop,
            Opcode.DUP:     self._op_dup,
            Opcode.STACKSZ: self._op_stacksz,

            # ── Arithmetic ──
            Opcode.ADD:     self._op_add,

            # ── Accumulator ──
            Opcode.PUSHA:   self._op_pusha,
            Opcode.LOADA:   self._op_loada,

            # ── Output ──
            Opcode.PRINT:   self._op_print,

            # ── Control ──
            Opcode.JUMP:    self._op_jump,
            Opcode.IFEQ:    self._op_ifeq,
            Opcode.NOP:     self._op_nop,
            Opcode.HALT:    self._op_halt,
        }

    # ── Operand helpers ──

    @staticmethod
    def _pop_count(instr: Instruction) -> int:
        if not instr.operands:
            return 1
        count = instr.operands[0]
        if count < 1:
            raise InvalidOperandError(f"POP count must be at least 1, got {count}")
        return count

    def _resolve_jump(self, target: int) -> int:
        if target in self.program:
            return target
        if self.config.jump_policy is JumpPolicy.HALT:
            log.warning("Jump target %d is not a program address; halting", target)
            raise _HaltSignal(StopReason.END)
        raise UnresolvedJumpTarget(target)

    def _emit(self, text: str):
        sink = self.output if self.output is not None else sys.stdout
        sink.write(text)

    # ── Handlers ──

    def _op_push(self, instr):
        for value in instr.operands:
            self.state.push(value)

    def _op_pop(self, instr):
        count = self._pop_count(instr)
        self.state.require(count)
        for _ in range(count):
            self.state.accumulator = self.state.pop()

    def _op_dup(self, instr):
        self.state.push(self.state.top())

    def _op_stacksz(self, instr):
        self.state.push(self.state.depth)

    def _op_add(self, instr):
        self.state.require(2)
        a = self.state.pop()
        b = self.state.pop()
        self.state.push(a + b)

    def _op_pusha(self, instr):
        self.state.push(self.state.accumulator)

    def _op_loada(self, instr):
        self.state.accumulator = self.state.top()

    def _op_print(self, instr):
        self._emit(format_output(self.state.top()))

    def _op_jump(self, instr):
        return self._resolve_jump(instr.operands[0])

    def _op_ifeq(self, instr):
        if self.state.top() == 0:
            return self._resolve_jump(instr.operands[0])
        return None

    def _op_nop(self, instr):
        pass

    def _op_halt(self, instr):
        raise _HaltSignal(StopReason.HALT)

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        """Add a breakpoint. run() stops before executing the instruction at addr."""
        self._breakpoints.add(addr)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable instruction trace logging."""
        self._trace = enable

    def _record_trace(self, pc: int, instr: Instruction):
        if not self._trace:
            return
        line = f"{pc}: {instr.format():<24s} {self.state.display()}"
        self._trace_output.append(line)
        log.debug("%s", line)

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def reset(self):
        """Drop run state, breakpoints and trace. The loaded program is kept."""
        self.state.reset()
        self.status = MachineStatus.IDLE
        self.stop_reason = None
        self.fault = None
        self._resume_from = None
        self._breakpoints.clear()
        self._trace_output.clear()


# Internal exception for flow control
class _HaltSignal(Exception):
    def __init__(self, reason: StopReason):
        self.reason = reason
        super().__init__(reason.value)
