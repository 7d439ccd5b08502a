"""
stackvm - Execution State

Register model:
  stack        operand stack, list of ints, top = last element
  accumulator  single int register, written by POP and LOADA, read by PUSHA
  pc           program counter: address of the instruction about to run
  steps        executed-instruction counter (used for the step limit)

One ExecutionState belongs to one engine for one run. start_run() builds a
fresh one; nothing carries over between runs.
"""

from typing import List

from .errors import StackUnderflowError


class ExecutionState:
    """Stack, accumulator and program counter for a single run."""

    __slots__ = ('stack', 'accumulator', 'pc', 'steps')

    def __init__(self, pc: int = 0):
        self.stack: List[int] = []
        self.accumulator: int = 0
        self.pc: int = pc
        self.steps: int = 0

    # --- Stack operations ---

    def require(self, count: int):
        """Raise StackUnderflowError unless at least `count` values are on the stack.

        The engine fills in address/opcode before the error leaves the step.
        """
        if len(self.stack) < count:
            raise StackUnderflowError(count, len(self.stack))

    def push(self, value: int):
        self.stack.append(value)

    def pop(self) -> int:
        self.require(1)
        return self.stack.pop()

    def top(self) -> int:
        self.require(1)
        return self.stack[-1]

    @property
    def depth(self) -> int:
        return len(self.stack)

    # --- Display ---

    def display(self) -> str:
        """Format state for trace output."""
        return f"PC={self.pc} ACC={self.accumulator} SP={len(self.stack)} STACK={self.stack}"

    def reset(self, pc: int = 0):
        self.stack = []
        self.accumulator = 0
        self.pc = pc
        self.steps = 0
