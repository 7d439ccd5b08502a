"""
stackvm - Program Store

Sparse, sorted map of address -> Instruction.

Source programs number their lines freely (10, 20, 25, 1000 ...), so the
store is not an array. Keys are kept in a sorted list alongside the dict;
"next address after X" is a bisect on that list, which is what sequential
program-counter advance and end-of-program detection use.

Insertion order does not matter, only key order. Re-inserting an address
overwrites the earlier instruction.
"""

import bisect
from typing import Dict, Iterator, List, Optional

from .errors import EmptyProgramError
from .instruction import Instruction


class ProgramStore:
    """Ordered address -> Instruction mapping.

    Usage:
        store = ProgramStore()
        store.insert(Instruction.of(20, Opcode.HALT))
        store.insert(Instruction.of(10, Opcode.PUSH, 1))
        store.min_key()        # 10
        store.next_after(10)   # 20
        store.next_after(20)   # None (end of program)
    """

    def __init__(self):
        self._by_addr: Dict[int, Instruction] = {}
        self._keys: List[int] = []    # sorted, unique

    def insert(self, instruction: Instruction):
        """Store (or overwrite) the instruction at its own address."""
        addr = instruction.address
        if addr not in self._by_addr:
            bisect.insort(self._keys, addr)
        self._by_addr[addr] = instruction

    def min_key(self) -> int:
        if not self._keys:
            raise EmptyProgramError()
        return self._keys[0]

    def max_key(self) -> int:
        if not self._keys:
            raise EmptyProgramError()
        return self._keys[-1]

    def lookup(self, address: int) -> Optional[Instruction]:
        return self._by_addr.get(address)

    def next_after(self, address: int) -> Optional[int]:
        """Smallest stored address strictly greater than `address`.

        `address` does not have to be stored itself. Returns None when
        nothing follows (end of program).
        """
        i = bisect.bisect_right(self._keys, address)
        if i < len(self._keys):
            return self._keys[i]
        return None

    def clear(self):
        self._by_addr.clear()
        self._keys.clear()

    def addresses(self) -> List[int]:
        return list(self._keys)

    def __contains__(self, address) -> bool:
        return address in self._by_addr

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def __iter__(self) -> Iterator[Instruction]:
        """Iterate instructions in address order."""
        for addr in self._keys:
            yield self._by_addr[addr]

    def listing(self) -> str:
        """One program-text line per instruction, in address order."""
        return "\n".join(instr.format() for instr in self)
