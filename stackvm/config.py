"""
stackvm - Run Configuration

VMConfig holds the knobs the engine reads at construction time. PROFILES
are named presets; the CLI picks one with --profile and then applies any
per-option overrides on top of it.
"""

import enum
from dataclasses import dataclass, replace
from typing import Optional


class JumpPolicy(enum.Enum):
    """What JUMP / IFEQ do when the target address is not in the program."""
    ERROR = 'error'   # raise UnresolvedJumpTarget, run fails
    HALT = 'halt'     # log a warning and halt normally


DEFAULT_MAX_STEPS = 10_000_000


@dataclass(frozen=True)
class VMConfig:
    max_steps: Optional[int] = DEFAULT_MAX_STEPS   # None = unlimited
    jump_policy: JumpPolicy = JumpPolicy.ERROR
    trace: bool = False
    description: str = ""

    def with_overrides(self, **changes) -> "VMConfig":
        """Return a copy with the non-None entries of `changes` applied."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


PROFILES = {
    "default": VMConfig(
        description="Fail fast on bad jumps, 10M step limit",
    ),
    "lenient": VMConfig(
        jump_policy=JumpPolicy.HALT,
        description="Unresolved jumps halt the program instead of failing",
    ),
    "bounded": VMConfig(
        max_steps=100_000,
        description="Fail fast on bad jumps, 100k step limit (untrusted input)",
    ),
}


def get_profile(name: str) -> VMConfig:
    """Look up a profile by name; unknown names fall back to 'default'."""
    return PROFILES.get(name, PROFILES["default"])
