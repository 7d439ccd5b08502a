"""
Loader tests for stackvm.

Tests cover:
  - Line decoding (address, mnemonic, operands)
  - Comments and blank lines
  - Recoverable syntax errors (bad address, missing mnemonic)
  - Unknown mnemonics decoding to NOP
  - Operand truncation at the first non-integer
  - End-to-end: text -> VM -> run
"""

import io
import logging

import pytest

from stackvm import (
    Instruction, Loader, MNEMONICS, Opcode, ProgramSyntaxError, StopReason,
    VirtualMachine, load_source, parse_line, run_source,
)


class TestParseLine:

    def test_basic_line(self):
        instr = parse_line("10 PUSH 1 2 3")
        assert instr == Instruction(10, Opcode.PUSH, (1, 2, 3))

    def test_no_operands(self):
        assert parse_line("20 HALT") == Instruction(20, Opcode.HALT, ())

    def test_extra_whitespace_and_tabs(self):
        assert parse_line("   30\tPOP   2  ") == Instruction(30, Opcode.POP, (2,))

    def test_signed_integers(self):
        instr = parse_line("-5 PUSH -7 +8")
        assert instr.address == -5
        assert instr.operands == (-7, 8)

    def test_every_mnemonic_decodes(self):
        for token, opcode in MNEMONICS.items():
            assert parse_line(f"1 {token}").opcode is opcode

    def test_mnemonics_are_case_sensitive(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stackvm"):
            instr = parse_line("1 push 5", 7)
        assert instr.opcode is Opcode.NOP
        assert "unknown mnemonic 'push'" in caplog.text

    def test_hlt_is_not_halt(self):
        """Only the literal HALT token halts."""
        assert parse_line("1 HLT").opcode is Opcode.NOP


class TestSkippedLines:

    def test_blank_lines(self):
        assert parse_line("") is None
        assert parse_line("   \t ") is None

    def test_comment_lines(self):
        assert parse_line("# a comment") is None
        assert parse_line("#10 PUSH 1") is None
        assert parse_line("   # indented comment") is None


class TestSyntaxErrors:

    def test_bad_address(self):
        with pytest.raises(ProgramSyntaxError) as exc:
            parse_line("ten PUSH 1", 4)
        assert exc.value.line_num == 4
        assert exc.value.line_text == "ten PUSH 1"
        assert "bad address" in str(exc.value)

    def test_float_address(self):
        with pytest.raises(ProgramSyntaxError):
            parse_line("1.5 NOP")

    def test_missing_mnemonic(self):
        with pytest.raises(ProgramSyntaxError, match="missing mnemonic"):
            parse_line("10", 2)

    def test_operand_truncation(self, caplog):
        """Operand scanning stops at the first non-integer token."""
        with caplog.at_level(logging.WARNING, logger="stackvm"):
            instr = parse_line("10 PUSH 1 2 x 3", 1)
        assert instr.operands == (1, 2)
        assert "not an integer" in caplog.text

    def test_operands_on_nullary_opcode_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stackvm"):
            instr = parse_line("10 ADD 5", 1)
        assert instr.operands == (5,)
        assert "takes no operands" in caplog.text


class TestLoader:

    SOURCE = "\n".join([
        "# countdown",
        "10 PUSH 2",
        "",
        "20 IFEQ 60",
        "bad line here",
        "30 PUSH -1",
        "40 ADD",
        "50 JUMP 20",
        "60",
        "60 HALT",
    ])

    def test_bad_lines_skipped_and_recorded(self):
        loader = Loader()
        vm = loader.load(self.SOURCE, VirtualMachine())
        assert loader.loaded == 6
        assert len(loader.errors) == 2
        assert [e.line_num for e in loader.errors] == [5, 9]
        assert vm.program.addresses() == [10, 20, 30, 40, 50, 60]

    def test_loaded_program_runs(self):
        vm, errors = load_source(self.SOURCE)
        assert len(errors) == 2
        assert vm.run() is StopReason.HALT
        assert vm.stack == [0]

    def test_parse_does_not_touch_vm(self):
        loader = Loader()
        instructions = loader.parse("10 PUSH 1\n20 HALT")
        assert [i.address for i in instructions] == [10, 20]

    def test_errors_reset_between_loads(self):
        loader = Loader()
        loader.parse("x NOP")
        assert len(loader.errors) == 1
        loader.parse("1 NOP")
        assert loader.errors == []

    def test_out_of_order_lines(self):
        vm, _ = load_source("30 HALT\n10 PUSH 1\n20 PUSH 2\n")
        vm.run()
        assert vm.stack == [1, 2]

    def test_windows_line_endings(self):
        vm, errors = load_source("10 PUSH 1\r\n20 HALT\r\n")
        assert errors == []
        assert vm.run() is StopReason.HALT
        assert vm.stack == [1]


class TestRunSource:

    def test_hello(self):
        source = """
        # prints Hi and a newline
        10 PUSH 10 105 72
        20 PRINT
        30 POP
        40 PRINT
        50 POP
        60 PRINT
        70 HALT
        """
        out = io.StringIO()
        vm = run_source(source, output=out)
        assert out.getvalue() == "Hi\n"
        assert vm.stop_reason is StopReason.HALT

    def test_accumulator_round_trip(self):
        vm = run_source("1 PUSH 9\n2 LOADA\n3 POP 1\n4 PUSHA\n5 HALT", output=io.StringIO())
        assert vm.stack == [9]

    def test_sum_with_stacksz(self):
        """Sum 1+2+3 and count the stack on the way."""
        vm = run_source(
            "10 PUSH 1 2 3\n"
            "20 STACKSZ\n"
            "30 POP\n"
            "40 ADD\n"
            "50 ADD\n"
            "60 PUSHA\n"
            "70 HALT\n",
            output=io.StringIO(),
        )
        assert vm.stack == [6, 3]
