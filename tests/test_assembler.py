import pytest

from memsim.assembler import TraceAssembler, assemble
from memsim.errors import ExecutionLimitExceeded, MalformedTraceLine, UnknownLabelError

STORE_LOAD = "MOVI R1,5\nMOVI R2,0x100\nSW R1,0(R2)\nLW R3,0(R2)"

LOOP = """
    MOVI R1, 0
    MOVI R2, 3
    MOVI R3, 0x200      # array base
loop:
    SW   R1, 0(R3)
    ADDI R3, R3, 4
    ADDI R1, R1, 1
    BEQ  R1, R2, done
    JMP  loop
done:
    HALT
"""


def test_store_then_load():
    result = assemble(STORE_LOAD)
    assert result.lines == ["Write 0x100 5", "0x100"]
    assert result.registers[3] == 5
    assert result.diagnostics == []
    assert result.steps == 4


def test_loop_with_labels():
    result = assemble(LOOP)
    assert result.lines == ["Write 0x200 0", "Write 0x204 1", "Write 0x208 2"]
    assert not result.limit_exceeded
    assert result.text == "Write 0x200 0\nWrite 0x204 1\nWrite 0x208 2"


def test_infinite_loop_is_capped():
    source = "MOVI R2, 0x40\ntop: LW R1, 0(R2)\nJMP top"
    result = TraceAssembler(max_steps=50).assemble(source)
    assert result.limit_exceeded
    assert result.steps == 50
    diag = result.diagnostics[0]
    assert isinstance(diag, ExecutionLimitExceeded)
    assert diag.limit == 50
    # partial trace is kept
    assert len(result) == 25
    assert set(result) == {"0x40"}


def test_default_cap_is_1000():
    result = assemble("spin: JMP spin")
    assert result.steps == 1000
    assert result.limit_exceeded


def test_unknown_label():
    with pytest.raises(UnknownLabelError) as info:
        assemble("MOVI R1, 1\nJMP nowhere")
    assert info.value.label == "nowhere"
    assert info.value.lineno == 2


def test_untaken_branch_to_missing_label_is_fine():
    result = assemble("MOVI R1, 1\nBEQ R1, R0, nowhere\nSW R1, 0x10(R0)")
    assert result.lines == ["Write 0x10 1"]


def test_register_zero_stays_zero():
    result = assemble("MOVI R0, 9\nADDI R1, R0, 1\nSW R1, 0(R0)")
    assert result.registers[0] == 0
    assert result.lines == ["Write 0x0 1"]


def test_halt_stops_execution():
    result = assemble("HALT\nSW R1, 0(R0)")
    assert result.lines == []
    assert result.steps == 1


def test_sub_and_negative_addresses_wrap():
    result = assemble("MOVI R1, 4\nSUB R2, R0, R1\nLW R3, 0(R2)")
    assert result.lines == ["0xFFFFFFFC"]
    assert result.registers[2] == -4


def test_unknown_opcode_strict():
    with pytest.raises(MalformedTraceLine):
        assemble("NOP\nHALT")


def test_unknown_opcode_lenient():
    result = assemble("NOP\nSW R0, 0x8(R0)", strict=False)
    assert result.lines == ["Write 0x8 0"]


@pytest.mark.parametrize("source", [
    "ADD R1, R2",
    "LW R1, R2",
    "MOVI R9x, 1",
    "MOVI R1, ten",
    "a:\na:\nHALT",
    "1bad: HALT",
])
def test_malformed_programs(source):
    with pytest.raises(MalformedTraceLine):
        assemble(source)
