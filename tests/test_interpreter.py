import pytest

from memsim.cache import AccessType, MissType
from memsim.errors import MalformedTraceLine, UnknownLabelError
from memsim.interpreter import INSTRUCTION_WIDTH, PC_START, Interpreter


@pytest.fixture
def cpu(system):
    return Interpreter(system)


def test_arithmetic(cpu):
    cpu.execute("ADDI x1, x0, 10")
    cpu.execute("ADDI x2, x0, 20")
    step = cpu.execute("ADD x3, x1, x2")
    assert cpu.registers[3] == 30
    assert step.alu.op == "ADD"
    assert (step.alu.operand_a, step.alu.operand_b, step.alu.result) == (10, 20, 30)
    assert step.access is None
    cpu.execute("SUB x4, x1, x2")
    assert cpu.registers[4] == -10


def test_alu_instructions_do_not_touch_memory(cpu, system):
    cpu.execute("MOVI x1, 7")
    cpu.execute("ADD x2, x1, x1")
    assert system.stats.accesses == 0
    assert system.clock == 0


def test_pc_advances_by_instruction_width(cpu):
    assert cpu.pc == PC_START
    first = cpu.execute("ADDI x1, x0, 1")
    second = cpu.execute("ADDI x1, x1, 1")
    assert first.pc == PC_START
    assert second.pc == PC_START + INSTRUCTION_WIDTH
    assert cpu.pc == PC_START + 2 * INSTRUCTION_WIDTH
    assert cpu.instr_count == 2


def test_register_zero_is_hardwired(cpu):
    cpu.execute("ADDI x0, x0, 5")
    cpu.execute("MOVI zero, 3")
    assert cpu.registers[0] == 0


def test_store_and_load(cpu):
    cpu.execute("ADDI x1, x0, 42")
    store = cpu.execute("SW x1, 0x100(x0)")
    assert store.access.access_type == AccessType.WRITE
    assert store.access.miss_type == MissType.COMPULSORY
    assert store.alu.op == "ADDR"
    assert store.alu.result == 0x100
    load = cpu.execute("LW x2, 0x100(x0)")
    assert load.access.is_hit
    assert cpu.registers[2] == 42


def test_load_on_miss_still_loads(cpu):
    cpu.execute("ADDI x1, x0, 8")
    cpu.execute("SW x1, 0x100(x0)")
    cpu.execute("SW x1, 0x500(x0)")
    load = cpu.execute("LW x2, 0x100(x0)")
    assert not load.access.is_hit
    assert cpu.registers[2] == 8


def test_load_of_unwritten_memory_is_zero(cpu):
    cpu.execute("ADDI x5, x0, 1")
    cpu.execute("LW x5, 0x800(x0)")
    assert cpu.registers[5] == 0


def test_raw_trace_lines(cpu, system):
    pc = cpu.pc
    step = cpu.execute("Write 0x40 3")
    assert step.access.data == 3
    assert cpu.execute("0x40").access.data == 3
    assert cpu.execute("counter = 9").access.address == 0x1000
    assert cpu.execute("Read counter").access.data == 9
    assert cpu.pc == pc
    assert system.stats.accesses == 4


def test_blank_comment_and_label_lines(cpu):
    assert cpu.execute("") is None
    assert cpu.execute("  // just a comment") is None
    assert cpu.execute("start:") is None
    assert cpu.labels["start"] == PC_START
    step = cpu.execute("next: ADDI x1, x0, 1")
    assert cpu.labels["next"] == PC_START
    assert step.pc == PC_START


def test_live_branch_jumps_to_label_pc(cpu):
    cpu.execute("top:")
    cpu.execute("ADDI x1, x0, 1")
    cpu.execute("BEQ x0, x0, top")
    assert cpu.pc == PC_START


def test_live_branch_unknown_label(cpu):
    with pytest.raises(UnknownLabelError):
        cpu.execute("JMP nowhere")


def test_unknown_opcode(system):
    with pytest.raises(MalformedTraceLine):
        Interpreter(system).execute("MUL x1, x2, x3")
    lenient = Interpreter(system, strict=False)
    step = lenient.execute("MUL x1, x2, x3")
    assert step.skipped
    assert lenient.pc == PC_START + INSTRUCTION_WIDTH
    assert lenient.instr_count == 0


@pytest.mark.parametrize("word", ["NOP", "ret", "ECALL"])
def test_bare_unknown_word_is_an_opcode(system, word):
    with pytest.raises(MalformedTraceLine):
        Interpreter(system).execute(word)
    lenient = Interpreter(system, strict=False)
    assert lenient.execute(word).skipped
    assert lenient.pc == PC_START + INSTRUCTION_WIDTH
    assert system.stats.accesses == 0
    assert len(system.symbols) == 0


def test_bad_register(cpu):
    with pytest.raises(MalformedTraceLine):
        cpu.execute("ADD x1, y2, x3")


def test_run_program_with_loop(cpu, system):
    source = """
        ADDI x1, x0, 0
        ADDI x2, x0, 4
    loop:
        SW   x1, 0x200(x1)
        ADDI x1, x1, 1
        BEQ  x1, x2, end
        JMP  loop
    end:
        HALT
    """
    run = cpu.run(source)
    assert run.halted
    assert not run.limit_exceeded
    assert cpu.registers[1] == 4
    assert [a.address for a in run.accesses] == [0x200, 0x201, 0x202, 0x203]
    assert system.stats.writes == 4


def test_run_falls_off_the_end(cpu):
    run = cpu.run(["ADDI x1, x0, 1"])
    assert not run.halted
    assert len(run) == 1


def test_run_is_capped(cpu):
    run = cpu.run("spin: JMP spin", max_steps=20)
    assert run.limit_exceeded
    assert len(run) == 20
    assert run.diagnostics[0].limit == 20


def test_reset(cpu):
    cpu.execute("lbl: ADDI x1, x0, 1")
    cpu.reset()
    assert cpu.registers.as_list() == [0] * 32
    assert cpu.pc == PC_START
    assert cpu.labels == {}


def test_register_dump(cpu):
    cpu.execute("ADDI x1, x0, -1")
    rows = cpu.register_dump()
    assert len(rows) == 8
    assert "x1 =0xffffffff" in rows[0]
