import json

import pytest

from memsim.cli import demo_program, main

STORE_LOAD = "MOVI R1,5\nMOVI R2,0x100\nSW R1,0(R2)\nLW R3,0(R2)\n"


def test_demo_passes(capsys):
    assert main(["demo"]) == 0
    out = capsys.readouterr().out
    assert "All checks passed" in out
    assert "x3 = 30" in out


def test_demo_checks_fail_with_larger_cache(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"cacheSize": 2048}))
    assert main(["demo", "--config", str(path)]) == 2
    assert "Some checks failed" in capsys.readouterr().out


def test_demo_program_shape():
    assert len(demo_program()) == 8


def test_trace_command(tmp_path, capsys):
    path = tmp_path / "accesses.trace"
    path.write_text("0x0\n0x400\nWrite 0x10 5\n")
    assert main(["trace", str(path), "--log"]) == 0
    out = capsys.readouterr().out
    assert "Conflict" in out
    assert "(reads 2, writes 1)" in out


def test_asm_emit(tmp_path, capsys):
    path = tmp_path / "prog.asm"
    path.write_text(STORE_LOAD)
    assert main(["asm", str(path), "--emit"]) == 0
    out = capsys.readouterr().out
    assert "Write 0x100 5" in out


def test_asm_limit_warning(tmp_path, capsys):
    path = tmp_path / "spin.asm"
    path.write_text("spin: JMP spin\n")
    assert main(["asm", str(path), "-n", "10"]) == 0
    assert "execution limit" in capsys.readouterr().err


@pytest.mark.parametrize("extra", [[], ["--live"]])
def test_run_command(tmp_path, capsys, extra):
    path = tmp_path / "prog.asm"
    path.write_text("ADDI x1, x0, 7\nSW x1, 0x20(x0)\nLW x2, 0x20(x0)\n")
    assert main(["run", str(path), "--flush"] + extra) == 0
    out = capsys.readouterr().out
    assert "Register File" in out
    assert "[0x00000020] = 7" in out


def test_missing_file(tmp_path, capsys):
    assert main(["trace", str(tmp_path / "nope.trace")]) == 1
    assert "error:" in capsys.readouterr().err


def test_bad_geometry(capsys):
    assert main(["demo", "--cache-size", "100"]) == 1
    assert "error:" in capsys.readouterr().err


def test_malformed_trace(tmp_path, capsys):
    path = tmp_path / "bad.trace"
    path.write_text("0x0\nWrite 0x4 oops\n")
    assert main(["trace", str(path)]) == 1
    assert "line 2" in capsys.readouterr().err
