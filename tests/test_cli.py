import json

import pytest

from periphview.__main__ import cli


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli(argv)
    return exc_info.value.code


def test_tree(svd_file, capsys):
    assert _run(["tree", "-s", str(svd_file)]) == 0

    lines = capsys.readouterr().out.splitlines()

    assert lines[0] == "GPIO  [0x50000000]"
    assert "UART0  [0x40002000]" in lines
    assert "UART1  [0x40003000]" in lines
    assert "  CONFIG [0x4] = 0x00000005" in lines
    assert "  PINB [0x18]" in lines
    assert "    OUT [0x4] = 0x00000000" in lines
    # Fields are not printed by default
    assert not any("PARITY" in line for line in lines)


def test_tree_fields_and_format(svd_file, capsys):
    argv = ["tree", "-s", str(svd_file), "-p", "UART0", "--fields", "--format", "decimal"]
    assert _run(argv) == 0

    lines = capsys.readouterr().out.splitlines()

    assert lines[0] == "UART0  [0x40002000]"
    assert not any(line.startswith("GPIO") for line in lines)
    assert "  CONFIG [0x4] = 5" in lines
    assert "    PARITY[2:0] = 5" in lines
    assert "    RESERVED[15:12]" in lines


def test_tree_with_state(svd_file, tmp_path, capsys):
    state = tmp_path / "state.json"
    state.write_text(
        json.dumps([{"node": "GPIO.MODE", "format": "binary"}]), encoding="utf-8"
    )

    assert _run(["tree", "-s", str(svd_file), "-p", "GPIO", "--state", str(state)]) == 0

    out = capsys.readouterr().out
    assert "  MODE [0x0] = 0001 0010 0011 0100" in out.splitlines()


def test_tree_parse_options(svd_file, capsys):
    argv = ["tree", "-s", str(svd_file), "--parse-options", '{"keep_empty_clusters": false}']
    assert _run(argv) == 0
    assert "GPIO  [0x50000000]" in capsys.readouterr().out


def test_find(svd_file, capsys):
    assert _run(["find", "-s", str(svd_file), "UART0.CONFIG"]) == 0

    assert capsys.readouterr().out.splitlines() == [
        "CONFIG [0x4] = 0x00000005",
        "Configuration of the UART",
    ]


def test_find_missing_node(svd_file, capsys):
    assert _run(["find", "-s", str(svd_file), "UART0.NOPE"]) == 1
    assert capsys.readouterr().err.startswith("error: ")


def test_missing_file(tmp_path, capsys):
    assert _run(["tree", "-s", str(tmp_path / "missing.svd")]) == 1
    assert "error:" in capsys.readouterr().err


def test_invalid_file(tmp_path, capsys):
    path = tmp_path / "broken.svd"
    path.write_text("<device><name>X</name>", encoding="utf-8")

    assert _run(["tree", "-s", str(path)]) == 1
    assert "Error parsing SVD document" in capsys.readouterr().err


def test_no_command(capsys):
    assert _run([]) == 2
