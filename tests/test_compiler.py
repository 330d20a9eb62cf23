import pytest

from tapec.compiler import CompileOptions, compile_source, write_artifacts


def test_write_artifacts_names_files_after_stem(tmp_path, scenario_a_source) -> None:
    compilation = compile_source(scenario_a_source, CompileOptions(targets=["llvm", "dot"]))
    written = write_artifacts(compilation, tmp_path / "out", "busy")
    assert [path.name for path in written] == ["busy.ll", "busy.dot"]
    assert sorted(path.name for path in (tmp_path / "out").iterdir()) == ["busy.dot", "busy.ll"]


def test_write_artifacts_failure_leaves_no_output(tmp_path, scenario_a_source) -> None:
    compilation = compile_source(scenario_a_source, CompileOptions(targets=["llvm", "c", "dot"]))
    out_dir = tmp_path / "out"
    # a directory squatting on the C staging file makes the second write fail
    (out_dir / ".machine.c.tmp").mkdir(parents=True)
    with pytest.raises(OSError):
        write_artifacts(compilation, out_dir, "machine")
    assert [path.name for path in out_dir.iterdir()] == [".machine.c.tmp"]


def test_write_artifacts_replaces_previous_output(tmp_path, scenario_a_source) -> None:
    (tmp_path / "machine.dot").write_text("stale", encoding="utf-8")
    compilation = compile_source(scenario_a_source, CompileOptions(targets=["dot"]))
    write_artifacts(compilation, tmp_path, "machine")
    assert (tmp_path / "machine.dot").read_text(encoding="utf-8").startswith("digraph")
    assert sorted(path.name for path in tmp_path.iterdir()) == ["machine.dot"]
