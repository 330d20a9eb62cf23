import pytest
from llvmlite.ir.instructions import ConditionalBranch, Ret, SwitchInstr

from tapec import cfg
from tapec.cfg import BlockRole, ControlFlowGraph
from tapec.compiler import CompileOptions, compile_machine
from tapec.emit import Capabilities, CEmitter, LlvmEmitter, get_emitter
from tapec.emit.c import c_string
from tapec.emit.llvm import c_bytes, verify_module
from tapec.errors import EmitError
from tapec.lowering import LOOP_BODY, LOOP_EXIT
from tapec.parser import parse_machine

WIDE_SOURCE = (
    "SYMBOLS: " + ", ".join(f"s{idx}" for idx in range(256)) + "\n"
    "STATES: q\n"
    "q, s0, P(s255) R, q\n"
    "q, s255 | s200, P(s128) L, q\n"
    "q, *, X, q\n"
)


def _graph(machine, **options):
    return compile_machine(machine, CompileOptions(targets=[], **options)).graph


def _main_blocks(graph, machine):
    module = LlvmEmitter().build_module(graph, machine)
    return {block.name: block for block in module.get_global("main").blocks}


@pytest.mark.parametrize("trace", [False, True])
def test_llvm_module_passes_verifier(scenario_a, trace) -> None:
    ir_text = LlvmEmitter(verify=False).emit(_graph(scenario_a, trace=trace), scenario_a)
    module = verify_module(ir_text)
    assert not module.get_function("main").is_declaration


def test_llvm_module_for_full_byte_alphabet_verifies() -> None:
    machine = parse_machine(WIDE_SOURCE)
    ir_text = LlvmEmitter(verify=False).emit(_graph(machine), machine)
    verify_module(ir_text)


def test_verify_module_reports_broken_ir() -> None:
    with pytest.raises(EmitError, match="verification"):
        verify_module("define i32 @main() {\nentry:\n  br label %nowhere\n}\n")


def test_llvm_declares_capabilities(scenario_a) -> None:
    module = verify_module(LlvmEmitter().emit(_graph(scenario_a), scenario_a))
    for name in ("printf", "scanf", "malloc"):
        assert module.get_function(name).is_declaration
    defined = [fn.name for fn in module.functions if not fn.is_declaration]
    assert defined == ["main"]


def test_llvm_has_one_block_per_graph_block(scenario_a) -> None:
    graph = _graph(scenario_a)
    blocks = list(_main_blocks(graph, scenario_a))
    assert blocks[0] == "entry"
    tape_loop = [f"{LOOP_EXIT}.tape_check", f"{LOOP_EXIT}.tape_item", f"{LOOP_EXIT}.tape_done"]
    assert sorted(blocks) == sorted([block.name for block in graph] + tape_loop)


def test_llvm_switch_targets_case_blocks(scenario_a) -> None:
    blocks = _main_blocks(_graph(scenario_a), scenario_a)
    switch = blocks[LOOP_BODY].terminator
    assert isinstance(switch, SwitchInstr)
    assert switch.default.name == "unmatched"
    assert [(case.constant, block.name) for case, block in switch.cases] == [
        (0, "state_q0_sym_a"),
        (2, "state_q0_sym_b"),
    ]
    assert isinstance(blocks["loop_header"].terminator, ConditionalBranch)
    assert isinstance(blocks[f"{LOOP_EXIT}.tape_done"].terminator, Ret)


def test_llvm_triple_and_substituted_capabilities(scenario_a) -> None:
    caps = Capabilities(print_fn="host_print", read_fn="host_scan", alloc_fn="host_alloc")
    emitter = get_emitter("llvm", caps, triple="x86_64-pc-linux-gnu")
    ir_text = emitter.emit(_graph(scenario_a), scenario_a)
    assert 'target triple = "x86_64-pc-linux-gnu"' in ir_text
    assert "printf" not in ir_text
    module = verify_module(ir_text)
    for name in ("host_print", "host_scan", "host_alloc"):
        assert module.get_function(name).is_declaration


def test_llvm_default_triple_is_empty(scenario_a) -> None:
    assert 'target triple = ""' in LlvmEmitter().emit(_graph(scenario_a), scenario_a)


def test_c_bytes_is_nul_terminated() -> None:
    assert c_bytes("q1") == bytearray(b"q1\x00")
    assert c_bytes("é") == bytearray(b"\xc3\xa9\x00")


def test_c_program_structure(scenario_a) -> None:
    source = CEmitter().emit(_graph(scenario_a), scenario_a)
    assert "#include <stdio.h>" in source
    assert 'static const char *const state_labels[2] = {"q0", "q1"};' in source
    assert "int main(void)" in source
    assert "for (;;) {" in source
    assert "if (!(step < budget)) {" in source
    assert "address = symbol * 2 + state;" in source
    assert "switch (address) {" in source
    assert "case 0:" in source and "case 2:" in source
    assert "default:" in source
    assert 'printf("Unmatched: %s, %s\\n", state_labels[state], symbol_labels[symbol]);' in source
    assert 'scanf("%d", &budget);' in source
    assert "for (int cell = 0; cell < capacity; cell++) {" in source
    assert 'printf(" %s", symbol_labels[tape[cell]]);' in source
    assert "return 0;" in source


def test_c_block_order_follows_control_order(scenario_a) -> None:
    source = CEmitter().emit(_graph(scenario_a), scenario_a)
    order = [
        "/* entry */",
        "/* loop_header */",
        "/* loop_body */",
        "/* state_q0_sym_a */",
        "/* state_q0_sym_b */",
        "/* unmatched */",
        "/* continuation */",
        "/* loop_exit */",
    ]
    positions = [source.index(marker) for marker in order]
    assert positions == sorted(positions)


def test_c_declares_substituted_capabilities(scenario_a) -> None:
    caps = Capabilities(print_fn="host_print", read_fn="host_scan", alloc_fn="host_alloc")
    source = CEmitter(caps).emit(_graph(scenario_a), scenario_a)
    assert "int host_print(const char *fmt, ...);" in source
    assert "int host_scan(const char *fmt, ...);" in source
    assert "void *host_alloc(size_t size);" in source
    assert source.index("int host_print(") < source.index("int main(void)")
    assert "printf(" not in source


def test_c_libc_capabilities_need_no_prototypes(scenario_a) -> None:
    source = CEmitter().emit(_graph(scenario_a), scenario_a)
    assert "int printf(" not in source
    assert "void *malloc(" not in source
    partial = CEmitter(Capabilities(alloc_fn="arena_alloc")).emit(_graph(scenario_a), scenario_a)
    assert "void *arena_alloc(size_t size);" in partial
    assert "int printf(" not in partial


def test_c_string_escapes() -> None:
    assert c_string('say "hi"\n') == '"say \\"hi\\"\\n"'
    assert c_string("\x01") == '"\\001"'


def test_emitters_share_format_strings(scenario_a) -> None:
    graph = _graph(scenario_a, trace=True)
    ir_text = LlvmEmitter().emit(graph, scenario_a)
    source = CEmitter().emit(graph, scenario_a)
    formats = {op.fmt for block in graph for op in block.ops if isinstance(op, cfg.Print)}
    for fmt in formats:
        assert fmt.rstrip("\n") in ir_text
        assert c_string(fmt) in source


def test_emitters_do_not_mutate_graph(scenario_a) -> None:
    graph = _graph(scenario_a)
    before = [(block.name, list(block.ops), block.terminator) for block in graph]
    LlvmEmitter().emit(graph, scenario_a)
    CEmitter().emit(graph, scenario_a)
    assert [(block.name, list(block.ops), block.terminator) for block in graph] == before


def test_c_emitter_rejects_foreign_topology(scenario_a) -> None:
    graph = ControlFlowGraph()
    graph.add_block("entry", BlockRole.ENTRY).terminate(cfg.Return(0))
    with pytest.raises(EmitError):
        CEmitter().emit(graph, scenario_a)


def test_c_emitter_checks_case_pairs_against_addresses(scenario_a) -> None:
    graph = _graph(scenario_a)
    graph.block("state_q0_sym_b").pair = (0, 0)
    with pytest.raises(EmitError, match="switch case 2"):
        CEmitter().emit(graph, scenario_a)


def test_c_emitter_rejects_case_outside_dispatch_space(scenario_a) -> None:
    graph = _graph(scenario_a)
    body = graph.block(LOOP_BODY)
    body.terminator = cfg.Switch(cfg.ADDRESS, "unmatched", ((0, "state_q0_sym_a"), (9, "state_q0_sym_b")))
    with pytest.raises(EmitError, match="outside the dispatch space"):
        CEmitter().emit(graph, scenario_a)


def test_unknown_target() -> None:
    with pytest.raises(EmitError, match="unknown target"):
        get_emitter("fortran")
