from __future__ import annotations

import logging
import sys
from textwrap import dedent

import pytest

from useless_ref import runner
from useless_ref.evaluator import eval_expr, execute

from tests.support.harness import (
    ExitCode,
    ParseError,
    RecordingPresenter,
    UslNumber,
    calm_with,
    parse_source,
    run_calm,
    run_program,
)

BUSY_PROGRAM = dedent(
    """\
    let total = add(5, 3);
    print(total);
    let items = [1, 2, 3];
    print(index(items, 1));
    let rec = {"a": 1, "b": 2};
    print(access(rec, "a"));
    if (equals(total, 2)) { print("then"); } else { print("else"); }
    async fn later() { let v = await promise(total, 300); return multiply(v, 2); }
    try { print(await later()); } catch err { print(access(err, "kind")); }
    loop { print(lessThan(1, 2)); }
"""
)

@pytest.mark.parametrize("seed", [0, 1, 42, 2024, 987654321])
def test_same_seed_replays_identically(seed: int) -> None:
    first = RecordingPresenter()
    second = RecordingPresenter()

    a = run_program(BUSY_PROGRAM, seed=seed, presenter=first)
    b = run_program(BUSY_PROGRAM, seed=seed, presenter=second)

    assert first.calls == second.calls
    assert a.exit_code == b.exit_code
    assert a.seed == b.seed == seed

def test_add_prints_difference_when_subtract_fires() -> None:
    _, presenter = run_calm("let x = add(5, 3); print(x);", table=calm_with(add_multiply=0.0))
    assert presenter.calls == [("present", UslNumber(2.0))]

def test_add_prints_product_when_multiply_fires() -> None:
    _, presenter = run_calm("let x = add(5, 3); print(x);", table=calm_with(add_multiply=1.0))
    assert presenter.calls == [("present", UslNumber(15.0))]

def test_print_can_fail_like_a_browser() -> None:
    result, presenter = run_calm('print("hello");', table=calm_with(print_browser_error=1.0))

    assert result.exit_code == ExitCode.OK
    assert presenter.values == []
    assert "browser" in presenter.errors[0]

def test_let_can_lose_its_binding() -> None:
    result, presenter = run_calm("let x = 1; print(x);", table=calm_with(let_lost=1.0))

    assert result.exit_code == ExitCode.CHAOS
    assert presenter.values == []
    assert "couch" in presenter.errors[0]

def test_variables_can_go_on_vacation() -> None:
    result, presenter = run_calm("let x = 1; print(x);", table=calm_with(variable_vacation=1.0))

    assert result.exit_code == ExitCode.CHAOS
    assert "vacation" in presenter.errors[0]

def test_unseeded_run_reports_its_seed() -> None:
    result = run_program('print("x");', presenter=RecordingPresenter())
    assert isinstance(result.seed, int)

def test_parse_errors_raise_before_running() -> None:
    presenter = RecordingPresenter()

    with pytest.raises(ParseError):
        run_program("print(;", presenter=presenter)

    assert presenter.calls == []

def test_eval_expr_runs_single_node(calm_runtime) -> None:
    stmt = parse_source("add(2, 2);").children[0]

    assert eval_expr(stmt, runtime=calm_runtime) == UslNumber(0.0)

def test_execute_returns_last_statement_value(calm_runtime, presenter) -> None:
    result = execute(parse_source('print("hi"); let a = 1; multiply(9, 3);'), calm_runtime)

    assert result.exit_code == ExitCode.OK
    assert result.value == UslNumber(3.0)
    assert presenter.values[0].value == "hi"

def test_main_exits_with_parse_code(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(sys, "argv", ["useless", "let = ;"])

    with pytest.raises(SystemExit) as exc_info:
        runner.main()

    assert exc_info.value.code == ExitCode.PARSE
    assert "Parse error" in capsys.readouterr().err

def test_main_reads_program_file(tmp_path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    program = tmp_path / "prog.useless"
    program.write_text('save("notes.txt");\n', encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["useless", "--seed", "5", str(program)])

    with pytest.raises(SystemExit) as exc_info:
        runner.main()

    assert exc_info.value.code == ExitCode.FATAL
    assert "crayon" in capsys.readouterr().err

def test_main_takes_seed_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(src, seed=None, presenter=None, table=None):
        seen["seed"] = seed
        return run_program(src, seed=seed, presenter=RecordingPresenter(), table=calm_with())

    monkeypatch.setattr(runner, "run", fake_run)
    monkeypatch.setenv(runner.SEED_ENV, "77")
    monkeypatch.setattr(sys, "argv", ["useless", "exit();"])

    with pytest.raises(SystemExit) as exc_info:
        runner.main()

    assert exc_info.value.code == ExitCode.OK
    assert seen["seed"] == 77

def test_main_rejects_bad_seed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "argv", ["useless", "--seed", "soon", "exit();"])

    with pytest.raises(SystemExit) as exc_info:
        runner.main()

    assert "integer" in str(exc_info.value.code)

def test_uncaught_errors_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="useless_ref.evaluator")
    run_calm("index([], 0);")

    assert "IndexOutOfVacation" in caplog.text
