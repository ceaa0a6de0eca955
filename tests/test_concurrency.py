from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    AwaitRequest,
    ExitCode,
    IndexOutOfVacation,
    InternalError,
    PromiseAbandoned,
    PromiseRejected,
    PromiseScheduler,
    PromiseState,
    SaveAlwaysFails,
    SchedulerDeadlock,
    TypeMismatch,
    UslNull,
    UslNumber,
    calm_with,
    make_policy,
    run_calm,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param(
        "async fn five() { return 5; } let p = five(); print(await p);",
        ("number", 5),
        None,
        id="await-finished-task",
    ),
    pytest.param(
        "let p = promise(7, 1000); print(await p);",
        ("number", 7),
        None,
        id="await-chance-promise",
    ),
    pytest.param(
        "print(await 3);",
        ("number", 3),
        None,
        id="await-plain-value-passes-through",
    ),
    pytest.param(
        dedent(
            """\
            async fn slow() { let v = await promise(9); return v; }
            print(await slow());
        """
        ),
        ("number", 9),
        None,
        id="await-suspended-task",
    ),
    pytest.param(
        dedent(
            """\
            async fn boom() { return index([], 0); }
            let p = boom();
            try { await p; } catch err { print(access(err, "kind")); }
        """
        ),
        ("text", "IndexOutOfVacation"),
        None,
        id="rejected-task-raises-on-await",
    ),
    pytest.param(
        "async fn boom() { index([], 0); } boom(); print(\"still here\");",
        ("text", "still here"),
        None,
        id="unawaited-rejection-is-silent",
    ),
    pytest.param(
        "async fn broke() { save(\"x\"); } broke();",
        None,
        SaveAlwaysFails,
        id="fatal-in-task-ends-program",
    ),
    pytest.param(
        "async fn one(a) { return a; } one();",
        None,
        TypeMismatch,
        id="async-arity-checked-at-call",
    ),
]

@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_concurrency(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)

def test_async_body_runs_until_first_await() -> None:
    source = dedent(
        """\
        async fn worker(name) {
          print(name);
          let v = await promise(name);
          print(v);
        }
        worker("a");
        worker("b");
        print("main");
    """
    )
    result, presenter = run_calm(source)

    assert result.exit_code == ExitCode.OK
    assert [v.value for v in presenter.values] == ["a", "b", "main", "a", "b"]

def test_same_tick_waiters_resume_in_suspension_order() -> None:
    source = dedent(
        """\
        let p = promise("shared");
        async fn first() { await p; print("first"); }
        async fn second() { await p; print("second"); }
        second();
        first();
    """
    )
    _, presenter = run_calm(source)
    assert [v.value for v in presenter.values] == ["second", "first"]

def test_abandoned_promise_raises_when_awaited() -> None:
    source = 'try { await promise(1); } catch err { print(access(err, "kind")); }'
    _, presenter = run_calm(source, table=calm_with(settle_resolve=0.0, settle_abandon=1.0))
    assert presenter.values[0].value == "PromiseAbandoned"

def test_timeout_abandons_pending_promise() -> None:
    source = 'try { await promise(1, 250); } catch err { print(access(err, "message")); }'
    _, presenter = run_calm(source, table=calm_with(settle_resolve=0.0))
    assert "abandoned" in presenter.values[0].value

def test_zero_timeout_settles_in_first_tick() -> None:
    scheduler = PromiseScheduler(make_policy(table=calm_with(settle_resolve=0.0)))
    promise = scheduler.create(UslNumber(1.0), timeout_ms=0)

    scheduler.tick()

    assert scheduler.ticks == 1
    assert scheduler.state_of(promise) is PromiseState.ABANDONED

def test_negative_timeout_is_treated_as_zero() -> None:
    scheduler = PromiseScheduler(make_policy(table=calm_with(settle_resolve=0.0)))
    promise = scheduler.create(UslNumber(1.0), timeout_ms=-50)

    assert scheduler.entry(promise.handle).timeout_ms == 0

def test_default_timeout_comes_from_scheduler() -> None:
    scheduler = PromiseScheduler(make_policy(), default_timeout_ms=1234)
    promise = scheduler.create(UslNull())

    assert scheduler.entry(promise.handle).timeout_ms == 1234

def test_resolved_promise_can_change_its_mind_once() -> None:
    table = calm_with(mind_change=1.0, mind_change_flip=1.0)
    scheduler = PromiseScheduler(make_policy(table=table))
    promise = scheduler.create(UslNumber(3.0))

    scheduler.tick()
    assert scheduler.state_of(promise) is PromiseState.RESOLVED

    scheduler.tick()
    assert scheduler.state_of(promise) is PromiseState.REJECTED
    with pytest.raises(PromiseRejected):
        scheduler.claim(promise.handle)

    scheduler.tick()
    assert scheduler.state_of(promise) is PromiseState.REJECTED

def test_mind_change_disabled_keeps_settlement() -> None:
    scheduler = PromiseScheduler(make_policy())
    promise = scheduler.create(UslNumber(3.0))

    for _ in range(5):
        scheduler.tick()

    assert scheduler.claim(promise.handle) == UslNumber(3.0)

def test_abandoned_claim_raises() -> None:
    scheduler = PromiseScheduler(make_policy(table=calm_with(settle_resolve=0.0, settle_abandon=1.0)))
    promise = scheduler.create(UslNumber(3.0))
    scheduler.tick()

    with pytest.raises(PromiseAbandoned):
        scheduler.claim(promise.handle)

def test_task_awaiting_itself_is_a_deadlock() -> None:
    scheduler = PromiseScheduler(make_policy())

    def waits_on_main():
        # the main task always receives the first handle
        yield AwaitRequest(1)
        return UslNull()

    with pytest.raises(SchedulerDeadlock):
        scheduler.run(waits_on_main())

def test_rejected_task_promise_keeps_the_error() -> None:
    scheduler = PromiseScheduler(make_policy())

    def failing():
        raise IndexOutOfVacation("gone")
        yield  # pragma: no cover

    promise = scheduler.spawn(failing(), label="failing")

    assert scheduler.state_of(promise) is PromiseState.REJECTED
    with pytest.raises(IndexOutOfVacation):
        scheduler.claim(promise.handle)

HUGE = "1" + "0" * 400

def test_infinite_timeout_never_expires() -> None:
    result, presenter = run_calm(f"let p = promise(1, {HUGE}); print(await p);")

    assert result.error is None
    assert presenter.values == [UslNumber(1.0)]

def test_nan_timeout_is_rejected() -> None:
    # calm add subtracts, so inf - inf is NaN
    result, _ = run_calm(f"let p = promise(1, add({HUGE}, {HUGE}));")

    assert isinstance(result.error, TypeMismatch)
    assert result.exit_code == ExitCode.CHAOS

def test_infinite_timeout_entry_is_skipped_by_ticks() -> None:
    scheduler = PromiseScheduler(make_policy(table=calm_with(settle_resolve=0.0)))
    promise = scheduler.create(UslNumber(1.0), timeout_ms=float("inf"))

    for _ in range(100):
        scheduler.tick()

    assert scheduler.entry(promise.handle).timeout_ms is None
    assert scheduler.state_of(promise) is PromiseState.PENDING

def test_negative_infinite_timeout_is_treated_as_zero() -> None:
    scheduler = PromiseScheduler(make_policy())
    promise = scheduler.create(UslNumber(1.0), timeout_ms=float("-inf"))

    assert scheduler.entry(promise.handle).timeout_ms == 0

def test_rejected_entry_without_error_is_internal() -> None:
    scheduler = PromiseScheduler(make_policy())
    promise = scheduler.create(UslNumber(1.0))
    scheduler.entry(promise.handle).state = PromiseState.REJECTED

    with pytest.raises(InternalError):
        scheduler.claim(promise.handle)
