from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .chaos import ChaosTable
from .evaluator import RunResult, execute
from .parser import ParseError, parse_source
from .presenter import Presenter
from .runtime import Runtime, RuntimeConfig
from .types import ExitCode

logger = logging.getLogger(__name__)

SEED_ENV = "USELESS_SEED"

def run(src: str, seed: Optional[int]=None, presenter: Optional[Presenter]=None,
        table: Optional[ChaosTable]=None) -> RunResult:
    """Parse and execute `src`. Parse failures raise ParseError."""
    program = parse_source(src)
    config = RuntimeConfig(seed=seed, table=table or ChaosTable())
    runtime = Runtime.from_config(config, presenter)

    result = execute(program, runtime)
    logger.debug("run finished with %s (seed=%d)", result.exit_code.name, result.seed)

    return result

def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg

def _parse_seed(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise SystemExit(f"Seed must be an integer, got {raw!r}") from None

def main() -> None:
    seed: Optional[int] = None
    verbose = False
    arg = None
    it = iter(sys.argv[1:])

    for token in it:
        if token in ("-v", "--verbose"):
            verbose = True
            continue

        if token.startswith("--seed="):
            seed = _parse_seed(token.split("=", 1)[1])
            continue

        if token == "--seed":
            try:
                seed = _parse_seed(next(it))
            except StopIteration:
                raise SystemExit("--seed flag requires a value") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if seed is None and os.environ.get(SEED_ENV):
        seed = _parse_seed(os.environ[SEED_ENV])

    source = _load_source(arg or "-")

    try:
        result = run(source, seed=seed)
    except ParseError as exc:
        print(f"Parse error: {exc}", file=sys.stderr)
        if exc.context:
            print(exc.context, file=sys.stderr)
        sys.exit(ExitCode.PARSE)

    sys.exit(int(result.exit_code))

if __name__ == "__main__":
    main()
