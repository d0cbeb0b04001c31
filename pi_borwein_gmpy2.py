#!/usr/bin/env python3
"""
High-precision π calculator using the quartic Borwein iteration.

- Python + gmpy2 (GMP/MPFR under the hood).
- Each iteration roughly quadruples the number of correct digits;
  10 iterations are enough for a million digits.
- Prints the digits truncated, not rounded, in blocks of ten.
"""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, TextIO

try:
    import gmpy2
    from gmpy2 import mpfr, digits as mpfr_digits
except ImportError as e:
    sys.stderr.write(
        "Error: gmpy2 is not installed.\n"
        "Install it with, for example:\n"
        "  pip install gmpy2\n"
    )
    raise SystemExit(1)


DEFAULT_DIGITS = 1_000_000
DEFAULT_ITERATIONS = 10

BITS_PER_DIGIT = 8  # working bits per requested decimal digit
GUARD_DIGITS = 10  # extra digits pulled from MPFR before truncating

BLOCK_SIZE = 10  # print digits in blocks
LINE_SIZE = 100  # digits to print per line
GROUP_SIZE = 5  # line grouping size


# =========================
# Errors
# =========================


class PiError(Exception):
    """Base class for every fatal condition raised by this module."""

    def __init__(self, message: str, phase: str | None = None):
        self.phase = phase
        if phase:
            message = f"{phase}: {message}"
        super().__init__(message)


class ConfigurationError(PiError, ValueError):
    """Bad digit count, iteration count, or layout."""


class NumericalFault(PiError, ArithmeticError):
    """Negative radicand, NaN, or a zero divisor at the final inversion."""


class ProviderFault(PiError, RuntimeError):
    """gmpy2 itself failed (e.g. out of memory allocating a value)."""


# =========================
# Digit specification parser
# =========================


def parse_digit_spec(spec: str) -> int:
    """
    Parse a digit specification like:
      "123", "1K", "10M", "2g", "132876K", "1e6", "3E7"

    Suffixes (case-insensitive):
      K = 1_000 (10^3)
      M = 1_000_000 (10^6)
      G = 1_000_000_000 (10^9)
      T = 1_000_000_000_000 (10^12)

    Scientific notation:
      "<int>e<int>", e.g. "1e6".

    Returns: number of digits as Python int (unbounded).
    Raises ConfigurationError on invalid input.
    """
    s = spec.strip()
    if not s:
        raise ConfigurationError("Empty digits specification")

    try:
        # 1) Scientific notation: "<int>e<int>" or "<int>E<int>"
        for idx, ch in enumerate(s):
            if ch in ("e", "E"):
                mantissa_str = s[:idx]
                exp_str = s[idx + 1 :]
                if not mantissa_str or not exp_str:
                    raise ConfigurationError(f"Invalid scientific notation: {spec!r}")
                mantissa = int(mantissa_str)
                exp = int(exp_str)
                if exp < 0:
                    raise ConfigurationError(f"Negative exponent not supported in {spec!r}")
                value = mantissa * (10 ** exp)
                if value <= 0:
                    raise ConfigurationError(f"Digits must be positive: {spec!r}")
                return value

        # 2) Suffix-based notation: K, M, G, T
        multiplier = {"k": 1_000, "m": 1_000_000, "g": 1_000_000_000, "t": 1_000_000_000_000}.get(
            s[-1].lower(), 1
        )
        if multiplier != 1:
            s = s[:-1].strip()
            if not s:
                raise ConfigurationError(f"Missing number before suffix in {spec!r}")

        base = int(s)
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid digits specification {spec!r}: {e}") from e

    if base <= 0:
        raise ConfigurationError(f"Digits must be positive: {spec!r}")

    return base * multiplier


@dataclass
class RunConfig:
    digits: int = DEFAULT_DIGITS
    iterations: int = DEFAULT_ITERATIONS
    quiet: bool = False


def parse_args(argv: list[str]) -> RunConfig:
    """
    Read the run configuration from CLI arguments.

    Supported forms:
      python pi_borwein_gmpy2.py            -> default (1000000 digits, 10 iterations)
      python pi_borwein_gmpy2.py 12345
      python pi_borwein_gmpy2.py --calculate 1K
      python pi_borwein_gmpy2.py --digits 10M --iterations 12
      python pi_borwein_gmpy2.py -d 1e6 -n 10 -q
    """
    config = RunConfig()
    digit_spec: str | None = None
    args = argv[1:]  # skip program name

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--calculate", "-c", "--digits", "-d", "--iterations", "-n"):
            if i + 1 >= len(args):
                raise ConfigurationError(f"Flag {arg!r} requires a value")
            value = args[i + 1]
            if arg in ("--iterations", "-n"):
                try:
                    config.iterations = int(value)
                except ValueError:
                    raise ConfigurationError(f"Iterations must be an integer: {value!r}")
            else:
                digit_spec = value
            i += 2
        elif arg in ("--quiet", "-q"):
            config.quiet = True
            i += 1
        elif arg.startswith("-") and arg[1:2].isdigit():
            # Negative digit count, not a flag; parse_digit_spec rejects it
            digit_spec = arg
            i += 1
        elif not arg.startswith("-") and digit_spec is None:
            # First bare argument treated as digits spec
            digit_spec = arg
            i += 1
        else:
            # Ignore other flags for now
            i += 1

    if digit_spec is not None:
        config.digits = parse_digit_spec(digit_spec)

    return config


# =========================
# Working precision
# =========================


def working_precision(digits: int) -> int:
    """
    Bits of significand needed to get `digits` decimal places of π.

    The +1 is for the 3 before the decimal point. Eight bits per digit
    leaves well over twice the log2(10) minimum as guard bits for the
    rounding accumulated across the iteration's root and division chains.
    """
    if not isinstance(digits, int) or isinstance(digits, bool):
        raise ConfigurationError(f"digits must be an integer, got {digits!r}", "configuration")
    if digits <= 0:
        raise ConfigurationError(f"digits must be positive, got {digits}", "configuration")

    precision = BITS_PER_DIGIT * (digits + 1)
    if precision <= 0:
        raise ConfigurationError(f"derived precision {precision} is not positive", "configuration")
    return precision


def required_iterations(digits: int) -> int:
    """
    Smallest iteration count whose guaranteed digit yield covers `digits`.

    After n steps at least 2 * 4**n digits are correct (8, 40, 171, 694, ...
    in practice), so one million digits need the customary 10 steps.
    """
    if digits <= 0:
        raise ConfigurationError(f"digits must be positive, got {digits}", "configuration")
    n = 1
    while 2 * 4 ** n < digits + 1:
        n += 1
    return n


def make_context(precision: int) -> gmpy2.context:
    """Fresh MPFR context at `precision` bits that raises instead of returning NaN/Inf."""
    if precision <= 0:
        raise ConfigurationError(f"precision must be positive, got {precision}", "configuration")
    return gmpy2.context(precision=precision, trap_invalid=True, trap_divzero=True)


@contextmanager
def provider_phase(phase: str) -> Iterator[None]:
    """Re-raise gmpy2 failures as NumericalFault / ProviderFault tagged with `phase`."""
    try:
        yield
    except PiError as e:
        if e.phase is None:
            raise type(e)(str(e), phase) from e
        raise
    except gmpy2.InvalidOperationError as e:
        raise NumericalFault(f"invalid operation ({e})", phase) from e
    except (gmpy2.DivisionByZeroError, ZeroDivisionError) as e:
        raise NumericalFault(f"division by zero ({e})", phase) from e
    except MemoryError as e:
        raise ProviderFault("out of memory allocating a multiple-precision value", phase) from e


# =========================
# Root and power helpers
# =========================


def power4(ctx: gmpy2.context, x: mpfr) -> mpfr:
    """x**4 as the square of a square: two multiplications."""
    xx = ctx.mul(x, x)
    return ctx.mul(xx, xx)


def root4(ctx: gmpy2.context, x: mpfr) -> mpfr:
    """x**(1/4) as the square root of a square root; x must be >= 0."""
    if gmpy2.is_nan(x):
        raise NumericalFault("4th root of NaN")
    if x < 0:
        raise NumericalFault(f"4th root of negative value {float(x):.6g}")
    return ctx.sqrt(ctx.sqrt(x))


# =========================
# Borwein quartic iteration
# =========================


@dataclass(frozen=True)
class IterationState:
    """(y, a) after `index` iterations, plus the running 2**(2*index + 1) scale."""

    index: int
    y: mpfr
    a: mpfr
    powers2: mpfr


class Progress:
    """Console trace of how far the computation got, with timings."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self._started = 0.0

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def begin(self, text: str) -> None:
        self.write(text)
        self._started = time.perf_counter()

    def token(self, name: str) -> None:
        self.write(f" {name}")

    def end(self) -> None:
        elapsed_ms = int((time.perf_counter() - self._started) * 1000)
        self.write(f" ({elapsed_ms} ms)\n")


class BorweinEngine:
    """
    Quartically convergent iteration for 1/π.

    Seed:
      y0 = sqrt(2) - 1
      a0 = 6 - 4 sqrt(2)

    Step:
      y_{k+1} = (1 - (1 - y_k^4)^(1/4)) / (1 + (1 - y_k^4)^(1/4))
      a_{k+1} = a_k (1 + y_{k+1})^4
                - 2^(2k+3) y_{k+1} (1 + y_{k+1} + y_{k+1}^2)

    1/a_k converges to π, with correct digits growing about fourfold per step.
    All values live at one precision, held by `self.ctx`.
    """

    def __init__(self, precision: int, progress: Progress | None = None):
        self.precision = precision
        self.progress = progress
        self.ctx = make_context(precision)
        self.sqrt2: mpfr | None = None

        with provider_phase("initialization"):
            self.one = mpfr("1", precision)
            self.two = mpfr("2", precision)
            self.four = mpfr("4", precision)
            self.six = mpfr("6", precision)

    def _note(self, name: str) -> None:
        if self.progress is not None:
            self.progress.token(name)

    def seed(self) -> IterationState:
        ctx = self.ctx
        with provider_phase("initialization"):
            self._note("sqrt2")
            self.sqrt2 = ctx.sqrt(self.two)

            self._note("y_prev")
            y = ctx.sub(self.sqrt2, self.one)

            self._note("a_prev")
            sqrt2x4 = ctx.mul(self.four, self.sqrt2)
            a = ctx.sub(self.six, sqrt2x4)

            powers2 = mpfr("2", self.precision)
        return IterationState(0, y, a, powers2)

    def step(self, state: IterationState) -> IterationState:
        """Run one iteration; the new (y, a) only exist once every term is done."""
        ctx, one = self.ctx, self.one
        with provider_phase(f"iteration {state.index + 1}"):
            self._note("y4")
            y4 = power4(ctx, state.y)

            self._note("yRoot4")
            y_root4 = root4(ctx, ctx.sub(one, y4))

            self._note("y")
            y = ctx.div(ctx.sub(one, y_root4), ctx.add(one, y_root4))

            self._note("aTerm")
            a_term = ctx.mul(state.a, power4(ctx, ctx.add(one, y)))

            self._note("powers2")
            powers2 = ctx.mul(self.four, state.powers2)

            self._note("y2")
            y2 = ctx.mul(y, y)

            self._note("a")
            t = ctx.add(ctx.add(one, y), y2)
            t = ctx.mul(ctx.mul(t, y), powers2)
            a = ctx.sub(a_term, t)

        return IterationState(state.index + 1, y, a, powers2)

    def run(self, state: IterationState, iterations: int) -> Iterator[IterationState]:
        """Yield the state after each of `iterations` steps starting from `state`."""
        for _ in range(iterations):
            if self.progress is not None:
                self.progress.begin(f"{state.index + 1:4d}:")
            state = self.step(state)
            if self.progress is not None:
                self.progress.end()
            yield state

    def invert(self, state: IterationState) -> mpfr:
        with provider_phase("finalization"):
            if gmpy2.is_nan(state.a) or state.a == 0:
                raise NumericalFault(f"cannot invert a = {state.a} after {state.index} iterations")
            return self.ctx.div(self.one, state.a)


def compute_pi(
    digits: int,
    iterations: int = DEFAULT_ITERATIONS,
    progress: Progress | None = None,
) -> mpfr:
    """
    Compute π to `digits` decimal places as an mpfr at the working precision.

    Everything is configured before the first gmpy2 value is created, so a
    bad digit or iteration count fails without touching the provider.
    """
    precision = working_precision(digits)
    needed = required_iterations(digits)
    if iterations < needed:
        raise ConfigurationError(
            f"{iterations} iterations cannot reach {digits} digits (need at least {needed})",
            "configuration",
        )

    if progress is not None:
        progress.begin("Initializing:")
    engine = BorweinEngine(precision, progress)
    state = engine.seed()
    if progress is not None:
        progress.end()
        progress.write("Iterations:\n")

    for state in engine.run(state, iterations):
        pass

    if progress is not None:
        progress.begin("Inverting:")
    pi = engine.invert(state)
    if progress is not None:
        progress.end()
    return pi


# =========================
# Digit output
# =========================


def pi_digit_string(pi: mpfr, digits: int) -> str:
    """
    "3" followed by exactly `digits` fractional digits, truncated.

    MPFR rounds the last digit it returns, so pull some guard digits and
    cut them off.
    """
    mantissa, exp, _prec = mpfr_digits(pi, 10, digits + 1 + GUARD_DIGITS)
    if exp != 1 or not mantissa[:1].isdigit():
        raise NumericalFault(f"result {mantissa[:12]}e{exp} is not of the form 3.xxx", "finalization")
    return mantissa[: digits + 1]


def format_pi(
    digit_string: str,
    block_size: int = BLOCK_SIZE,
    line_size: int = LINE_SIZE,
    group_size: int = GROUP_SIZE,
) -> str:
    """
    Lay out "3" + fractional digits as:

      3.1415926535 8979323846 ... (line_size digits)
        8214808651 3282306647 ...

    with a blank line after every `group_size` lines.
    """
    if block_size <= 0 or line_size <= 0 or group_size <= 0:
        raise ConfigurationError("block, line and group sizes must be positive")
    if line_size % block_size:
        raise ConfigurationError(f"line size {line_size} is not a multiple of block size {block_size}")

    whole, frac = digit_string[:1], digit_string[1:]
    lines = []
    for n, start in enumerate(range(0, len(frac), line_size), 1):
        row = frac[start : start + line_size]
        blocks = [row[j : j + block_size] for j in range(0, len(row), block_size)]
        lines.append(("  " if lines else f"{whole}.") + " ".join(blocks))
        # Blank line for grouping, unless this was the last line
        if n % group_size == 0 and start + line_size < len(frac):
            lines.append("")

    if not lines:
        lines.append(f"{whole}.")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv
    prog = argv[0] if argv else "pi_borwein_gmpy2.py"

    try:
        config = parse_args(argv)
    except ConfigurationError as e:
        sys.stderr.write(f"Error: {e}\n")
        sys.stderr.write("Usage examples:\n")
        sys.stderr.write(f"  {prog}\n")
        sys.stderr.write(f"  {prog} 12345\n")
        sys.stderr.write(f"  {prog} --calculate 1K\n")
        sys.stderr.write(f"  {prog} --digits 10M --iterations 12\n")
        sys.stderr.write(f"  {prog} 1e6 --quiet\n")
        return 1

    progress = None if config.quiet else Progress(sys.stdout)
    if progress is not None:
        progress.write(
            f"Calculating π to {config.digits} digits "
            f"(Python + gmpy2, Borwein quartic, {config.iterations} iterations)...\n"
        )

    start = time.perf_counter()
    try:
        pi = compute_pi(config.digits, config.iterations, progress)
        elapsed = time.perf_counter() - start
        pi_str = pi_digit_string(pi, config.digits)
    except ConfigurationError as e:
        sys.stderr.write(f"\nError: {e}\n")
        return 1
    except PiError as e:
        sys.stderr.write(f"\nFatal: {e}\n")
        return 2

    print()
    print(format_pi(pi_str))
    if progress is not None:
        print(f"Done! Total compute time = {elapsed:.6f} seconds")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
