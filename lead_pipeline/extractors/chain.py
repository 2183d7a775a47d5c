"""Ordered fallback chains: run strategies until one succeeds."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from rich.console import Console

from lead_pipeline.extractors.errors import ExtractionError

console = Console()


@dataclass
class Step:
    """A named strategy. Fails by returning None or raising ExtractionError."""

    name: str
    func: Callable[..., Awaitable[Any]]
    fatal: bool = False  # Failure stops the chain instead of trying the next step


@dataclass
class Attempt:
    """Outcome of one step: a value or an error, never both."""

    step: str
    value: Any = None
    error: Optional[ExtractionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


@dataclass
class ChainResult:
    value: Any
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def winner(self) -> str:
        return self.attempts[-1].step


async def run_chain(steps: list[Step], *args: Any) -> ChainResult:
    """Await steps in order and stop at the first success.

    Raises the error of the last attempted step when every step fails.
    Exceptions that are not ExtractionError propagate untouched.
    """
    attempts: list[Attempt] = []

    for step in steps:
        try:
            value = await step.func(*args)
        except ExtractionError as e:
            attempts.append(Attempt(step.name, error=e))
            console.print(f"[dim]  {step.name}: {e}[/dim]")
            if step.fatal:
                raise
            continue

        if value is None:
            attempts.append(Attempt(step.name, error=ExtractionError(f"{step.name} returned nothing")))
            continue

        attempts.append(Attempt(step.name, value=value))
        return ChainResult(value, attempts)

    if attempts and attempts[-1].error is not None:
        raise attempts[-1].error
    raise ExtractionError("no extraction step configured")
