"""Durable step runners.

A step is a named unit of work whose result is memoised. Running a step
whose name already has a memo returns the memo without calling the work
again, which is how a restarted run skips everything it already finished.
A name used more than once in one execution is memoised per occurrence as
``name``, ``name:1``, ``name:2`` and so on, so repeats run their own work.
Failing work is retried with exponential backoff unless the error is a
``NonRetriableError``.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from interfaces import StepRunner
from flow_engine.executor import NonRetriableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class StepRetriesExhaustedError(NonRetriableError):
    """Raised when a step keeps failing after its last allowed attempt."""

    def __init__(self, step_name: str, attempts: int, last_error: BaseException) -> None:
        self.step_name = step_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Step '{step_name}' failed after {attempts} attempt(s): "
            f"{last_error.__class__.__name__}: {last_error}"
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff for one step."""

    max_attempts: int = 4
    backoff_base: float = 1.0
    backoff_max: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff values must not be negative")

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)


class InMemoryStepRunner:
    """Step runner keeping memoised results in a dict."""

    def __init__(
        self,
        *,
        policy: Optional[RetryPolicy] = None,
        memo: Optional[Dict[str, Any]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._memo: Dict[str, Any] = dict(memo or {})
        self._sleep = sleep
        self._occurrences: Dict[str, int] = {}
        self.executed_steps: List[str] = []

    @property
    def completed_steps(self) -> Dict[str, Any]:
        return deepcopy(self._memo)

    def has_completed(self, name: str) -> bool:
        return name in self._memo

    async def run(self, name: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        if not name:
            raise ValueError("Step name must be a non-empty string.")
        name = self._occurrence_key(name)
        if name in self._memo:
            logger.debug("Replaying memoised step '%s'", name)
            return deepcopy(self._memo[name])

        result = _normalise(name, await self._attempt(name, fn))
        self._record(name, result)
        return deepcopy(result)

    def scoped(self, prefix: str) -> StepRunner:
        return ScopedStepRunner(self, prefix)

    def _occurrence_key(self, name: str) -> str:
        seen = self._occurrences.get(name, 0)
        self._occurrences[name] = seen + 1
        return name if seen == 0 else f"{name}:{seen}"

    async def _attempt(self, name: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        # Each attempt re-runs fn from the top, so nested steps must see the
        # same occurrence numbers they saw on the first attempt.
        occurrences = dict(self._occurrences)
        attempt = 0
        while True:
            attempt += 1
            self._occurrences = dict(occurrences)
            self.executed_steps.append(name)
            try:
                result = fn()
                if inspect.isawaitable(result):
                    result = await result
                return result  # type: ignore[return-value]
            except NonRetriableError:
                raise
            except Exception as exc:
                if attempt >= self.policy.max_attempts:
                    raise StepRetriesExhaustedError(name, attempt, exc) from exc
                delay = self.policy.delay(attempt)
                logger.warning(
                    "Step '%s' attempt %d/%d failed (%s: %s); retrying in %.2fs",
                    name,
                    attempt,
                    self.policy.max_attempts,
                    exc.__class__.__name__,
                    exc,
                    delay,
                )
                await self._sleep(delay)

    def _record(self, name: str, result: Any) -> None:
        self._memo[name] = result


class JournalStepRunner(InMemoryStepRunner):
    """Step runner persisting completed steps to a JSON journal file.

    The journal is rewritten after every completed step, so a run restarted
    with the same journal resumes after its last completed step.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.path = Path(path)
        memo: Dict[str, Any] = {}
        if self.path.exists():
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            memo = payload.get("steps", {})
            logger.info("Resuming from journal %s (%d completed steps)", self.path, len(memo))
        super().__init__(policy=policy, memo=memo, sleep=sleep)

    @classmethod
    def for_run(
        cls,
        journal_dir: Path | str,
        run_id: str,
        *,
        policy: Optional[RetryPolicy] = None,
    ) -> "JournalStepRunner":
        return cls(Path(journal_dir) / f"{run_id}.json", policy=policy)

    def _record(self, name: str, result: Any) -> None:
        super()._record(name, result)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({"steps": self._memo}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def discard(self) -> None:
        """Delete the journal once its run no longer needs to resume."""
        self.path.unlink(missing_ok=True)


class ScopedStepRunner:
    """View over another runner that prefixes step names."""

    def __init__(self, parent: StepRunner, prefix: str) -> None:
        if not prefix:
            raise ValueError("Step prefix must be a non-empty string.")
        self._parent = parent
        self.prefix = prefix

    async def run(self, name: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        return await self._parent.run(f"{self.prefix}/{name}", fn)

    def scoped(self, prefix: str) -> StepRunner:
        return ScopedStepRunner(self._parent, f"{self.prefix}/{prefix}")


def _normalise(name: str, result: Any) -> Any:
    """Round-trip through JSON so replayed and fresh results look identical."""
    try:
        return json.loads(json.dumps(result))
    except (TypeError, ValueError) as exc:
        raise NonRetriableError(f"Step '{name}' returned a value that is not JSON serialisable.") from exc
