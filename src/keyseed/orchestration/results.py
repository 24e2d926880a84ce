"""Result types for provisioning runs."""

from dataclasses import dataclass, field
from typing import Dict, List

from keyseed.errors import ExitCode, KeyseedError


@dataclass
class ProvisioningResult:
    """Outcome of running a provisioning plan."""

    entities: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    timed_out: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether every step of the plan succeeded."""
        return not (self.failures or self.timed_out or self.skipped or self.errors)

    @property
    def exit_code(self) -> ExitCode:
        if self.success:
            return ExitCode.SUCCESS
        if self.failures:
            return ExitCode.FAILED
        if self.timed_out:
            return ExitCode.TIMEOUT
        return ExitCode.VALIDATION_ERROR


class ResultCollector:
    """Aggregates task outcomes during a run."""

    def __init__(self) -> None:
        self._result = ProvisioningResult()

    def record(self, name: str, entity_id: str) -> None:
        """Record a resolved entity."""
        self._result.entities[name] = entity_id

    def record_failure(self, name: str, error: BaseException) -> None:
        """Record a failed step with its cause."""
        self._result.failures[name] = f"{type(error).__name__}: {error}"

    def record_timeout(self, names: List[str]) -> None:
        """Record tasks still running when a barrier gave up on them."""
        self._result.timed_out.extend(n for n in names if n not in self._result.timed_out)

    def record_skipped(self, names: List[str]) -> None:
        """Record steps never submitted because an earlier barrier failed."""
        self._result.skipped.extend(names)

    def record_error(self, error: KeyseedError) -> None:
        self._result.errors.append(error.message)

    def finalize(self, duration: float) -> ProvisioningResult:
        """Return the final result with duration set."""
        self._result.duration_seconds = duration
        return self._result
