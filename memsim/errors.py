"""Exceptions raised by the simulator core."""

from __future__ import annotations

from typing import Optional


class SimulatorError(Exception):
    """Base class for every error the simulator raises."""


class ConfigurationError(SimulatorError, ValueError):
    """Cache geometry or power parameters that cannot be simulated."""


class UnknownLabelError(SimulatorError, LookupError):
    """A branch or jump names a label that was never declared."""

    def __init__(self, label: str, lineno: Optional[int] = None):
        self.label = label
        self.lineno = lineno
        where = f" (line {lineno})" if lineno is not None else ""
        super().__init__(f"unknown label: {label}{where}")


class MalformedTraceLine(SimulatorError, ValueError):
    """A trace or assembly line that does not fit the grammar."""

    def __init__(self, line: str, reason: str = "cannot parse line",
                 lineno: Optional[int] = None):
        self.line = line
        self.reason = reason
        self.lineno = lineno
        where = f"line {lineno}: " if lineno is not None else ""
        super().__init__(f"{where}{reason}: {line!r}")


class ExecutionLimitExceeded(SimulatorError, RuntimeError):
    """
    Bounded program execution hit its step cap. Callers recover from this
    locally and keep whatever was produced so far.
    """

    def __init__(self, steps: int, limit: int):
        self.steps = steps
        self.limit = limit
        super().__init__(
            f"execution limit reached after {steps} steps "
            f"(limit {limit}, infinite loop?)")
