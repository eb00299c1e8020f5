"""Exception taxonomy shared by every layer.

Contract violations are programmer errors and are never retried.
Collaborator and timeout errors are caught at the service boundary and
converted into :class:`~refctl.services.result.ServiceResult` payloads.
"""

from __future__ import annotations


class RefctlError(Exception):
    """Base class for all refctl errors."""


class ContractViolation(RefctlError, ValueError):
    """A constructor or accessor received arguments a correct caller never passes."""


class MalformedMatch(ContractViolation):
    """Classifier input that the discovery pattern cannot have produced."""


class CollaboratorMissing(RefctlError):
    """A required external search tool is not installed or not executable."""

    def __init__(self, tool: str, detail: str | None = None) -> None:
        self.tool = tool
        msg = f"Required search tool {tool!r} is not available"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class MalformedOutput(RefctlError):
    """One line of external tool output did not parse into the expected fields."""

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        super().__init__(f"{reason}: {line!r}")


class SearchTimeout(RefctlError):
    """An external search exceeded its allotted time."""

    def __init__(self, source: str, timeout: float) -> None:
        self.source = source
        self.timeout = timeout
        super().__init__(f"{source} search timed out after {timeout:g}s")
