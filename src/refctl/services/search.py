"""SearchService — run one pattern against files, open bodies, and filenames.

Three sources, three match variants:

- file contents via the external content tool -> :class:`LineFileMatch`
- open body contents, scanned in-process -> :class:`LineBufferMatch`
- filenames via the external filename tool -> :class:`FileMatch`

:meth:`SearchService.lookup` is the activation entry point: it picks the
patterns for the activated role, checks every required tool up front, runs
the sources in presentation order, and returns a categorized
:class:`MatchSet`. A source that times out is reported in
``MatchSet.timed_out`` while the other sources still contribute.
"""

from __future__ import annotations

import logging

from refctl.domain.errors import CollaboratorMissing, ContractViolation, SearchTimeout
from refctl.domain.markers import Role
from refctl.domain.matches import FileMatch, LineBufferMatch, LineFileMatch, MatchSet
from refctl.domain.patterns import (
    Dialect,
    Pattern,
    capture_roles,
    compile_pattern,
    content_pattern,
    filename_pattern,
    render,
    render_external,
)
from refctl.services.base import BaseService
from refctl.services.result import ErrorCode, ServiceResult, failure
from refctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class SearchService(BaseService):
    """Search orchestration over the workspace's three sources."""

    def _timeout(self, timeout: float | None) -> float:
        return timeout if timeout is not None else self.settings.search.timeout

    def tag_for(self, role: Role) -> str:
        markers = self.settings.markers
        return markers.location_tag if role is Role.LOCATION else markers.reference_tag

    # ------------------------------------------------------------------
    # Individual sources
    # ------------------------------------------------------------------

    def search_file_contents(
        self, pattern: Pattern, *, timeout: float | None = None
    ) -> list[LineFileMatch]:
        """One match per matching line of every file under the search root."""
        self._workspace.content_tool.ensure_available()
        return self._file_contents(pattern, self._timeout(timeout))

    def search_buffer_contents(self, pattern: Pattern) -> list[LineBufferMatch]:
        """One match per matching line of every open body, unsaved text included.

        Lines are counted on ``\n`` alone, the way the content tool and
        :meth:`TextBody.line_of` count them.
        """
        regex = compile_pattern(pattern)
        matches: list[LineBufferMatch] = []
        for body in self._workspace.registry.bodies():
            ref = body.ref
            for line_no, line in enumerate(body.text.split("\n"), start=1):
                if regex.search(line):
                    matches.append(
                        LineBufferMatch(buffer=ref, buffer_name=body.name, line=line_no)
                    )
        return matches

    def search_filenames(
        self, pattern: Pattern, *, timeout: float | None = None
    ) -> list[FileMatch]:
        """One match per file under the search root whose name matches."""
        self._workspace.filename_tool.ensure_available()
        return self._filenames(pattern, self._timeout(timeout))

    def _file_contents(self, pattern: Pattern, timeout: float) -> list[LineFileMatch]:
        hits = self._workspace.content_tool.search(
            render_external(pattern), self._workspace.search_root, timeout=timeout
        )
        matches: list[LineFileMatch] = []
        for path, line_no in hits:
            try:
                matches.append(LineFileMatch(path=path, line=line_no))
            except ContractViolation:
                # Deleted between the tool run and now.
                logger.debug("Dropping content hit for vanished file %s", path)
        return matches

    def _filenames(self, pattern: Pattern, timeout: float) -> list[FileMatch]:
        paths = self._workspace.filename_tool.search(
            render_external(pattern), self._workspace.search_root, timeout=timeout
        )
        matches: list[FileMatch] = []
        for path in paths:
            try:
                matches.append(FileMatch(path=path))
            except ContractViolation:
                logger.debug("Dropping filename hit that is not a file: %s", path)
        return matches

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def collect(self, role: Role, identifier: str, *, timeout: float | None = None) -> MatchSet:
        """Gather everything that answers a marker of *role* with *identifier*.

        A location looks for references to it in files and buffers. A
        reference looks for the location in files and buffers, and also for
        a file named after the identifier.

        Raises:
            CollaboratorMissing: before any query, if a required tool is absent.
        """
        wants_filenames = role is Role.REFERENCE
        self._workspace.content_tool.ensure_available()
        if wants_filenames:
            self._workspace.filename_tool.ensure_available()

        limit = self._timeout(timeout)
        pattern = content_pattern(self.tag_for(role.opposite), identifier)
        timed_out: list[str] = []

        with trace_span("buffers") as span:
            buffers = self.search_buffer_contents(pattern)
            if span:
                span.annotate("matches", len(buffers))

        files: list[LineFileMatch] = []
        with trace_span("files") as span:
            try:
                files = self._file_contents(pattern, limit)
            except SearchTimeout as exc:
                timed_out.append(exc.source)
            if span:
                span.annotate("matches", len(files))

        filenames: list[FileMatch] = []
        if wants_filenames:
            with trace_span("filenames") as span:
                try:
                    filenames = self._filenames(filename_pattern(identifier), limit)
                except SearchTimeout as exc:
                    timed_out.append(exc.source)
                if span:
                    span.annotate("matches", len(filenames))

        result = MatchSet.collect(
            identifier,
            role,
            buffers=buffers,
            files=files,
            filenames=filenames,
            timed_out=timed_out,
        )
        logger.debug("Lookup %s %r: %s (%s)", role, identifier, result.counts(), result.status)
        return result

    @traced
    def lookup(
        self, role: Role, identifier: str, *, timeout: float | None = None
    ) -> ServiceResult:
        """:meth:`collect` wrapped in the ServiceResult contract."""
        try:
            match_set = self.collect(role, identifier, timeout=timeout)
        except CollaboratorMissing as exc:
            return failure(
                "lookup",
                ErrorCode.COLLABORATOR_MISSING,
                str(exc),
                tool=exc.tool,
            )
        return self.to_result("lookup", match_set)

    def describe_pattern(
        self, tag: str, identifier: str | None = None, *, dialect: Dialect = "external"
    ) -> ServiceResult:
        """Show the content pattern a lookup would hand to the tools."""
        pattern = content_pattern(tag, identifier)
        return ServiceResult(
            ok=True,
            op="pattern",
            data={
                "tag": tag,
                "id": identifier,
                "dialect": dialect,
                "pattern": render(pattern, dialect),
                "groups": capture_roles(pattern),
            },
        )

    def to_result(self, op: str, match_set: MatchSet) -> ServiceResult:
        """Wrap *match_set* as a result; timeouts become warnings, not errors."""
        warnings = [
            f"{source} search timed out; results are incomplete" for source in match_set.timed_out
        ]
        self._notify(
            "post_activate",
            {
                "identifier": match_set.identifier,
                "role": str(match_set.role),
                "counts": match_set.counts(),
            },
            warnings,
        )
        return ServiceResult(ok=True, op=op, data=match_set.to_dict(), warnings=warnings)
