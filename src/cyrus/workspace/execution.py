"""Run one command across workspace members, sequentially or per-batch in parallel."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from cyrus.project.descriptor import ProjectResolver
from cyrus.workspace.errors import AggregateFailureError, MemberPathNotFoundError
from cyrus.workspace.models import Member, MemberRunResult, RunReport, default_max_parallel_jobs

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND_EXIT_CODE = 127
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126

ResultCallback = Callable[[MemberRunResult], None]


@dataclass(slots=True)
class MemberInvocation:
    """Fully resolved command for one member, planned before anything starts."""

    member: Member
    workdir: Path
    argv: list[str]
    environment: dict[str, str] = field(default_factory=dict)
    via_project: bool = False


class MemberRunner(Protocol):
    """Executes one planned invocation to completion."""

    def run(self, invocation: MemberInvocation) -> MemberRunResult:
        """Block until the command exits and return its outcome."""


class SubprocessMemberRunner:
    """Runs the invocation as a child process in the member directory."""

    def run(self, invocation: MemberInvocation) -> MemberRunResult:
        started = time.monotonic()
        try:
            completed = subprocess.run(  # noqa: S603
                invocation.argv,
                cwd=invocation.workdir,
                env=invocation.environment,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
        except FileNotFoundError:
            return MemberRunResult(
                member=invocation.member.name,
                argv=invocation.argv,
                exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
                duration_seconds=time.monotonic() - started,
                output=f"Command not found: {invocation.argv[0]}\n",
            )
        except OSError as error:
            return MemberRunResult(
                member=invocation.member.name,
                argv=invocation.argv,
                exit_code=COMMAND_NOT_EXECUTABLE_EXIT_CODE,
                duration_seconds=time.monotonic() - started,
                output=f"Command failed to start: {error}\n",
            )
        return MemberRunResult(
            member=invocation.member.name,
            argv=invocation.argv,
            exit_code=completed.returncode,
            duration_seconds=time.monotonic() - started,
            output=completed.stdout or "",
        )


class ExecutionEngine:
    """Plans and runs a command per member, honoring batch order and failure policy.

    Every member's command is resolved before the first subprocess starts, so a
    broken project config aborts the call with nothing executed. Parallel mode
    runs one task per member on a bounded thread pool and always waits for all
    of them; running work is never cancelled.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        root_path: Path,
        resolver: ProjectResolver,
        shared_environment: Mapping[str, str] | None = None,
        max_parallel_jobs: int | None = None,
        base_environment: Mapping[str, str] | None = None,
        runner: MemberRunner | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        self.root_path = root_path
        self.resolver = resolver
        self.shared_environment = dict(shared_environment or {})
        self.max_parallel_jobs = max(1, max_parallel_jobs or default_max_parallel_jobs())
        self.base_environment = dict(os.environ if base_environment is None else base_environment)
        self.runner = runner or SubprocessMemberRunner()
        self.on_result = on_result

    def plan(
        self,
        members: Sequence[Member],
        command: str,
        args: Sequence[str] = (),
    ) -> list[MemberInvocation]:
        invocations: list[MemberInvocation] = []
        for member in members:
            workdir = self.root_path / member.path
            if not workdir.is_dir():
                raise MemberPathNotFoundError(workdir)
            resolved = self.resolver.resolve(workdir, command, list(args))
            environment = {
                **self.base_environment,
                **self.shared_environment,
                **resolved.environment,
            }
            invocations.append(
                MemberInvocation(
                    member=member,
                    workdir=workdir,
                    argv=resolved.argv,
                    environment=environment,
                    via_project=resolved.via_project,
                ),
            )
        return invocations

    def run(
        self,
        members: Sequence[Member],
        command: str,
        args: Sequence[str] = (),
        *,
        parallel: bool = False,
        continue_on_error: bool = False,
    ) -> RunReport:
        invocations = self.plan(members, command, args)
        if not invocations:
            logger.warning("No enabled members to run %r in", command)
            return RunReport()
        logger.info(
            "Running %r in %d member(s) (%s)",
            command,
            len(invocations),
            "parallel" if parallel else "sequential",
        )
        return self._execute(invocations, parallel=parallel, continue_on_error=continue_on_error)

    def run_batches(
        self,
        batches: Sequence[Sequence[Member]],
        command: str,
        args: Sequence[str] = (),
        *,
        parallel: bool = False,
        continue_on_error: bool = False,
    ) -> RunReport:
        """Run batch after batch; a batch starts only once the previous one fully finished.

        Without `continue_on_error` the first failing batch raises and no later
        batch starts. With it, later batches still run, but members depending on
        a failed or skipped member are skipped.
        """

        planned = [self.plan(batch, command, args) for batch in batches]
        report = RunReport()
        blocked: set[str] = set()
        for index, invocations in enumerate(planned, start=1):
            runnable: list[MemberInvocation] = []
            for invocation in invocations:
                blockers = [dep for dep in invocation.member.dependencies if dep in blocked]
                if blockers:
                    logger.warning(
                        "Skipping %r: dependencies failed (%s)",
                        invocation.member.name,
                        ", ".join(blockers),
                    )
                    report.skipped.append(invocation.member.name)
                    blocked.add(invocation.member.name)
                else:
                    runnable.append(invocation)
            if not runnable:
                continue

            logger.info(
                "Batch %d/%d: %r in %s",
                index,
                len(planned),
                command,
                ", ".join(invocation.member.name for invocation in runnable),
            )
            batch_report = self._execute(
                runnable,
                parallel=parallel and len(runnable) > 1,
                continue_on_error=continue_on_error,
            )
            blocked.update(result.member for result in batch_report.failures)
            report.extend(batch_report)
        return report

    def _execute(
        self,
        invocations: list[MemberInvocation],
        *,
        parallel: bool,
        continue_on_error: bool,
    ) -> RunReport:
        if parallel:
            return self._execute_parallel(invocations, continue_on_error=continue_on_error)
        return self._execute_sequential(invocations, continue_on_error=continue_on_error)

    def _execute_sequential(
        self,
        invocations: list[MemberInvocation],
        *,
        continue_on_error: bool,
    ) -> RunReport:
        report = RunReport()
        for invocation in invocations:
            result = self._run_one(invocation)
            report.results.append(result)
            self._notify(result)
            if not result.ok and not continue_on_error:
                raise result.to_error()
        return report

    def _execute_parallel(
        self,
        invocations: list[MemberInvocation],
        *,
        continue_on_error: bool,
    ) -> RunReport:
        workers = min(len(invocations), self.max_parallel_jobs)
        results: list[MemberRunResult | None] = [None] * len(invocations)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cyrus-member") as executor:
            futures = {
                executor.submit(self._run_one, invocation): position
                for position, invocation in enumerate(invocations)
            }
            for future in as_completed(futures):
                result = future.result()
                results[futures[future]] = result
                self._notify(result)

        report = RunReport(results=[result for result in results if result is not None])
        failures = report.failures
        if failures and not continue_on_error:
            raise AggregateFailureError(result.to_error() for result in failures)
        return report

    def _run_one(self, invocation: MemberInvocation) -> MemberRunResult:
        logger.info("Running in %s", invocation.member.name)
        logger.debug(
            "Member %s argv=%s cwd=%s via_project=%s",
            invocation.member.name,
            invocation.argv,
            invocation.workdir,
            invocation.via_project,
        )
        result = self.runner.run(invocation)
        if not result.ok:
            logger.warning(
                "Member %s failed with exit code %d",
                invocation.member.name,
                result.exit_code,
            )
        return result

    def _notify(self, result: MemberRunResult) -> None:
        if self.on_result is not None:
            self.on_result(result)
