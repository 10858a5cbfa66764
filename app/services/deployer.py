"""Single-flight supervision of the external deployment script.

Production code uses ``DeploymentSupervisor`` which spawns the script as an
asyncio subprocess in its own session and streams its output into the append
log. Tests use ``InMemoryDeployer`` which records triggers without spawning
anything.

Only one deployment runs at a time. A trigger that arrives while a run is
active is rejected and logged, never queued. Runs are not awaited at server
shutdown: the process keeps running in its own session but its remaining
output is no longer captured.
"""

from __future__ import annotations

import asyncio
import os
import signal
import stat
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import structlog

from app.services.append_log import AppendLogger

logger = structlog.get_logger()

OUTPUT_BUFFER_LINES = 500
READ_CHUNK_BYTES = 64 * 1024
# Longer lines are cut at this size and the rest of the line is dropped.
MAX_LINE_BYTES = 16 * 1024
TRUNCATED_MARKER = " ... [truncated]"


@dataclass
class DeploymentContext:
    """Everything needed to launch one deployment."""

    working_dir: Path
    command: list[str]
    env: dict[str, str] = field(default_factory=dict)
    branch: str | None = None
    commit: str | None = None


@dataclass
class DeploymentRun:
    """State of a single deployment, owned by the supervisor."""

    context: DeploymentContext
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    pid: int | None = None
    output: deque[str] = field(default_factory=lambda: deque(maxlen=OUTPUT_BUFFER_LINES))
    exit_code: int | None = None
    finished_at: datetime | None = None


class Deployer(Protocol):
    """Protocol for fire-and-forget deployment triggers."""

    def trigger(self, context: DeploymentContext) -> DeploymentRun | None:
        """Start a deployment unless one is already running.

        Returns the new run, or None when the trigger was rejected.
        """
        ...

    def is_running(self) -> bool:
        ...


def build_context(
    working_dir: Path,
    command: list[str],
    *,
    branch: str | None = None,
    commit: str | None = None,
) -> DeploymentContext:
    """Build a context inheriting the server environment plus push metadata."""
    env = dict(os.environ)
    if branch:
        env["DEPLOY_BRANCH"] = branch
    if commit:
        env["DEPLOY_COMMIT"] = commit
    return DeploymentContext(
        working_dir=working_dir,
        command=command,
        env=env,
        branch=branch,
        commit=commit,
    )


class DeploymentSupervisor:
    """Owns the single active deployment process."""

    def __init__(self, append_log: AppendLogger, timeout_seconds: float | None = None) -> None:
        self._log = append_log
        self._timeout = timeout_seconds
        self._gate = threading.Lock()
        self._task: asyncio.Task | None = None
        self.current: DeploymentRun | None = None
        self.last: DeploymentRun | None = None

    def is_running(self) -> bool:
        return self._gate.locked()

    def trigger(self, context: DeploymentContext) -> DeploymentRun | None:
        """Schedule a deployment on the running event loop and return at once."""
        if not self._gate.acquire(blocking=False):
            self._log.write("deployment already in progress, trigger ignored")
            logger.warning("deployment_rejected_busy", commit=context.commit)
            return None

        run = DeploymentRun(context=context)
        self.current = run
        try:
            self._task = asyncio.get_running_loop().create_task(self._supervise(run))
        except RuntimeError:
            self.current = None
            self._gate.release()
            raise
        return run

    async def wait(self) -> DeploymentRun | None:
        """Wait for the current run, if any, and return the last finished run."""
        task = self._task
        if task is not None:
            await asyncio.shield(task)
        return self.last

    async def _supervise(self, run: DeploymentRun) -> None:
        try:
            await self._execute(run)
        except asyncio.CancelledError:
            self._log.write("deployment supervision stopped before the process exited")
            raise
        finally:
            run.finished_at = datetime.now(timezone.utc)
            self.last = run
            self.current = None
            self._gate.release()

    async def _execute(self, run: DeploymentRun) -> None:
        context = run.context
        self._log.write("starting deployment script")
        self._ensure_executable(Path(context.command[-1]))

        try:
            process = await asyncio.create_subprocess_exec(
                *context.command,
                cwd=str(context.working_dir),
                env=context.env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            self._log.write(f"deployment failed to start: {exc}")
            logger.error("deployment_start_failed", command=context.command, error=str(exc))
            return

        run.pid = process.pid
        logger.info("deployment_started", pid=process.pid, commit=context.commit)

        async def run_to_exit() -> int:
            await asyncio.gather(
                self._pump(process.stdout, "deploy", run),
                self._pump(process.stderr, "deploy:err", run),
            )
            return await process.wait()

        try:
            run.exit_code = await asyncio.wait_for(run_to_exit(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._log.write(f"deployment exceeded {self._timeout}s, killing process {process.pid}")
            self._kill_session(process.pid)
            run.exit_code = await process.wait()
        except Exception:
            # The gate stays held until the process itself has exited.
            logger.exception("deployment_output_failed", pid=process.pid)
            self._log.write("deployment output could not be read, waiting for the process to exit")
            run.exit_code = await process.wait()

        self._log.write(f"deployment finished with exit code {run.exit_code}")
        if run.exit_code == 0:
            logger.info("deployment_finished", exit_code=run.exit_code)
        else:
            logger.error("deployment_failed", exit_code=run.exit_code)

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        tag: str,
        run: DeploymentRun,
    ) -> None:
        """Forward a stream line by line, cutting lines over ``MAX_LINE_BYTES``."""
        if stream is None:
            return
        pending = b""
        dropping = False
        while chunk := await stream.read(READ_CHUNK_BYTES):
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for raw in lines:
                if dropping:
                    dropping = False
                    continue
                self._emit(tag, raw, run)
            if len(pending) > MAX_LINE_BYTES:
                if not dropping:
                    self._emit(tag, pending[:MAX_LINE_BYTES], run, truncated=True)
                    dropping = True
                pending = b""
        if pending and not dropping:
            self._emit(tag, pending, run)

    def _emit(self, tag: str, raw: bytes, run: DeploymentRun, truncated: bool = False) -> None:
        if len(raw) > MAX_LINE_BYTES:
            raw = raw[:MAX_LINE_BYTES]
            truncated = True
        # Progress bars redraw with \r; keep the last state only.
        line = raw.decode("utf-8", errors="replace").rstrip().rsplit("\r", 1)[-1]
        if not line:
            return
        if truncated:
            line += TRUNCATED_MARKER
        run.output.append(f"[{tag}] {line}")
        self._log.write(f"[{tag}] {line}")

    @staticmethod
    def _kill_session(pid: int) -> None:
        # The script leads its own session, so its children share its process group.
        try:
            os.killpg(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def _ensure_executable(self, script: Path) -> None:
        try:
            mode = script.stat().st_mode
            script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as exc:
            self._log.write(f"warning: could not make {script} executable: {exc}")


class InMemoryDeployer:
    """Test double that records triggered contexts without spawning processes."""

    def __init__(self, *, busy: bool = False) -> None:
        self.busy = busy
        self.triggered: list[DeploymentContext] = []

    def is_running(self) -> bool:
        return self.busy

    def trigger(self, context: DeploymentContext) -> DeploymentRun | None:
        if self.busy:
            return None
        self.triggered.append(context)
        return DeploymentRun(context=context)
