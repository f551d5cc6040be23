"""Drive the NIST SP 800-22 ``assess`` executable as a subprocess.

``assess`` is interactive: it takes the stream length on the command line
and asks for everything else on stdin. Each request gets its own temporary
workspace holding the input file and the ``experiments/AlgorithmTesting``
tree the suite writes into, so concurrent runs never share files.
"""

import abc
import datetime
import logging
import os
import secrets
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..errors import SuiteError, SuiteProcessFailure, SuiteTimeout, SuiteUnavailable
from ..models import BitStream, TestDefinition

logger = logging.getLogger(__name__)

# Output folders the suite writes under experiments/AlgorithmTesting; the
# executable aborts if any is missing, even for tests it will not report.
SUITE_DIRECTORIES = (
    "Frequency",
    "BlockFrequency",
    "CumulativeSums",
    "Runs",
    "LongestRun",
    "Rank",
    "FFT",
    "NonOverlappingTemplate",
    "OverlappingTemplate",
    "Universal",
    "ApproximateEntropy",
    "RandomExcursions",
    "RandomExcursionsVariant",
    "Serial",
    "LinearComplexity",
)

OUTPUT_ROOT = Path("experiments") / "AlgorithmTesting"
ARTIFACT_FILES = ("stats.txt", "results.txt")

# Answers to the prompts, in order: generator (0 = input file), file name,
# run all tests (1), adjust parameters (0 = continue), bitstreams, format
# (0 = ASCII).
DEFAULT_PROMPT_SCRIPT = "0\n{input_file}\n1\n0\n{bitstreams}\n0\n"


def build_stdin_script(input_file: Union[str, Path], bitstreams: int = 1,
                       template: str = DEFAULT_PROMPT_SCRIPT) -> str:
    return template.format(input_file=str(input_file), bitstreams=bitstreams)


class RawResults:
    """Artifacts of one suite run, owning the workspace that holds them.

    Use as a context manager; the workspace is removed on exit. ``error`` is
    set when the run timed out or failed, in which case ``artifacts`` holds
    whatever the suite managed to write before that.
    """

    def __init__(self, workspace: tempfile.TemporaryDirectory, artifacts: Dict[str, Optional[Path]],
                 returncode: Optional[int] = None, stdout: str = "", stderr: str = "",
                 error: Optional[SuiteError] = None, duration_ms: int = 0):
        self._workspace = workspace
        self.root = Path(workspace.name)
        self.artifacts = artifacts
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.duration_ms = duration_ms

    def location(self, definition: TestDefinition) -> Optional[Path]:
        return self.artifacts.get(definition.directory)

    @property
    def produced(self) -> List[str]:
        return [name for name, path in self.artifacts.items() if path is not None]

    def cleanup(self) -> None:
        self._workspace.cleanup()

    def __enter__(self) -> "RawResults":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False


class SuiteDriver(abc.ABC):
    """Runs an external test suite against a bit stream."""

    @abc.abstractmethod
    def run(self, stream: BitStream, tests: Sequence[TestDefinition]) -> RawResults:
        """Run the suite and return its raw artifacts.

        Raises SuiteUnavailable when the suite cannot be launched at all.
        """


class StsDriver(SuiteDriver):
    """Driver for the STS 2.1.2 ``assess`` program.

    ``command`` is either the path to ``assess`` or an argument list whose
    last element is followed by the stream length. ``sts_home`` is the
    suite's source directory; its ``templates`` folder is linked into each
    workspace for the template-matching tests.
    """

    def __init__(self, command: Union[str, Path, Sequence[str]], sts_home: Optional[Union[str, Path]] = None,
                 work_dir: Optional[Union[str, Path]] = None, timeout: float = 300.0,
                 prompt_script: str = DEFAULT_PROMPT_SCRIPT):
        if isinstance(command, (str, Path)):
            self.command = [str(command)]
        else:
            self.command = [str(c) for c in command]
        if not self.command:
            raise ValueError("command must not be empty")
        self.sts_home = Path(sts_home) if sts_home else Path(self.command[-1]).resolve().parent
        self.work_dir = Path(work_dir) if work_dir else None
        self.timeout = timeout
        self.prompt_script = prompt_script

    def is_available(self) -> bool:
        return shutil.which(self.command[0]) is not None

    def run(self, stream: BitStream, tests: Sequence[TestDefinition]) -> RawResults:
        executable = shutil.which(self.command[0])
        if executable is None:
            raise SuiteUnavailable(
                f"Statistical test suite executable not found or not executable: {self.command[0]}"
            )
        # the suite runs with cwd set to the workspace
        command = [os.path.abspath(executable)] + self.command[1:]

        stamp = datetime.datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        nonce = secrets.token_hex(4)
        try:
            if self.work_dir is not None:
                self.work_dir.mkdir(parents=True, exist_ok=True)
            workspace = tempfile.TemporaryDirectory(
                prefix=f"sts_{stamp}_{nonce}_", dir=str(self.work_dir) if self.work_dir else None
            )
        except OSError as e:
            logger.error("workspace_failed", extra={"work_dir": str(self.work_dir), "err": str(e)})
            raise SuiteUnavailable(f"Cannot create a workspace for the statistical test suite: {e}") from e
        root = Path(workspace.name)
        try:
            input_file = self._prepare(root, stream, f"{stamp}_{nonce}")
        except OSError as e:
            workspace.cleanup()
            logger.error("workspace_failed", extra={"workspace": str(root), "err": str(e)})
            raise SuiteUnavailable(f"Cannot prepare the statistical test suite workspace: {e}") from e
        try:
            return self._run_in(command, root, workspace, input_file, stream, tests)
        except BaseException:
            workspace.cleanup()
            raise

    def _prepare(self, root: Path, stream: BitStream, run_id: str) -> Path:
        for name in SUITE_DIRECTORIES:
            (root / OUTPUT_ROOT / name).mkdir(parents=True, exist_ok=True)
        self._link_templates(root)

        input_file = root / f"bits_{run_id}.txt"
        input_file.write_text(stream.to_ascii() + "\n", encoding="ascii")
        return input_file

    def _run_in(self, command: List[str], root: Path, workspace: tempfile.TemporaryDirectory, input_file: Path,
                stream: BitStream, tests: Sequence[TestDefinition]) -> RawResults:
        cmd = command + [str(len(stream))]
        script = build_stdin_script(input_file, template=self.prompt_script)
        logger.debug("starting_suite", extra={"cmd": cmd, "bit_count": len(stream), "tests": len(tests),
                                              "timeout_sec": self.timeout, "workspace": str(root)})

        t0 = time.perf_counter()
        error: Optional[SuiteError] = None
        returncode = None
        stdout = stderr = ""
        try:
            proc = subprocess.run(cmd, cwd=str(root), input=script, text=True,
                                  capture_output=True, timeout=self.timeout)
            returncode = proc.returncode
            stdout, stderr = proc.stdout or "", proc.stderr or ""
        except subprocess.TimeoutExpired as e:
            # subprocess.run kills the child before re-raising
            stdout = _as_text(e.stdout)
            stderr = _as_text(e.stderr)
            error = SuiteTimeout(f"Statistical test suite timed out after {self.timeout:g} seconds",
                                 timeout=self.timeout)
            logger.warning("suite_timeout", extra={"timeout_sec": self.timeout, "workspace": str(root)})
        except OSError as e:
            error = SuiteProcessFailure(f"Failed to launch statistical test suite: {e}")
            logger.error("suite_launch_failed", extra={"cmd": cmd, "err": str(e)})
        duration_ms = int((time.perf_counter() - t0) * 1000)

        artifacts = {t.directory: self._locate(root, t.directory) for t in tests}
        if error is None and returncode != 0 and not any(artifacts.values()):
            error = SuiteProcessFailure(
                f"Statistical test suite exited with status {returncode} and produced no results: "
                f"{stderr.strip() or stdout.strip()[-200:]}",
                returncode=returncode,
            )
            logger.error("suite_failed", extra={"returncode": returncode, "stderr": stderr[-500:]})
        elif returncode:
            logger.info("suite_nonzero_exit", extra={"returncode": returncode})

        logger.debug("finished_suite", extra={"returncode": returncode, "time_ms": duration_ms,
                                              "produced": sum(1 for p in artifacts.values() if p)})
        return RawResults(workspace, artifacts, returncode=returncode, stdout=stdout, stderr=stderr,
                          error=error, duration_ms=duration_ms)

    def _link_templates(self, root: Path) -> None:
        source = self.sts_home / "templates"
        if not source.is_dir():
            logger.warning("templates_missing", extra={"path": str(source)})
            return
        target = root / "templates"
        try:
            os.symlink(source, target, target_is_directory=True)
        except OSError:
            shutil.copytree(source, target)

    @staticmethod
    def _locate(root: Path, directory: str) -> Optional[Path]:
        folder = root / OUTPUT_ROOT / directory
        for name in ARTIFACT_FILES:
            candidate = folder / name
            if candidate.is_file() and candidate.stat().st_size > 0:
                return folder
        return None


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
