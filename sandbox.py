"""
Sandboxed execution of student Python code for the code-answer widget.

A single SandboxRuntime is created per server process and shared by every code
widget. Its bootstrap (locating and probing an interpreter) happens once, in
the background. Every run then gets its own child interpreter:
  - isolated mode (-I), no bytecode files (-B), unbuffered output (-u)
  - Unix: CPU time and address-space limits, own process group
  - wall-clock timeout: the whole process group is killed when the timer wins

Because each run is a fresh process, nothing (variables, imports) carries over
between runs or between widgets.
"""

import os
import platform
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from markupsafe import Markup

from content_model import CodingSpec
from widget_base import EditableMixin, Widget, WidgetStateError

EXECUTION_TIMEOUT_MS = 5000
MEMORY_LIMIT_MB = int(os.getenv("SANDBOX_MEMORY_LIMIT_MB") or 512)
MAX_OUTPUT_BYTES = 256 * 1024
ISOLATION_FLAGS = ["-I", "-B", "-u"]

NO_OUTPUT = "(no output)"
DEFAULT_CODE = "# Write your Python code here"

SUBMISSION_FILE = "submission.py"

# Runs the submission as __main__. Applies the CPU and address-space limits
# passed on the command line first (Unix only), so nothing runs between fork
# and exec in the server process. input() is served line by line from the
# host-supplied stdin and yields "" once it is exhausted. Tracebacks are
# trimmed to the submission's own frames.
_RUNNER_SOURCE = '''
import builtins, runpy, sys, traceback

if sys.platform != "win32":
    import resource
    for _limit, _value in ((resource.RLIMIT_CPU, int(sys.argv[1])), (resource.RLIMIT_AS, int(sys.argv[2]))):
        try:
            resource.setrlimit(_limit, (_value, _value))
        except (ValueError, OSError):
            pass

def _input(prompt=""):
    line = sys.stdin.readline()
    return line[:-1] if line.endswith("\\n") else line

builtins.input = _input
sys.argv = [%(path)r]
try:
    runpy.run_path(%(path)r, run_name="__main__")
except SystemExit:
    raise
except BaseException:
    etype, value, tb = sys.exc_info()
    while tb is not None and tb.tb_frame.f_code.co_filename != %(path)r:
        tb = tb.tb_next
    traceback.print_exception(etype, value, tb)
    sys.exit(1)
''' % {"path": SUBMISSION_FILE}


def get_python_executable(explicit: Optional[str] = None) -> str:
    """Interpreter used for sandbox runs: explicit path, SANDBOX_PYTHON, this interpreter, or PATH."""
    candidate = explicit or os.getenv("SANDBOX_PYTHON")
    if candidate:
        return candidate
    if sys.executable and not getattr(sys, "frozen", False):
        return sys.executable
    python_path = shutil.which("python3") or shutil.which("python")
    if not python_path:
        raise RuntimeError("Python executable not found.")
    return python_path


@dataclass
class ExecutionResult:
    status: str  # "success", "error", "timeout", "memory_error"
    output: str
    returncode: Optional[int] = None


class SandboxRuntime:
    """Process-wide execution service: bootstrapped once, never torn down."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"

    def __init__(self, python_exe: Optional[str] = None, memory_limit_mb: int = MEMORY_LIMIT_MB):
        self._python_exe = python_exe
        self.memory_limit_mb = memory_limit_mb
        self.executable: Optional[str] = None
        self.version: Optional[str] = None
        self.error: Optional[str] = None
        self.status = self.UNINITIALIZED
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def ready(self) -> bool:
        return self.status == self.READY

    @property
    def failed(self) -> bool:
        return self.status == self.FAILED

    def start(self) -> None:
        """Begin the bootstrap in the background; later calls are no-ops."""
        with self._lock:
            if self.status != self.UNINITIALIZED:
                return
            self.status = self.LOADING
        threading.Thread(target=self._bootstrap, name="sandbox-bootstrap", daemon=True).start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def _bootstrap(self) -> None:
        try:
            exe = get_python_executable(self._python_exe)
            proc = subprocess.run(
                [exe, *ISOLATION_FLAGS, "-c", "import sys; print(sys.version.split()[0])"],
                capture_output=True,
                timeout=30,
                check=False,
            )
            if proc.returncode != 0:
                raise RuntimeError(proc.stderr.decode("utf-8", errors="replace").strip()
                                   or f"probe exited with status {proc.returncode}")
            self.executable = exe
            self.version = proc.stdout.decode("utf-8", errors="replace").strip()
            self.status = self.READY
            print(f"[sandbox] ready: {exe} (Python {self.version})", flush=True)
        except Exception as e:
            self.error = str(e)
            self.status = self.FAILED
            print(f"[sandbox] bootstrap failed: {e}", flush=True)
        finally:
            self._done.set()

    def execute(self, source: str, stdin_text: str = "", timeout_ms: int = EXECUTION_TIMEOUT_MS) -> ExecutionResult:
        """
        Run `source` in a fresh child interpreter.

        stdout and stderr are captured together (in write order). If the run
        is still going after `timeout_ms` its process group is killed and the
        result status is "timeout".
        """
        if not self.ready:
            raise RuntimeError("sandbox runtime is not ready")
        timeout_sec = max(timeout_ms, 1) / 1000.0
        unix = platform.system() != "Windows"

        with tempfile.TemporaryDirectory() as temp_dir:
            work = Path(temp_dir)
            (work / SUBMISSION_FILE).write_text(source or "", encoding="utf-8")
            (work / "__runner__.py").write_text(_RUNNER_SOURCE, encoding="utf-8")
            (work / "stdin.txt").write_text(stdin_text or "", encoding="utf-8")

            cpu_seconds = int(timeout_sec) + 1
            memory_bytes = self.memory_limit_mb * 1024 * 1024
            command = [self.executable, *ISOLATION_FLAGS, "__runner__.py", str(cpu_seconds), str(memory_bytes)]
            popen_kwargs: Dict[str, Any] = {}
            if unix:
                popen_kwargs["start_new_session"] = True

            with open(work / "stdin.txt", "rb") as stdin_fh:
                proc = subprocess.Popen(
                    command,
                    stdin=stdin_fh,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    cwd=temp_dir,
                    **popen_kwargs
                )
                captured = bytearray()
                truncated = threading.Event()

                def _drain():
                    for chunk in iter(lambda: proc.stdout.read(4096), b""):
                        room = MAX_OUTPUT_BYTES - len(captured)
                        if room > 0:
                            captured.extend(chunk[:room])
                        if len(chunk) > room:
                            truncated.set()

                reader = threading.Thread(target=_drain, name="sandbox-output", daemon=True)
                reader.start()

                timed_out = False
                try:
                    proc.wait(timeout=timeout_sec)
                except subprocess.TimeoutExpired:
                    timed_out = True
                    self._kill(proc, unix)
                    proc.wait()
                reader.join(timeout=5)
                proc.stdout.close()

        output = captured.decode("utf-8", errors="replace")
        if truncated.is_set():
            output += "\n... (output truncated)"

        if timed_out:
            print(f"[sandbox] run killed after {timeout_ms} ms", flush=True)
            return ExecutionResult("timeout", output, proc.returncode)
        if proc.returncode == 0:
            return ExecutionResult("success", output, 0)
        if "MemoryError" in output:
            return ExecutionResult("memory_error", output, proc.returncode)
        return ExecutionResult("error", output, proc.returncode)

    @staticmethod
    def _kill(proc: subprocess.Popen, unix: bool) -> None:
        try:
            if unix:
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            proc.kill()


# -----------------------------------------------------------------------------
# Code-answer widget
# -----------------------------------------------------------------------------
class CodeRunnerWidget(EditableMixin, Widget):
    """
    Per-widget execution state machine:
        UNINITIALIZED -> LOADING -> READY -> EXECUTING -> READY
                                \\-> LOAD_FAILED
    """

    kind = "coding"

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    EXECUTING = "executing"
    LOAD_FAILED = "load_failed"

    TEMPLATE = """
<div class="code-runner" data-status="{{ w.status }}">
  <textarea class="code-editor" data-action="edit" data-language="python" data-theme="vs-dark"
            rows="14" spellcheck="false">{{ w.text }}</textarea>
  <textarea class="stdin" data-role="stdin" rows="2"
            placeholder="Program input: one line per input() call">{{ w.stdin }}</textarea>
  <button type="button" class="btn" data-action="run"{% if w.status != 'ready' %} disabled{% endif %}>
    {% if w.status in ('uninitialized', 'loading') %}Loading Python...{% elif w.status == 'executing' %}Running...{% else %}Run Code{% endif %}
  </button>
  <pre class="output">{{ w.output }}</pre>
</div>
"""

    def __init__(self, widget_id: str, reveal, spec: CodingSpec, runtime: SandboxRuntime,
                 mark=None, guide=None, timeout_ms: int = EXECUTION_TIMEOUT_MS):
        super().__init__(widget_id, reveal, mark, guide)
        self.runtime = runtime
        self.timeout_ms = timeout_ms
        self.text = spec.default_code or DEFAULT_CODE
        self.stdin = ""
        self.output = ""
        self.status = self.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def timeout_message(self) -> str:
        seconds = self.timeout_ms / 1000.0
        return f"❌ Error: Code execution timed out after {seconds:g} seconds."

    def mount(self) -> None:
        if self.runtime.ready:
            self.status = self.READY
            return
        self.status = self.LOADING
        self.runtime.start()
        self.refresh()

    def refresh(self) -> str:
        with self._lock:
            if self.status == self.LOADING:
                if self.runtime.ready:
                    self.status = self.READY
                elif self.runtime.failed:
                    self.status = self.LOAD_FAILED
                    self.output = f"❌ Error setting up Python environment: {self.runtime.error}"
            return self.status

    def run(self, source: Optional[str] = None, stdin: Optional[str] = None) -> str:
        self.refresh()
        with self._lock:
            if self.status != self.READY:
                raise WidgetStateError(f"cannot run while {self.status}")
            self.status = self.EXECUTING
            if source is not None:
                self.text = source
            if stdin is not None:
                self.stdin = stdin
            self.output = "⏳ Running..."
        try:
            result = self.runtime.execute(self.text, self.stdin, timeout_ms=self.timeout_ms)
            self.output = self._format(result)
        except Exception as e:
            self.output = f"❌ Error: {e}"
        finally:
            with self._lock:
                self.status = self.READY
        return self.output

    def _format(self, result: ExecutionResult) -> str:
        if result.status == "timeout":
            return self.timeout_message
        if result.status == "success":
            return result.output or NO_OUTPUT
        detail = result.output.strip() or f"exited with status {result.returncode}"
        return f"❌ Error: {detail}"

    def on_run(self, payload: Dict[str, Any]) -> None:
        source = payload.get("source")
        stdin = payload.get("stdin")
        self.run(None if source is None else str(source), None if stdin is None else str(stdin))

    def on_refresh(self, payload: Dict[str, Any]) -> None:
        self.refresh()

    def state(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.status,
            "output": self.output,
            "can_run": self.status == self.READY,
        }

    def render(self) -> Markup:
        self.refresh()
        return super().render()
