import sys
import threading
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import sandbox
from content_model import CodingSpec
from reveal import RevealController
from sandbox import CodeRunnerWidget, SandboxRuntime
from widget_base import WidgetStateError


@pytest.fixture(scope="module")
def runtime():
    rt = SandboxRuntime(python_exe=sys.executable)
    rt.start()
    assert rt.wait(30)
    assert rt.ready, rt.error
    return rt


def _widget(runtime, code=None, timeout_ms=sandbox.EXECUTION_TIMEOUT_MS):
    w = CodeRunnerWidget("code", RevealController(), CodingSpec(default_code=code), runtime, timeout_ms=timeout_ms)
    w.mount()
    return w


def test_default_code_when_part_has_none(runtime):
    assert _widget(runtime).text == "# Write your Python code here"


def test_print_output(runtime):
    w = _widget(runtime, "print('Hello')")
    assert w.run() == "Hello\n"
    assert w.status == CodeRunnerWidget.READY


def test_empty_output_placeholder(runtime):
    w = _widget(runtime, "x = 1 + 1")
    assert w.run() == "(no output)"


def test_error_is_reported_with_prefix(runtime):
    w = _widget(runtime)
    out = w.run("print('before')\nraise ValueError('boom')")
    assert out.startswith("❌ Error: ")
    assert "ValueError: boom" in out
    assert "before" in out
    assert w.status == CodeRunnerWidget.READY


def test_input_reads_supplied_lines_then_empty(runtime):
    w = _widget(runtime)
    out = w.run("a = input('Name: ')\nb = input()\nprint('hi', a, repr(b))", stdin="Ada\n")
    assert out == "hi Ada ''\n"


def test_runs_do_not_share_globals(runtime):
    w = _widget(runtime)
    w.run("counter = 41")
    out = w.run("print(counter)")
    assert "NameError" in out


def test_timeout_kills_run_and_returns_to_ready(runtime):
    w = _widget(runtime, "while True:\n    pass", timeout_ms=1000)
    out = w.run()
    assert out == "❌ Error: Code execution timed out after 1 seconds."
    assert w.status == CodeRunnerWidget.READY
    assert w.run("print('again')") == "again\n"


def test_default_timeout_message_says_five_seconds(runtime):
    w = _widget(runtime)
    assert w.timeout_message == "❌ Error: Code execution timed out after 5 seconds."


def test_run_rejected_while_executing(monkeypatch, runtime):
    w = _widget(runtime, "import time\ntime.sleep(1.5)\nprint('done')")
    started = threading.Event()
    result = {}

    original = runtime.execute

    def slow_execute(*args, **kwargs):
        started.set()
        return original(*args, **kwargs)

    monkeypatch.setattr(runtime, "execute", slow_execute)

    t = threading.Thread(target=lambda: result.setdefault("out", w.run()))
    t.start()
    assert started.wait(10)
    assert w.status == CodeRunnerWidget.EXECUTING
    with pytest.raises(WidgetStateError):
        w.run()
    t.join(15)
    assert result["out"] == "done\n"
    assert w.status == CodeRunnerWidget.READY


def test_bootstrap_failure_sets_load_failed():
    rt = SandboxRuntime(python_exe="/nonexistent/python3")
    w = CodeRunnerWidget("code", RevealController(), CodingSpec(), rt)
    w.mount()
    assert rt.wait(10)
    assert w.refresh() == CodeRunnerWidget.LOAD_FAILED
    assert w.output.startswith("❌ Error setting up Python environment:")
    with pytest.raises(WidgetStateError):
        w.run()


def test_widget_waits_for_shared_bootstrap(runtime):
    rt = SandboxRuntime(python_exe=sys.executable)
    w = CodeRunnerWidget("code", RevealController(), CodingSpec(), rt)
    w.mount()
    assert w.status in (CodeRunnerWidget.LOADING, CodeRunnerWidget.READY)
    rt.wait(30)
    assert w.refresh() == CodeRunnerWidget.READY
    assert w.state()["can_run"] is True


def test_start_is_idempotent():
    rt = SandboxRuntime(python_exe=sys.executable)
    rt.start()
    rt.start()
    assert rt.wait(30)
    assert rt.ready


@pytest.mark.skipif(sys.platform == "win32", reason="resource limits are Unix only")
def test_limits_are_set_inside_the_child(monkeypatch):
    rt = SandboxRuntime(python_exe=sys.executable, memory_limit_mb=128)
    rt.start()
    assert rt.wait(30)

    spawned = []
    real_popen = sandbox.subprocess.Popen

    def recording_popen(*args, **kwargs):
        spawned.append(kwargs)
        return real_popen(*args, **kwargs)

    monkeypatch.setattr(sandbox.subprocess, "Popen", recording_popen)
    result = rt.execute(
        "import resource\n"
        "print(resource.getrlimit(resource.RLIMIT_AS)[0])\n"
        "blob = bytearray(512 * 1024 * 1024)\n"
    )
    assert "preexec_fn" not in spawned[0]
    assert spawned[0]["start_new_session"] is True
    assert str(128 * 1024 * 1024) in result.output
    assert result.status == "memory_error"
