"""
Embedded query adapter for SQL answers.

Each widget owns one in-memory SQLite database, built in the background and
optionally seeded from the part's setup script. A failing setup script is
logged and the database still becomes usable. Teardown (unmount, or a new
setup script) bumps a generation counter so a late initialisation is discarded
instead of being committed, and interrupts a query that is still running.
"""

import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from content_model import QuerySpec
from widget_base import EditableMixin, Widget, WidgetStateError

DEFAULT_QUERY = "-- Write your SQL query here...\n"
NO_OUTPUT = "(no output)"


def split_statements(script: str) -> Iterator[str]:
    """Yield the complete SQL statements of `script`, in order."""
    buf: List[str] = []
    for ch in script or "":
        buf.append(ch)
        if ch == ";":
            stmt = "".join(buf)
            if sqlite3.complete_statement(stmt):
                if stmt.strip(" \t\r\n;"):
                    yield stmt.strip()
                buf = []
    rest = "".join(buf).strip()
    if rest and not _only_comments(rest):
        yield rest


def _only_comments(sql: str) -> bool:
    for line in sql.splitlines():
        line = line.strip()
        if line and not line.startswith("--"):
            return False
    return True


@dataclass
class QueryResult:
    columns: List[str]
    rows: List[Tuple[Any, ...]]


def execute_query(conn: sqlite3.Connection, sql: str) -> Optional[QueryResult]:
    """
    Run every statement of `sql`; return the first result set that has rows
    (later result sets are ignored), or None when no statement produced rows.
    """
    first: Optional[QueryResult] = None
    for stmt in split_statements(sql):
        cur = conn.execute(stmt)
        if cur.description is None:
            continue
        rows = cur.fetchall()
        if rows and first is None:
            first = QueryResult(columns=[d[0] for d in cur.description], rows=rows)
    return first


class QueryWidget(EditableMixin, Widget):
    kind = "sql"

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"

    TEMPLATE = """
<div class="query-runner" data-status="{{ w.status }}">
  <textarea class="code-editor" data-action="edit" data-language="sql" data-theme="vs-dark"
            rows="10" spellcheck="false">{{ w.text }}</textarea>
  <button type="button" class="btn green" data-action="run"{% if w.status != 'ready' %} disabled{% endif %}>
    {% if w.status == 'ready' %}Run SQL{% elif w.status == 'failed' %}SQL engine unavailable{% else %}Loading SQL engine…{% endif %}
  </button>
  <div class="query-output">
    {% if w.result %}
      <table class="result">
        <thead><tr>{% for c in w.result.columns %}<th>{{ c }}</th>{% endfor %}</tr></thead>
        <tbody>
        {% for row in w.result.rows %}
          <tr>{% for v in row %}<td>{{ 'NULL' if v is none else v }}</td>{% endfor %}</tr>
        {% endfor %}
        </tbody>
      </table>
    {% elif w.message %}
      <pre>{{ w.message }}</pre>
    {% endif %}
  </div>
</div>
"""

    def __init__(self, widget_id: str, reveal, spec: QuerySpec, mark=None, guide=None, background: bool = True):
        super().__init__(widget_id, reveal, mark, guide)
        self.text = spec.default_code or DEFAULT_QUERY
        self.setup_script = spec.setup_script
        self.background = background
        self.status = self.LOADING
        self.result: Optional[QueryResult] = None
        self.message = ""
        self._conn: Optional[sqlite3.Connection] = None
        self._generation = 0
        # _lock guards status/connection swaps; _run_lock serialises queries
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._ready = threading.Event()

    # ------------------------------------------------------------- lifecycle
    def mount(self) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.status = self.LOADING
            self._ready = threading.Event()
        if self.background:
            threading.Thread(target=self._initialize, args=(generation,),
                             name=f"query-init-{self.widget_id}", daemon=True).start()
        else:
            self._initialize(generation)

    def _initialize(self, generation: int) -> None:
        conn: Optional[sqlite3.Connection] = None
        error = ""
        try:
            conn = sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)
        except Exception as e:
            error = str(e)
            print(f"[query] engine start failed for {self.widget_id}: {e}", flush=True)
        if conn is not None and self.setup_script:
            try:
                conn.executescript(self.setup_script)
            except Exception as e:
                print(f"[query] dataset setup failed for {self.widget_id}: {e}", flush=True)
        with self._lock:
            if generation != self._generation:
                if conn is not None:
                    conn.close()
                return
            self._conn = conn
            if conn is None:
                self.status = self.FAILED
                self.message = f"❌ Error: {error}"
            else:
                self.status = self.READY
            self._ready.set()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def teardown(self) -> None:
        with self._lock:
            self._generation += 1
            conn, self._conn = self._conn, None
            self.status = self.LOADING
        if conn is None:
            return
        # a running query is aborted; its run() closes the stale connection
        conn.interrupt()
        if self._run_lock.acquire(blocking=False):
            try:
                conn.close()
            finally:
                self._run_lock.release()

    def set_setup_script(self, script: Optional[str]) -> None:
        """Dataset change: discard the current database and build a new one."""
        self.teardown()
        self.setup_script = script or None
        self.mount()

    # ------------------------------------------------------------------- run
    def run(self, query: Optional[str] = None) -> Optional[QueryResult]:
        if query is not None:
            self.text = query
        if not self._run_lock.acquire(blocking=False):
            raise WidgetStateError("a query is already running")
        try:
            with self._lock:
                conn = self._conn
                if self.status != self.READY or conn is None:
                    raise WidgetStateError("SQL engine is still loading")
            result, message = None, ""
            try:
                result = execute_query(conn, self.text)
                if result is None:
                    message = NO_OUTPUT
            except Exception as e:
                message = f"❌ Error: {e}"
            with self._lock:
                stale = conn is not self._conn
            if stale:
                conn.close()
            self.result, self.message = result, message
            return result
        finally:
            self._run_lock.release()

    def on_run(self, payload: Dict[str, Any]) -> None:
        query = payload.get("query")
        self.run(None if query is None else str(query))

    def state(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "status": self.status, "message": self.message}
        if self.result is not None:
            out["columns"] = self.result.columns
            out["rows"] = [list(r) for r in self.result.rows]
        return out
