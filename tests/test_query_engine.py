import sqlite3
import sys
import threading
import time
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import query_engine
from content_model import QuerySpec
from query_engine import QueryWidget, execute_query, split_statements
from reveal import RevealController
from widget_base import WidgetStateError

SETUP = """
CREATE TABLE menu (id INTEGER PRIMARY KEY, name TEXT, price REAL);
INSERT INTO menu (name, price) VALUES ('Sushi', 6.5), ('Apple', 1.0), ('Wrap', NULL);
"""


def _widget(setup=SETUP, code=None, background=False):
    w = QueryWidget("sql", RevealController(), QuerySpec(default_code=code, setup_script=setup), background=background)
    w.mount()
    return w


def test_split_statements_respects_strings_and_comments():
    script = "SELECT ';' AS x; -- trailing; comment\nSELECT 2;\n-- only a comment"
    assert list(split_statements(script)) == ["SELECT ';' AS x;", "-- trailing; comment\nSELECT 2;"]


def test_split_statements_keeps_unterminated_tail():
    assert list(split_statements("SELECT 1; SELECT 2")) == ["SELECT 1;", "SELECT 2"]


def test_execute_query_returns_first_result_set_with_rows():
    conn = sqlite3.connect(":memory:")
    result = execute_query(conn, "CREATE TABLE t(x); SELECT * FROM t; SELECT 1 AS a; SELECT 2 AS b;")
    assert result.columns == ["a"]
    assert result.rows == [(1,)]


def test_seeded_query():
    w = _widget()
    assert w.status == QueryWidget.READY
    result = w.run("SELECT name, price FROM menu WHERE price > 2 ORDER BY price DESC;")
    assert result.columns == ["name", "price"]
    assert result.rows == [("Sushi", 6.5)]
    assert w.message == ""


def test_default_query_text():
    assert _widget().text == "-- Write your SQL query here...\n"


def test_no_rows_gives_placeholder():
    w = _widget()
    assert w.run("UPDATE menu SET price = 0 WHERE id = 99;") is None
    assert w.message == "(no output)"


def test_sql_error_message():
    w = _widget()
    assert w.run("SELECT * FROM missing;") is None
    assert w.message.startswith("❌ Error: ")
    assert "no such table" in w.message


def test_failed_setup_still_becomes_ready(capsys):
    w = _widget(setup="CREATE TABLE broken (;")
    assert w.status == QueryWidget.READY
    assert "[query] dataset setup failed" in capsys.readouterr().out
    assert w.run("SELECT 1 AS one;").rows == [(1,)]


def test_background_initialisation():
    w = _widget(background=True)
    assert w.wait_ready(10)
    assert w.run("SELECT COUNT(*) AS n FROM menu;").rows == [(3,)]


def test_run_while_loading_is_rejected():
    w = QueryWidget("sql", RevealController(), QuerySpec())
    with pytest.raises(WidgetStateError):
        w.run("SELECT 1;")


def test_teardown_discards_late_initialisation():
    w = QueryWidget("sql", RevealController(), QuerySpec(setup_script=SETUP), background=False)
    w.mount()
    stale = w._generation
    w.teardown()
    w._initialize(stale)
    assert w.status == QueryWidget.LOADING
    assert w._conn is None


def test_new_setup_script_rebuilds_database():
    w = _widget()
    w.set_setup_script("CREATE TABLE other (v TEXT); INSERT INTO other VALUES ('x');")
    assert w.status == QueryWidget.READY
    assert w.run("SELECT v FROM other;").rows == [("x",)]
    assert w.run("SELECT * FROM menu;") is None
    assert "no such table" in w.message


def test_state_reports_rows_with_nulls():
    w = _widget()
    w.run("SELECT name, price FROM menu WHERE price IS NULL;")
    state = w.state()
    assert state["columns"] == ["name", "price"]
    assert state["rows"] == [["Wrap", None]]


def test_setup_script_with_nul_still_becomes_ready(capsys):
    w = _widget(setup="CREATE TABLE t(x);\x00", background=True)
    assert w.wait_ready(5)
    assert w.status == QueryWidget.READY
    assert "[query] dataset setup failed" in capsys.readouterr().out


def test_engine_start_failure_is_terminal(monkeypatch):
    def broken_connect(*args, **kwargs):
        raise sqlite3.OperationalError("unable to open database")

    monkeypatch.setattr(query_engine.sqlite3, "connect", broken_connect)
    w = _widget(background=True)
    assert w.wait_ready(5)
    assert w.status == QueryWidget.FAILED
    assert w.message == "❌ Error: unable to open database"
    with pytest.raises(WidgetStateError):
        w.run("SELECT 1;")


def test_query_with_nul_is_reported_inline():
    w = _widget()
    assert w.run("SELECT '\x00';") is None
    assert w.message.startswith("❌ Error: ")
    assert w.status == QueryWidget.READY


def test_teardown_interrupts_endless_query():
    w = _widget()
    outcome = {}

    def endless():
        try:
            w.run("WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) SELECT count(*) FROM c;")
        except Exception as e:
            outcome["error"] = e

    t = threading.Thread(target=endless, daemon=True)
    t.start()
    time.sleep(0.3)

    started = time.monotonic()
    w.teardown()
    assert time.monotonic() - started < 2

    t.join(5)
    assert not t.is_alive()
    assert "error" not in outcome
    assert w.message.startswith("❌ Error: ")
    assert w.status == QueryWidget.LOADING


def test_second_run_while_busy_is_rejected():
    w = _widget()
    t = threading.Thread(
        target=lambda: w.run("WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) SELECT count(*) FROM c;"),
        daemon=True,
    )
    t.start()
    time.sleep(0.3)
    with pytest.raises(WidgetStateError):
        w.run("SELECT 1;")
    w.teardown()
    t.join(5)
    assert not t.is_alive()
