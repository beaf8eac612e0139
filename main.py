# main.py - exam viewer app, BASE_PATH-aware.
# Wires the content loader, the shared code sandbox and the exam view store
# into the home and exam routes.

import os

from flask import Flask, jsonify

from exam import create_exam_blueprint
from exam_content_loader import EXAM_CATALOG, load_exam
from exam_views import ExamViewStore
from home import register_home_routes
from sandbox import SandboxRuntime

# =============================================================================
# BASE_PATH & Flask app
# =============================================================================
BASE_PATH = (os.getenv("BASE_PATH", "") or "").rstrip("/")
STATIC_URL_PATH = (BASE_PATH + "/static") if BASE_PATH else "/static"

app = Flask(
    __name__,
    static_folder="static",
    static_url_path=STATIC_URL_PATH,
)
app.url_map.strict_slashes = False

EXAM_VIEW_LIMIT = int(os.getenv("EXAM_VIEW_LIMIT") or 256)

# =============================================================================
# Shared services (one per process)
# =============================================================================
# Bootstrapped on first use by a code widget, then shared by all of them.
sandbox_runtime = SandboxRuntime(python_exe=os.getenv("SANDBOX_PYTHON") or None)
view_store = ExamViewStore(EXAM_VIEW_LIMIT)

def _bp(path: str = "") -> str:
    """Prefix a path with BASE_PATH (if set)."""
    p = path or "/"
    if not p.startswith("/"):
        p = "/" + p
    if BASE_PATH and (p == BASE_PATH or p.startswith(BASE_PATH + "/")):
        return p
    return (BASE_PATH + p) if BASE_PATH else p

# =============================================================================
# Routes (health)
# =============================================================================
@app.get("/healthz")
def healthz():
    return jsonify({
        "ok": True,
        "sandbox": sandbox_runtime.status,
        "views": len(view_store),
    })

@app.get("/favicon.ico")
def favicon():
    return ("", 204)

# =============================================================================
# Register home & exam routes
# =============================================================================
register_home_routes(app, BASE_PATH, {"exam_catalog": EXAM_CATALOG})

app.register_blueprint(create_exam_blueprint(BASE_PATH, {
    "load_exam": load_exam,
    "sandbox": sandbox_runtime,
    "view_store": view_store,
    "home_url": lambda: _bp("/"),
}))

# =============================================================================
# Local dev entry
# =============================================================================
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=True, threaded=True)
