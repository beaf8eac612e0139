# home.py
from typing import Any, Dict, List
from flask import current_app, render_template_string, request

_LIST_PAGE = """
<!doctype html><html><head><meta charset="utf-8"/>
<title>Software Engineering Assessments</title>
<meta name="viewport" content="width=device-width,initial-scale=1"/>
<style>
  body{font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif;margin:0;line-height:1.55;color:#111827;background:#f9fafb}
  .container{max-width:980px;margin:0 auto;padding:24px}
  header{text-align:center;margin-bottom:28px}
  .muted{color:#6b7280}
  .exam-list{display:grid;gap:16px;grid-template-columns:repeat(auto-fill,minmax(260px,1fr))}
  .exam-card{display:block;background:#fff;padding:20px;border-radius:10px;border:1px solid #e5e7eb;color:inherit;text-decoration:none}
  .exam-card:hover{box-shadow:0 4px 14px rgba(0,0,0,.08)}
  .exam-card h2{font-size:20px;margin:0 0 6px}
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Software Engineering Assessments</h1>
    <p class="muted">Choose a test to begin</p>
  </header>
  <main class="exam-list">
    {% for e in exams %}
      <a class="exam-card" href="?exam={{ e.id|urlencode }}">
        <h2>{{ e.title }}</h2>
        <p class="muted">{{ e.desc }}</p>
      </a>
    {% endfor %}
  </main>
</div>
</body></html>
"""


def register_home_routes(app, base_path: str, deps: Dict[str, Any]):
    """
    Registers:
      - GET "/"             -> exam list (endpoint 'index')
      - GET "/?exam=<id>"   -> that exam's view (rendered by the exam blueprint)
    Also creates a BASE_PATH alias without changing the endpoint name.
    """
    exam_catalog: List[Dict[str, str]] = deps["exam_catalog"]

    def _alias(rule: str, view_func, methods=None, endpoint_suffix="alias"):
        if not base_path:
            return
        alias_rule = f"{base_path}{rule if rule.startswith('/') else '/' + rule}"
        endpoint = f"{view_func.__name__}_{endpoint_suffix}_{abs(hash(alias_rule))}"
        app.add_url_rule(alias_rule, endpoint=endpoint, view_func=view_func, methods=methods or ["GET"])

    def index():
        exam_id = (request.args.get("exam") or "").strip()
        if not exam_id:
            return render_template_string(_LIST_PAGE, exams=exam_catalog)

        helpers = current_app.extensions.get("exam_helpers") or {}
        render_exam = helpers.get("render_exam")
        if render_exam is None:
            print("[index] exam blueprint not registered", flush=True)
            return ("Exam view unavailable.", 503)
        return render_exam(exam_id)

    app.add_url_rule("/", view_func=index, methods=["GET"], endpoint="index")
    _alias("/", index, ["GET"])
