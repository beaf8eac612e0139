# exam.py
# -----------------------------------------------------------------------------
# Exam view blueprint.
# - Renders one exam (questions, stimulus, one answer widget per part)
# - Every render mounts a fresh ExamView; widget state lives only in that view
# - Widgets talk to the server through small JSON actions and get their
#   re-rendered fragment back; reveal mode re-renders every answer slot
# - Unknown exam ids / load failures render inline messages, never a 500
# -----------------------------------------------------------------------------

import os
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, jsonify, render_template_string, request, url_for

from exam_content_loader import ContentLoadError, UnknownExamError
from exam_views import ExamView, ExamViewStore
from rich_text import render_rich
from sandbox import SandboxRuntime
from widget_base import WidgetActionError, WidgetStateError

_PAGE = """
<!doctype html><html><head><meta charset="utf-8"/>
<title>{{ title }} · Software Engineering Assessments</title>
<meta name="viewport" content="width=device-width,initial-scale=1"/>
<style>
  :root{--ink:#111827;--muted:#6b7280;--line:#e5e7eb;--ok:#10b981;--fail:#ef4444}
  body{font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif;margin:0;line-height:1.55;color:var(--ink);background:#f9fafb}
  a{color:#4f46e5;text-decoration:none}
  .container{max-width:980px;margin:0 auto;padding:24px}
  header{text-align:center;margin-bottom:28px}
  header .links a{margin:0 8px}
  header .links a.answers{color:#e11d48}
  .card{border:1px solid var(--line);border-radius:10px;padding:18px;margin:16px 0;background:#fff}
  .part{margin-bottom:28px}
  .part-head{display:flex;justify-content:space-between;align-items:flex-start}
  .mark-badge{background:#e0e7ff;color:#3730a3;font-size:13px;padding:2px 12px;border-radius:999px}
  .stimulus{background:#f9fafb;border:1px solid var(--line);border-radius:8px;padding:14px;margin-bottom:14px}
  .stimulus img,.slider img{max-width:100%;height:auto;border-radius:8px}
  .hidden{display:none}
  .slider-frame{position:relative}
  .slider-arrow{position:absolute;top:50%;transform:translateY(-50%);background:rgba(255,255,255,.8);border:0;border-radius:4px;padding:4px 10px;cursor:pointer}
  .slider-arrow.prev{left:8px}.slider-arrow.next{right:8px}
  .slider-dots{display:flex;justify-content:center;gap:8px;margin-top:12px}
  .dot{width:12px;height:12px;border-radius:999px;border:0;background:#d1d5db;cursor:pointer}
  .dot.active{background:#1f2937}
  .option{display:flex;align-items:center;gap:10px;padding:10px;border:1px solid var(--line);border-radius:8px;margin:8px 0}
  .option.correct,.cell.correct{border-color:var(--ok);background:#ecfdf5}
  .option.incorrect,.cell.incorrect{border-color:var(--fail);background:#fef2f2}
  .matrix table,.guide-criteria,.result{border-collapse:collapse;width:100%}
  .matrix th,.matrix td,.guide-criteria th,.guide-criteria td,.result th,.result td{border:1px solid #d1d5db;padding:6px 8px}
  .matrix td.cell{text-align:center}
  .sortable-list{list-style:none;margin:0;padding:8px;border:1px solid #d1d5db;border-radius:8px;background:#f9fafb}
  .sortable-item{padding:10px;margin:6px 0;background:#fff;border:1px solid var(--line);border-radius:8px;cursor:move}
  textarea{width:100%;box-sizing:border-box;font-family:inherit}
  .code-editor{font-family:ui-monospace,Menlo,Consolas,monospace;background:#111827;color:#f9fafb;padding:12px;border-radius:8px}
  .btn{display:inline-block;padding:8px 16px;border-radius:8px;background:#4f46e5;color:#fff;border:0;cursor:pointer;margin:8px 0}
  .btn.green{background:#16a34a}
  .btn[disabled]{opacity:.6;cursor:default}
  .btn.ghost{background:#fff;color:#111827;border:1px solid #111827}
  pre.output,.query-output{background:#f3f4f6;border-radius:8px;padding:12px;white-space:pre-wrap;overflow-x:auto}
  .badge{display:inline-block;padding:2px 8px;border-radius:999px;font-size:12px;border:1px solid #d1d5db;background:#f9fafb;margin-left:auto}
  .badge.ok{border-color:var(--ok);background:#ecfdf5;color:#065f46}
  .badge.fail{border-color:var(--fail);background:#fef2f2;color:#991b1b}
  .marking-guide{background:#fffbeb;border-color:#fcd34d}
  .guide-title{font-weight:600;margin-bottom:8px}
  .muted{color:var(--muted);font-size:13px}
  .error{color:#b91c1c}
  .exam-list{display:grid;gap:16px;grid-template-columns:repeat(auto-fill,minmax(260px,1fr))}
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Software Engineering Assessments</h1>
    <div class="links">
      <a href="{{ home_url }}">← Back to exams</a>
      <a class="answers" href="{{ answers_url }}" target="_blank" rel="noreferrer">View Answers</a>
    </div>
  </header>

  <main>
  {% if error_msg %}
    <div class="card error">{{ error_msg }}</div>
  {% else %}
    <div class="exam-head">
      <h2>Exam: {{ view.exam.display_title }}</h2>
      <p class="muted">Please answer the following questions:</p>
      <button type="button" class="btn ghost" id="reveal-btn" data-reveal="{{ 'on' if view.reveal.enabled else 'off' }}">
        {{ 'Hide answers' if view.reveal.enabled else 'Show answers' }}
      </button>
    </div>

    {% for qs in view.questions %}
      <div class="card question">
      {% if qs.stimulus %}
        <div class="stimulus">
        {% for kind, item in qs.stimulus %}
          {% if kind == 'widget' %}
            <div class="slider-slot" data-widget-id="{{ item }}">{{ view.widgets[item].render() }}</div>
          {% else %}
            {{ view.render_static(item) }}
          {% endif %}
        {% endfor %}
        </div>
      {% endif %}
      {% for ps in qs.parts %}
        <div class="part">
          <div class="part-head">
            <h3>{{ ps.part.title }}</h3>
            {% if ps.part.mark is not none %}
              <span class="mark-badge">{{ ps.part.mark }} {{ 'mark' if ps.part.mark == 1 else 'marks' }}</span>
            {% endif %}
          </div>

          <div class="question-content prose">
            {% for block in ps.part.content %}<div>{{ block|rich }}</div>{% endfor %}
          </div>

          {% if ps.widget_id %}
            <div class="answer-slot" data-widget-id="{{ ps.widget_id }}">{{ view.render_slot(ps.widget_id) }}</div>
          {% endif %}
        </div>
      {% endfor %}
      </div>
    {% endfor %}
  {% endif %}
  </main>
</div>

{% if view %}
<script>
(function(){
  const VIEW_URL = "{{ view_url }}";
  const slots = () => document.querySelectorAll('[data-widget-id]');

  function slotOf(el){ return el.closest('[data-widget-id]'); }
  function widgetIdOf(slot){ return slot.getAttribute('data-widget-id'); }

  function apply(widgetId, html){
    document.querySelectorAll('[data-widget-id]').forEach(function(s){
      if (widgetIdOf(s) === widgetId) s.innerHTML = html;
    });
    schedulePolls();
  }

  async function post(url, body){
    const r = await fetch(url, {method:"POST", headers:{"Content-Type":"application/json"}, body: JSON.stringify(body||{})});
    return r.json();
  }

  async function act(widgetId, body){
    try{
      const j = await post(VIEW_URL + "/widget/" + encodeURIComponent(widgetId), body);
      if (j && j.html !== undefined) apply(widgetId, j.html);
      else if (j && j.error){ console.warn(j.error); refresh(widgetId); }
    }catch(e){ console.error(e); }
  }

  async function refresh(widgetId){
    const r = await fetch(VIEW_URL + "/widget/" + encodeURIComponent(widgetId));
    const j = await r.json();
    if (j && j.html !== undefined) apply(widgetId, j.html);
  }

  // Radio / checkbox / slider buttons / run buttons
  document.addEventListener('click', function(e){
    const el = e.target.closest('[data-action]');
    const slot = el && slotOf(el);
    if (!el || !slot) return;
    const wid = widgetIdOf(slot);
    const action = el.getAttribute('data-action');
    if (action === 'toggle') act(wid, {action:'toggle', index:+el.dataset.index});
    else if (action === 'select') act(wid, {action:'select', row:+el.dataset.row, cell:+el.dataset.cell});
    else if (action === 'advance') act(wid, {action:'advance', delta:+el.dataset.delta});
    else if (action === 'jump') act(wid, {action:'jump', index:+el.dataset.index});
    else if (action === 'run'){
      const editor = slot.querySelector('.code-editor');
      const stdin = slot.querySelector('[data-role="stdin"]');
      el.disabled = true;
      const body = {action:'run'};
      if (slot.querySelector('.query-runner')) body.query = editor ? editor.value : '';
      else { body.source = editor ? editor.value : ''; body.stdin = stdin ? stdin.value : ''; }
      act(wid, body);
    }
  });

  // Editors and text answers keep their text server-side
  const timers = {};
  document.addEventListener('input', function(e){
    const el = e.target;
    if (!el.matches || !el.matches('textarea[data-action="edit"]')) return;
    const wid = widgetIdOf(slotOf(el));
    clearTimeout(timers[wid]);
    timers[wid] = setTimeout(function(){
      post(VIEW_URL + "/widget/" + encodeURIComponent(wid), {action:'edit', text: el.value}).catch(function(){});
    }, 400);
  });

  // Sorting: remember source/target locally, send one atomic move on drop
  let dragSource = null, dragTarget = null;
  document.addEventListener('dragstart', function(e){
    const li = e.target.closest && e.target.closest('.sortable-item');
    if (li){ dragSource = +li.dataset.index; dragTarget = null; }
  });
  document.addEventListener('dragenter', function(e){
    const li = e.target.closest && e.target.closest('.sortable-item');
    if (li && dragSource !== null) dragTarget = +li.dataset.index;
  });
  document.addEventListener('dragover', function(e){
    if (e.target.closest && e.target.closest('.sortable-item')) e.preventDefault();
  });
  document.addEventListener('dragend', function(e){
    const li = e.target.closest && e.target.closest('.sortable-item');
    if (li && dragSource !== null && dragTarget !== null)
      act(widgetIdOf(slotOf(li)), {action:'move', source:dragSource, target:dragTarget});
    dragSource = null; dragTarget = null;
  });

  // Reveal toggle re-renders every answer slot
  const revealBtn = document.getElementById('reveal-btn');
  if (revealBtn) revealBtn.addEventListener('click', async function(){
    try{
      const j = await post(VIEW_URL + "/reveal", {});
      if (!j.ok) return;
      Object.keys(j.slots || {}).forEach(function(wid){ apply(wid, j.slots[wid]); });
      revealBtn.textContent = j.reveal ? 'Hide answers' : 'Show answers';
      revealBtn.setAttribute('data-reveal', j.reveal ? 'on' : 'off');
    }catch(e){ console.error(e); }
  });

  // Widgets still loading (sandbox / SQL engine) are polled until ready
  const polling = {};
  function schedulePolls(){
    slots().forEach(function(s){
      const st = s.querySelector('[data-status]');
      const wid = widgetIdOf(s);
      if (!st || polling[wid]) return;
      const status = st.getAttribute('data-status');
      if (status !== 'loading' && status !== 'uninitialized') return;
      polling[wid] = setTimeout(async function(){
        delete polling[wid];
        try{ await refresh(wid); }catch(e){ console.error(e); }
      }, 700);
    });
  }
  schedulePolls();

  window.addEventListener('pagehide', function(){
    if (navigator.sendBeacon) navigator.sendBeacon(VIEW_URL + "/close");
  });
})();
</script>
{% endif %}
</body></html>
"""


# -----------------------------------------------------------------------------
# Blueprint factory
# -----------------------------------------------------------------------------
def create_exam_blueprint(base_path: str, deps: Dict[str, Any], name: str = "exam") -> Blueprint:
    """
    Factory that returns the exam blueprint mounted at base_path.
    Required deps: load_exam
    Optional deps: sandbox (shared SandboxRuntime), view_store, code_timeout_ms,
                   query_background, home_url
    """
    bp = Blueprint(name, __name__, url_prefix=base_path or None)

    # ---- Deps ----------------------------------------------------------------
    load_exam: Callable = deps["load_exam"]
    view_store: ExamViewStore = deps.get("view_store")
    if view_store is None:
        view_store = ExamViewStore(int(os.getenv("EXAM_VIEW_LIMIT") or 256))
    sandbox = deps.get("sandbox")
    if sandbox is None:
        sandbox = SandboxRuntime()
    services = {
        "sandbox": sandbox,
        "code_timeout_ms": deps.get("code_timeout_ms"),
        "query_background": deps.get("query_background", True),
    }
    home_url: Callable[[], str] = deps.get("home_url") or (lambda: (base_path or "") + "/")

    bp.add_app_template_filter(render_rich, "rich")

    # ------------------------------- rendering --------------------------------
    def _answers_url(exam_id: str) -> str:
        return f"{base_path or ''}/answers/{exam_id}_answers.pdf"

    def _page(exam_id: str, view: Optional[ExamView] = None, error_msg: Optional[str] = None):
        return render_template_string(
            _PAGE,
            title=(view.exam.display_title if view else (exam_id or "Exam")),
            view=view,
            error_msg=error_msg,
            home_url=home_url(),
            answers_url=_answers_url(exam_id),
            view_url=(url_for(f"{bp.name}.view_base", view_id=view.view_id) if view else ""),
        )

    def render_exam(exam_id: str):
        """Load the exam, mount a fresh view, render the page (inline errors on failure)."""
        try:
            exam = load_exam(exam_id)
        except UnknownExamError:
            return _page(exam_id, error_msg=f"❌ Unknown exam: {exam_id}")
        except ContentLoadError:
            return _page(exam_id, error_msg="Failed to load questions.")

        view = view_store.add(ExamView(exam, services).mount())
        return _page(exam_id, view=view)

    @bp.record_once
    def _register_helpers(state):
        helpers = state.app.extensions.setdefault("exam_helpers", {})
        helpers["render_exam"] = render_exam
        helpers["view_store"] = view_store

    # --------------------------------- helpers --------------------------------
    def _view_or_404(view_id: str):
        view = view_store.get(view_id)
        if view is None:
            return None, (jsonify({"ok": False, "error": "view not found"}), 404)
        return view, None

    def _slot_response(view: ExamView, widget_id: str):
        w = view.widget(widget_id)
        return jsonify({
            "ok": True,
            "widget_id": widget_id,
            "html": str(view.render_slot(widget_id)),
            "state": w.state(),
        })

    # --------------------------------- routes ---------------------------------
    @bp.get("/exam/view/<view_id>", endpoint="view_base")
    def view_state(view_id: str):
        view, err = _view_or_404(view_id)
        if err:
            return err
        return jsonify({
            "ok": True,
            "exam_id": view.exam.id,
            "reveal": view.reveal.enabled,
            "widgets": {wid: w.state() for wid, w in view.widgets.items()},
        })

    @bp.post("/exam/view/<view_id>/reveal")
    def view_reveal(view_id: str):
        view, err = _view_or_404(view_id)
        if err:
            return err
        data = request.get_json(silent=True)
        enabled = data.get("enabled") if isinstance(data, dict) else None
        if enabled is not None and not isinstance(enabled, bool):
            return jsonify({"ok": False, "error": "'enabled' must be true or false"}), 400
        revealed = view.set_reveal(enabled)
        return jsonify({"ok": True, "reveal": revealed, "slots": view.answer_slots()})

    @bp.get("/exam/view/<view_id>/widget/<widget_id>")
    def widget_get(view_id: str, widget_id: str):
        view, err = _view_or_404(view_id)
        if err:
            return err
        if widget_id not in view.widgets:
            return jsonify({"ok": False, "error": "widget not found"}), 404
        return _slot_response(view, widget_id)

    @bp.post("/exam/view/<view_id>/widget/<widget_id>")
    def widget_action(view_id: str, widget_id: str):
        view, err = _view_or_404(view_id)
        if err:
            return err
        if widget_id not in view.widgets:
            return jsonify({"ok": False, "error": "widget not found"}), 404
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"ok": False, "error": "expected a JSON object"}), 400
        action = str(data.pop("action", "") or "")
        try:
            view.widget(widget_id).handle(action, data)
        except WidgetActionError as e:
            return jsonify({"ok": False, "error": str(e)}), 400
        except WidgetStateError as e:
            return jsonify({"ok": False, "error": str(e)}), 409
        return _slot_response(view, widget_id)

    @bp.post("/exam/view/<view_id>/close")
    def view_close(view_id: str):
        return jsonify({"ok": view_store.discard(view_id)})

    return bp
