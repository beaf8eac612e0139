# reveal.py
# -----------------------------------------------------------------------------
# Reveal mode: one flag per exam view, shared by reference with every widget,
# plus the marking-guide panel shown under each answer while it is on.
# -----------------------------------------------------------------------------

from typing import Optional

from flask import render_template_string
from markupsafe import Markup

NO_GUIDANCE_TEXT = "No marking guidance available."


class RevealController:
    """Exam-view scoped reveal flag. Toggling never touches widget state."""

    def __init__(self, enabled: bool = False):
        self._enabled = bool(enabled)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set(self, enabled: bool) -> bool:
        self._enabled = bool(enabled)
        return self._enabled

    def toggle(self) -> bool:
        return self.set(not self._enabled)


_GUIDE_TEMPLATE = """
<div class="marking-guide card">
  <div class="guide-title">Marking guide</div>
  {% if guide and guide.criteria %}
    <table class="guide-criteria">
      <thead><tr><th>Criteria</th><th>Marks</th></tr></thead>
      <tbody>
      {% for c in guide.criteria %}
        <tr><td>{{ c.criterion_html|rich }}</td><td class="points">{{ c.points_html|rich }}</td></tr>
      {% endfor %}
      </tbody>
    </table>
  {% endif %}
  {% if guide and guide.sample_answer_html %}
    <div class="sample-answer">
      <div class="muted">Sample answer</div>
      <div class="prose">{{ guide.sample_answer_html|rich }}</div>
    </div>
  {% endif %}
  {% if not guide or guide.is_empty %}
    <div class="muted guide-empty">{{ empty_text }}</div>
  {% endif %}
</div>
"""


def render_marking_guide(guide) -> Markup:
    """Criteria table and/or sample answer; a missing or empty guide still renders a placeholder."""
    return Markup(render_template_string(_GUIDE_TEMPLATE, guide=guide, empty_text=NO_GUIDANCE_TEXT))


def guide_slot(reveal: RevealController, guide) -> Optional[Markup]:
    if not reveal.enabled:
        return None
    return render_marking_guide(guide)
