"""
Selection evaluators: multi-choice options and the objective-response matrix.

Both keep the student's selection locally and only annotate correctness while
reveal mode is on. Correctness is a pure function of the answer spec.
"""

from typing import Any, Dict, List, Optional, Set

from content_model import MultiChoiceSpec, ObjectiveResponseSpec
from widget_base import Widget, WidgetActionError, payload_int

CORRECT = "correct"
INCORRECT = "incorrect"


class MultiChoiceWidget(Widget):
    kind = "multi_choice"
    TEMPLATE = """
<div class="multi-choice" data-multiple="{{ 'true' if w.spec.multiple else 'false' }}">
  {% set marks = w.annotations() %}
  {% for opt in w.spec.options %}
    <label class="option{% if marks[loop.index0] %} {{ marks[loop.index0] }}{% endif %}">
      <input type="{{ 'checkbox' if w.spec.multiple else 'radio' }}" name="{{ w.widget_id }}"
             data-action="toggle" data-index="{{ loop.index0 }}"{% if loop.index0 in w.selected %} checked{% endif %}/>
      <span class="label">{{ opt.text|rich }}</span>
      {% if marks[loop.index0] == 'correct' %}<span class="badge ok">Correct</span>{% endif %}
      {% if marks[loop.index0] == 'incorrect' %}<span class="badge fail">Incorrect</span>{% endif %}
    </label>
  {% endfor %}
</div>
"""

    def __init__(self, widget_id: str, reveal, spec: MultiChoiceSpec, mark=None, guide=None):
        super().__init__(widget_id, reveal, mark, guide)
        self.spec = spec
        self.selected: Set[int] = set()
        self.correct = spec.correct_indices()

    def toggle(self, index: int) -> Set[int]:
        if not 0 <= index < len(self.spec.options):
            raise WidgetActionError(f"option {index} out of range")
        if not self.spec.multiple:
            self.selected = {index}
        elif index in self.selected:
            self.selected.discard(index)
        else:
            self.selected.add(index)
        return self.selected

    def annotations(self) -> List[Optional[str]]:
        """Per option: 'correct', 'incorrect' or None. All None outside reveal mode."""
        out: List[Optional[str]] = []
        for i in range(len(self.spec.options)):
            if not self.reveal.enabled:
                out.append(None)
            elif i in self.correct:
                out.append(CORRECT)
            elif i in self.selected:
                out.append(INCORRECT)
            else:
                out.append(None)
        return out

    def on_toggle(self, payload: Dict[str, Any]) -> None:
        self.toggle(payload_int(payload, "index"))

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "selected": sorted(self.selected), "annotations": self.annotations()}


class ObjectiveResponseWidget(Widget):
    kind = "objective_response"
    TEMPLATE = """
<div class="matrix">
  <table>
    <thead><tr>{% for h in w.spec.header %}<th>{{ h|rich }}</th>{% endfor %}</tr></thead>
    <tbody>
    {% for row in w.spec.rows %}
      {% set r = loop.index0 %}
      <tr>
      {% for cell in row.cells %}
        {% if loop.first %}
          <td class="row-label">{{ cell.text|rich }}</td>
        {% else %}
          {% set mark = w.annotation(r, loop.index0) %}
          <td class="cell{% if mark %} {{ mark }}{% endif %}">
            <input type="radio" name="{{ w.widget_id }}-row-{{ r }}" data-action="select"
                   data-row="{{ r }}" data-cell="{{ loop.index0 }}"{% if w.selected.get(r) == loop.index0 %} checked{% endif %}/>
          </td>
        {% endif %}
      {% endfor %}
      </tr>
    {% endfor %}
    </tbody>
  </table>
</div>
"""

    def __init__(self, widget_id: str, reveal, spec: ObjectiveResponseSpec, mark=None, guide=None):
        super().__init__(widget_id, reveal, mark, guide)
        self.spec = spec
        self.selected: Dict[int, int] = {}

    def select(self, row: int, cell: int) -> Dict[int, int]:
        if not 0 <= row < len(self.spec.rows):
            raise WidgetActionError(f"row {row} out of range")
        if not 1 <= cell < len(self.spec.rows[row].cells):
            raise WidgetActionError(f"cell {cell} is not selectable")
        self.selected[row] = cell
        return self.selected

    def is_correct(self, row: int, cell: int) -> bool:
        return self.spec.rows[row].cells[cell].id in self.spec.correct_cell_ids

    def annotation(self, row: int, cell: int) -> Optional[str]:
        if not self.reveal.enabled or cell == 0:
            return None
        if self.is_correct(row, cell):
            return CORRECT
        if self.selected.get(row) == cell:
            return INCORRECT
        return None

    def on_select(self, payload: Dict[str, Any]) -> None:
        self.select(payload_int(payload, "row"), payload_int(payload, "cell"))

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "selected": {str(k): v for k, v in self.selected.items()}}
