# widgets.py
# -----------------------------------------------------------------------------
# Answer dispatcher: one widget per part, chosen by the answer spec variant.
# Unknown tags from the content get an inert placeholder instead of an error.
# Also holds the widgets with no evaluation logic (short answer, pseudocode,
# drawing canvas, unsupported placeholder).
# -----------------------------------------------------------------------------

from typing import Any, Callable, Dict, Optional

from content_model import (
    CodingSpec, DrawingSpec, MultiChoiceSpec, ObjectiveResponseSpec, PseudocodeSpec,
    QuerySpec, ShortSpec, SortingTableSpec, UnsupportedSpec,
)
from evaluators import MultiChoiceWidget, ObjectiveResponseWidget
from query_engine import QueryWidget
from reveal import RevealController
from sandbox import EXECUTION_TIMEOUT_MS, CodeRunnerWidget
from sorting import SortingTableWidget
from widget_base import EditableMixin, Widget

DEFAULT_PSEUDOCODE = "// Write your pseudocode here..."


class ShortAnswerWidget(EditableMixin, Widget):
    kind = "short"
    TEMPLATE = """
<textarea class="short-answer" data-action="edit" rows="{{ w.rows }}" placeholder="Your answer here...">{{ w.text }}</textarea>
"""

    @property
    def rows(self) -> int:
        # one and a half rows per mark, never fewer than three
        return max(3, int(round(1 + 1.5 * (self.mark or 0))))

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "length": len(self.text)}


class PseudocodeWidget(EditableMixin, Widget):
    kind = "pseudocode"
    TEMPLATE = """
<textarea class="code-editor" data-action="edit" data-language="plaintext" data-theme="vs-dark"
          rows="12" spellcheck="false">{{ w.text }}</textarea>
"""

    def __init__(self, widget_id: str, reveal, spec: PseudocodeSpec, mark=None, guide=None):
        super().__init__(widget_id, reveal, mark, guide)
        self.text = spec.default_code or DEFAULT_PSEUDOCODE


class DrawingWidget(Widget):
    """Mount point for the external drawing canvas; nothing is captured."""
    kind = "drawing"
    TEMPLATE = """
<div class="drawing-canvas" data-component="excalidraw" style="height:600px;width:100%"></div>
"""


class UnsupportedWidget(Widget):
    kind = "unsupported"
    TEMPLATE = """<em class="muted unsupported">(Unsupported answer type: {{ w.tag }})</em>"""

    def __init__(self, widget_id: str, reveal, tag: str, mark=None, guide=None):
        super().__init__(widget_id, reveal, mark, guide)
        self.tag = tag

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "tag": self.tag}


WidgetFactory = Callable[[str, RevealController, Any, Optional[int], Any, Dict[str, Any]], Widget]

WIDGET_TYPES: Dict[type, WidgetFactory] = {
    MultiChoiceSpec: lambda wid, rv, spec, mark, guide, services: MultiChoiceWidget(wid, rv, spec, mark, guide),
    ShortSpec: lambda wid, rv, spec, mark, guide, services: ShortAnswerWidget(wid, rv, mark, guide),
    ObjectiveResponseSpec: lambda wid, rv, spec, mark, guide, services: ObjectiveResponseWidget(wid, rv, spec, mark, guide),
    SortingTableSpec: lambda wid, rv, spec, mark, guide, services: SortingTableWidget(wid, rv, spec, mark, guide),
    CodingSpec: lambda wid, rv, spec, mark, guide, services: CodeRunnerWidget(
        wid, rv, spec, services["sandbox"], mark, guide,
        timeout_ms=services.get("code_timeout_ms") or EXECUTION_TIMEOUT_MS,
    ),
    PseudocodeSpec: lambda wid, rv, spec, mark, guide, services: PseudocodeWidget(wid, rv, spec, mark, guide),
    QuerySpec: lambda wid, rv, spec, mark, guide, services: QueryWidget(
        wid, rv, spec, mark, guide, background=services.get("query_background", True),
    ),
    DrawingSpec: lambda wid, rv, spec, mark, guide, services: DrawingWidget(wid, rv, mark, guide),
}


def build_widget(spec: Any, widget_id: str, reveal: RevealController,
                 mark: Optional[int] = None, guide=None,
                 services: Optional[Dict[str, Any]] = None) -> Widget:
    """Exactly one widget for `spec`; anything unrecognised becomes UnsupportedWidget."""
    factory = WIDGET_TYPES.get(type(spec))
    if factory is None:
        tag = spec.tag if isinstance(spec, UnsupportedSpec) else type(spec).__name__
        return UnsupportedWidget(widget_id, reveal, tag, mark, guide)
    return factory(widget_id, reveal, spec, mark, guide, services or {})
