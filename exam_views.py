"""
Exam views: one per rendered exam page.

A view owns the content model, the reveal controller and every widget
instance of that page. Rendering the exam page creates (mounts) a new view, so
navigating away and back always starts from fresh widget state. Views are kept
in a bounded in-memory store; evicted or closed views are torn down.
"""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from markupsafe import Markup

from content_model import Exam, Part, Question
from reveal import RevealController, guide_slot
from stimulus import ImageSliderWidget, is_slider, render_static_item
from widget_base import Widget
from widgets import build_widget


@dataclass
class PartSlot:
    part: Part
    widget_id: Optional[str] = None


@dataclass
class QuestionSlot:
    question: Question
    # each entry is ("widget", widget_id) for sliders or ("static", item)
    stimulus: List[tuple] = field(default_factory=list)
    parts: List[PartSlot] = field(default_factory=list)


class ExamView:
    def __init__(self, exam: Exam, services: Optional[Dict[str, Any]] = None, view_id: Optional[str] = None):
        self.view_id = view_id or uuid.uuid4().hex
        self.exam = exam
        self.reveal = RevealController()
        self.widgets: Dict[str, Widget] = {}
        self.questions: List[QuestionSlot] = []
        services = services or {}

        for qi, q in enumerate(exam.questions):
            if not q.parts:
                continue
            slot = QuestionSlot(question=q)
            for si, item in enumerate(q.stimulus):
                if is_slider(item):
                    wid = f"slider-{qi}-{si}"
                    self.widgets[wid] = ImageSliderWidget(wid, self.reveal, item.files)
                    slot.stimulus.append(("widget", wid))
                else:
                    slot.stimulus.append(("static", item))
            for pi, part in enumerate(q.parts):
                ps = PartSlot(part=part)
                if part.answer is not None:
                    wid = f"answer-{qi}-{pi}"
                    self.widgets[wid] = build_widget(
                        part.answer, wid, self.reveal, part.mark, part.marking_guide, services
                    )
                    ps.widget_id = wid
                slot.parts.append(ps)
            self.questions.append(slot)

    # ------------------------------------------------------------- lifecycle
    def mount(self) -> "ExamView":
        for w in self.widgets.values():
            w.mount()
        return self

    def teardown(self) -> None:
        for w in self.widgets.values():
            try:
                w.teardown()
            except Exception as e:
                print(f"[exam] teardown of {w.widget_id} failed: {e}", flush=True)

    # ------------------------------------------------------------- rendering
    def widget(self, widget_id: str) -> Widget:
        return self.widgets[widget_id]

    def render_slot(self, widget_id: str) -> Markup:
        """The widget's fragment, followed by its marking guide while reveal is on."""
        w = self.widgets[widget_id]
        html = w.render()
        if w.has_guide:
            guide = guide_slot(self.reveal, w.guide)
            if guide is not None:
                html = html + guide
        return html

    def render_static(self, item: Any) -> Markup:
        return render_static_item(item)

    def answer_slots(self) -> Dict[str, str]:
        return {wid: str(self.render_slot(wid)) for wid, w in self.widgets.items() if w.has_guide}

    def set_reveal(self, enabled: Optional[bool] = None) -> bool:
        if enabled is None:
            return self.reveal.toggle()
        return self.reveal.set(enabled)


class ExamViewStore:
    """Bounded, thread-safe registry of live exam views (oldest evicted first)."""

    def __init__(self, limit: int = 256):
        self.limit = max(1, int(limit))
        self._views: "OrderedDict[str, ExamView]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._views)

    def add(self, view: ExamView) -> ExamView:
        evicted: List[ExamView] = []
        with self._lock:
            self._views[view.view_id] = view
            while len(self._views) > self.limit:
                _, old = self._views.popitem(last=False)
                evicted.append(old)
        for old in evicted:
            print(f"[exam] evicting view {old.view_id} ({old.exam.id})", flush=True)
            old.teardown()
        return view

    def get(self, view_id: str) -> Optional[ExamView]:
        with self._lock:
            view = self._views.get(view_id)
            if view is not None:
                self._views.move_to_end(view_id)
            return view

    def discard(self, view_id: str) -> bool:
        with self._lock:
            view = self._views.pop(view_id, None)
        if view is None:
            return False
        view.teardown()
        return True
