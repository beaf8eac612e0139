# widget_base.py
# -----------------------------------------------------------------------------
# Common shape of every interactive piece on the exam page (answer widgets and
# image sliders). A widget owns its interaction state for the lifetime of one
# exam view, handles named actions posted by the browser, and renders itself
# to an HTML fragment.
# -----------------------------------------------------------------------------

from typing import Any, Dict, Optional

from flask import render_template_string
from markupsafe import Markup

from reveal import RevealController


class WidgetActionError(ValueError):
    """Bad action name or payload (HTTP 400)."""


class WidgetStateError(RuntimeError):
    """Action not allowed in the widget's current state (HTTP 409)."""


class Widget:
    kind = "widget"
    TEMPLATE = ""
    has_guide = True

    def __init__(self, widget_id: str, reveal: RevealController, mark: Optional[int] = None, guide=None):
        self.widget_id = widget_id
        self.reveal = reveal
        self.mark = mark
        self.guide = guide

    # lifecycle hooks (called by the exam view)
    def mount(self) -> None:
        pass

    def teardown(self) -> None:
        pass

    def handle(self, action: str, payload: Dict[str, Any]) -> None:
        handler = getattr(self, f"on_{action}", None) if action else None
        if not callable(handler):
            raise WidgetActionError(f"unsupported action '{action}' for {self.kind}")
        handler(payload or {})

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind}

    def render(self) -> Markup:
        return Markup(render_template_string(self.TEMPLATE, w=self, reveal=self.reveal.enabled))


class EditableMixin:
    """Text held for an editor/textarea, updated by `edit` actions."""
    text: str = ""

    def on_edit(self, payload: Dict[str, Any]) -> None:
        self.text = str(payload.get("text") or "")


def payload_int(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool):
        raise WidgetActionError(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise WidgetActionError(f"'{key}' must be an integer")
