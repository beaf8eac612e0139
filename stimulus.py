"""
Stimulus presenter: rich text, static images and the image carousel.

Only the carousel carries state (the current slide), so it is a widget of its
own; rich text and static images are rendered straight from the content model.
"""

from typing import Any, Dict, List, Sequence

from flask import render_template_string
from markupsafe import Markup

from content_model import Image, ImageSlider, RichText
from widget_base import Widget, WidgetActionError, payload_int

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400/e2e8f0/4a5568?text=Image+Not+Found"


class ImageSliderWidget(Widget):
    """Cyclic next/prev navigation plus direct jump over a list of image URLs."""

    kind = "image_slider"
    has_guide = False
    TEMPLATE = """
<div class="slider" id="{{ w.widget_id }}">
  <div class="slider-frame">
    {% for url in w.files %}
      <div class="slide{% if loop.index0 != w.index %} hidden{% endif %}">
        <img src="{{ url }}" alt="Slide {{ loop.index }}" onerror="this.onerror=null;this.src='{{ placeholder }}'"/>
      </div>
    {% endfor %}
    <button type="button" class="slider-arrow prev" data-action="advance" data-delta="-1">&#10094;</button>
    <button type="button" class="slider-arrow next" data-action="advance" data-delta="1">&#10095;</button>
  </div>
  <div class="slider-dots">
    {% for url in w.files %}
      <button type="button" class="dot{% if loop.index0 == w.index %} active{% endif %}"
              data-action="jump" data-index="{{ loop.index0 }}" aria-label="Go to slide {{ loop.index }}"></button>
    {% endfor %}
  </div>
</div>
"""

    def __init__(self, widget_id: str, reveal, files: Sequence[str]):
        super().__init__(widget_id, reveal)
        self.files: List[str] = list(files)
        self.index = 0

    @property
    def total(self) -> int:
        return len(self.files)

    def advance(self, delta: int) -> int:
        if self.total:
            self.index = (self.index + delta + self.total) % self.total
        return self.index

    def jump(self, target: int) -> int:
        if not 0 <= target < self.total:
            raise WidgetActionError(f"slide {target} out of range")
        self.index = target
        return self.index

    def on_advance(self, payload: Dict[str, Any]) -> None:
        self.advance(payload_int(payload, "delta"))

    def on_jump(self, payload: Dict[str, Any]) -> None:
        self.jump(payload_int(payload, "index"))

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "index": self.index, "total": self.total}

    def render(self) -> Markup:
        return Markup(render_template_string(self.TEMPLATE, w=self, placeholder=PLACEHOLDER_IMAGE_URL))


_STATIC_TEMPLATE = """
{% if item.kind == 'rich' %}
  <div class="prose">{{ item.html|rich }}</div>
{% else %}
  <div class="images">
  {% for url in item.files %}
    <img src="{{ url }}" alt="Slide {{ loop.index }}" onerror="this.onerror=null;this.src='{{ placeholder }}'"/>
  {% endfor %}
  </div>
{% endif %}
"""


def render_static_item(item: Any) -> Markup:
    if isinstance(item, RichText):
        ctx = {"kind": "rich", "html": item.html}
    elif isinstance(item, Image):
        ctx = {"kind": "image", "files": item.files}
    else:
        return Markup("")
    return Markup(render_template_string(_STATIC_TEMPLATE, item=ctx, placeholder=PLACEHOLDER_IMAGE_URL))


def is_slider(item: Any) -> bool:
    return isinstance(item, ImageSlider)
