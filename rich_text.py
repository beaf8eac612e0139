# rich_text.py
# Rich-text fields (question text, options, criteria, sample answers) come from
# the trusted authoring pipeline and are injected verbatim. SANITIZE_HTML=1
# opts into bleach cleaning.

import os
from functools import lru_cache
from typing import Any, Optional

from markupsafe import Markup

SANITIZE_HTML = os.getenv("SANITIZE_HTML", "0").lower() in {"1", "true", "yes"}

BLEACH_ALLOWED_TAGS = [
    "a","abbr","acronym","b","blockquote","code","em","i","li","ol","strong","ul",
    "p","h1","h2","h3","h4","h5","h6","pre","hr","br","span","div","img","table",
    "thead","tbody","tr","th","td","caption","figure","figcaption","sub","sup"
]
BLEACH_ALLOWED_ATTRS = {
    "*": ["class","id","style","title"],
    "a": ["href","name","target","rel"],
    "img": ["src","alt","width","height","loading"],
}
BLEACH_ALLOWED_PROTOCOLS = ["http","https","mailto","data"]


@lru_cache(maxsize=512)
def _sanitize(html: str) -> str:
    import bleach
    return bleach.clean(
        html,
        tags=BLEACH_ALLOWED_TAGS,
        attributes=BLEACH_ALLOWED_ATTRS,
        protocols=BLEACH_ALLOWED_PROTOCOLS,
        strip=False
    )


def render_rich(text: Optional[Any]) -> Markup:
    if text is None:
        return Markup("")
    text_str = text if isinstance(text, str) else str(text)
    if SANITIZE_HTML:
        text_str = _sanitize(text_str)
    return Markup(text_str)
