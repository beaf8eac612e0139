"""
Typed view over a loaded exam JSON document.

Questions -> parts -> stimulus + answer parameters + optional marking guide.
Answer parameters become one variant of a closed set of AnswerSpec classes;
an unrecognised tag becomes UnsupportedSpec instead of an error.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Type


# -----------------------------------------------------------------------------
# Small helpers
# -----------------------------------------------------------------------------
def _items(collection: Any) -> List[Dict[str, Any]]:
    """Return the `items` list of a `{items: [...]}` collection (or [])."""
    if isinstance(collection, dict):
        items = collection.get("items")
        if isinstance(items, list):
            return [i for i in items if isinstance(i, dict)]
    return []


def _text(obj: Any) -> str:
    if isinstance(obj, dict):
        return str(obj.get("text") or "")
    if obj is None:
        return ""
    return str(obj)


def _points(value: Any) -> str:
    return "" if value is None else str(value)


def _mark(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None


# -----------------------------------------------------------------------------
# Stimulus
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class RichText:
    html: str


@dataclass(frozen=True)
class Image:
    files: Tuple[str, ...]


@dataclass(frozen=True)
class ImageSlider:
    files: Tuple[str, ...]


def _file_urls(files: Any) -> Tuple[str, ...]:
    urls = []
    for f in files or []:
        if isinstance(f, dict) and f.get("url"):
            urls.append(str(f["url"]))
        elif isinstance(f, str) and f:
            urls.append(f)
    return tuple(urls)


def parse_stimulus(collection: Any) -> List[Any]:
    """Stimulus items in source order; unknown item types are skipped."""
    out: List[Any] = []
    for item in _items(collection):
        kind = str(item.get("type") or "").upper()
        if kind == "RICH_TEXT":
            out.append(RichText(html=_text(item)))
        elif kind == "IMAGE" and item.get("files"):
            out.append(Image(files=_file_urls(item["files"])))
        elif kind == "IMAGE_SLIDER" and item.get("files"):
            out.append(ImageSlider(files=_file_urls(item["files"])))
    return out


# -----------------------------------------------------------------------------
# Answer specs (closed tagged union + runtime fallback)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Option:
    id: str
    text: str


@dataclass(frozen=True)
class Cell:
    id: str
    text: str


@dataclass(frozen=True)
class MatrixRow:
    cells: Tuple[Cell, ...]

    @property
    def label(self) -> Optional[Cell]:
        return self.cells[0] if self.cells else None

    @property
    def answer_cells(self) -> Tuple[Cell, ...]:
        return self.cells[1:]


def _cells(row: Any, row_index: int) -> Tuple[Cell, ...]:
    cells = row.get("cells") if isinstance(row, dict) else None
    out = []
    for ci, c in enumerate(cells or []):
        c = c if isinstance(c, dict) else {"text": c}
        out.append(Cell(id=str(c.get("id") or f"r{row_index}c{ci}"), text=_text(c)))
    return tuple(out)


def _rows(raw: Any) -> Tuple[MatrixRow, ...]:
    return tuple(MatrixRow(cells=_cells(r, i)) for i, r in enumerate(raw or []))


@dataclass(frozen=True)
class CorrectnessRule:
    """
    Two-stage correctness resolution for choice options: identifiers if the
    content provides them, otherwise positional indices.
    """
    identifiers: Optional[FrozenSet[str]] = None
    indices: FrozenSet[int] = frozenset()

    def resolve(self, options: Tuple[Option, ...]) -> FrozenSet[int]:
        if self.identifiers is not None:
            return frozenset(i for i, o in enumerate(options) if o.id in self.identifiers)
        return frozenset(i for i in self.indices if 0 <= i < len(options))

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "CorrectnessRule":
        ids = params.get("correctOptions")
        if isinstance(ids, list):
            return CorrectnessRule(identifiers=frozenset(
                str(x.get("id") if isinstance(x, dict) else x) for x in ids
            ))
        indices = set()
        for x in params.get("correctOptionsIndices") or []:
            try:
                indices.add(int(x))
            except (TypeError, ValueError):
                continue
        return CorrectnessRule(indices=frozenset(indices))


@dataclass(frozen=True)
class MultiChoiceSpec:
    TAG = "MULTI_CHOICE"
    options: Tuple[Option, ...]
    multiple: bool
    rule: CorrectnessRule

    def correct_indices(self) -> FrozenSet[int]:
        return self.rule.resolve(self.options)

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "MultiChoiceSpec":
        options = []
        for i, o in enumerate(params.get("options") or []):
            o = o if isinstance(o, dict) else {"text": o}
            options.append(Option(id=str(o.get("id") or f"opt{i}"), text=_text(o)))
        settings = params.get("settings") or {}
        return MultiChoiceSpec(
            options=tuple(options),
            multiple=bool(settings.get("multipleCorrectOptions")),
            rule=CorrectnessRule.from_params(params),
        )


@dataclass(frozen=True)
class ShortSpec:
    TAG = "SHORT"

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "ShortSpec":
        return ShortSpec()


@dataclass(frozen=True)
class ObjectiveResponseSpec:
    TAG = "OBJECTIVE_RESPONSE"
    header: Tuple[str, ...]
    rows: Tuple[MatrixRow, ...]
    correct_cell_ids: FrozenSet[str]

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "ObjectiveResponseSpec":
        return ObjectiveResponseSpec(
            header=tuple(_text(h) for h in params.get("header") or []),
            rows=_rows(params.get("rows")),
            correct_cell_ids=frozenset(str(x) for x in params.get("correctCellIds") or []),
        )


@dataclass(frozen=True)
class SortingTableSpec:
    TAG = "SORTING_TABLE"
    rows: Tuple[MatrixRow, ...]

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "SortingTableSpec":
        return SortingTableSpec(rows=_rows(params.get("rows")))


@dataclass(frozen=True)
class CodingSpec:
    TAG = "CODING"
    default_code: Optional[str] = None

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "CodingSpec":
        return CodingSpec(default_code=params.get("defaultCode"))


@dataclass(frozen=True)
class PseudocodeSpec:
    TAG = "PSEUDOCODE"
    default_code: Optional[str] = None

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "PseudocodeSpec":
        return PseudocodeSpec(default_code=params.get("defaultCode"))


@dataclass(frozen=True)
class QuerySpec:
    TAG = "SQL"
    default_code: Optional[str] = None
    setup_script: Optional[str] = None

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "QuerySpec":
        setup = params.get("datasetSetupScript")
        if setup is None:
            setup = params.get("datasetSetupQuery")
        return QuerySpec(default_code=params.get("defaultCode"), setup_script=setup or None)


@dataclass(frozen=True)
class DrawingSpec:
    TAG = "DRAWING_V2"

    @staticmethod
    def from_params(params: Dict[str, Any]) -> "DrawingSpec":
        return DrawingSpec()


@dataclass(frozen=True)
class UnsupportedSpec:
    tag: str


ANSWER_SPECS: Dict[str, Type] = {
    cls.TAG: cls for cls in (
        MultiChoiceSpec, ShortSpec, ObjectiveResponseSpec, SortingTableSpec,
        CodingSpec, PseudocodeSpec, QuerySpec, DrawingSpec,
    )
}


def parse_answer_spec(params: Any):
    """Map raw `answer.parameters` to its AnswerSpec variant (None if absent)."""
    if not isinstance(params, dict):
        return None
    tag = str(params.get("type") or "")
    cls = ANSWER_SPECS.get(tag)
    if cls is None:
        return UnsupportedSpec(tag=tag)
    return cls.from_params(params)


# -----------------------------------------------------------------------------
# Marking guide
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Criterion:
    criterion_html: str
    points_html: str


@dataclass(frozen=True)
class MarkingGuide:
    criteria: Tuple[Criterion, ...] = ()
    sample_answer_html: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.criteria and not self.sample_answer_html

    @staticmethod
    def from_dict(data: Any) -> "MarkingGuide":
        if not isinstance(data, dict):
            return MarkingGuide()
        criteria = tuple(
            Criterion(criterion_html=str(c.get("criterion") or ""), points_html=_points(c.get("point")))
            for c in data.get("criteria") or [] if isinstance(c, dict)
        )
        sample = _text(data.get("sampleAnswer")) or None
        return MarkingGuide(criteria=criteria, sample_answer_html=sample)


# -----------------------------------------------------------------------------
# Exam / Question / Part
# -----------------------------------------------------------------------------
@dataclass
class Part:
    title: str
    mark: Optional[int]
    content: List[str]
    answer: Any
    marking_guide: Optional[MarkingGuide] = None

    @staticmethod
    def from_dict(data: dict) -> "Part":
        guide = data.get("markingGuide")
        return Part(
            title=str(data.get("title") or "Untitled"),
            mark=_mark((data.get("metadata") or {}).get("mark")),
            content=[_text(i) for i in _items((data.get("content") or {}).get("contentItemCollection"))],
            answer=parse_answer_spec((data.get("answer") or {}).get("parameters")),
            marking_guide=MarkingGuide.from_dict(guide) if guide is not None else None,
        )


@dataclass
class Question:
    id: str
    parts: List[Part]
    stimulus: List[Any] = field(default_factory=list)

    @staticmethod
    def from_dict(data: dict, position: int = 0) -> "Question":
        return Question(
            id=str(data.get("id") or f"q{position + 1}"),
            parts=[Part.from_dict(p) for p in data.get("parts") or [] if isinstance(p, dict)],
            stimulus=parse_stimulus(data.get("stimulusContentItemCollection")),
        )


@dataclass
class Exam:
    id: str
    questions: List[Question]

    @property
    def display_title(self) -> str:
        return self.id.replace("_", " ").upper()

    @staticmethod
    def from_json(exam_id: str, data: Any) -> "Exam":
        """Build an Exam from the loaded JSON (a question list or {questions: [...]})."""
        if isinstance(data, dict):
            data = data.get("questions")
        if not isinstance(data, list):
            raise ValueError("exam content must be a list of questions")
        return Exam(
            id=exam_id,
            questions=[Question.from_dict(q, i) for i, q in enumerate(data) if isinstance(q, dict)],
        )
