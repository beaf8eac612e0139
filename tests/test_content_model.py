import json
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from content_model import (
    CodingSpec,
    CorrectnessRule,
    DrawingSpec,
    Exam,
    Image,
    ImageSlider,
    MarkingGuide,
    MultiChoiceSpec,
    ObjectiveResponseSpec,
    PseudocodeSpec,
    QuerySpec,
    RichText,
    ShortSpec,
    SortingTableSpec,
    UnsupportedSpec,
    parse_answer_spec,
)


def _options(*ids):
    return [{"id": i, "text": i.upper()} for i in ids]


def test_correct_options_by_identifier_take_precedence_over_indices():
    spec = parse_answer_spec({
        "type": "MULTI_CHOICE",
        "options": _options("a", "b", "c"),
        "correctOptions": ["b"],
        "correctOptionsIndices": [0, 2],
    })
    assert isinstance(spec, MultiChoiceSpec)
    assert spec.correct_indices() == {1}


def test_correct_options_fall_back_to_indices():
    spec = parse_answer_spec({
        "type": "MULTI_CHOICE",
        "options": _options("a", "b", "c"),
        "correctOptionsIndices": [0, 2, 7],
    })
    assert spec.correct_indices() == {0, 2}


def test_correct_options_accepts_objects_with_ids():
    rule = CorrectnessRule.from_params({"correctOptions": [{"id": "c"}]})
    assert rule.identifiers == {"c"}


def test_multiple_setting_defaults_to_single_choice():
    spec = parse_answer_spec({"type": "MULTI_CHOICE", "options": _options("a")})
    assert spec.multiple is False
    assert spec.correct_indices() == frozenset()


@pytest.mark.parametrize("tag, cls", [
    ("SHORT", ShortSpec),
    ("OBJECTIVE_RESPONSE", ObjectiveResponseSpec),
    ("SORTING_TABLE", SortingTableSpec),
    ("CODING", CodingSpec),
    ("PSEUDOCODE", PseudocodeSpec),
    ("SQL", QuerySpec),
    ("DRAWING_V2", DrawingSpec),
])
def test_known_tags_map_to_their_variant(tag, cls):
    assert isinstance(parse_answer_spec({"type": tag}), cls)


def test_unknown_tag_becomes_unsupported():
    spec = parse_answer_spec({"type": "HOTSPOT"})
    assert spec == UnsupportedSpec(tag="HOTSPOT")


def test_missing_parameters_mean_no_answer():
    assert parse_answer_spec(None) is None


def test_query_spec_reads_either_setup_field():
    assert QuerySpec.from_params({"datasetSetupScript": "CREATE TABLE t(x);"}).setup_script == "CREATE TABLE t(x);"
    assert QuerySpec.from_params({"datasetSetupQuery": "CREATE TABLE u(y);"}).setup_script == "CREATE TABLE u(y);"
    assert QuerySpec.from_params({"datasetSetupQuery": ""}).setup_script is None


def test_objective_response_rows_split_label_and_answer_cells():
    spec = ObjectiveResponseSpec.from_params({
        "header": [{"text": ""}, {"text": "Yes"}, {"text": "No"}],
        "rows": [{"cells": [{"id": "l", "text": "Row"}, {"id": "y"}, {"id": "n"}]}],
        "correctCellIds": ["n"],
    })
    row = spec.rows[0]
    assert row.label.text == "Row"
    assert [c.id for c in row.answer_cells] == ["y", "n"]
    assert spec.correct_cell_ids == {"n"}


def test_marking_guide_parsing():
    guide = MarkingGuide.from_dict({
        "criteria": [{"criterion": "<b>Names</b> a benefit", "point": "1"}],
        "sampleAnswer": {"text": "<p>Faster</p>"},
    })
    assert guide.criteria[0].criterion_html == "<b>Names</b> a benefit"
    assert guide.criteria[0].points_html == "1"
    assert guide.sample_answer_html == "<p>Faster</p>"
    assert not guide.is_empty
    assert MarkingGuide.from_dict({}).is_empty


def test_exam_from_json_builds_questions_parts_and_stimulus():
    data = [{
        "stimulusContentItemCollection": {"items": [
            {"type": "RICH_TEXT", "text": "<p>Context</p>"},
            {"type": "IMAGE", "files": [{"url": "a.png"}]},
            {"type": "IMAGE_SLIDER", "files": [{"url": "b.png"}, {"url": "c.png"}]},
            {"type": "VIDEO", "files": [{"url": "d.mp4"}]},
        ]},
        "parts": [{
            "metadata": {"mark": 2},
            "content": {"contentItemCollection": {"items": [{"text": "<p>Q</p>"}]}},
            "answer": {"parameters": {"type": "SHORT"}},
        }],
    }]
    exam = Exam.from_json("hsc_sample_exam", data)
    assert exam.display_title == "HSC SAMPLE EXAM"
    q = exam.questions[0]
    assert q.id == "q1"
    assert q.stimulus == [RichText("<p>Context</p>"), Image(("a.png",)), ImageSlider(("b.png", "c.png"))]
    part = q.parts[0]
    assert part.title == "Untitled"
    assert part.mark == 2
    assert part.content == ["<p>Q</p>"]
    assert isinstance(part.answer, ShortSpec)
    assert part.marking_guide is None


def test_exam_from_json_accepts_wrapped_questions_and_rejects_other_shapes():
    assert Exam.from_json("x", {"questions": []}).questions == []
    with pytest.raises(ValueError):
        Exam.from_json("x", "not an exam")


def test_sample_exam_covers_every_answer_type():
    with (PROJECT_ROOT / "data" / "sample_exam.json").open(encoding="utf-8") as fh:
        exam = Exam.from_json("sample_exam", json.load(fh))
    kinds = {type(p.answer) for q in exam.questions for p in q.parts}
    assert kinds == {
        MultiChoiceSpec, ShortSpec, ObjectiveResponseSpec, SortingTableSpec,
        CodingSpec, PseudocodeSpec, QuerySpec, DrawingSpec,
    }


def test_marking_guide_keeps_zero_points():
    guide = MarkingGuide.from_dict({"criteria": [
        {"criterion": "Omits the benefit", "point": 0},
        {"criterion": "Names it", "point": 1},
        {"criterion": "Unscored"},
    ]})
    assert [c.points_html for c in guide.criteria] == ["0", "1", ""]
