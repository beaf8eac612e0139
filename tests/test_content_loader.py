import json
import sys
from pathlib import Path

import pytest
import requests


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import exam_content_loader
from exam_content_loader import ContentLoadError, UnknownExamError, load_exam


QUESTIONS = [{"id": "q1", "parts": [{"title": "Part", "answer": {"parameters": {"type": "SHORT"}}}]}]


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(exam_content_loader, "EXAM_DATA_DIR", tmp_path)
    monkeypatch.setattr(exam_content_loader, "EXAM_DATA_BASE_URL", "")
    return tmp_path


def test_catalog_ids_all_have_content_paths():
    for entry in exam_content_loader.EXAM_CATALOG:
        assert exam_content_loader.exam_path(entry["id"]) == f"{entry['id']}.json"


def test_loads_local_file(data_dir):
    (data_dir / "nsb.json").write_text(json.dumps(QUESTIONS), encoding="utf-8")
    exam = load_exam("nsb")
    assert exam.id == "nsb"
    assert exam.display_title == "NSB"
    assert exam.questions[0].parts[0].title == "Part"


def test_unknown_exam_is_not_fetched(data_dir, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("no fetch expected")

    monkeypatch.setattr(exam_content_loader, "EXAM_DATA_BASE_URL", "https://content.example")
    monkeypatch.setattr(exam_content_loader.requests, "get", boom)
    with pytest.raises(UnknownExamError):
        load_exam("not_an_exam")


def test_missing_local_file_is_a_load_error(data_dir, capsys):
    with pytest.raises(ContentLoadError):
        load_exam("girraween")
    assert "[content] failed to load exam 'girraween'" in capsys.readouterr().out


def test_malformed_content_is_a_load_error(data_dir):
    (data_dir / "cssa_trial.json").write_text(json.dumps("nope"), encoding="utf-8")
    with pytest.raises(ContentLoadError):
        load_exam("cssa_trial")


def test_remote_fetch(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append(url)
        return FakeResponse({"questions": QUESTIONS})

    monkeypatch.setattr(exam_content_loader, "EXAM_DATA_BASE_URL", "https://content.example/exams")
    monkeypatch.setattr(exam_content_loader.requests, "get", fake_get)
    exam = load_exam("hsc_sample_exam")
    assert calls == ["https://content.example/exams/hsc_sample_exam.json"]
    assert len(exam.questions) == 1


def test_remote_http_error(monkeypatch):
    monkeypatch.setattr(exam_content_loader, "EXAM_DATA_BASE_URL", "https://content.example")
    monkeypatch.setattr(exam_content_loader.requests, "get", lambda *a, **k: FakeResponse(None, status=503))
    with pytest.raises(ContentLoadError):
        load_exam("nsb")


def test_bundled_sample_exam_loads():
    exam = load_exam("sample_exam")
    assert len(exam.questions) == 6
