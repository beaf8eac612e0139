"""Utilities for loading exam content (question JSON) by exam identifier."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from content_model import Exam

EXAM_DATA_DIR = Path(os.getenv("EXAM_DATA_DIR") or (Path(__file__).resolve().parent / "data"))
EXAM_DATA_BASE_URL = (os.getenv("EXAM_DATA_BASE_URL") or "").rstrip("/")
EXAM_FETCH_TIMEOUT = float(os.getenv("EXAM_FETCH_TIMEOUT") or 15)

# exam id -> content path (relative to the data dir / base URL)
EXAM_FILES: Dict[str, str] = {
    "cssa_familiarisation": "cssa_familiarisation.json",
    "nsb": "nsb.json",
    "cssa_trial": "cssa_trial.json",
    "girraween": "girraween.json",
    "hsc_familiarisation": "hsc_familiarisation.json",
    "hsc_sample_exam": "hsc_sample_exam.json",
    "sample_exam": "sample_exam.json",
}

EXAM_CATALOG: List[Dict[str, str]] = [
    {"id": "cssa_familiarisation", "title": "CSSA Familiarisation",
     "desc": "Practice familiarisation questions for the CSSA Software Engineering exam."},
    {"id": "nsb", "title": "NSB Exam", "desc": "NSB Software Engineering exam."},
    {"id": "cssa_trial", "title": "CSSA Trial Exam", "desc": "CSSA Trial Software Engineering exam."},
    {"id": "girraween", "title": "Girraween Exam", "desc": "Girraween High School Software Engineering exam."},
    {"id": "hsc_familiarisation", "title": "HSC Familiarisation Questions",
     "desc": "HSC Software Engineering familiarisation questions."},
    {"id": "hsc_sample_exam", "title": "HSC Sample Exam", "desc": "HSC Software Engineering sample exam questions."},
    {"id": "sample_exam", "title": "Sample Exam", "desc": "One question of every answer type."},
]


class UnknownExamError(LookupError):
    """The exam identifier has no content path; nothing was fetched."""


class ContentLoadError(RuntimeError):
    """Fetching or parsing the exam content failed."""


def exam_path(exam_id: str) -> Optional[str]:
    return EXAM_FILES.get(exam_id or "")


def _fetch_remote(url: str) -> Any:
    r = requests.get(url, headers={"Accept": "application/json"}, timeout=EXAM_FETCH_TIMEOUT)
    r.raise_for_status()
    return r.json()


def _read_local(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def fetch_exam_json(exam_id: str) -> Any:
    """Raw exam JSON for `exam_id`, from EXAM_DATA_BASE_URL if set else EXAM_DATA_DIR."""
    rel = exam_path(exam_id)
    if not rel:
        raise UnknownExamError(exam_id)
    try:
        if EXAM_DATA_BASE_URL:
            return _fetch_remote(f"{EXAM_DATA_BASE_URL}/{rel}")
        return _read_local(EXAM_DATA_DIR / rel)
    except Exception as exc:
        print(f"[content] failed to load exam '{exam_id}' ({rel}): {exc}", flush=True)
        raise ContentLoadError(str(exc)) from exc


def load_exam(exam_id: str) -> Exam:
    """Load and build the content model for one exam (fresh on every call)."""
    data = fetch_exam_json(exam_id)
    try:
        return Exam.from_json(exam_id, data)
    except Exception as exc:
        print(f"[content] malformed exam '{exam_id}': {exc}", flush=True)
        raise ContentLoadError(str(exc)) from exc


__all__ = [
    "EXAM_CATALOG", "EXAM_FILES", "UnknownExamError", "ContentLoadError",
    "exam_path", "fetch_exam_json", "load_exam",
]
