"""
Q&A corpus: the read-mostly knowledge base matched against user queries.

Entries are immutable; attaching embeddings replaces an entry with a copy.
Imports validate each row with ``QAImportRecord`` and skip malformed rows with a
warning instead of failing the whole import.
"""

import csv
import io
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .errors import CorpusEntryMalformed
from .locks import ReadWriteLock
from .schemas import QAImportRecord
from util.logging import logger

QUESTION_HEADERS = ("question", "q", "query", "prompt", "input", "user_question", "user")
ANSWER_HEADERS = ("answer", "a", "response", "reply", "output", "assistant_answer", "assistant")
CATEGORY_HEADERS = ("category", "cat", "type", "topic", "subject")
EMOTION_HEADERS = ("emotion", "emotional_state", "mood", "feeling", "sentiment")
ID_HEADERS = ("id", "qa_id", "entry_id")


@dataclass(frozen=True)
class QAEntry:
    id: str
    question: str
    answer: str
    emotion: Optional[str] = None
    category: Optional[str] = None
    embedding: Optional[List[float]] = None

    def validate(self) -> "QAEntry":
        """Return self, or raise ``CorpusEntryMalformed`` if question or answer is blank."""
        if not isinstance(self.question, str) or not self.question.strip():
            raise CorpusEntryMalformed(self.id, "missing question")
        if not isinstance(self.answer, str) or not self.answer.strip():
            raise CorpusEntryMalformed(self.id, "missing answer")
        return self


@dataclass
class ImportReport:
    source: str
    imported: int = 0
    skipped: int = 0
    warnings: List[str] = field(default_factory=list)


def _column(headers: Sequence[str], variants: Sequence[str]) -> int:
    for i, header in enumerate(headers):
        if header in variants:
            return i
    return -1


def detect_columns(header_row: Sequence[str]) -> Dict[str, int]:
    """Map a CSV header row to column indexes.

    Returns a dict with ``question``, ``answer``, ``category``, ``emotion`` and
    ``id`` indexes (-1 when absent) and ``has_header``. Without a recognizable
    header, the first two columns are question and answer. A header naming only
    one of them keeps that index and leaves the other at -1.
    """
    headers = [h.strip().lower() for h in header_row]
    columns = {
        "question": _column(headers, QUESTION_HEADERS),
        "answer": _column(headers, ANSWER_HEADERS),
        "category": _column(headers, CATEGORY_HEADERS),
        "emotion": _column(headers, EMOTION_HEADERS),
        "id": _column(headers, ID_HEADERS),
    }
    columns["has_header"] = columns["question"] != -1 or columns["answer"] != -1

    if not columns["has_header"]:
        columns["question"], columns["answer"] = 0, 1
    return columns


class QACorpus:
    """Thread-safe, insertion-ordered collection of ``QAEntry``."""

    def __init__(self, entries: Optional[Iterable[QAEntry]] = None):
        self._entries: Dict[str, QAEntry] = {}
        self._lock = ReadWriteLock()
        self._next_id = 1
        for entry in entries or []:
            self.add(entry)

    def _new_id(self) -> str:
        while f"qa_{self._next_id}" in self._entries:
            self._next_id += 1
        entry_id = f"qa_{self._next_id}"
        self._next_id += 1
        return entry_id

    def add(self, entry: QAEntry) -> QAEntry:
        """Insert or replace an entry.

        Raises:
            CorpusEntryMalformed: if the entry has no question or answer.
        """
        entry.validate()
        with self._lock.write():
            self._entries[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Optional[QAEntry]:
        with self._lock.read():
            return self._entries.get(entry_id)

    def remove(self, entry_id: str) -> bool:
        with self._lock.write():
            return self._entries.pop(entry_id, None) is not None

    def entries(self) -> List[QAEntry]:
        """Snapshot of all entries in insertion order."""
        with self._lock.read():
            return list(self._entries.values())

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()
            self._next_id = 1
        logger.log_operation("corpus.clear", "success")

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def import_records(self, records: Iterable[Dict[str, Any]], source: str = "records") -> ImportReport:
        """Validate and add dict rows; malformed rows are skipped and reported."""
        report = ImportReport(source=source)
        accepted = []

        for row_number, row in enumerate(records, start=1):
            try:
                record = QAImportRecord.model_validate(row)
            except ValidationError as e:
                reason = "; ".join(err["msg"] for err in e.errors())
                report.skipped += 1
                report.warnings.append(f"row {row_number}: {reason}")
                logger.log_corpus_warning(f"{source}:{row_number}", reason)
                continue
            accepted.append(record)

        with self._lock.write():
            for record in accepted:
                entry_id = record.id or self._new_id()
                self._entries[entry_id] = QAEntry(
                    id=entry_id,
                    question=record.question,
                    answer=record.answer,
                    emotion=record.emotion,
                    category=record.category,
                )
                report.imported += 1

        logger.log_corpus_import(source, report.imported, report.skipped, report.warnings)
        return report

    def import_csv_text(self, text: str, source: str = "csv") -> ImportReport:
        """Import CSV content, detecting header variants."""
        rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
        if not rows:
            return self.import_records([], source)

        columns = detect_columns(rows[0])
        if not columns["has_header"]:
            logger.warning(f"No question/answer header detected in {source}, using columns 0 and 1")
        else:
            for name in ("question", "answer"):
                if columns[name] == -1:
                    logger.warning(f"No {name} column in {source} header, rows will be skipped")
        data_rows = rows[1:] if columns["has_header"] else rows

        def cell(row: List[str], name: str) -> Optional[str]:
            index = columns[name]
            if index < 0 or index >= len(row):
                return None
            return row[index]

        records = [
            {
                "id": cell(row, "id") or None,
                "question": cell(row, "question") or "",
                "answer": cell(row, "answer") or "",
                "emotion": cell(row, "emotion"),
                "category": cell(row, "category"),
            }
            for row in data_rows
        ]
        return self.import_records(records, source)

    def import_csv(self, path: str) -> ImportReport:
        """Import a CSV file."""
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return self.import_csv_text(f.read(), source=path)

    def import_json(self, path: str) -> ImportReport:
        """Import a JSON file holding a list of rows, or ``{"entries": [...]}``."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, dict):
            data = data.get("entries", data.get("qa_pairs", []))
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of Q&A rows")

        return self.import_records(
            [row if isinstance(row, dict) else {} for row in data],
            source=path,
        )

    def attach_embeddings(self, embedder) -> int:
        """Embed every question that has no vector yet.

        Only semantic vectors are stored; hash fallback vectors carry no meaning
        and would make unrelated questions look similar.

        Returns:
            Number of entries that received an embedding
        """
        pending = [e for e in self.entries() if e.embedding is None]
        attached = 0
        updated = []
        for entry in pending:
            result = embedder.embed(entry.question)
            if result.semantic:
                updated.append(replace(entry, embedding=list(result.vector)))

        with self._lock.write():
            for entry in updated:
                if entry.id in self._entries:
                    self._entries[entry.id] = entry
                    attached += 1

        logger.log_operation("corpus.embed", "success", {"pending": len(pending), "attached": attached})
        return attached
