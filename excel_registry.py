import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

import pandas as pd
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter

from models import (
    COLUMNS, SubmissionRecord, SystemStatus,
    ValidationError, NotFound, StorageError,
)

SHEET_NAME = 'Sheet1'

_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    """Return the process-wide lock guarding writes to ``path``."""
    key = os.path.abspath(path)
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.RLock()
        return _locks[key]


def clean_roll_no(value) -> str:
    """Roll numbers are compared as exact strings after trimming whitespace."""
    return '' if value is None else str(value).strip()


def cell_text(value) -> str:
    # Workbooks edited by hand may hold 101 as a numeric cell, read back as 101.0
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return clean_roll_no(value)


def format_timestamp(tz_name: str = 'Asia/Kolkata', now: Optional[datetime] = None) -> str:
    """Format a timestamp as DD/MM/YYYY, h:mm:ss am/pm in the given timezone."""
    if now is None:
        now = datetime.now(ZoneInfo(tz_name))
    hour = now.hour % 12 or 12
    suffix = 'am' if now.hour < 12 else 'pm'
    return f"{now:%d/%m/%Y}, {hour}:{now:%M:%S} {suffix}"


class SubmissionRegistry:
    """
    Submission records keyed by roll number, persisted as one sheet of an
    Excel workbook. Every call re-reads the workbook; mutations are
    serialized per file and written atomically.
    """

    def __init__(self, filepath: str):
        self.logger = logging.getLogger(__name__)
        self.filepath = filepath
        self._lock = _lock_for(filepath)

    def load(self) -> Dict[str, SubmissionRecord]:
        """
        Read all records in stored order. A missing or unreadable workbook
        is treated as an empty registry.
        """
        if not os.path.exists(self.filepath):
            return {}
        try:
            df = pd.read_excel(self.filepath, sheet_name=0, dtype=object,
                               keep_default_na=False, engine='openpyxl')
        except Exception as e:
            self.logger.error(f"Error reading registry {self.filepath}: {str(e)}")
            return {}

        df = df.fillna('')
        records = {}
        for row in df.to_dict('records'):
            record = SubmissionRecord.from_row({k: cell_text(v) for k, v in row.items()})
            if not record.RollNo:
                continue
            # Later rows win if the file was edited by hand and has duplicates
            records.pop(record.RollNo, None)
            records[record.RollNo] = record
        return records

    def _save(self, records: Dict[str, SubmissionRecord]) -> None:
        folder = os.path.dirname(os.path.abspath(self.filepath))
        df = pd.DataFrame([r.to_dict() for r in records.values()], columns=COLUMNS)
        tmp_path = None
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.registry-', suffix='.xlsx', dir=folder)
            os.close(fd)
            with pd.ExcelWriter(tmp_path, engine='openpyxl') as writer:
                df.to_excel(writer, index=False, sheet_name=SHEET_NAME)
                self._style_sheet(writer.sheets[SHEET_NAME], df)
            os.replace(tmp_path, self.filepath)
        except Exception as e:
            self.logger.error(f"Error writing registry {self.filepath}: {str(e)}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Could not save submissions: {str(e)}") from e

    def _style_sheet(self, ws, df: pd.DataFrame) -> None:
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        for col_idx, column in enumerate(COLUMNS, 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = border
            cell.alignment = Alignment(horizontal='center', vertical='center')

            values = [column] + df[column].astype(str).tolist()
            max_length = max(len(v) for v in values)
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 60)

        ws.freeze_panes = 'A2'

    def upsert(self, record: SubmissionRecord, file_store=None) -> SubmissionRecord:
        """
        Insert or replace the record for ``record.RollNo``. The replaced
        record is dropped entirely and the new one moves to the end.
        If the old blob lives under a different name it is removed too.
        """
        roll_no = clean_roll_no(record.RollNo)
        if not roll_no:
            raise ValidationError('Roll number is required')
        record.RollNo = roll_no

        with self._lock:
            records = self.load()
            previous = records.pop(roll_no, None)
            records[roll_no] = record
            self._save(records)

        if previous is not None:
            self.logger.info(f"Replaced submission for roll number {roll_no}")
            if file_store is not None and previous.FileLink and previous.FileLink != record.FileLink:
                file_store.delete(previous.FileLink)
        else:
            self.logger.info(f"Added submission for roll number {roll_no}")
        return record

    def find_by_roll_no(self, roll_no: str) -> SubmissionRecord:
        roll_no = clean_roll_no(roll_no)
        record = self.load().get(roll_no) if roll_no else None
        if record is None:
            raise NotFound(f'No submission found for roll number {roll_no}')
        return record

    def exists(self, roll_no: str) -> bool:
        roll_no = clean_roll_no(roll_no)
        return bool(roll_no) and roll_no in self.load()

    def list_all(self, limit: Optional[int] = None) -> List[SubmissionRecord]:
        """All records in stored order, or the ``limit`` most recent, newest first."""
        records = list(self.load().values())
        if limit is None:
            return records
        if limit <= 0:
            return []
        return list(reversed(records[-limit:]))

    def count(self) -> int:
        return len(self.load())

    def batch_summary(self) -> Dict[str, int]:
        """Number of submissions per batch."""
        records = self.list_all()
        if not records:
            return {}
        df = pd.DataFrame([r.to_dict() for r in records], columns=COLUMNS)
        batches = df['Batch'].replace('', 'Unassigned')
        return {str(k): int(v) for k, v in batches.value_counts().sort_index().items()}

    def remove(self, roll_no: str, file_store=None) -> SubmissionRecord:
        """
        Delete the record for ``roll_no`` and its stored blob. Failing to
        delete the blob does not stop the record from being removed.
        """
        roll_no = clean_roll_no(roll_no)
        if not roll_no:
            raise ValidationError('Roll number is required')

        with self._lock:
            records = self.load()
            record = records.pop(roll_no, None)
            if record is None:
                raise NotFound(f'No submission found for roll number {roll_no}')
            self._save(records)

        self.logger.info(f"Deleted submission for roll number {roll_no}")
        if file_store is not None and record.FileLink:
            file_store.delete(record.FileLink)
        return record

    def export_path(self) -> Optional[str]:
        """Path of the workbook for download, or None before the first submission."""
        if os.path.exists(self.filepath):
            return self.filepath
        return None


class StatusStore:
    """Process-wide accepting-submissions flag kept in a small JSON file."""

    def __init__(self, filepath: str):
        self.logger = logging.getLogger(__name__)
        self.filepath = filepath
        self.tmp_path = f"{filepath}.tmp"
        self._lock = _lock_for(filepath)

    def load(self) -> SystemStatus:
        if not os.path.exists(self.filepath):
            return SystemStatus()
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
            # Only an explicit JSON false closes submissions
            return SystemStatus(accepting_submissions=data.get('acceptingSubmissions', True) is not False)
        except Exception as e:
            self.logger.error(f"Error reading status file {self.filepath}: {str(e)}")
            return SystemStatus()

    def get_status(self) -> bool:
        return self.load().accepting_submissions

    def set_status(self, accepting: bool) -> bool:
        accepting = bool(accepting)
        with self._lock:
            tmp_path = self.tmp_path
            try:
                os.makedirs(os.path.dirname(os.path.abspath(self.filepath)), exist_ok=True)
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    json.dump({'acceptingSubmissions': accepting}, f)
                os.replace(tmp_path, self.filepath)
            except OSError as e:
                self.logger.error(f"Error writing status file {self.filepath}: {str(e)}")
                raise StorageError(f"Could not save status: {str(e)}") from e
        self.logger.info(f"Submissions {'opened' if accepting else 'closed'}")
        return accepting

    def toggle(self) -> bool:
        with self._lock:
            return self.set_status(not self.get_status())
