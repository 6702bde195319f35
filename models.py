# Submission records are persisted as rows of the registry spreadsheet.
# The spreadsheet column names match the dataclass field names below so
# rows can be round-tripped through pandas without a mapping table.

from dataclasses import dataclass, asdict, fields
from typing import Dict

COLUMNS = ['Name', 'RollNo', 'Batch', 'FileLink', 'DateTime']


@dataclass
class SubmissionRecord:
    Name: str
    RollNo: str
    Batch: str = ''
    FileLink: str = ''
    DateTime: str = ''

    @classmethod
    def from_row(cls, row: Dict) -> 'SubmissionRecord':
        """Build a record from a spreadsheet row, tolerating missing columns."""
        values = {}
        for f in fields(cls):
            value = row.get(f.name, '')
            values[f.name] = '' if value is None else str(value).strip()
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class SystemStatus:
    accepting_submissions: bool = True


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    status_code = 400


class NotFound(PortalError):
    status_code = 404


class SubmissionsClosed(PortalError):
    status_code = 403


class StorageError(PortalError):
    status_code = 500
