import io
import logging
import os
import zipfile
from typing import BinaryIO, Iterable, List, Optional

from werkzeug.utils import secure_filename

from models import ValidationError, NotFound, StorageError

LINK_PREFIX = '/uploads/'


class FileStore:
    """Uploaded blobs, one per roll number, kept in a single folder."""

    def __init__(self, folder: str, excluded: Optional[Iterable[str]] = None):
        self.logger = logging.getLogger(__name__)
        self.folder = folder
        self.excluded = {os.path.basename(name) for name in (excluded or [])}

    @staticmethod
    def filename_for(roll_no: str, original_filename: str) -> str:
        """<rollno><ext>, where ext comes from the uploaded file name."""
        safe_roll = secure_filename(roll_no)
        if not safe_roll or safe_roll != roll_no:
            raise ValidationError('Roll number may only contain letters, digits, dots, dashes and underscores')
        ext = secure_filename(os.path.splitext(original_filename or '')[1].lstrip('.')).lower()
        return f"{safe_roll}.{ext}" if ext else safe_roll

    def save(self, roll_no: str, original_filename: str, stream: BinaryIO) -> str:
        filename = self.filename_for(roll_no, original_filename)
        if filename in self.excluded:
            raise ValidationError('Roll number clashes with a reserved file name')
        filepath = os.path.join(self.folder, filename)
        try:
            os.makedirs(self.folder, exist_ok=True)
            with open(filepath, 'wb') as f:
                while True:
                    chunk = stream.read(64 * 1024)
                    if not chunk:
                        break
                    f.write(chunk)
        except OSError as e:
            self.logger.error(f"Error saving upload {filepath}: {str(e)}")
            raise StorageError(f"Could not save file: {str(e)}") from e

        self.logger.info(f"Saved upload {filename}")
        return LINK_PREFIX + filename

    def path_for(self, filename: str) -> str:
        """Absolute path of a stored blob given its name or link."""
        name = os.path.basename(filename or '')
        if not name or name != secure_filename(name) or name in self.excluded:
            raise NotFound('File not found')
        filepath = os.path.join(self.folder, name)
        if not os.path.isfile(filepath):
            raise NotFound('File not found')
        return filepath

    def delete(self, link: str) -> bool:
        """Remove a stored blob. Failures are logged, never raised."""
        try:
            filepath = self.path_for(link)
            os.remove(filepath)
        except NotFound:
            self.logger.warning(f"Upload {link} already missing")
            return False
        except OSError as e:
            self.logger.error(f"Error deleting upload {link}: {str(e)}")
            return False

        self.logger.info(f"Deleted upload {os.path.basename(filepath)}")
        return True

    def list(self) -> List[str]:
        """Stored blob names, leaving out excluded and hidden temp files."""
        if not os.path.isdir(self.folder):
            return []
        names = []
        for name in sorted(os.listdir(self.folder)):
            if name in self.excluded or name.startswith('.'):
                continue
            if os.path.isfile(os.path.join(self.folder, name)):
                names.append(name)
        return names

    def build_archive(self) -> Optional[io.BytesIO]:
        """ZIP of every stored blob, or None when nothing has been uploaded."""
        names = self.list()
        if not names:
            return None

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zip_file:
                for name in names:
                    # Add file to ZIP with just the filename (no path)
                    zip_file.write(os.path.join(self.folder, name), name)
        except OSError as e:
            self.logger.error(f"Error creating ZIP archive: {str(e)}")
            raise StorageError(f"Could not build archive: {str(e)}") from e

        buffer.seek(0)
        self.logger.info(f"Created archive with {len(names)} files")
        return buffer
