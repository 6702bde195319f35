from flask import g, current_app

from excel_registry import SubmissionRegistry, StatusStore
from file_store import FileStore


def get_registry():
    """Get the submission registry for the current app"""
    if 'registry' not in g:
        g.registry = SubmissionRegistry(current_app.config['REGISTRY_FILE'])
    return g.registry


def get_status_store():
    """Get the accepting-submissions flag store"""
    if 'status_store' not in g:
        g.status_store = StatusStore(current_app.config['STATUS_FILE'])
    return g.status_store


def get_file_store():
    """Get the uploaded file store"""
    if 'file_store' not in g:
        status_store = get_status_store()
        g.file_store = FileStore(
            current_app.config['UPLOAD_FOLDER'],
            excluded=[current_app.config['REGISTRY_FILE'], status_store.filepath, status_store.tmp_path],
        )
    return g.file_store
