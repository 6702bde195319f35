import os
import hmac
import logging
from datetime import datetime
from functools import wraps
from flask import Flask, request, jsonify, send_file, session
from werkzeug.exceptions import RequestEntityTooLarge
from excel_registry import format_timestamp
from models import SubmissionRecord, PortalError, ValidationError, NotFound, SubmissionsClosed
from registry_context import get_registry, get_status_store, get_file_store

# Set up logging
logging.basicConfig(level=logging.INFO)

app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")

# Configuration
UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
RECENT_SUBMISSIONS = 5

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['REGISTRY_FILE'] = os.environ.get("REGISTRY_FILE", os.path.join(UPLOAD_FOLDER, "data.xlsx"))
app.config['STATUS_FILE'] = os.environ.get("STATUS_FILE", os.path.join(UPLOAD_FOLDER, "status.json"))
app.config['ADMIN_PASSWORD'] = os.environ.get("ADMIN_PASSWORD", "admin123")
app.config['PORTAL_TIMEZONE'] = os.environ.get("PORTAL_TIMEZONE", "Asia/Kolkata")
app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024))  # 16MB max file size

# Ensure directories exist
os.makedirs(UPLOAD_FOLDER, exist_ok=True)


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get('is_admin'):
            return jsonify({'error': 'Admin login required'}), 401
        return view(*args, **kwargs)
    return wrapped


@app.errorhandler(PortalError)
def handle_portal_error(error):
    if error.status_code >= 500:
        logging.error(f"{request.path} failed: {error.message}")
    if request.path.startswith('/admin'):
        return jsonify({'error': error.message}), error.status_code
    return error.message, error.status_code


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    return 'File is too large', 413


@app.route('/')
def index():
    return jsonify({
        'accepting_submissions': get_status_store().get_status(),
    })


@app.route('/upload', methods=['POST'])
def upload():
    if not get_status_store().get_status():
        raise SubmissionsClosed('Submissions are closed')

    roll_no = request.form.get('rollno', '').strip()
    name = request.form.get('name', '').strip()
    batch = request.form.get('batch', '').strip()

    file = request.files.get('codefile') or request.files.get('file')
    if file is None or not file.filename:
        raise ValidationError('No file uploaded')
    if not roll_no:
        raise ValidationError('Roll number is required')

    file_store = get_file_store()
    file_link = file_store.save(roll_no, file.filename, file.stream)

    record = SubmissionRecord(
        Name=name,
        RollNo=roll_no,
        Batch=batch,
        FileLink=file_link,
        DateTime=format_timestamp(app.config['PORTAL_TIMEZONE']),
    )
    get_registry().upsert(record, file_store=file_store)

    return f'File uploaded successfully for roll number {roll_no}'


@app.route('/check-file')
def check_file():
    roll_no = request.args.get('rollno', '').strip()
    return jsonify({'exists': get_registry().exists(roll_no)})


@app.route('/admin', methods=['POST'])
def admin_login():
    password = request.form.get('password', '')
    expected = app.config['ADMIN_PASSWORD']
    if not hmac.compare_digest(password.encode('utf-8'), expected.encode('utf-8')):
        logging.warning("Failed admin login attempt")
        return jsonify({'error': 'Invalid password'}), 401

    session['is_admin'] = True
    return jsonify({'message': 'Logged in'})


@app.route('/admin/logout', methods=['POST'])
def admin_logout():
    session.pop('is_admin', None)
    return jsonify({'message': 'Logged out'})


@app.route('/admin/dashboard')
@admin_required
def dashboard():
    registry = get_registry()
    return jsonify({
        'accepting_submissions': get_status_store().get_status(),
        'total': registry.count(),
        'batches': registry.batch_summary(),
        'recent': [r.to_dict() for r in registry.list_all(limit=RECENT_SUBMISSIONS)],
    })


@app.route('/admin/records')
@admin_required
def records():
    return jsonify([r.to_dict() for r in get_registry().list_all()])


@app.route('/admin/toggle', methods=['POST'])
@admin_required
def toggle():
    accepting = get_status_store().toggle()
    return jsonify({'accepting_submissions': accepting})


@app.route('/admin/search')
@admin_required
def search():
    roll_no = request.args.get('rollno', '').strip()
    if not roll_no:
        raise ValidationError('Roll number is required')
    return jsonify(get_registry().find_by_roll_no(roll_no).to_dict())


@app.route('/admin/delete', methods=['POST'])
@admin_required
def delete():
    roll_no = request.form.get('rollno', '').strip()
    record = get_registry().remove(roll_no, file_store=get_file_store())
    return jsonify({'message': f'Deleted submission for roll number {record.RollNo}'})


@app.route('/admin/excel')
@admin_required
def download_excel():
    filepath = get_registry().export_path()
    if filepath is None:
        raise NotFound('No submissions yet')
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name='submissions.xlsx')


@app.route('/admin/files')
@admin_required
def download_files():
    archive = get_file_store().build_archive()
    if archive is None:
        raise NotFound('No uploaded files')
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return send_file(archive, mimetype='application/zip', as_attachment=True,
                     download_name=f'submissions_{timestamp}.zip')


@app.route('/uploads/<filename>')
@admin_required
def download_upload(filename):
    filepath = get_file_store().path_for(filename)
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name=filename)


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", 5000)), debug=True)
