"""Helper functions"""
import os
import re
import uuid
from datetime import datetime
from flask import current_app, has_request_context, request
from flask_login import current_user
from werkzeug.datastructures import CombinedMultiDict, ImmutableMultiDict
from werkzeug.exceptions import BadRequest
from werkzeug.utils import secure_filename
from agrocredito import db
from agrocredito.models import ActivityLog

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')

def allowed_file(filename):
    """Check if file extension is allowed"""
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']

def snake_case(name):
    """creditProgramId -> credit_program_id"""
    return _CAMEL_BOUNDARY.sub('_', name).lower()

def request_formdata():
    """Request body as form data, whether it arrived as JSON or multipart

    Keys are converted from the API's camelCase to form field names and JSON
    nulls are dropped so optional fields validate as missing.
    """
    if request.is_json:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise BadRequest('Request body must be a JSON object')
        items = []
        for key, value in payload.items():
            key = snake_case(key)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                items.extend((key, str(item)) for item in value if item is not None)
            elif isinstance(value, bool):
                items.append((key, 'y' if value else ''))
            else:
                items.append((key, str(value)))
        return ImmutableMultiDict(items)

    form = ImmutableMultiDict([(snake_case(k), v) for k, v in request.form.items(multi=True)])
    files = ImmutableMultiDict([(snake_case(k), v) for k, v in request.files.items(multi=True)])
    return CombinedMultiDict([files, form])

def validation_error(form, message='Validation failed'):
    """BadRequest carrying the form's field errors"""
    error = BadRequest(message)
    error.errors = form.errors
    return error

def validate_form(form_class, **kwargs):
    """Build and validate a form from the request body, raising on failure"""
    form = form_class(formdata=request_formdata(), **kwargs)
    if not form.validate():
        raise validation_error(form)
    return form

def log_activity(action, entity_type=None, entity_id=None, description=None, user_id=None):
    """Queue an audit row on the current session; the caller commits"""
    in_request = has_request_context()
    if user_id is None and in_request and current_user.is_authenticated:
        user_id = current_user.id
    log = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.user_agent.string[:255] if in_request else None
    )
    db.session.add(log)
    return log

def save_uploaded_file(file, subfolder):
    """Save uploaded file and return (stored name, relative path, size)"""
    if not file or not file.filename:
        return None

    original = secure_filename(file.filename)
    ext = original.rsplit('.', 1)[1].lower() if '.' in original else ''
    filename = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex

    upload_path = os.path.join(current_app.config['UPLOAD_FOLDER'], subfolder)
    os.makedirs(upload_path, exist_ok=True)

    filepath = os.path.join(upload_path, filename)
    file.save(filepath)

    return filename, os.path.join(subfolder, filename), os.path.getsize(filepath)

def delete_uploaded_file(relative_path):
    """Best-effort removal of a stored file"""
    filepath = os.path.join(current_app.config['UPLOAD_FOLDER'], relative_path)
    try:
        os.remove(filepath)
    except OSError as e:
        current_app.logger.warning('Could not delete file %s: %s', filepath, e)
        return False
    return True

def parse_iso_datetime(value):
    """Parse an ISO timestamp query argument, raising BadRequest when malformed"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise BadRequest(f'Invalid timestamp: {value}')
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed

def query_flag(name):
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')
