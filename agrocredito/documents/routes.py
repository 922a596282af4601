"""Document routes"""
import os
from flask import jsonify, abort, request, current_app, send_from_directory
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.applications.workflow import can_view_application
from agrocredito.auth.tokens import user_from_token
from agrocredito.documents import documents_bp
from agrocredito.documents.forms import DocumentUploadForm
from agrocredito.models import CreditApplication, Document, DOCUMENT_TYPES
from agrocredito.utils.helpers import delete_uploaded_file, log_activity, save_uploaded_file, validate_form

def can_access_document(document, user):
    """Owner, admin, or an institution that can see an application using the document"""
    if user.is_admin or document.user_id == user.id:
        return True
    if not user.is_institution_member:
        return False
    return any(
        link.application is not None and can_view_application(link.application, user)
        for link in document.application_links
    )

def _send_document(id, user, as_attachment):
    document = db.get_or_404(Document, id, description='Document not found')
    if not can_access_document(document, user):
        abort(403, description='You do not have access to this document')

    upload_folder = current_app.config['UPLOAD_FOLDER']
    if not os.path.isfile(os.path.join(upload_folder, document.file_path)):
        abort(404, description='Document file not found')

    return send_from_directory(
        upload_folder,
        document.file_path,
        mimetype=document.mime_type,
        as_attachment=as_attachment,
        download_name=document.original_file_name
    )

@documents_bp.route('/upload', methods=['POST'])
@login_required
def upload_document():
    """Upload a document, superseding the active one of the same type"""
    form = validate_form(DocumentUploadForm)
    file = form.document.data
    document_type = form.document_type.data

    stored_name, relative_path, size = save_uploaded_file(file, os.path.join('documents', current_user.id))

    previous = Document.query.filter_by(
        user_id=current_user.id, document_type=document_type, is_active=True
    ).order_by(Document.version.desc()).first()

    document = Document(
        user_id=current_user.id,
        document_type=document_type,
        file_name=stored_name,
        original_file_name=file.filename,
        file_path=relative_path,
        file_size=size,
        mime_type=file.mimetype or 'application/octet-stream',
        version=previous.version + 1 if previous else 1,
        is_active=True
    )
    try:
        db.session.add(document)
        db.session.flush()
        if previous is not None:
            previous.is_active = False
            previous.replaced_by_id = document.id

        log_activity(
            'upload_document',
            entity_type='document',
            entity_id=document.id,
            description=f'Uploaded {document_type} version {document.version}'
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        delete_uploaded_file(relative_path)
        raise

    if previous is not None:
        current_app.logger.info('Document %s superseded by %s', previous.id, document.id)
        delete_uploaded_file(previous.file_path)

    return jsonify(document.to_dict()), 201

@documents_bp.route('/my-documents')
@login_required
def my_documents():
    """Active documents of the current user"""
    documents = Document.query.filter_by(
        user_id=current_user.id, is_active=True
    ).order_by(Document.created_at.desc()).all()
    return jsonify([d.to_dict() for d in documents])

@documents_bp.route('/by-type/<document_type>')
@login_required
def documents_by_type(document_type):
    """Every version of one document type, newest first"""
    if document_type not in DOCUMENT_TYPES:
        abort(400, description=f'Invalid document type: {document_type}')
    documents = Document.query.filter_by(
        user_id=current_user.id, document_type=document_type
    ).order_by(Document.version.desc()).all()
    return jsonify([d.to_dict() for d in documents])

@documents_bp.route('/download/<id>')
@login_required
def download_document(id):
    """Download a document as an attachment"""
    return _send_document(id, current_user, as_attachment=True)

@documents_bp.route('/view/<id>')
def view_document(id):
    """Show a document inline; the token may come from the query string"""
    user = user_from_token(request.args.get('token'))
    if user is None and current_user.is_authenticated:
        user = current_user
    if user is None:
        abort(401, description='Authentication required')
    return _send_document(id, user, as_attachment=False)

@documents_bp.route('/<id>', methods=['DELETE'])
@login_required
def delete_document(id):
    """Deactivate one of the current user's documents"""
    document = db.get_or_404(Document, id, description='Document not found')
    if document.user_id != current_user.id:
        abort(403, description='You can only delete your own documents')

    document.is_active = False
    log_activity('delete_document', entity_type='document', entity_id=document.id, description=f'Deleted {document.document_type} version {document.version}')
    db.session.commit()
    return jsonify({'message': 'Document deleted'})

@documents_bp.route('/credit-application/<application_id>')
@login_required
def application_documents(application_id):
    """Documents attached to a credit application"""
    application = db.get_or_404(CreditApplication, application_id, description='Credit application not found')
    if not can_view_application(application, current_user):
        abort(403, description='You do not have access to this credit application')
    return jsonify(application.to_dict(include_documents=True)['documents'])
