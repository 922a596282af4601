"""Credit application routes"""
from flask import jsonify, abort
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.applications import applications_bp
from agrocredito.applications.forms import CreditApplicationForm, StatusUpdateForm, LoanSimulationForm
from agrocredito.applications.workflow import (
    TRANSITION_PERMISSIONS, can_view_application, submit_application, transition_application
)
from agrocredito.models import CreditApplication, CreditProgram, TERMINAL_STATUSES
from agrocredito.utils.decorators import permission_required, institution_required
from agrocredito.utils.helpers import request_formdata, validate_form, validation_error
from agrocredito.utils.loan_calculator import calculate_schedule, schedule_to_dict

def _institution_query(institution_id):
    """Applications an institution may see: its programs' plus those without a program"""
    return CreditApplication.query.outerjoin(CreditProgram).filter(
        db.or_(
            CreditProgram.financial_institution_id == institution_id,
            CreditApplication.credit_program_id.is_(None)
        )
    )

def _get_visible_application(id):
    application = db.get_or_404(CreditApplication, id, description='Credit application not found')
    if not can_view_application(application, current_user):
        abort(403, description='You do not have access to this credit application')
    return application

@applications_bp.route('', methods=['POST'])
@login_required
@permission_required('credit_applications.create')
def create_application():
    """Submit a credit application"""
    if not current_user.is_applicant:
        abort(403, description='Only farmers, companies and cooperatives can apply for credit')

    formdata = request_formdata()
    form = CreditApplicationForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)

    application = submit_application(form, current_user, formdata.getlist('document_ids'))
    return jsonify(application.to_dict(include_documents=True)), 201

@applications_bp.route('', methods=['GET'])
@login_required
@permission_required('credit_applications.read')
def list_applications():
    """List all applications visible to an institution or admin"""
    if current_user.is_admin:
        query = CreditApplication.query
    elif current_user.is_institution_member:
        query = _institution_query(current_user.institution_id)
    else:
        abort(403, description='Financial institution access required')

    applications = query.order_by(CreditApplication.created_at.desc()).all()
    return jsonify([a.to_dict(include_applicant=True) for a in applications
                    if can_view_application(a, current_user)])

@applications_bp.route('/user')
@login_required
def user_applications():
    """Applications submitted by the current user"""
    applications = current_user.credit_applications.order_by(CreditApplication.created_at.desc()).all()
    return jsonify([a.to_dict() for a in applications])

@applications_bp.route('/financial-institution')
@login_required
@institution_required
@permission_required('credit_applications.read')
def institution_applications():
    """Applications grouped for the institution's review queue"""
    institution_id = current_user.institution_id
    applications = _institution_query(institution_id).order_by(CreditApplication.created_at.desc()).all()

    groups = {'new': [], 'underReview': [], 'historical': []}
    for application in applications:
        reviewer = application.reviewer
        reviewed_here = reviewer is not None and reviewer.institution_id == institution_id
        if application.status == 'pending' and (reviewer is None or reviewed_here):
            groups['new'].append(application.to_dict(include_applicant=True))
        elif application.status == 'under_review' and reviewed_here:
            groups['underReview'].append(application.to_dict(include_applicant=True))
        elif application.status in TERMINAL_STATUSES and reviewed_here:
            groups['historical'].append(application.to_dict(include_applicant=True))
    return jsonify(groups)

@applications_bp.route('/<id>')
@login_required
def view_application(id):
    """View application with applicant and documents"""
    application = _get_visible_application(id)
    return jsonify(application.to_dict(include_applicant=True, include_documents=True))

@applications_bp.route('/<id>/status', methods=['PATCH'])
@login_required
def update_status(id):
    """Review, approve or reject an application"""
    application = db.get_or_404(CreditApplication, id, description='Credit application not found')
    if not (current_user.is_admin or current_user.is_institution_member):
        abort(403, description='Only financial institutions can change application status')

    form = validate_form(StatusUpdateForm)
    new_status = form.status.data
    if not current_user.has_permission(TRANSITION_PERMISSIONS[new_status]):
        abort(403, description='You do not have permission to perform this action')

    application = transition_application(application, new_status, current_user, form.rejection_reason.data)
    data = application.to_dict(include_applicant=True)
    if application.account is not None:
        data['account'] = application.account.to_dict()
    return jsonify(data)

@applications_bp.route('/simulate', methods=['POST'])
@login_required
def simulate():
    """Payment simulation for a given rate, without an effort ceiling

    The response carries no effort-rate keys; /api/simulate-credit covers the ceiling.
    """
    form = validate_form(LoanSimulationForm)
    schedule = calculate_schedule(form.amount.data, form.term.data, form.interest_rate.data)
    return jsonify(schedule_to_dict(schedule))
