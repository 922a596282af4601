"""Credit program routes"""
from flask import jsonify, abort, current_app
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.models import CreditApplication, CreditProgram, PROJECT_TYPES, User
from agrocredito.programs import programs_bp
from agrocredito.programs.forms import CreditProgramForm
from agrocredito.utils.decorators import institution_required, permission_required
from agrocredito.utils.helpers import log_activity, request_formdata, validation_error

PROGRAM_FIELDS = (
    'name', 'description', 'min_amount', 'max_amount', 'min_term', 'max_term',
    'interest_rate', 'effort_rate',
)

def _get_own_program(id):
    """Program owned by the caller's institution, 404 otherwise"""
    program = CreditProgram.query.filter_by(
        id=id, financial_institution_id=current_user.institution_id
    ).first()
    if program is None:
        abort(404, description='Credit program not found')
    return program

def _apply_form(program, form, formdata):
    for field in PROGRAM_FIELDS:
        setattr(program, field, getattr(form, field).data)
    program.processing_fee = form.processing_fee.data or 0
    program.project_types = form.project_types.data or []
    program.requirements = [r.strip() for r in form.requirements.data or [] if r.strip()]
    program.benefits = [b.strip() for b in form.benefits.data or [] if b.strip()]
    if 'is_active' in formdata:
        program.is_active = form.is_active.data

def _validated_form():
    formdata = request_formdata()
    form = CreditProgramForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)
    return form, formdata

@programs_bp.route('/public')
def public_programs():
    """Active programs of every active institution"""
    programs = CreditProgram.query.join(
        User, CreditProgram.financial_institution_id == User.id
    ).filter(
        CreditProgram.is_active.is_(True),
        User.is_active.is_(True)
    ).order_by(CreditProgram.created_at.desc()).all()
    return jsonify([p.to_dict() for p in programs])

@programs_bp.route('/institution/<institution_id>')
def institution_programs(institution_id):
    """Active programs of one institution"""
    programs = CreditProgram.query.filter_by(
        financial_institution_id=institution_id, is_active=True
    ).order_by(CreditProgram.created_at.desc()).all()
    return jsonify([p.to_dict() for p in programs])

@programs_bp.route('/project-types')
def project_types():
    """Project types a program can cover"""
    return jsonify(list(PROJECT_TYPES))

@programs_bp.route('')
@login_required
@institution_required
@permission_required('credit_programs.read')
def list_programs():
    """Programs of the current institution, active or not"""
    programs = CreditProgram.query.filter_by(
        financial_institution_id=current_user.institution_id
    ).order_by(CreditProgram.created_at.desc()).all()
    return jsonify([p.to_dict() for p in programs])

@programs_bp.route('', methods=['POST'])
@login_required
@institution_required
@permission_required('credit_programs.create')
def create_program():
    """Add new credit program"""
    form, formdata = _validated_form()
    program = CreditProgram(financial_institution_id=current_user.institution_id, is_active=True)
    _apply_form(program, form, formdata)
    db.session.add(program)
    db.session.flush()

    log_activity(
        'create_credit_program',
        entity_type='credit_program',
        entity_id=program.id,
        description=f'Created credit program: {program.name}'
    )
    db.session.commit()
    current_app.logger.info('Credit program %s created by %s', program.id, current_user.id)
    return jsonify(program.to_dict()), 201

@programs_bp.route('/<id>')
@login_required
@institution_required
@permission_required('credit_programs.read')
def view_program(id):
    """View credit program"""
    return jsonify(_get_own_program(id).to_dict())

@programs_bp.route('/<id>', methods=['PUT'])
@login_required
@institution_required
@permission_required('credit_programs.update')
def edit_program(id):
    """Edit credit program"""
    program = _get_own_program(id)
    form, formdata = _validated_form()
    _apply_form(program, form, formdata)

    log_activity(
        'update_credit_program',
        entity_type='credit_program',
        entity_id=program.id,
        description=f'Updated credit program: {program.name}'
    )
    db.session.commit()
    return jsonify(program.to_dict())

@programs_bp.route('/<id>/toggle-status', methods=['PATCH'])
@login_required
@institution_required
@permission_required('credit_programs.update')
def toggle_program(id):
    """Activate or deactivate a credit program"""
    program = _get_own_program(id)
    program.is_active = not program.is_active

    log_activity(
        'toggle_credit_program',
        entity_type='credit_program',
        entity_id=program.id,
        description=f'{"Activated" if program.is_active else "Deactivated"} credit program: {program.name}'
    )
    db.session.commit()
    return jsonify(program.to_dict())

@programs_bp.route('/<id>', methods=['DELETE'])
@login_required
@institution_required
@permission_required('credit_programs.delete')
def delete_program(id):
    """Delete a credit program no application refers to"""
    program = _get_own_program(id)
    if CreditApplication.query.filter_by(credit_program_id=program.id).count():
        abort(409, description='This credit program has applications; deactivate it instead')

    log_activity(
        'delete_credit_program',
        entity_type='credit_program',
        entity_id=program.id,
        description=f'Deleted credit program: {program.name}'
    )
    db.session.delete(program)
    db.session.commit()
    return jsonify({'message': 'Credit program deleted'})
