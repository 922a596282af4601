"""Database models for AgroCrédito"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from agrocredito import db, login_manager
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

WILDCARD_PERMISSION = '*'

USER_TYPES = ('farmer', 'company', 'cooperative', 'financial_institution', 'admin')
APPLICANT_TYPES = ('farmer', 'company', 'cooperative')

PROJECT_TYPES = ('corn', 'cassava', 'cattle', 'poultry', 'horticulture', 'other')

APPLICATION_STATUSES = ('pending', 'under_review', 'approved', 'rejected')
TERMINAL_STATUSES = ('approved', 'rejected')

DOCUMENT_TYPES = (
    'bilhete_identidade',
    'declaracao_soba',
    'declaracao_administracao_municipal',
    'comprovativo_actividade_agricola',
    'atestado_residencia',
    'outros',
)

def generate_uuid():
    return str(uuid.uuid4())

def to_money(value):
    """Quantize a numeric value to cents"""
    return Decimal(str(value or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

def _float(value):
    return float(value) if value is not None else None

def _iso(value):
    return value.isoformat() if value else None

@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)

# Association tables
profile_permissions = db.Table('profile_permissions',
    db.Column('profile_id', db.String(36), db.ForeignKey('profiles.id', ondelete='CASCADE'), primary_key=True),
    db.Column('permission_id', db.String(36), db.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True)
)

# Access control
class Permission(db.Model):
    """A single module.action grant"""
    __tablename__ = 'permissions'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    module = db.Column(db.String(50), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'module': self.module,
            'action': self.action,
            'description': self.description,
        }

    def __repr__(self):
        return f'<Permission {self.name}>'

class Profile(db.Model):
    """Named bundle of permissions assigned to users"""
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_system = db.Column(db.Boolean, default=False, nullable=False)  # system profiles cannot be deleted
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permissions = db.relationship('Permission', secondary=profile_permissions, backref='profiles', order_by='Permission.name')

    def to_dict(self, include_permissions=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'isActive': self.is_active,
            'isSystem': self.is_system,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_permissions:
            data['permissions'] = [p.to_dict() for p in self.permissions]
        return data

    def __repr__(self):
        return f'<Profile {self.name}>'

# User and Authentication Models
class User(UserMixin, db.Model):
    """Applicants, institution staff and administrators"""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    full_name = db.Column(db.String(200), nullable=False)
    bi = db.Column(db.String(20), unique=True, nullable=False, index=True)  # national identity card
    nif = db.Column(db.String(20))  # tax number
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    user_type = db.Column(db.String(30), nullable=False)  # farmer, company, cooperative, financial_institution, admin
    profile_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    parent_institution_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)  # set for internal staff
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = db.relationship('Profile', backref=db.backref('users', lazy='dynamic'))
    parent_institution = db.relationship('User', remote_side=[id], backref=db.backref('internal_users', lazy='dynamic'))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def permission_names(self):
        """Names granted through the user's profile"""
        if self.profile is None or not self.profile.is_active:
            return set()
        return {permission.name for permission in self.profile.permissions}

    def has_permission(self, permission):
        """Check if user has specific permission"""
        names = self.permission_names
        return WILDCARD_PERMISSION in names or permission in names

    def has_any_permission(self, permissions):
        names = self.permission_names
        return WILDCARD_PERMISSION in names or any(p in names for p in permissions)

    def has_all_permissions(self, permissions):
        names = self.permission_names
        return WILDCARD_PERMISSION in names or all(p in names for p in permissions)

    @property
    def is_admin(self):
        return WILDCARD_PERMISSION in self.permission_names

    @property
    def institution_id(self):
        """The financial institution this user acts for, if any"""
        if self.user_type != 'financial_institution':
            return None
        return self.parent_institution_id or self.id

    @property
    def is_institution_member(self):
        return self.institution_id is not None

    @property
    def is_applicant(self):
        return self.user_type in APPLICANT_TYPES

    def to_dict(self):
        return {
            'id': self.id,
            'fullName': self.full_name,
            'bi': self.bi,
            'nif': self.nif,
            'phone': self.phone,
            'email': self.email,
            'userType': self.user_type,
            'profileId': self.profile_id,
            'profileName': self.profile.name if self.profile else None,
            'parentInstitutionId': self.parent_institution_id,
            'isActive': self.is_active,
            'lastLogin': _iso(self.last_login),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.phone}>'

# Credit Models
class CreditProgram(db.Model):
    """Loan product published by a financial institution"""
    __tablename__ = 'credit_programs'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    financial_institution_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    project_types = db.Column(db.JSON, default=list)  # empty list accepts every project type
    min_amount = db.Column(db.Numeric(15, 2), nullable=False)
    max_amount = db.Column(db.Numeric(15, 2), nullable=False)
    min_term = db.Column(db.Integer, nullable=False)  # months
    max_term = db.Column(db.Integer, nullable=False)  # months
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False)  # annual %
    effort_rate = db.Column(db.Numeric(5, 2), nullable=False)  # max payment / income %
    processing_fee = db.Column(db.Numeric(5, 2), default=0)  # % of amount
    requirements = db.Column(db.JSON, default=list)
    benefits = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    institution = db.relationship('User', foreign_keys=[financial_institution_id], backref=db.backref('credit_programs', lazy='dynamic'))

    def accepts_amount(self, amount):
        return Decimal(str(self.min_amount)) <= Decimal(str(amount)) <= Decimal(str(self.max_amount))

    def accepts_term(self, term):
        return self.min_term <= term <= self.max_term

    def accepts_project_type(self, project_type):
        return not self.project_types or project_type in self.project_types

    def to_dict(self):
        return {
            'id': self.id,
            'financialInstitutionId': self.financial_institution_id,
            'institutionName': self.institution.full_name if self.institution else None,
            'name': self.name,
            'description': self.description,
            'projectTypes': self.project_types or [],
            'minAmount': _float(self.min_amount),
            'maxAmount': _float(self.max_amount),
            'minTerm': self.min_term,
            'maxTerm': self.max_term,
            'interestRate': _float(self.interest_rate),
            'effortRate': _float(self.effort_rate),
            'processingFee': _float(self.processing_fee),
            'requirements': self.requirements or [],
            'benefits': self.benefits or [],
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<CreditProgram {self.name}>'

class CreditApplication(db.Model):
    """Credit request moving through pending, under_review, approved/rejected"""
    __tablename__ = 'credit_applications'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    credit_program_id = db.Column(db.String(36), db.ForeignKey('credit_programs.id'), nullable=True, index=True)

    # Project
    project_name = db.Column(db.String(200), nullable=False)
    project_type = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    term = db.Column(db.Integer, nullable=False)  # months
    productivity = db.Column(db.String(20))  # small, medium, large
    agriculture_type = db.Column(db.String(100))
    credit_delivery_method = db.Column(db.String(20))  # total, monthly
    credit_guarantee_declaration = db.Column(db.Text)

    # Applicant financial profile
    monthly_income = db.Column(db.Numeric(15, 2))
    expected_project_income = db.Column(db.Numeric(15, 2))
    monthly_expenses = db.Column(db.Numeric(15, 2))
    other_debts = db.Column(db.Numeric(15, 2), default=0)
    family_members = db.Column(db.Integer)
    experience_years = db.Column(db.Integer)

    # Review
    interest_rate = db.Column(db.Numeric(5, 2))  # rate applied on approval
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    rejection_reason = db.Column(db.Text)
    reviewed_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    approved_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    applicant = db.relationship('User', foreign_keys=[user_id], backref=db.backref('credit_applications', lazy='dynamic'))
    program = db.relationship('CreditProgram', backref=db.backref('applications', lazy='dynamic'))
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])
    approver = db.relationship('User', foreign_keys=[approved_by])
    document_links = db.relationship('CreditApplicationDocument', backref='application', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def owning_institution_id(self):
        return self.program.financial_institution_id if self.program else None

    def to_dict(self, include_applicant=False, include_documents=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'creditProgramId': self.credit_program_id,
            'creditProgramName': self.program.name if self.program else None,
            'projectName': self.project_name,
            'projectType': self.project_type,
            'description': self.description,
            'amount': _float(self.amount),
            'term': self.term,
            'productivity': self.productivity,
            'agricultureType': self.agriculture_type,
            'creditDeliveryMethod': self.credit_delivery_method,
            'creditGuaranteeDeclaration': self.credit_guarantee_declaration,
            'monthlyIncome': _float(self.monthly_income),
            'expectedProjectIncome': _float(self.expected_project_income),
            'monthlyExpenses': _float(self.monthly_expenses),
            'otherDebts': _float(self.other_debts),
            'familyMembers': self.family_members,
            'experienceYears': self.experience_years,
            'interestRate': _float(self.interest_rate),
            'status': self.status,
            'rejectionReason': self.rejection_reason,
            'reviewedBy': self.reviewed_by,
            'approvedBy': self.approved_by,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_applicant:
            applicant = self.applicant
            data['applicant'] = {
                'id': applicant.id,
                'fullName': applicant.full_name,
                'phone': applicant.phone,
                'email': applicant.email,
                'userType': applicant.user_type,
            } if applicant else None
        if include_documents:
            data['documents'] = [
                dict(link.document.to_dict(), isRequired=link.is_required)
                for link in self.document_links
                if link.document is not None
            ]
        return data

    def __repr__(self):
        return f'<CreditApplication {self.id} {self.status}>'

class Account(db.Model):
    """Repayment ledger opened when an application is approved"""
    __tablename__ = 'accounts'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    application_id = db.Column(db.String(36), db.ForeignKey('credit_applications.id'), unique=True, nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    financial_institution_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)

    principal = db.Column(db.Numeric(15, 2), nullable=False)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False)
    term = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)  # principal + interest
    outstanding_balance = db.Column(db.Numeric(15, 2), nullable=False)
    monthly_payment = db.Column(db.Numeric(15, 2), nullable=False)
    next_payment_date = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    application = db.relationship('CreditApplication', backref=db.backref('account', uselist=False))
    owner = db.relationship('User', foreign_keys=[user_id], backref=db.backref('accounts', lazy='dynamic'))
    institution = db.relationship('User', foreign_keys=[financial_institution_id])
    payments = db.relationship('Payment', backref='account', lazy='dynamic', order_by='Payment.payment_date.desc()')

    def get_total_paid(self):
        total = db.session.query(db.func.coalesce(db.func.sum(Payment.amount), 0)).filter(Payment.account_id == self.id).scalar()
        return to_money(total)

    def can_be_viewed_by(self, user):
        if user.is_admin or user.id == self.user_id:
            return True
        return user.institution_id is not None and user.institution_id == self.financial_institution_id

    def generate_payment_schedule(self):
        """Installment table with paid/pending/overdue marks"""
        from agrocredito.utils.loan_calculator import build_amortization_table

        first_date = (self.created_at or datetime.utcnow()).date()
        rows = build_amortization_table(
            self.principal, self.term, self.interest_rate,
            monthly_payment=self.monthly_payment,
            start_date=first_date
        )

        total_paid = self.get_total_paid()
        today = datetime.utcnow().date()
        cumulative = Decimal('0')
        schedule = []
        for row in rows:
            cumulative += Decimal(str(row['payment']))
            if total_paid >= cumulative:
                status = 'paid'
            elif row['due_date'] < today:
                status = 'overdue'
            else:
                status = 'pending'
            schedule.append({
                'installmentNumber': row['installment_number'],
                'dueDate': row['due_date'].isoformat(),
                'payment': row['payment'],
                'principal': row['principal'],
                'interest': row['interest'],
                'remainingBalance': row['remaining_balance'],
                'status': status,
            })
        return schedule

    def to_dict(self):
        application = self.application
        return {
            'id': self.id,
            'applicationId': self.application_id,
            'userId': self.user_id,
            'financialInstitutionId': self.financial_institution_id,
            'projectName': application.project_name if application else None,
            'principal': _float(self.principal),
            'interestRate': _float(self.interest_rate),
            'term': self.term,
            'totalAmount': _float(self.total_amount),
            'outstandingBalance': _float(self.outstanding_balance),
            'monthlyPayment': _float(self.monthly_payment),
            'nextPaymentDate': _iso(self.next_payment_date),
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Account {self.id}>'

class Payment(db.Model):
    """Append-only repayment record"""
    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    account_id = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    balance_after = db.Column(db.Numeric(15, 2))  # Outstanding balance after this payment
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'accountId': self.account_id,
            'amount': _float(self.amount),
            'paymentDate': _iso(self.payment_date),
            'balanceAfter': _float(self.balance_after),
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Payment {self.id}>'

class Notification(db.Model):
    """Per-user event log read by polling clients"""
    __tablename__ = 'notifications'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    related_id = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    recipient = db.relationship('User', backref=db.backref('notifications', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'isRead': self.is_read,
            'relatedId': self.related_id,
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Notification {self.type}>'

# Document Models
class Document(db.Model):
    """Versioned KYC file uploaded by a user"""
    __tablename__ = 'documents'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    document_type = db.Column(db.String(60), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    original_file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    version = db.Column(db.Integer, default=1, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    replaced_by_id = db.Column(db.String(36), db.ForeignKey('documents.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship('User', backref=db.backref('documents', lazy='dynamic'))
    application_links = db.relationship('CreditApplicationDocument', backref='document', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'documentType': self.document_type,
            'fileName': self.file_name,
            'originalFileName': self.original_file_name,
            'fileSize': self.file_size,
            'mimeType': self.mime_type,
            'version': self.version,
            'isActive': self.is_active,
            'replacedById': self.replaced_by_id,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Document {self.document_type} v{self.version}>'

class CreditApplicationDocument(db.Model):
    """Link between an application and a supporting document"""
    __tablename__ = 'credit_application_documents'
    __table_args__ = (
        db.UniqueConstraint('credit_application_id', 'document_id', name='uq_application_document'),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    credit_application_id = db.Column(db.String(36), db.ForeignKey('credit_applications.id'), nullable=False, index=True)
    document_id = db.Column(db.String(36), db.ForeignKey('documents.id'), nullable=False, index=True)
    is_required = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

# Audit
class ActivityLog(db.Model):
    """Activity log for audit trail"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), index=True)
    action = db.Column(db.String(100), nullable=False)
    entity_type = db.Column(db.String(50))  # credit_application, account, credit_program, etc.
    entity_id = db.Column(db.String(36))
    description = db.Column(db.Text)
    ip_address = db.Column(db.String(50))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<ActivityLog {self.action}>'
