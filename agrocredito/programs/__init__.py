from flask import Blueprint

programs_bp = Blueprint('programs', __name__)

from agrocredito.programs import routes
