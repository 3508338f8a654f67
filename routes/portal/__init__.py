# routes/portal/__init__.py
"""
Portal JSON API Package
All routes require a caller identified by the X-Portal-User header

This package splits the workflow routes into logical modules:
- errors.py: Workflow exceptions to JSON responses
- templates.py: Template CRUD
- documents.py: Issuing, viewing and signing documents
- contracts.py: Issuing and reviewing contracts
- artifacts.py: PDF downloads
"""

from flask import Blueprint

# Create the blueprint - all sub-modules will register routes on this
portal_bp = Blueprint('portal', __name__, url_prefix='/api')

# Import all route modules AFTER blueprint creation
# Each module imports portal_bp and registers routes on it
from . import errors
from . import templates
from . import documents
from . import contracts
from . import artifacts
