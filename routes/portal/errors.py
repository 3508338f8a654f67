# routes/portal/errors.py
"""
Translate workflow exceptions into JSON error responses.
"""

from flask import current_app, jsonify

from services.documents.exceptions import (
    ArtifactNotFound,
    ConfigurationError,
    ContractNotFound,
    DocumentError,
    DocumentNotFound,
    PermissionDenied,
    PersistenceError,
    RenderError,
    SigningInProgress,
    TemplateNotFound,
)
from . import portal_bp

# Checked in order; first match wins
STATUS_CODES = (
    ((TemplateNotFound, DocumentNotFound, ContractNotFound, ArtifactNotFound), 404),
    (PermissionDenied, 403),
    (SigningInProgress, 409),
    (RenderError, 502),
    (PersistenceError, 503),
    (ConfigurationError, 500),
)


def status_for(error: DocumentError) -> int:
    for exc_types, status in STATUS_CODES:
        if isinstance(error, exc_types):
            return status
    return 400


@portal_bp.errorhandler(DocumentError)
def handle_document_error(error):
    status = status_for(error)
    if status >= 500:
        current_app.logger.error(f"{type(error).__name__}: {error}")
    else:
        current_app.logger.info(f"Rejected request ({status}): {error}")
    return jsonify({'success': False, 'error': str(error), 'type': type(error).__name__}), status
