# routes/portal/documents.py
"""
Document distribution and signing routes.
"""

import io

from flask import jsonify, send_file
from flask_login import current_user, login_required

from permissions import CREATE_CONTRACT, VIEW_ALL_SIGNATURES, has_permission, permission_required
from services.documents.exceptions import PermissionDenied
from . import portal_bp
from .helpers import get_json_body, get_services, require_fields


def _document_payload(document, user):
    data = document.to_dict()
    data['hasSigned'] = document.has_signed(user.id)
    data['pendingRecipients'] = document.pending_recipients
    return data


# =============================================================================
# DOCUMENTS
# =============================================================================

@portal_bp.route('/documents', methods=['GET'])
@login_required
def list_documents():
    """Documents the current user sent (managers) or received (owners)."""
    documents = get_services().engine.documents_for_user(current_user)
    return jsonify({
        'success': True,
        'documents': [_document_payload(d, current_user) for d in documents],
    })


@portal_bp.route('/documents', methods=['POST'])
@login_required
@permission_required(CREATE_CONTRACT)
def send_document():
    """Issue a document from a template to one or more recipients."""
    data = get_json_body()
    require_fields(data, 'templateId', 'recipients')

    services = get_services()
    template = services.templates.get_or_raise(data['templateId'])
    document = services.engine.issue(
        template,
        data['recipients'],
        current_user,
        title=data.get('title'),
        description=data.get('description'),
        category=data.get('category'),
    )
    return jsonify({'success': True, 'document': _document_payload(document, current_user)}), 201


@portal_bp.route('/documents/<document_id>', methods=['GET'])
@login_required
def get_document(document_id):
    document = get_services().engine.get_document(document_id)

    allowed = (
        document.created_by == current_user.id
        or current_user.id in document.sent_to
        or has_permission(current_user.role, VIEW_ALL_SIGNATURES)
    )
    if not allowed:
        raise PermissionDenied(current_user.role, 'view this document')

    return jsonify({'success': True, 'document': _document_payload(document, current_user)})


@portal_bp.route('/documents/<document_id>/signatures', methods=['GET'])
@login_required
def list_signatures(document_id):
    signatures = get_services().engine.signatures_for_document(document_id, current_user)
    return jsonify({'success': True, 'signatures': [s.to_dict() for s in signatures]})


# =============================================================================
# SIGNING
# =============================================================================

@portal_bp.route('/documents/<document_id>/review', methods=['GET'])
@login_required
def review_document(document_id):
    """Render the PDF the current user is asked to sign."""
    pdf_bytes = get_services().signing.present_for_signature(document_id, current_user)
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype='application/pdf',
        download_name=f'{document_id}.pdf',
    )


@portal_bp.route('/documents/<document_id>/sign', methods=['POST'])
@login_required
def sign_document(document_id):
    """
    Sign a document as the current user.

    Body may carry `signatureImage`, a base64 PNG of the drawn signature.
    """
    data = get_json_body()
    document = get_services().signing.complete_signature(
        document_id,
        current_user,
        signature_image=data.get('signatureImage'),
    )
    return jsonify({'success': True, 'document': _document_payload(document, current_user)})
