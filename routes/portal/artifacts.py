# routes/portal/artifacts.py
"""
PDF download route.
"""

import io
import posixpath

from flask import jsonify, send_file
from flask_login import current_user, login_required

from permissions import VIEW_ALL_SIGNATURES, has_permission
from . import portal_bp
from .helpers import get_services


def _visible_locators(services, user) -> set:
    """Artifacts a non-manager may download: their documents, own signed copies, own contracts."""
    locators = set()
    for document in services.engine.documents_for_user(user):
        locators.add(document.source_artifact_locator)
        signature = document.signature_for(user.id)
        if signature:
            locators.add(signature.signed_artifact_locator)
    for contract in services.contracts.contracts_for_owner(user.id):
        if contract.source_artifact_locator:
            locators.add(contract.source_artifact_locator)
    return locators


@portal_bp.route('/artifacts/<path:locator>', methods=['GET'])
@login_required
def download_artifact(locator):
    services = get_services()

    if not has_permission(current_user.role, VIEW_ALL_SIGNATURES):
        if locator not in _visible_locators(services, current_user):
            return jsonify({'success': False, 'error': 'Unauthorized'}), 403

    if not services.artifacts.exists(locator):
        return jsonify({'success': False, 'error': 'Artifact not found'}), 404

    data = services.artifacts.download(locator)
    return send_file(
        io.BytesIO(data),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=posixpath.basename(locator),
    )
