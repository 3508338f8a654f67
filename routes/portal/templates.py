# routes/portal/templates.py
"""
Template management routes.
"""

from flask import jsonify, request
from flask_login import current_user, login_required

from permissions import MANAGE_TEMPLATES, permission_required
from . import portal_bp
from .helpers import get_json_body, get_services


# =============================================================================
# TEMPLATE CRUD
# =============================================================================

@portal_bp.route('/templates', methods=['GET'])
@login_required
def list_templates():
    """List templates, optionally filtered by ?category=."""
    templates = get_services().templates.list_templates(request.args.get('category'))
    return jsonify({'success': True, 'templates': [t.to_dict() for t in templates]})


@portal_bp.route('/templates', methods=['POST'])
@login_required
@permission_required(MANAGE_TEMPLATES)
def create_template():
    template = get_services().templates.create_template(get_json_body(), current_user)
    return jsonify({'success': True, 'template': template.to_dict()}), 201


@portal_bp.route('/templates/<template_id>', methods=['GET'])
@login_required
def get_template(template_id):
    template = get_services().templates.get_or_raise(template_id)
    return jsonify({'success': True, 'template': template.to_dict()})


@portal_bp.route('/templates/<template_id>', methods=['PUT'])
@login_required
@permission_required(MANAGE_TEMPLATES)
def update_template(template_id):
    template = get_services().templates.update_template(template_id, get_json_body(), current_user)
    return jsonify({'success': True, 'template': template.to_dict()})


@portal_bp.route('/templates/<template_id>', methods=['DELETE'])
@login_required
@permission_required(MANAGE_TEMPLATES)
def delete_template(template_id):
    get_services().templates.delete_template(template_id, current_user)
    return jsonify({'success': True})
