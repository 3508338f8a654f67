# routes/portal/contracts.py
"""
Contract issuing and review routes.
"""

from flask import jsonify, request
from flask_login import current_user, login_required

from permissions import CREATE_CONTRACT, has_permission, permission_required
from services.documents.exceptions import PermissionDenied
from services.documents.users import get_user_or_raise
from . import portal_bp
from .helpers import get_json_body, get_services, require_fields


@portal_bp.route('/contracts', methods=['GET'])
@login_required
def list_contracts():
    """All contracts for managers, own contracts for owners. ?status=sent for pending ones."""
    contracts = get_services().contracts.contracts_for_user(current_user)

    status = request.args.get('status')
    if status:
        contracts = [c for c in contracts if c.status.value == status]

    return jsonify({'success': True, 'contracts': [c.to_dict() for c in contracts]})


@portal_bp.route('/contracts', methods=['POST'])
@login_required
@permission_required(CREATE_CONTRACT)
def send_contract():
    data = get_json_body()
    require_fields(data, 'templateId', 'ownerId')

    services = get_services()
    template = services.templates.get_or_raise(data['templateId'])
    owner = get_user_or_raise(services.store, data['ownerId'])

    contract = services.contracts.issue_contract(
        template,
        owner,
        current_user,
        property_id=data.get('propertyId'),
        property_name=data.get('propertyName'),
        base_rate=data.get('baseRate'),
    )
    return jsonify({'success': True, 'contract': contract.to_dict()}), 201


@portal_bp.route('/contracts/<contract_id>', methods=['GET'])
@login_required
def get_contract(contract_id):
    contract = get_services().contracts.get_contract(contract_id)
    if contract.owner_id != current_user.id and not has_permission(current_user.role, CREATE_CONTRACT):
        raise PermissionDenied(current_user.role, 'view this contract')
    return jsonify({'success': True, 'contract': contract.to_dict()})


# =============================================================================
# REVIEW
# =============================================================================

@portal_bp.route('/contracts/<contract_id>/agree', methods=['POST'])
@login_required
def agree_to_contract(contract_id):
    contract = get_services().contracts.agree(contract_id, current_user)
    return jsonify({'success': True, 'contract': contract.to_dict()})


@portal_bp.route('/contracts/<contract_id>/disagree', methods=['POST'])
@login_required
def disagree_with_contract(contract_id):
    data = get_json_body()
    contract = get_services().contracts.disagree(contract_id, current_user, data.get('reason', ''))
    return jsonify({'success': True, 'contract': contract.to_dict()})
