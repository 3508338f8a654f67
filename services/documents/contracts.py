"""
Contract Service

Issues single-recipient contracts from `contracts` templates and runs
the owner's review:

    sent -> agreed
    sent -> disagreed

Both outcomes are terminal. A property manager who wants different
terms issues a new contract.
"""

import logging
import uuid
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Tuple

from permissions import (
    CREATE_CONTRACT,
    REVIEW_CONTRACT,
    has_permission,
    require_permission,
)

from .artifacts import CONTRACT_FOLDER, generate_storage_path
from .exceptions import (
    ContractNotFound,
    InvalidTransition,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from .types import (
    CONTRACTS_KEY,
    Contract,
    ContractStatus,
    Field,
    FieldType,
    Template,
    format_number,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

# Fields filled from the contract's owner, property and rates
RATE_FIELDS = (
    ('base_rate', 'Base Rate (per night)'),
    ('final_rate', 'Final Rate with Commission (per night)'),
    ('commission_rate', 'Platform Commission (%)'),
)


def new_contract_id() -> str:
    return f"contract-{uuid.uuid4().hex}"


def calculate_final_rate(base_rate, commission_percentage) -> Tuple[float, float]:
    """
    Apply the platform commission to a nightly base rate.

    The commission is rounded half-up to a whole amount, so a base rate
    of 100 at 15% gives (115, 15).

    Returns:
        (final_rate, commission_amount)
    """
    try:
        base = Decimal(str(base_rate))
        pct = Decimal(str(commission_percentage))
    except InvalidOperation:
        raise ValidationError(f"Invalid rate '{base_rate}'", field='baseRate')
    if not base.is_finite():
        raise ValidationError(f"Invalid rate '{base_rate}'", field='baseRate')
    if not pct.is_finite():
        raise ValidationError(f"Invalid commission '{commission_percentage}'", field='commissionPercentage')
    if base < 0:
        raise ValidationError("Base rate cannot be negative", field='baseRate')

    try:
        commission = (base * pct / 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        final = base + commission
    except InvalidOperation:
        raise ValidationError(f"Rate '{base_rate}' is out of range", field='baseRate')
    return float(final), float(commission)


def build_terms(commission_percentage, base_rate=None, final_rate=None) -> str:
    terms = f"Standard property rental agreement with {format_number(commission_percentage)}% platform commission."
    if base_rate is not None and final_rate is not None:
        terms += (
            f" Base rate: ${format_number(base_rate)}/night,"
            f" Final rate with commission: ${format_number(final_rate)}/night."
        )
    return terms


class ContractService:
    """
    Usage:
        contracts = ContractService(store, DocumentRenderer(), artifacts)
        contract = contracts.issue_contract(template, owner, actor=manager, base_rate=100)
        contracts.agree(contract.id, actor=owner)
    """

    def __init__(self, store, renderer, artifacts):
        self.store = store
        self.renderer = renderer
        self.artifacts = artifacts

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _load_contracts(self) -> List[Contract]:
        return [Contract.from_dict(item) for item in self.store.get_collection(CONTRACTS_KEY)]

    def get_contract(self, contract_id: str) -> Contract:
        item = self.store.find_item(CONTRACTS_KEY, contract_id)
        if item is None:
            raise ContractNotFound(contract_id)
        return Contract.from_dict(item)

    def contracts_for_owner(self, owner_id: str) -> List[Contract]:
        return [c for c in self._load_contracts() if c.owner_id == owner_id]

    def pending_contracts_for_owner(self, owner_id: str) -> List[Contract]:
        return [c for c in self.contracts_for_owner(owner_id) if c.status == ContractStatus.SENT]

    def contracts_for_user(self, actor) -> List[Contract]:
        """Managers see every contract; owners see their own."""
        role = getattr(actor, 'role', None)
        if has_permission(role, CREATE_CONTRACT):
            return self._load_contracts()
        if has_permission(role, REVIEW_CONTRACT):
            return self.contracts_for_owner(actor.id)
        return []

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def _fill_fields(self, template: Template, values: dict) -> Tuple[Field, ...]:
        fields = []
        for f in template.fields:
            key = 'base_rate' if f.id == 'rental_rate' else f.id
            if values.get(key) is not None:
                f = replace(f, value=values[key])
            fields.append(f)

        present = {f.id for f in fields}
        for field_id, label in RATE_FIELDS:
            if values.get(field_id) is None or field_id in present:
                continue
            if field_id == 'base_rate' and 'rental_rate' in present:
                continue
            fields.append(Field(id=field_id, label=label, type=FieldType.NUMBER,
                                required=True, value=values[field_id]))
        return tuple(fields)

    def issue_contract(self, template: Template, owner, actor, property_id: Optional[str] = None,
                       property_name: Optional[str] = None, base_rate=None) -> Contract:
        """
        Issue a contract from a `contracts` template to a single owner.

        Args:
            template: Contract template; its fields are copied into the contract
            owner: Receiving user (id, name, email, role)
            actor: Issuing user; must hold CREATE_CONTRACT
            property_id: Property the contract covers
            property_name: Filled into the `property_name` field
            base_rate: Nightly base rate; when given the final rate is computed

        Raises:
            PermissionDenied, ValidationError, RenderError, PersistenceError
        """
        require_permission(actor, CREATE_CONTRACT)

        if not template.is_contract_template:
            raise ValidationError(
                f"Template '{template.id}' is not a contract template",
                template_id=template.id, field='category',
            )
        if not has_permission(getattr(owner, 'role', None), REVIEW_CONTRACT):
            raise ValidationError(f"User '{owner.id}' cannot receive contracts", field='ownerId')

        commission = template.commission_percentage
        final_rate = None
        if base_rate is not None:
            final_rate, _ = calculate_final_rate(base_rate, commission)
            base_rate = float(Decimal(str(base_rate)))

        values = {
            'property_name': property_name,
            'owner_name': owner.name,
            'base_rate': format_number(base_rate) if base_rate is not None else None,
            'final_rate': format_number(final_rate) if final_rate is not None else None,
            'commission_rate': format_number(commission) if base_rate is not None else None,
        }

        contract = Contract(
            id=new_contract_id(),
            template_id=template.id,
            template_name=template.name,
            owner_id=owner.id,
            owner_name=owner.name,
            owner_email=owner.email,
            terms=build_terms(commission, base_rate, final_rate),
            commission_percentage=commission,
            fields=self._fill_fields(template, values),
            status=ContractStatus.SENT,
            sent_at=utc_now_iso(),
            created_by=actor.id,
            property_id=property_id,
            base_rate=base_rate,
            final_rate=final_rate,
        )

        pdf_bytes = self.renderer.render(contract, owner.name, owner.email)
        locator = self.artifacts.upload(generate_storage_path(CONTRACT_FOLDER, contract.id), pdf_bytes)
        contract = replace(contract, source_artifact_locator=locator)

        try:
            with self.store.transaction():
                self.store.add_item(CONTRACTS_KEY, contract.to_dict())
        except PersistenceError:
            self.artifacts.delete(locator)
            raise

        logger.info(f"Contract {contract.id} ({template.name}) sent by {actor.id} to owner {owner.id}")
        return contract

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def _transition(self, contract_id: str, actor, target: ContractStatus, reason: Optional[str] = None) -> Contract:
        require_permission(actor, REVIEW_CONTRACT)

        with self.store.transaction():
            contract = self.get_contract(contract_id)

            if contract.owner_id != actor.id:
                logger.warning(f"User {actor.id} tried to review contract {contract_id} owned by {contract.owner_id}")
                raise PermissionDenied(actor.role, REVIEW_CONTRACT)

            if contract.status.is_terminal:
                logger.warning(
                    f"Contract {contract_id} is already {contract.status.value}; "
                    f"cannot move to {target.value}"
                )
                raise InvalidTransition(contract_id, contract.status.value, target.value)

            now = utc_now_iso()
            if target == ContractStatus.AGREED:
                updates = {'status': target, 'reviewed_at': now, 'agreed_at': now}
            else:
                if reason is not None and not isinstance(reason, str):
                    raise ValidationError("Disagreement reason must be text", field='disagreementReason')
                if not reason or not reason.strip():
                    raise ValidationError("A reason is required to disagree with a contract",
                                          field='disagreementReason')
                updates = {
                    'status': target,
                    'reviewed_at': now,
                    'disagreed_at': now,
                    'disagreement_reason': reason.strip(),
                }

            contract = replace(contract, **updates)
            self.store.update_item(CONTRACTS_KEY, contract_id, contract.to_dict())

        logger.info(f"Contract {contract_id} {target.value} by owner {actor.id}")
        return contract

    def agree(self, contract_id: str, actor) -> Contract:
        """Owner accepts the contract. Terminal."""
        return self._transition(contract_id, actor, ContractStatus.AGREED)

    def disagree(self, contract_id: str, actor, reason: str) -> Contract:
        """Owner rejects the contract with a non-blank reason. Terminal."""
        return self._transition(contract_id, actor, ContractStatus.DISAGREED, reason)
