"""
Template Store and Editor

Creates, updates and deletes reusable field templates, and provides the
pure field transforms the editor applies to a working copy before saving.

Every mutation writes the whole `templates` collection back through the
key-value store, which notifies other observers of the collection.

Usage:
    templates = TemplateStore(store)
    template = templates.create_template({
        'name': 'Rental Contract',
        'category': 'contracts',
        'commissionPercentage': 15,
        'fields': [{'label': 'Property Name', 'type': 'text', 'required': True}],
    }, actor=manager)

    draft = add_field(template)
    draft = update_field(draft, draft.fields[-1].id, label='Notes', type='textarea')
    templates.update_template(template.id, draft.to_dict(), actor=manager)
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional

from permissions import MANAGE_TEMPLATES, require_permission

from .exceptions import TemplateNotFound, ValidationError
from .types import (
    Field,
    FieldType,
    Template,
    TemplateCategory,
    TEMPLATES_KEY,
    fields_from_list,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

# Keys a patch may never change
IMMUTABLE_KEYS = ('id', 'createdAt', 'createdBy')


def new_template_id() -> str:
    return f"template-{uuid.uuid4().hex}"


def new_field_id() -> str:
    return f"field-{uuid.uuid4().hex[:12]}"


def new_field(label: str = '', type: str = 'text', required: bool = False,
              default_value: Optional[str] = None) -> Field:
    """Create a field with a fresh id. An empty label is allowed on a working copy."""
    return Field(
        id=new_field_id(),
        label=label,
        type=_parse_field_type(type),
        required=required,
        default_value=default_value,
    )


# =============================================================================
# VALIDATION
# =============================================================================

def _parse_field_type(value) -> FieldType:
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(value)
    except ValueError:
        allowed = [t.value for t in FieldType]
        raise ValidationError(f"Unknown field type '{value}'. Allowed: {allowed}", field='type')


def _parse_category(value) -> TemplateCategory:
    if isinstance(value, TemplateCategory):
        return value
    try:
        return TemplateCategory(value)
    except ValueError:
        allowed = [c.value for c in TemplateCategory]
        raise ValidationError(f"Unknown template category '{value}'. Allowed: {allowed}", field='category')


def _coerce_field(raw) -> Dict[str, Any]:
    """Normalise a Field or a raw dict into the stored dict shape, assigning an id if missing."""
    if isinstance(raw, Field):
        data = raw.to_dict()
    elif isinstance(raw, dict):
        data = dict(raw)
    else:
        raise ValidationError(f"Each field must be an object, got {raw!r}", field='fields')
    if not data.get('id'):
        data['id'] = new_field_id()
    return data


def validate_fields(fields: List[Field], template_id: str = None) -> None:
    """
    Check the field list invariants.

    Raises:
        ValidationError: empty list, missing label, or duplicate field id
    """
    if not fields:
        raise ValidationError("A template needs at least one field", template_id=template_id, field='fields')

    seen = set()
    for position, f in enumerate(fields, start=1):
        if not isinstance(f.label, str) or not f.label.strip():
            raise ValidationError(f"Field {position} is missing a label", template_id=template_id, field=f.id)
        if f.id in seen:
            raise ValidationError(f"Duplicate field id '{f.id}'", template_id=template_id, field=f.id)
        seen.add(f.id)


def _validate_commission(category: TemplateCategory, commission, template_id: str = None):
    if commission is None:
        if category == TemplateCategory.CONTRACTS:
            raise ValidationError(
                "Contract templates require a commission percentage",
                template_id=template_id,
                field='commissionPercentage',
            )
        return None

    try:
        commission = float(commission)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Commission percentage must be a number, got {commission!r}",
            template_id=template_id,
            field='commissionPercentage',
        )
    if not 0 <= commission <= 100:
        raise ValidationError(
            f"Commission percentage must be between 0 and 100, got {commission}",
            template_id=template_id,
            field='commissionPercentage',
        )
    return commission


def build_template(data: Dict[str, Any]) -> Template:
    """
    Validate a raw template dict and convert it to a Template.

    `data` uses the stored camelCase keys. `id`, `createdAt` and
    `createdBy` must already be present.
    """
    template_id = data.get('id')
    name = data.get('name') or ''
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Template name is required", template_id=template_id, field='name')
    name = name.strip()

    category = _parse_category(data.get('category', TemplateCategory.OTHER.value))

    given_fields = data.get('fields') or []
    if not isinstance(given_fields, (list, tuple)):
        raise ValidationError("Fields must be a list", template_id=template_id, field='fields')
    raw_fields = [_coerce_field(f) for f in given_fields]
    for raw in raw_fields:
        _parse_field_type(raw.get('type', 'text'))
    fields = fields_from_list(raw_fields)
    validate_fields(fields, template_id)

    commission = _validate_commission(category, data.get('commissionPercentage'), template_id)

    return Template(
        id=template_id,
        name=name,
        description=data.get('description') or '',
        category=category,
        fields=fields,
        created_at=data['createdAt'],
        created_by=data['createdBy'],
        commission_percentage=commission,
    )


# =============================================================================
# PURE FIELD TRANSFORMS
# =============================================================================

def add_field(template: Template, field: Field = None) -> Template:
    """Return a copy of `template` with `field` (or a blank new field) appended."""
    field = field or new_field()
    if template.get_field(field.id):
        raise ValidationError(f"Duplicate field id '{field.id}'", template_id=template.id, field=field.id)
    return template.with_fields(template.fields + (field,))


def update_field(template: Template, field_id: str, **updates) -> Template:
    """
    Return a copy of `template` with one field changed.

    Accepted updates: label, type, required, default_value.
    """
    if template.get_field(field_id) is None:
        raise ValidationError(f"Unknown field '{field_id}'", template_id=template.id, field=field_id)

    allowed = {'label', 'type', 'required', 'default_value'}
    unknown = set(updates) - allowed
    if unknown:
        raise ValidationError(f"Cannot update field attributes: {sorted(unknown)}", template_id=template.id)
    if 'type' in updates:
        updates['type'] = _parse_field_type(updates['type'])

    return template.with_fields(
        replace(f, **updates) if f.id == field_id else f
        for f in template.fields
    )


def remove_field(template: Template, field_id: str) -> Template:
    """Return a copy of `template` without the field. The last field can never be removed."""
    if template.get_field(field_id) is None:
        raise ValidationError(f"Unknown field '{field_id}'", template_id=template.id, field=field_id)
    if len(template.fields) <= 1:
        raise ValidationError("A template must keep at least one field", template_id=template.id, field=field_id)
    return template.with_fields(f for f in template.fields if f.id != field_id)


# =============================================================================
# STORE
# =============================================================================

class TemplateStore:
    """Reads and writes the `templates` collection."""

    def __init__(self, store, default_commission=None):
        self.store = store
        self.default_commission = default_commission

    def _load_all(self) -> List[Template]:
        return [Template.from_dict(item) for item in self.store.get_collection(TEMPLATES_KEY)]

    def _save_all(self, templates: List[Template]) -> None:
        self.store.set(TEMPLATES_KEY, [t.to_dict() for t in templates])

    def list_templates(self, category=None) -> List[Template]:
        templates = self._load_all()
        if category is not None:
            category = _parse_category(category)
            templates = [t for t in templates if t.category == category]
        return templates

    def get_template(self, template_id: str) -> Optional[Template]:
        return next((t for t in self._load_all() if t.id == template_id), None)

    def get_or_raise(self, template_id: str) -> Template:
        template = self.get_template(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    def create_template(self, data: Dict[str, Any], actor) -> Template:
        """
        Create and persist a template.

        Args:
            data: camelCase dict with name, description, category, fields,
                commissionPercentage
            actor: the user creating it (must hold MANAGE_TEMPLATES)
        """
        require_permission(actor, MANAGE_TEMPLATES)

        payload = {k: v for k, v in data.items() if k not in IMMUTABLE_KEYS}
        if (payload.get('category') == TemplateCategory.CONTRACTS.value
                and payload.get('commissionPercentage') is None):
            payload['commissionPercentage'] = self.default_commission
        payload.update({
            'id': new_template_id(),
            'createdAt': utc_now_iso(),
            'createdBy': actor.id,
        })
        template = build_template(payload)

        with self.store.transaction():
            self._save_all(self._load_all() + [template])

        logger.info(f"Template '{template.name}' ({template.id}) created by {actor.id}")
        return template

    def update_template(self, template_id: str, patch: Dict[str, Any], actor) -> Template:
        """Replace a stored template with `patch` merged over it."""
        require_permission(actor, MANAGE_TEMPLATES)

        with self.store.transaction():
            templates = self._load_all()
            existing = next((t for t in templates if t.id == template_id), None)
            if existing is None:
                logger.warning(f"Update of unknown template {template_id} rejected")
                raise TemplateNotFound(template_id)

            merged = existing.to_dict()
            merged.update({k: v for k, v in patch.items() if k not in IMMUTABLE_KEYS})
            updated = build_template(merged)

            self._save_all([updated if t.id == template_id else t for t in templates])

        logger.info(f"Template {template_id} updated by {actor.id}")
        return updated

    def delete_template(self, template_id: str, actor) -> None:
        """Remove a template. Documents and contracts already issued from it are untouched."""
        require_permission(actor, MANAGE_TEMPLATES)

        with self.store.transaction():
            if not self.store.remove_item(TEMPLATES_KEY, template_id):
                logger.warning(f"Delete of unknown template {template_id} rejected")
                raise TemplateNotFound(template_id)

        logger.info(f"Template {template_id} deleted by {actor.id}")
