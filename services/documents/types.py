"""
Document Workflow Type Definitions

Dataclasses representing templates, issued documents, signatures and
contracts. All of them are immutable; services build new values and
persist them through the key-value store as camelCase dicts.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Key-value store collection keys
TEMPLATES_KEY = 'templates'
DOCUMENTS_KEY = 'pdfDocuments'
SIGNATURES_KEY = 'documentSignatures'
CONTRACTS_KEY = 'contracts'
USERS_KEY = 'users'

ALL_KEYS = (TEMPLATES_KEY, DOCUMENTS_KEY, SIGNATURES_KEY, CONTRACTS_KEY, USERS_KEY)


class FieldType(Enum):
    """Input types a template field may have."""
    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    DATE = "date"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"


class TemplateCategory(Enum):
    """Template categories. CONTRACTS templates carry a commission."""
    CONTRACTS = "contracts"
    INSPECTIONS = "inspections"
    MAINTENANCE = "maintenance"
    LEGAL = "legal"
    OTHER = "other"


class DocumentCategory(Enum):
    """Categories of distributed documents."""
    CONTRACT = "contract"
    FORM = "form"
    AGREEMENT = "agreement"
    NOTICE = "notice"


class DocumentStatus(Enum):
    """
    Document lifecycle status.

    DRAFT is kept for forward compatibility; no current flow produces it.
    SIGNED and COMPLETED are rollups derived from the signature set.
    """
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    COMPLETED = "completed"


class ContractStatus(Enum):
    """Contract lifecycle status. AGREED and DISAGREED are terminal."""
    SENT = "sent"
    AGREED = "agreed"
    DISAGREED = "disagreed"

    @property
    def is_terminal(self) -> bool:
        return self in (ContractStatus.AGREED, ContractStatus.DISAGREED)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def format_number(value) -> str:
    """Print a rate or percentage without a trailing `.0`: 15.0 -> "15", 12.5 -> "12.5"."""
    value = Decimal(str(value))
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), 'f')


@dataclass(frozen=True)
class Field:
    """
    A single input on a template.

    Attributes:
        id: Identifier, unique within its template
        label: Human readable label shown to the recipient
        type: Input type
        required: Whether the recipient must fill it
        default_value: Optional prefilled value
        value: Filled value (contracts snapshot property and rate values here)
    """
    id: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    default_value: Optional[str] = None
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'label': self.label,
            'type': self.type.value,
            'required': self.required,
        }
        if self.default_value is not None:
            data['defaultValue'] = self.default_value
        if self.value is not None:
            data['value'] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Field':
        return cls(
            id=data['id'],
            label=data.get('label', ''),
            type=FieldType(data.get('type', 'text')),
            required=bool(data.get('required', False)),
            default_value=data.get('defaultValue'),
            value=data.get('value'),
        )


def fields_to_list(fields) -> List[Dict[str, Any]]:
    return [f.to_dict() for f in fields]


def fields_from_list(items) -> Tuple[Field, ...]:
    return tuple(Field.from_dict(item) for item in items or [])


@dataclass(frozen=True)
class Template:
    """A reusable field schema from which documents and contracts are generated."""
    id: str
    name: str
    description: str
    category: TemplateCategory
    fields: Tuple[Field, ...]
    created_at: str
    created_by: str
    commission_percentage: Optional[float] = None

    @property
    def is_contract_template(self) -> bool:
        return self.category == TemplateCategory.CONTRACTS

    def get_field(self, field_id: str) -> Optional[Field]:
        return next((f for f in self.fields if f.id == field_id), None)

    def with_fields(self, fields) -> 'Template':
        return replace(self, fields=tuple(fields))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category.value,
            'fields': fields_to_list(self.fields),
            'commissionPercentage': self.commission_percentage,
            'createdAt': self.created_at,
            'createdBy': self.created_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Template':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            description=data.get('description', ''),
            category=TemplateCategory(data.get('category', 'other')),
            fields=fields_from_list(data.get('fields')),
            created_at=data.get('createdAt', ''),
            created_by=data.get('createdBy', ''),
            commission_percentage=data.get('commissionPercentage'),
        )


@dataclass(frozen=True)
class Signature:
    """A recipient's completed signature on a document."""
    id: str
    document_id: str
    signed_by: str
    signer_name: str
    signed_at: str
    signed_artifact_locator: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'documentId': self.document_id,
            'signedBy': self.signed_by,
            'signerName': self.signer_name,
            'signedAt': self.signed_at,
            'signedPdfUrl': self.signed_artifact_locator,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Signature':
        return cls(
            id=data['id'],
            document_id=data['documentId'],
            signed_by=data['signedBy'],
            signer_name=data.get('signerName', ''),
            signed_at=data.get('signedAt', ''),
            signed_artifact_locator=data.get('signedPdfUrl', ''),
        )


def derive_status(sent_to, signatures) -> DocumentStatus:
    """
    Compute a document's status from its recipients and signatures.

    Only signatures from actual recipients count, and each recipient
    counts once.
    """
    recipients = set(sent_to)
    signed = {s.signed_by for s in signatures} & recipients
    if not signed:
        return DocumentStatus.SENT
    if signed == recipients:
        return DocumentStatus.COMPLETED
    return DocumentStatus.SIGNED


@dataclass(frozen=True)
class Document:
    """
    A distributed, possibly multi-recipient document.

    There is no stored status: `status` is recomputed from `sent_to`
    and `signatures` every time it is read.
    """
    id: str
    title: str
    description: str
    source_artifact_locator: str
    category: DocumentCategory
    created_by: str
    created_at: str
    sent_to: Tuple[str, ...]
    signatures: Tuple[Signature, ...] = ()
    fields: Tuple[Field, ...] = ()
    template_id: Optional[str] = None

    @property
    def status(self) -> DocumentStatus:
        return derive_status(self.sent_to, self.signatures)

    def signature_for(self, user_id: str) -> Optional[Signature]:
        return next((s for s in self.signatures if s.signed_by == user_id), None)

    def has_signed(self, user_id: str) -> bool:
        return self.signature_for(user_id) is not None

    @property
    def pending_recipients(self) -> List[str]:
        return [r for r in self.sent_to if not self.has_signed(r)]

    def with_signature(self, signature: Signature) -> 'Document':
        return replace(self, signatures=self.signatures + (signature,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'pdfUrl': self.source_artifact_locator,
            'category': self.category.value,
            'createdBy': self.created_by,
            'createdAt': self.created_at,
            'sentTo': list(self.sent_to),
            'status': self.status.value,
            'signatures': [s.to_dict() for s in self.signatures],
            'fields': fields_to_list(self.fields),
            'templateId': self.template_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Document':
        # A persisted 'status' is ignored; it is always derived.
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            description=data.get('description', ''),
            source_artifact_locator=data.get('pdfUrl', ''),
            category=DocumentCategory(data.get('category', 'form')),
            created_by=data.get('createdBy', ''),
            created_at=data.get('createdAt', ''),
            sent_to=tuple(data.get('sentTo', [])),
            signatures=tuple(Signature.from_dict(s) for s in data.get('signatures', [])),
            fields=fields_from_list(data.get('fields')),
            template_id=data.get('templateId'),
        )


@dataclass(frozen=True)
class Contract:
    """A single-recipient contract issued from a `contracts` template."""
    id: str
    template_id: str
    template_name: str
    owner_id: str
    owner_name: str
    owner_email: str
    terms: str
    commission_percentage: float
    fields: Tuple[Field, ...]
    status: ContractStatus
    sent_at: str
    created_by: str
    property_id: Optional[str] = None
    base_rate: Optional[float] = None
    final_rate: Optional[float] = None
    source_artifact_locator: Optional[str] = None
    reviewed_at: Optional[str] = None
    agreed_at: Optional[str] = None
    disagreed_at: Optional[str] = None
    disagreement_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'templateId': self.template_id,
            'templateName': self.template_name,
            'propertyId': self.property_id,
            'ownerId': self.owner_id,
            'ownerName': self.owner_name,
            'ownerEmail': self.owner_email,
            'terms': self.terms,
            'commissionPercentage': self.commission_percentage,
            'fields': fields_to_list(self.fields),
            'baseRate': self.base_rate,
            'finalRate': self.final_rate,
            'status': self.status.value,
            'sentAt': self.sent_at,
            'createdBy': self.created_by,
            'pdfUrl': self.source_artifact_locator,
            'reviewedAt': self.reviewed_at,
            'agreedAt': self.agreed_at,
            'disagreedAt': self.disagreed_at,
            'disagreementReason': self.disagreement_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contract':
        return cls(
            id=data['id'],
            template_id=data.get('templateId', ''),
            template_name=data.get('templateName', ''),
            property_id=data.get('propertyId'),
            owner_id=data['ownerId'],
            owner_name=data.get('ownerName', ''),
            owner_email=data.get('ownerEmail', ''),
            terms=data.get('terms', ''),
            commission_percentage=data.get('commissionPercentage', 0),
            fields=fields_from_list(data.get('fields')),
            base_rate=data.get('baseRate'),
            final_rate=data.get('finalRate'),
            status=ContractStatus(data.get('status', 'sent')),
            sent_at=data.get('sentAt', ''),
            created_by=data.get('createdBy', ''),
            source_artifact_locator=data.get('pdfUrl'),
            reviewed_at=data.get('reviewedAt'),
            agreed_at=data.get('agreedAt'),
            disagreed_at=data.get('disagreedAt'),
            disagreement_reason=data.get('disagreementReason'),
        )


@dataclass(frozen=True)
class PortalUser:
    """A portal account as stored in the `users` collection."""
    id: str
    name: str
    email: str
    role: str
    verified: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'verified': self.verified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PortalUser':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            email=data.get('email', ''),
            role=data.get('role', 'customer'),
            verified=bool(data.get('verified', True)),
        )
