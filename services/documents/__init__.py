"""
Document Distribution and Signature Workflow

Templates define fields; the distribution engine issues documents from
them to recipients and records signatures; the contract service runs the
single-owner agree/disagree flow. Rendered and signed PDFs live in
artifact storage, everything else in the injected key-value store.

Usage:
    from services.documents import (
        DistributionEngine, DocumentRenderer, MemoryArtifactStorage,
        SignatureCaptureFlow, TemplateStore,
    )

    renderer = DocumentRenderer()
    artifacts = MemoryArtifactStorage()
    templates = TemplateStore(store)
    engine = DistributionEngine(store, renderer, artifacts)
    flow = SignatureCaptureFlow(engine, renderer, artifacts)

    document = engine.issue(templates.get_or_raise('default-property-inspection'), ['u1'], actor=manager)
    flow.complete_signature(document.id, owner)
"""

from .types import (
    TEMPLATES_KEY,
    DOCUMENTS_KEY,
    SIGNATURES_KEY,
    CONTRACTS_KEY,
    USERS_KEY,
    FieldType,
    TemplateCategory,
    DocumentCategory,
    DocumentStatus,
    ContractStatus,
    Field,
    Template,
    Signature,
    Document,
    Contract,
    PortalUser,
    derive_status,
)

from .exceptions import (
    DocumentError,
    ConfigurationError,
    ValidationError,
    TemplateNotFound,
    DocumentNotFound,
    ContractNotFound,
    AlreadySigned,
    NotARecipient,
    InvalidTransition,
    PermissionDenied,
    SigningInProgress,
    RenderError,
    PersistenceError,
    ArtifactNotFound,
)

from .templates import TemplateStore, new_field, add_field, update_field, remove_field
from .loader import TemplateLoader
from .renderer import DocumentRenderer
from .artifacts import LocalArtifactStorage, MemoryArtifactStorage
from .distribution import DistributionEngine
from .contracts import ContractService, calculate_final_rate
from .signing import SignatureCaptureFlow

__all__ = [
    # Collection keys
    'TEMPLATES_KEY',
    'DOCUMENTS_KEY',
    'SIGNATURES_KEY',
    'CONTRACTS_KEY',
    'USERS_KEY',

    # Types
    'FieldType',
    'TemplateCategory',
    'DocumentCategory',
    'DocumentStatus',
    'ContractStatus',
    'Field',
    'Template',
    'Signature',
    'Document',
    'Contract',
    'PortalUser',
    'derive_status',

    # Exceptions
    'DocumentError',
    'ConfigurationError',
    'ValidationError',
    'TemplateNotFound',
    'DocumentNotFound',
    'ContractNotFound',
    'AlreadySigned',
    'NotARecipient',
    'InvalidTransition',
    'PermissionDenied',
    'SigningInProgress',
    'RenderError',
    'PersistenceError',
    'ArtifactNotFound',

    # Templates
    'TemplateStore',
    'TemplateLoader',
    'new_field',
    'add_field',
    'update_field',
    'remove_field',

    # Services
    'DocumentRenderer',
    'LocalArtifactStorage',
    'MemoryArtifactStorage',
    'DistributionEngine',
    'ContractService',
    'calculate_final_rate',
    'SignatureCaptureFlow',
]
