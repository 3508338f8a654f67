"""
Distribution Engine

Issues documents from templates to one or more recipients, records each
recipient's signature, and derives the document status from the
signature set.

Status is never written on its own. It is recomputed by
`derive_status` whenever a document is built, so it always agrees with
the recipients and signatures it was computed from, including after a
restart.

Each operation runs its read-modify-write inside `store.transaction()`
so a double-submitted signature is rejected instead of stored twice.
"""

import logging
import uuid
from dataclasses import replace
from typing import Iterable, List, Optional

from permissions import (
    CREATE_CONTRACT,
    SIGN_CONTRACT,
    VIEW_ALL_SIGNATURES,
    has_permission,
    require_permission,
)

from .artifacts import SOURCE_FOLDER, generate_storage_path
from .exceptions import (
    AlreadySigned,
    DocumentNotFound,
    NotARecipient,
    PersistenceError,
    ValidationError,
)
from .types import (
    DOCUMENTS_KEY,
    SIGNATURES_KEY,
    Document,
    DocumentCategory,
    Signature,
    Template,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


def new_document_id() -> str:
    return f"doc-{uuid.uuid4().hex}"


def new_signature_id() -> str:
    return f"sig-{uuid.uuid4().hex}"


def _unique_recipients(recipients: Iterable[str]) -> tuple:
    if recipients is None:
        return ()
    if not isinstance(recipients, (list, tuple)):
        raise ValidationError("Recipients must be a list of user ids", field='recipients')
    seen = []
    for recipient in recipients:
        if not isinstance(recipient, str):
            raise ValidationError(f"Recipient id must be a string, got {recipient!r}", field='recipients')
        recipient = recipient.strip()
        if recipient and recipient not in seen:
            seen.append(recipient)
    return tuple(seen)


def _parse_document_category(value) -> DocumentCategory:
    if isinstance(value, DocumentCategory):
        return value
    try:
        return DocumentCategory(value)
    except ValueError:
        allowed = [c.value for c in DocumentCategory]
        raise ValidationError(f"Unknown document category '{value}'. Allowed: {allowed}", field='category')


class DistributionEngine:
    """
    Sends documents to recipients and tracks their signatures.

    Usage:
        engine = DistributionEngine(store, DocumentRenderer(), artifacts)
        document = engine.issue(template, ['u1', 'u2'], actor=manager)
        engine.record_signature(document.id, owner, signed_locator)
        engine.get_document(document.id).status   # DocumentStatus.SIGNED
    """

    def __init__(self, store, renderer, artifacts):
        self.store = store
        self.renderer = renderer
        self.artifacts = artifacts

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _load_documents(self) -> List[Document]:
        return [Document.from_dict(item) for item in self.store.get_collection(DOCUMENTS_KEY)]

    def _load_signatures(self) -> List[Signature]:
        return [Signature.from_dict(item) for item in self.store.get_collection(SIGNATURES_KEY)]

    def find_document(self, document_id: str) -> Optional[Document]:
        item = self.store.find_item(DOCUMENTS_KEY, document_id)
        return Document.from_dict(item) if item else None

    def get_document(self, document_id: str) -> Document:
        document = self.find_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    def has_signed_document(self, document_id: str, user_id: str) -> bool:
        """Check the signer index for a signature by `user_id` on `document_id`."""
        return any(
            s.document_id == document_id and s.signed_by == user_id
            for s in self._load_signatures()
        )

    def signatures_by_user(self, user_id: str) -> List[Signature]:
        return [s for s in self._load_signatures() if s.signed_by == user_id]

    def signatures_for_document(self, document_id: str, actor) -> List[Signature]:
        """All signatures on a document across recipients. Managers only."""
        require_permission(actor, VIEW_ALL_SIGNATURES)
        self.get_document(document_id)
        return [s for s in self._load_signatures() if s.document_id == document_id]

    def pending_recipients(self, document_id: str) -> List[str]:
        return self.get_document(document_id).pending_recipients

    def documents_for_user(self, actor) -> List[Document]:
        """
        Documents visible to `actor`.

        Managers see the documents they sent; recipients see the documents
        sent to them; other roles see none.
        """
        role = getattr(actor, 'role', None)
        if has_permission(role, CREATE_CONTRACT):
            return [d for d in self._load_documents() if d.created_by == actor.id]
        if has_permission(role, SIGN_CONTRACT):
            return [d for d in self._load_documents() if actor.id in d.sent_to]
        return []

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def issue(self, template: Template, recipients: Iterable[str], actor,
              title: Optional[str] = None, description: Optional[str] = None,
              category=None) -> Document:
        """
        Issue a document from `template` to `recipients`.

        The template's fields are copied into the document, so later
        template edits never change it. The source PDF is rendered and
        stored before anything is persisted; a render failure leaves no
        trace.

        Raises:
            PermissionDenied: actor cannot send documents
            ValidationError: no recipients or unknown category
            RenderError: the source artifact could not be rendered
        """
        require_permission(actor, CREATE_CONTRACT)

        sent_to = _unique_recipients(recipients)
        if not sent_to:
            raise ValidationError("A document needs at least one recipient", field='recipients')

        if category is None:
            category = DocumentCategory.CONTRACT if template.is_contract_template else DocumentCategory.FORM
        category = _parse_document_category(category)

        document = Document(
            id=new_document_id(),
            title=(title or template.name).strip(),
            description=description if description is not None else template.description,
            source_artifact_locator='',
            category=category,
            created_by=actor.id,
            created_at=utc_now_iso(),
            sent_to=sent_to,
            signatures=(),
            fields=tuple(template.fields),
            template_id=template.id,
        )

        pdf_bytes = self.renderer.render(document)
        locator = self.artifacts.upload(generate_storage_path(SOURCE_FOLDER, document.id), pdf_bytes)
        document = replace(document, source_artifact_locator=locator)

        try:
            with self.store.transaction():
                self.store.add_item(DOCUMENTS_KEY, document.to_dict())
        except PersistenceError:
            self.artifacts.delete(locator)
            raise

        logger.info(
            f"Document '{document.title}' ({document.id}) sent by {actor.id} "
            f"to {len(sent_to)} recipient(s)"
        )
        return document

    # -------------------------------------------------------------------------
    # Signatures
    # -------------------------------------------------------------------------

    def record_signature(self, document_id: str, signer, signed_artifact_locator: str) -> Document:
        """
        Record `signer`'s signature on a document and return the updated document.

        Args:
            document_id: Document being signed
            signer: The signing user (id, name, role); must hold SIGN_CONTRACT
            signed_artifact_locator: Where the signed PDF was stored

        Raises:
            PermissionDenied: signer's role cannot sign
            DocumentNotFound: unknown document
            AlreadySigned: signer already has a signature on this document
            NotARecipient: signer is not in the document's recipients
        """
        require_permission(signer, SIGN_CONTRACT)

        with self.store.transaction():
            documents = self.store.get_collection(DOCUMENTS_KEY)
            raw = next((d for d in documents if d.get('id') == document_id), None)
            if raw is None:
                raise DocumentNotFound(document_id)
            document = Document.from_dict(raw)

            if document.has_signed(signer.id) or self.has_signed_document(document_id, signer.id):
                logger.warning(f"Duplicate signature by {signer.id} on {document_id} rejected")
                raise AlreadySigned(document_id, signer.id)

            if signer.id not in document.sent_to:
                logger.warning(f"Signature by non-recipient {signer.id} on {document_id} rejected")
                raise NotARecipient(document_id, signer.id)

            signature = Signature(
                id=new_signature_id(),
                document_id=document_id,
                signed_by=signer.id,
                signer_name=getattr(signer, 'name', '') or signer.id,
                signed_at=utc_now_iso(),
                signed_artifact_locator=signed_artifact_locator,
            )
            updated = document.with_signature(signature)

            self.store.set(
                DOCUMENTS_KEY,
                [updated.to_dict() if d.get('id') == document_id else d for d in documents],
            )
            try:
                self.store.add_item(SIGNATURES_KEY, signature.to_dict())
            except PersistenceError:
                logger.error(f"Signature index write failed for {document_id}; restoring document")
                self.store.set(DOCUMENTS_KEY, documents)
                raise

        logger.info(
            f"Document {document_id} signed by {signer.id} "
            f"({len(updated.signatures)}/{len(updated.sent_to)}), status {updated.status.value}"
        )
        return updated
