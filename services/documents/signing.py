"""
Signature Capture Flow

Presents a document to one of its recipients and turns their
confirmation into a stamped, stored PDF plus exactly one recorded
signature.

Only one render may be in flight per (document, recipient); a second
submit while the first is rendering raises SigningInProgress.
"""

import logging
import threading
from typing import Optional

from permissions import SIGN_CONTRACT, require_permission

from .artifacts import SIGNED_FOLDER, generate_storage_path
from .exceptions import AlreadySigned, DocumentError, NotARecipient, SigningInProgress
from .types import Document, utc_now_iso

logger = logging.getLogger(__name__)


class SignatureCaptureFlow:
    """
    Usage:
        flow = SignatureCaptureFlow(engine, renderer, artifacts)
        review_pdf = flow.present_for_signature(document_id, recipient)
        document = flow.complete_signature(document_id, recipient, signature_png_b64)
    """

    def __init__(self, engine, renderer, artifacts):
        self.engine = engine
        self.renderer = renderer
        self.artifacts = artifacts
        self._lock = threading.Lock()
        self._in_flight = set()

    def is_in_flight(self, document_id: str, recipient_id: str) -> bool:
        with self._lock:
            return (document_id, recipient_id) in self._in_flight

    def _check_can_sign(self, document_id: str, recipient) -> Document:
        require_permission(recipient, SIGN_CONTRACT)
        document = self.engine.get_document(document_id)
        if recipient.id not in document.sent_to:
            raise NotARecipient(document_id, recipient.id)
        if document.has_signed(recipient.id) or self.engine.has_signed_document(document_id, recipient.id):
            raise AlreadySigned(document_id, recipient.id)
        return document

    def present_for_signature(self, document_id: str, recipient) -> bytes:
        """
        Render the review PDF for `recipient`.

        Raises:
            PermissionDenied, DocumentNotFound, NotARecipient, AlreadySigned, RenderError
        """
        document = self._check_can_sign(document_id, recipient)
        return self.renderer.render(
            document,
            getattr(recipient, 'name', None),
            getattr(recipient, 'email', None),
        )

    def complete_signature(self, document_id: str, recipient,
                           signature_image: Optional[str] = None) -> Document:
        """
        Stamp, store and record `recipient`'s signature.

        The signed artifact is stored before the signature is recorded; if
        recording fails the artifact is deleted again, so a failure leaves
        neither a signature nor an orphaned file.

        Args:
            document_id: Document to sign
            recipient: Signing user (id, name, email, role)
            signature_image: Optional base64 PNG of the drawn signature

        Returns:
            The updated document

        Raises:
            SigningInProgress: a signing render for this pair is already running
            RenderError: review or stamp rendering failed
        """
        key = (document_id, recipient.id)
        with self._lock:
            if key in self._in_flight:
                logger.warning(f"Signing of {document_id} by {recipient.id} already in progress")
                raise SigningInProgress(document_id, recipient.id)
            self._in_flight.add(key)

        try:
            review = self.present_for_signature(document_id, recipient)
            signed_at = utc_now_iso()
            signed_pdf = self.renderer.stamp_signature(
                review,
                getattr(recipient, 'name', '') or recipient.id,
                signed_at[:10],
                signature_image,
            )

            locator = self.artifacts.upload(generate_storage_path(SIGNED_FOLDER, document_id), signed_pdf)
            try:
                document = self.engine.record_signature(document_id, recipient, locator)
            except DocumentError:
                logger.error(f"Recording signature on {document_id} by {recipient.id} failed; removing {locator}")
                self.artifacts.delete(locator)
                raise
        finally:
            with self._lock:
                self._in_flight.discard(key)

        return document
