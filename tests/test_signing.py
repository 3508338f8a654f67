"""
Signature capture flow tests.

Run with: python -m pytest tests/test_signing.py -v
"""

import base64
import io
import threading

import pytest
from PIL import Image
from pypdf import PdfReader

from services.documents import (
    SIGNATURES_KEY,
    AlreadySigned,
    DocumentRenderer,
    DocumentStatus,
    NotARecipient,
    PermissionDenied,
    PersistenceError,
    RenderError,
    SignatureCaptureFlow,
    SigningInProgress,
)

from conftest import MANAGER, OWNER_A, OWNER_B, OWNER_C


def _signature_png_b64():
    image = Image.new('RGBA', (120, 40), (255, 255, 255, 0))
    for x in range(10, 110):
        image.putpixel((x, 20), (0, 0, 0, 255))
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode()


class BrokenStampRenderer(DocumentRenderer):
    def stamp_signature(self, pdf_bytes, signer_name, signed_on, signature_image=None):
        raise RenderError("stamp failed")


class BlockingRenderer(DocumentRenderer):
    """Holds the stamp step until released so a second submit overlaps it."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def stamp_signature(self, pdf_bytes, signer_name, signed_on, signature_image=None):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().stamp_signature(pdf_bytes, signer_name, signed_on, signature_image)


class TestPresentForSignature:

    @pytest.fixture(autouse=True)
    def setup(self, engine, flow, inspection_template):
        self.engine = engine
        self.flow = flow
        self.document = engine.issue(inspection_template, [OWNER_A.id, OWNER_B.id], MANAGER)

    def test_returns_pdf_for_recipient(self):
        pdf_bytes = self.flow.present_for_signature(self.document.id, OWNER_A)
        assert pdf_bytes.startswith(b'%PDF')
        text = ''.join(page.extract_text() for page in PdfReader(io.BytesIO(pdf_bytes)).pages)
        assert OWNER_A.name in text

    def test_non_recipient_rejected(self):
        with pytest.raises(NotARecipient):
            self.flow.present_for_signature(self.document.id, OWNER_C)

    def test_manager_cannot_sign(self):
        with pytest.raises(PermissionDenied):
            self.flow.present_for_signature(self.document.id, MANAGER)

    def test_already_signed_rejected(self):
        self.flow.complete_signature(self.document.id, OWNER_A)
        with pytest.raises(AlreadySigned):
            self.flow.present_for_signature(self.document.id, OWNER_A)


class TestCompleteSignature:

    @pytest.fixture(autouse=True)
    def setup(self, engine, flow, artifacts, inspection_template):
        self.engine = engine
        self.flow = flow
        self.artifacts = artifacts
        self.document = engine.issue(inspection_template, [OWNER_A.id, OWNER_B.id], MANAGER)

    def test_two_recipient_scenario(self):
        """Issue to A and B; A signs -> signed; B signs -> completed; A again -> AlreadySigned."""
        after_a = self.flow.complete_signature(self.document.id, OWNER_A, _signature_png_b64())
        assert after_a.status == DocumentStatus.SIGNED

        after_b = self.flow.complete_signature(self.document.id, OWNER_B)
        assert after_b.status == DocumentStatus.COMPLETED
        assert len(after_b.signatures) == 2

        with pytest.raises(AlreadySigned):
            self.flow.complete_signature(self.document.id, OWNER_A)
        assert len(self.engine.get_document(self.document.id).signatures) == 2

    def test_signed_artifact_is_stored_and_stamped(self):
        document = self.flow.complete_signature(self.document.id, OWNER_A)
        locator = document.signature_for(OWNER_A.id).signed_artifact_locator

        assert locator.startswith(f'signed/{self.document.id}/')
        signed_pdf = self.artifacts.download(locator)
        text = PdfReader(io.BytesIO(signed_pdf)).pages[-1].extract_text()
        assert f'Signed by: {OWNER_A.name}' in text

    def test_each_recipient_gets_own_artifact(self):
        self.flow.complete_signature(self.document.id, OWNER_A)
        document = self.flow.complete_signature(self.document.id, OWNER_B)
        locators = {s.signed_artifact_locator for s in document.signatures}
        assert len(locators) == 2

    def test_render_failure_leaves_no_trace(self, store, engine, artifacts):
        flow = SignatureCaptureFlow(engine, BrokenStampRenderer(), artifacts)
        stored_before = len(artifacts)

        with pytest.raises(RenderError):
            flow.complete_signature(self.document.id, OWNER_A)

        assert self.engine.get_document(self.document.id).status == DocumentStatus.SENT
        assert store.get_collection(SIGNATURES_KEY) == []
        assert len(artifacts) == stored_before
        assert not flow.is_in_flight(self.document.id, OWNER_A.id)

    def test_invalid_signature_image(self):
        with pytest.raises(RenderError):
            self.flow.complete_signature(self.document.id, OWNER_A, 'not-an-image')
        assert not self.engine.has_signed_document(self.document.id, OWNER_A.id)

    def test_failed_record_removes_artifact(self, engine, artifacts, monkeypatch):
        def fail(*args, **kwargs):
            raise PersistenceError("store offline", key='pdfDocuments')

        monkeypatch.setattr(engine, 'record_signature', fail)
        stored_before = len(artifacts)

        with pytest.raises(PersistenceError):
            self.flow.complete_signature(self.document.id, OWNER_A)
        assert len(artifacts) == stored_before

    def test_concurrent_submit_rejected(self, engine, artifacts):
        renderer = BlockingRenderer()
        flow = SignatureCaptureFlow(engine, renderer, artifacts)
        results = {}

        def first_submit():
            results['document'] = flow.complete_signature(self.document.id, OWNER_A)

        worker = threading.Thread(target=first_submit)
        worker.start()
        assert renderer.entered.wait(timeout=5)
        assert flow.is_in_flight(self.document.id, OWNER_A.id)

        with pytest.raises(SigningInProgress):
            flow.complete_signature(self.document.id, OWNER_A)

        renderer.release.set()
        worker.join(timeout=10)

        assert results['document'].status == DocumentStatus.SIGNED
        assert len(engine.get_document(self.document.id).signatures) == 1
