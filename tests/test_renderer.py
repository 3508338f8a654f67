"""
Renderer tests.

Run with: python -m pytest tests/test_renderer.py -v
"""

import base64
import io

import pytest
from PIL import Image
from pypdf import PdfReader

from services.documents import DocumentRenderer, RenderError


def _text(pdf_bytes):
    return '\n'.join(page.extract_text() for page in PdfReader(io.BytesIO(pdf_bytes)).pages)


class TestRender:

    @pytest.fixture(autouse=True)
    def setup(self, renderer):
        self.renderer = renderer

    def test_same_input_same_bytes(self, contract_template):
        first = self.renderer.render(contract_template, 'Ana Cruz', 'ana@portal.test')
        second = self.renderer.render(contract_template, 'Ana Cruz', 'ana@portal.test')
        assert first == second

    def test_contract_template_layout(self, contract_template):
        text = _text(self.renderer.render(contract_template, 'Ana Cruz', 'ana@portal.test'))
        assert 'PROPERTY RENTAL CONTRACT' in text
        assert 'Commission Rate: 15%' in text
        assert '15.0%' not in text
        assert 'Name: Ana Cruz' in text
        assert 'Terms and Conditions:' in text

    def test_contract(self, contracts, contract_template):
        from conftest import MANAGER, OWNER_A

        contract = contracts.issue_contract(contract_template, OWNER_A, MANAGER,
                                            property_name='Seaview Loft', base_rate=100)
        text = _text(self.renderer.render(contract))
        assert 'Seaview Loft' in text
        assert 'Final Rate with Commission: $115.00/night' in text
        assert 'Commission Rate: 15%' in text
        assert OWNER_A.email in text

    def test_long_field_list_spills_onto_more_pages(self, templates):
        from conftest import MANAGER

        template = templates.create_template({
            'name': 'Full Inventory',
            'category': 'inspections',
            'fields': [{'label': f'Item {i}'} for i in range(60)],
        }, MANAGER)
        pdf_bytes = self.renderer.render(template)
        assert len(PdfReader(io.BytesIO(pdf_bytes)).pages) > 1

    def test_unsupported_source(self):
        with pytest.raises(RenderError):
            self.renderer.render({'id': 'x'})


class TestStampSignature:

    @pytest.fixture(autouse=True)
    def setup(self, renderer, inspection_template):
        self.renderer = renderer
        self.pdf = renderer.render(inspection_template)

    def test_stamp_with_typed_name(self):
        stamped = self.renderer.stamp_signature(self.pdf, 'Ana Cruz', '2024-05-01')
        reader = PdfReader(io.BytesIO(stamped))
        assert len(reader.pages) == len(PdfReader(io.BytesIO(self.pdf)).pages)
        text = reader.pages[-1].extract_text()
        assert 'Signed by: Ana Cruz' in text
        assert 'Date: 2024-05-01' in text

    def test_stamp_with_image(self):
        image = Image.new('RGB', (100, 30), 'white')
        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
        encoded = base64.b64encode(buffer.getvalue()).decode()

        stamped = self.renderer.stamp_signature(self.pdf, 'Ana Cruz', '2024-05-01', encoded)
        assert 'Signed by: Ana Cruz' in PdfReader(io.BytesIO(stamped)).pages[-1].extract_text()

    def test_garbage_image_raises(self):
        garbage = base64.b64encode(b'definitely not a png').decode()
        with pytest.raises(RenderError):
            self.renderer.stamp_signature(self.pdf, 'Ana Cruz', '2024-05-01', garbage)

    def test_garbage_pdf_raises(self):
        with pytest.raises(RenderError):
            self.renderer.stamp_signature(b'not a pdf', 'Ana Cruz', '2024-05-01')
