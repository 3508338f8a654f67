"""
Shared fixtures for the portal test suite.

Run with: python -m pytest tests -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from permissions import CUSTOMER, PROPERTY_MANAGER, UNIT_OWNER
from services.documents import (
    USERS_KEY,
    ContractService,
    DistributionEngine,
    DocumentRenderer,
    MemoryArtifactStorage,
    PortalUser,
    SignatureCaptureFlow,
    TemplateStore,
)
from services.storage import KeyValueStore, MemoryBackend


MANAGER = PortalUser('pm-1', 'Maria Santos', 'maria@portal.test', PROPERTY_MANAGER)
OTHER_MANAGER = PortalUser('pm-2', 'Paolo Reyes', 'paolo@portal.test', PROPERTY_MANAGER)
OWNER_A = PortalUser('owner-a', 'Ana Cruz', 'ana@portal.test', UNIT_OWNER)
OWNER_B = PortalUser('owner-b', 'Ben Lim', 'ben@portal.test', UNIT_OWNER)
OWNER_C = PortalUser('owner-c', 'Carla Diaz', 'carla@portal.test', UNIT_OWNER)
GUEST = PortalUser('cust-1', 'Gina Tan', 'gina@portal.test', CUSTOMER)

ALL_USERS = (MANAGER, OTHER_MANAGER, OWNER_A, OWNER_B, OWNER_C, GUEST)


@pytest.fixture
def store():
    store = KeyValueStore(MemoryBackend())
    store.set(USERS_KEY, [u.to_dict() for u in ALL_USERS])
    return store


@pytest.fixture
def artifacts():
    return MemoryArtifactStorage()


@pytest.fixture
def renderer():
    return DocumentRenderer()


@pytest.fixture
def templates(store):
    return TemplateStore(store, default_commission=15)


@pytest.fixture
def engine(store, renderer, artifacts):
    return DistributionEngine(store, renderer, artifacts)


@pytest.fixture
def contracts(store, renderer, artifacts):
    return ContractService(store, renderer, artifacts)


@pytest.fixture
def flow(engine, renderer, artifacts):
    return SignatureCaptureFlow(engine, renderer, artifacts)


@pytest.fixture
def inspection_template(templates):
    return templates.create_template({
        'name': 'Move-in Inspection',
        'description': 'Condition report signed by each owner',
        'category': 'inspections',
        'fields': [
            {'label': 'Unit Number', 'type': 'text', 'required': True},
            {'label': 'Inspection Date', 'type': 'date', 'required': True},
            {'label': 'Notes', 'type': 'textarea'},
        ],
    }, MANAGER)


@pytest.fixture
def contract_template(templates):
    return templates.create_template({
        'name': 'Property Rental Contract',
        'description': 'Standard listing agreement',
        'category': 'contracts',
        'commissionPercentage': 15,
        'fields': [
            {'id': 'property_name', 'label': 'Property Name', 'type': 'text', 'required': True},
            {'id': 'owner_name', 'label': 'Owner Name', 'type': 'text', 'required': True},
            {'id': 'terms', 'label': 'Additional Terms', 'type': 'textarea'},
        ],
    }, MANAGER)


@pytest.fixture
def app(store, artifacts):
    from app import create_app

    app = create_app('config.TestingConfig', store=store, artifacts=artifacts)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def as_user(user):
    """Request headers identifying `user` to the API."""
    return {'X-Portal-User': user.id}
