import logging
from dataclasses import dataclass

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_login import LoginManager

from models import db, User
from routes import register_blueprints
from services.documents import (
    ContractService,
    DistributionEngine,
    DocumentRenderer,
    LocalArtifactStorage,
    MemoryArtifactStorage,
    SignatureCaptureFlow,
    TemplateLoader,
    TemplateStore,
)
from services.documents.users import find_user
from services.storage import KeyValueStore, SQLAlchemyBackend

load_dotenv()

logger = logging.getLogger(__name__)

# Header carrying the caller's user id
USER_HEADER = 'X-Portal-User'


@dataclass
class PortalServices:
    """Workflow components shared by the request handlers."""
    store: KeyValueStore
    artifacts: object
    renderer: DocumentRenderer
    templates: TemplateStore
    engine: DistributionEngine
    contracts: ContractService
    signing: SignatureCaptureFlow


def build_services(store, artifacts, default_commission=None) -> PortalServices:
    renderer = DocumentRenderer()
    engine = DistributionEngine(store, renderer, artifacts)
    return PortalServices(
        store=store,
        artifacts=artifacts,
        renderer=renderer,
        templates=TemplateStore(store, default_commission=default_commission),
        engine=engine,
        contracts=ContractService(store, renderer, artifacts),
        signing=SignatureCaptureFlow(engine, renderer, artifacts),
    )


def create_app(config_object='config.Config', store=None, artifacts=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Initialize extensions
    db.init_app(app)

    if store is None:
        store = KeyValueStore(SQLAlchemyBackend())
    if artifacts is None:
        storage_dir = app.config.get('ARTIFACT_STORAGE_DIR')
        artifacts = LocalArtifactStorage(storage_dir) if storage_dir else MemoryArtifactStorage()

    services = build_services(store, artifacts, app.config.get('DEFAULT_COMMISSION_PERCENTAGE'))
    app.extensions['portal'] = services

    with app.app_context():
        db.create_all()
        if app.config.get('SEED_DEFAULT_TEMPLATES'):
            TemplateLoader.seed_defaults(store, app.config.get('DOCUMENT_TEMPLATES_DIR'))

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_request(req):
        user_id = req.headers.get(USER_HEADER)
        if not user_id:
            return None
        portal_user = find_user(store, user_id)
        if portal_user is None:
            logger.warning(f"Request from unknown user {user_id}")
            return None
        return User(portal_user)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    # Register blueprints
    register_blueprints(app)

    logger.info(f"Portal app created ({app.config.get('FLASK_ENV')})")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5005, debug=True)
