from .portal import portal_bp


def register_blueprints(app):
    app.register_blueprint(portal_bp)
