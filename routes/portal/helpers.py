# routes/portal/helpers.py
"""
Shared helpers for portal routes.
"""

from flask import current_app, request

from services.documents.exceptions import ValidationError


def get_services():
    """The PortalServices bundle created by create_app."""
    return current_app.extensions['portal']


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def require_fields(data: dict, *names) -> None:
    missing = [name for name in names if data.get(name) in (None, '', [])]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}", field=missing[0])
