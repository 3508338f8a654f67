# models.py
from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class StoredCollection(db.Model):
    """
    One persisted key of the portal's key-value store.

    Each entity collection (templates, pdfDocuments, documentSignatures,
    contracts, users) is a single row holding the JSON-serialized list.
    """
    __tablename__ = 'stored_collection'

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f'<StoredCollection {self.key}>'


class User(UserMixin):
    """Flask-Login wrapper around a PortalUser from the `users` collection."""

    def __init__(self, portal_user):
        self.portal_user = portal_user

    @property
    def id(self):
        return self.portal_user.id

    @property
    def name(self):
        return self.portal_user.name

    @property
    def email(self):
        return self.portal_user.email

    @property
    def role(self):
        return self.portal_user.role

    def __repr__(self):
        return f'<User {self.id} ({self.role})>'
