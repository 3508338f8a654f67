"""
Lookups against the `users` collection.

Accounts are registered elsewhere in the portal; the workflow only
resolves ids to names, emails and roles.
"""

import logging
from typing import List, Optional

from .exceptions import ValidationError
from .types import USERS_KEY, PortalUser

logger = logging.getLogger(__name__)


def find_user(store, user_id: str) -> Optional[PortalUser]:
    item = store.find_item(USERS_KEY, user_id)
    return PortalUser.from_dict(item) if item else None


def get_user_or_raise(store, user_id: str) -> PortalUser:
    user = find_user(store, user_id)
    if user is None:
        raise ValidationError(f"Unknown user: {user_id}", field='userId')
    return user


def list_users(store, role: str = None) -> List[PortalUser]:
    users = [PortalUser.from_dict(item) for item in store.get_collection(USERS_KEY)]
    if role is not None:
        users = [u for u in users if u.role == role]
    return users


def save_user(store, user: PortalUser) -> PortalUser:
    """Insert or replace a user record."""
    with store.transaction():
        if store.update_item(USERS_KEY, user.id, user.to_dict()) is None:
            store.add_item(USERS_KEY, user.to_dict())
    logger.debug(f"Saved user {user.id} ({user.role})")
    return user
