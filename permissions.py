# permissions.py
"""
Role permissions for the portal.

Defines what actions each user role can perform. Every mutating entry
point of the document workflow consults this single table instead of
branching on roles itself.
"""

from functools import wraps

# =============================================================================
# ROLES AND ACTIONS
# =============================================================================

PROPERTY_MANAGER = 'property_manager'
UNIT_OWNER = 'unit_owner'
CUSTOMER = 'customer'

ROLES = (PROPERTY_MANAGER, UNIT_OWNER, CUSTOMER)

# Property actions
VIEW_ALL_PROPERTIES = 'view_all_properties'
VIEW_OWN_PROPERTIES = 'view_own_properties'
CREATE_PROPERTY = 'create_property'
EDIT_PROPERTY = 'edit_property'
APPROVE_PROPERTY = 'approve_property'
REJECT_PROPERTY = 'reject_property'

# Booking actions
VIEW_ALL_BOOKINGS = 'view_all_bookings'
VIEW_OWN_BOOKINGS = 'view_own_bookings'
CREATE_BOOKING = 'create_booking'
CANCEL_BOOKING = 'cancel_booking'
WALK_IN_REGISTRATION = 'walk_in_registration'

# Contract and document actions
CREATE_CONTRACT = 'create_contract'
REVIEW_CONTRACT = 'review_contract'
SIGN_CONTRACT = 'sign_contract'
MANAGE_TEMPLATES = 'manage_templates'
VIEW_ALL_SIGNATURES = 'view_all_signatures'

# User management
VERIFY_USERS = 'verify_users'
VIEW_USER_DETAILS = 'view_user_details'

# Concern and job order actions
CREATE_CONCERN = 'create_concern'
VIEW_ALL_CONCERNS = 'view_all_concerns'
VIEW_OWN_CONCERNS = 'view_own_concerns'
CREATE_JOB_ORDER = 'create_job_order'
MANAGE_JOB_ORDERS = 'manage_job_orders'

# Analytics and reporting
VIEW_PLATFORM_ANALYTICS = 'view_platform_analytics'
VIEW_OWN_ANALYTICS = 'view_own_analytics'
EXPORT_DATA = 'export_data'

# Review system
CREATE_REVIEW = 'create_review'
VIEW_REVIEWS = 'view_reviews'


ROLE_PERMISSIONS = {
    PROPERTY_MANAGER: frozenset({
        VIEW_ALL_PROPERTIES,
        APPROVE_PROPERTY,
        REJECT_PROPERTY,
        VIEW_ALL_BOOKINGS,
        CREATE_CONTRACT,
        MANAGE_TEMPLATES,
        VIEW_ALL_SIGNATURES,
        VERIFY_USERS,
        VIEW_USER_DETAILS,
        VIEW_ALL_CONCERNS,
        CREATE_JOB_ORDER,
        MANAGE_JOB_ORDERS,
        VIEW_PLATFORM_ANALYTICS,
        EXPORT_DATA,
        VIEW_REVIEWS,
        WALK_IN_REGISTRATION,
    }),
    UNIT_OWNER: frozenset({
        VIEW_OWN_PROPERTIES,
        CREATE_PROPERTY,
        EDIT_PROPERTY,
        VIEW_OWN_BOOKINGS,
        REVIEW_CONTRACT,
        SIGN_CONTRACT,
        VIEW_OWN_CONCERNS,
        VIEW_OWN_ANALYTICS,
        VIEW_REVIEWS,
    }),
    CUSTOMER: frozenset({
        VIEW_ALL_PROPERTIES,  # Only approved properties
        CREATE_BOOKING,
        VIEW_OWN_BOOKINGS,
        CANCEL_BOOKING,
        CREATE_CONCERN,
        VIEW_OWN_CONCERNS,
        CREATE_REVIEW,
        VIEW_REVIEWS,
    }),
}


# =============================================================================
# PERMISSION CHECK FUNCTIONS
# =============================================================================

def has_permission(role: str, action: str) -> bool:
    """
    Check if a role may perform an action.

    Unknown roles have no permissions.
    """
    return action in ROLE_PERMISSIONS.get(role, frozenset())


def get_permissions_for_role(role: str) -> frozenset:
    """Get all permissions for a role."""
    return ROLE_PERMISSIONS.get(role, frozenset())


def require_permission(user, action: str) -> None:
    """
    Raise PermissionDenied unless `user` (anything with a `role`) may perform `action`.
    """
    from services.documents.exceptions import PermissionDenied

    role = getattr(user, 'role', None)
    if not has_permission(role, action):
        raise PermissionDenied(role, action)


# =============================================================================
# ROUTE PROTECTION DECORATOR
# =============================================================================

def permission_required(action: str):
    """
    Decorator to require a permission for a route.
    Returns a 403 JSON response if the current user's role lacks it.

    Usage:
        @permission_required(CREATE_CONTRACT)
        def send_document():
            ...
    """
    from flask import jsonify
    from flask_login import current_user

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not has_permission(current_user.role, action):
                return jsonify({'success': False, 'error': f'Not allowed to {action}'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
