#!/usr/bin/env python3
"""
Database Management Script
Creates the portal tables, seeds default templates and registers users.
"""

import os
import sys

from app import create_app
from models import db
from permissions import ROLES
from services.documents import ConfigurationError, DocumentError, PortalUser, TemplateLoader
from services.documents.users import list_users, save_user


def get_app():
    return create_app()


def init_database():
    """Create tables and seed the default templates into an empty store."""
    app = get_app()

    with app.app_context():
        print(f"Initializing database: {app.config['SQLALCHEMY_DATABASE_URI']}")

        # Create database directory if it doesn't exist
        db_path = app.config['SQLALCHEMY_DATABASE_URI']
        if db_path.startswith('sqlite:///'):
            db_dir = os.path.dirname(db_path.replace('sqlite:///', ''))
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        db.create_all()
        print("Database tables created successfully!")

        store = app.extensions['portal'].store
        seeded = TemplateLoader.seed_defaults(store, app.config['DOCUMENT_TEMPLATES_DIR'])
        if seeded:
            print(f"Seeded {seeded} default template(s)")
        else:
            print("Templates already exist in database!")


def add_user(user_id, name, email, role):
    """Register or replace a portal user."""
    if role not in ROLES:
        print(f"Unknown role '{role}'. Choose one of: {', '.join(ROLES)}")
        sys.exit(1)

    app = get_app()
    with app.app_context():
        user = save_user(app.extensions['portal'].store, PortalUser(user_id, name, email, role))
        print(f"Saved user {user.id}: {user.name} <{user.email}> ({user.role})")


def show_users():
    app = get_app()
    with app.app_context():
        users = list_users(app.extensions['portal'].store)
        if not users:
            print("No users registered")
        for user in users:
            print(f"{user.id}: {user.name} <{user.email}> ({user.role})")


def validate_templates():
    """Validate the default template directory without touching the database."""
    directory = os.getenv('DOCUMENT_TEMPLATES_DIR')
    try:
        templates = TemplateLoader.load_all(directory)
    except ConfigurationError as e:
        print(e)
        sys.exit(1)
    for template in templates:
        print(f"OK {template.id}: {template.name} ({len(template.fields)} fields)")


def reset_store():
    """Remove every collection. Artifact files are left on disk."""
    app = get_app()
    with app.app_context():
        app.extensions['portal'].store.clear_all()
        print("All collections cleared")


def main():
    if len(sys.argv) < 2:
        print("Usage: python manage_db.py <command>")
        print("Commands:")
        print("  init                             - Create tables and seed default templates")
        print("  add-user <id> <name> <email> <role> - Register a user")
        print("  users                            - List registered users")
        print("  validate                         - Validate default template files")
        print("  reset                            - Clear all collections")
        return

    command = sys.argv[1]

    try:
        if command == 'init':
            init_database()
        elif command == 'add-user':
            if len(sys.argv) != 6:
                print("Usage: python manage_db.py add-user <id> <name> <email> <role>")
                sys.exit(1)
            add_user(*sys.argv[2:6])
        elif command == 'users':
            show_users()
        elif command == 'validate':
            validate_templates()
        elif command == 'reset':
            reset_store()
        else:
            print(f"Unknown command: {command}")
    except DocumentError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
