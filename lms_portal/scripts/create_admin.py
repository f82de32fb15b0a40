#!/usr/bin/env python3
"""
Admin account creation tool for LMS Portal.

Accounts can only be registered by an admin, so a fresh database needs one
created from the command line.

Usage:
    python -m lms_portal.scripts.create_admin --username admin --email admin@school.org
"""

import sys
import argparse
import getpass
import logging

from pydantic import ValidationError as PydanticValidationError

from lms_portal.models import User
from lms_portal.schemas import AdminUserCreate
from lms_portal.utils.user_service import create_user

logger = logging.getLogger(__name__)


def create_admin(username, email, password, name="Administrator"):
    """Return (user, created). An existing username is left untouched."""
    existing = User.query.filter_by(username=username).first()
    if existing is not None:
        logger.warning(f"User {username} already exists (role={existing.role})")
        return existing, False

    data = AdminUserCreate(
        username=username, email=email, password=password, name=name, role="admin"
    )
    return create_user(data), True


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create an LMS Portal admin account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument(
        "--password", help="Prompted for when omitted (min. 6 characters)"
    )
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    args = parse_args(argv)
    password = args.password or getpass.getpass("Admin password: ")

    from lms_portal.app import create_app

    app = create_app()
    with app.app_context():
        try:
            user, created = create_admin(args.username, args.email, password, args.name)
        except PydanticValidationError as e:
            for error in e.errors():
                logger.error(f"❌ {'.'.join(map(str, error['loc']))}: {error['msg']}")
            sys.exit(1)

    if created:
        logger.info(f"✅ Admin account created: {user.username} (id={user.id})")
    else:
        logger.info("ℹ️  Nothing created")


if __name__ == "__main__":
    main()
