"""
Create an admin user.

    python create_admin.py <username> [--name NAME] [--email EMAIL]

The password is prompted for unless ADMIN_PASSWORD is set.
"""
import argparse
import getpass
import logging
import os
import sys

import database
from auth import create_admin
from errors import StoreError

logger = logging.getLogger("create_admin")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a storefront admin user")
    parser.add_argument("username")
    parser.add_argument("--name")
    parser.add_argument("--email")
    args = parser.parse_args(argv)

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
    try:
        admin = create_admin(database.get_db(), args.username, password, args.name, args.email)
    except StoreError as e:
        logger.error("Could not create admin: %s", e.message)
        return 1
    logger.info("Admin created successfully: %s (%s)", admin["username"], admin["role"])
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    sys.exit(main())
