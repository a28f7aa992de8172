"""Print a password hash for APP_PASSWORD_HASH / APP_PASSWORD_HASH_B64."""

import argparse
import base64
import getpass
import sys
from pathlib import Path

# Add project root to path so the package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rentaltracker.services.auth import hash_password


def main() -> None:
    """Hash a password given as argument or typed at the prompt."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("password", nargs="?", help="password to hash (prompted if omitted)")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if not password:
        parser.error("password must not be empty")

    hashed = hash_password(password)
    print(f"APP_PASSWORD_HASH={hashed}")
    print(f"APP_PASSWORD_HASH_B64={base64.b64encode(hashed.encode('utf-8')).decode('ascii')}")


if __name__ == "__main__":
    main()
