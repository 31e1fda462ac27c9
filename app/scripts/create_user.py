"""
Create a user (e.g. first admin) directly in the configured store. Run from project root:
  python -m app.scripts.create_user USERNAME PASSWORD [role] --display-name NAME --email EMAIL
Example:
  python -m app.scripts.create_user admin your-secure-password admin --email admin@example.com
"""
import argparse
import sys

from pydantic import ValidationError

from app.core.config import get_settings
from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, USERNAME_MAX_LEN, USERNAME_MIN_LEN
from app.schemas.auth import Role, UserCreate
from app.services.auth_service import build_auth_service
from app.services.errors import AuthError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user (bypasses the add-user permission).")
    parser.add_argument("username", help=f"Username ({USERNAME_MIN_LEN}-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default=Role.ADMIN.value,
        choices=[r.value for r in Role],
    )
    parser.add_argument("--display-name", default=None, help="Defaults to the username")
    parser.add_argument("--email", required=True)
    parser.add_argument("--city", default=None)
    parser.add_argument("--address", default=None)
    parser.add_argument("--national-id", default=None)
    args = parser.parse_args(argv)

    try:
        data = UserCreate(
            username=args.username,
            password=args.password,
            role=Role(args.role),
            display_name=args.display_name or args.username.strip(),
            email=args.email,
            city=args.city,
            address=args.address,
            national_id=args.national_id,
        )
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"])
            print(f"Invalid {field}: {err['msg']}", file=sys.stderr)
        return 1

    service = build_auth_service(get_settings())
    try:
        service.start()
        user = service.provision_user(data)
    except AuthError as e:
        print(e.message, file=sys.stderr)
        return 1
    print(f"Created user '{user.username}' with role '{user.role.value}' (id {user.id}).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
