# scripts/create_admin.py
# usage: python scripts/create_admin.py <email> <name> <password>
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from solarcrm.db import create_db_and_tables, engine
from solarcrm.models import Admin
from solarcrm.security import hash_password


def main(argv) -> int:
    if len(argv) != 3 or not all(a.strip() for a in argv):
        print("Usage: python scripts/create_admin.py <email> <name> <password>", file=sys.stderr)
        return 1

    email, name, password = argv
    email = email.strip().lower()
    print(f"Attempting to create admin: {name} ({email})")

    create_db_and_tables()
    with Session(engine) as s:
        admin = Admin(email=email, name=name.strip(), password_hash=hash_password(password))
        s.add(admin)
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            print(f"❌ An admin with the email {email!r} already exists.", file=sys.stderr)
            return 1
        s.refresh(admin)
        print("✅ created admin:", admin.id, admin.email)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
