# scripts/create_staff.py
# reads SEED_STAFF_EMAIL / SEED_STAFF_NAME / SEED_STAFF_PASSWORD / SEED_STAFF_PHONE
import os
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlmodel import Session, select

from solarcrm.db import create_db_and_tables, engine
from solarcrm.models import Staff
from solarcrm.security import hash_password

email = os.getenv("SEED_STAFF_EMAIL", "staff@example.com").strip().lower()
name = os.getenv("SEED_STAFF_NAME", "Demo Staff")
password = os.getenv("SEED_STAFF_PASSWORD", "password123")
phone = os.getenv("SEED_STAFF_PHONE") or None

create_db_and_tables()
with Session(engine) as s:
    existing = s.exec(select(Staff).where(Staff.email == email)).first()
    if existing:
        print(f"[create-staff] staff already exists: {email}")
    else:
        s.add(Staff(email=email, name=name, phone=phone, password_hash=hash_password(password)))
        s.commit()
        print(f"[create-staff] created staff: {email}")
