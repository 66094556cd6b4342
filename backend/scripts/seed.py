"""Seed script — creates demo users, a shared flow template and draft documents.

Idempotent: checks for existing records before inserting.
Run from backend/: python scripts/seed.py
Prints a bearer token per user for trying the API locally.
"""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.orm import Session

from docflow.core.security import create_access_token
from docflow.db.session import SessionLocal
from docflow.models.document import Document
from docflow.models.flow_template import FlowTemplate, FlowTemplateStep
from docflow.models.user import User


# ─── Upsert helpers ───────────────────────────────────────────────────────────

def _upsert_user(db: Session, email: str, name: str, role: str, department: str | None = None) -> User:
    user = db.execute(select(User).where(User.email == email)).scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(email=email, name=name, role=role, department=department, is_active=True)
    db.add(user)
    db.flush()
    print(f"  [new]  User {email} ({role})")
    return user


def _upsert_template(db: Session, name: str, created_by: User, steps: list[tuple[str, str]],
                     default_flow_type: str = "standard") -> FlowTemplate:
    template = db.execute(select(FlowTemplate).where(FlowTemplate.name == name)).scalars().first()
    if template:
        print(f"  [skip] Template {name}")
        return template
    template = FlowTemplate(
        name=name, default_flow_type=default_flow_type,
        is_shared=True, created_by=created_by.id,
    )
    for order, (selector_type, selector_value) in enumerate(steps, start=1):
        template.steps.append(FlowTemplateStep(
            step_order=order, selector_type=selector_type, selector_value=selector_value,
        ))
    db.add(template)
    db.flush()
    print(f"  [new]  Template {name} ({len(steps)} steps, {default_flow_type})")
    return template


def _upsert_document(db: Session, title: str, owner: User, description: str = "") -> Document:
    document = db.execute(
        select(Document).where(Document.title == title, Document.owner_id == owner.id)
    ).scalars().first()
    if document:
        print(f"  [skip] Document {title}")
        return document
    document = Document(title=title, description=description, owner_id=owner.id, status="draft")
    db.add(document)
    db.flush()
    print(f"  [new]  Document {title}")
    return document


def seed() -> None:
    with SessionLocal() as db:
        print("── Users ──")
        admin = _upsert_user(db, "admin@example.com", "Admin User", "ADMIN")
        alice = _upsert_user(db, "alice@example.com", "Alice Author", "USER", "Engineering")
        mark = _upsert_user(db, "mark@example.com", "Mark Manager", "MANAGER", "Engineering")
        fiona = _upsert_user(db, "fiona@example.com", "Fiona Finance", "MANAGER", "Finance")
        _upsert_user(db, "oscar@example.com", "Oscar Observer", "OBSERVER")
        db.commit()

        print("\n── Templates ──")
        _upsert_template(db, "Engineering sign-off", admin, [
            ("department", "Engineering"),
            ("user", str(fiona.id)),
        ])
        _upsert_template(db, "Any manager", admin, [("role", "MANAGER")], default_flow_type="quick")
        db.commit()

        print("\n── Documents ──")
        _upsert_document(db, "Q3 infrastructure budget", alice, "Hosting and tooling spend for Q3.")
        _upsert_document(db, "Vendor security review", alice)
        _upsert_document(db, "Hiring plan", mark)
        db.commit()

        users = db.execute(select(User).order_by(User.role, User.email)).scalars().all()

    print("\n✓ Seed complete. Bearer tokens:")
    for user in users:
        print(f"  {user.email:<22} ({user.role})")
        print(f"    {create_access_token(str(user.id), user.role)}")


if __name__ == "__main__":
    seed()
