"""Shared school directory populated as a side effect of registration."""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from eventdesk.errors import DuplicateError, NotFoundError, ValidationError
from eventdesk.extensions import db
from eventdesk.models import School
from eventdesk.services.cache_tags import SCHOOLS, cached_view, invalidate


def _clean_name(name: str | None) -> str:
    return ' '.join((name or '').split())


def find_school(name: str) -> School | None:
    cleaned = _clean_name(name)
    if not cleaned:
        return None
    return (
        db.session.query(School)
        .filter(func.lower(School.name) == cleaned.lower())
        .first()
    )


def ensure_school_exists(name: str | None) -> None:
    """Add the school if missing. Failures are logged, never raised."""
    cleaned = _clean_name(name)
    if not cleaned:
        return
    try:
        if find_school(cleaned) is None:
            db.session.add(School(name=cleaned))
            db.session.commit()
    except IntegrityError:
        # Another request added it first
        db.session.rollback()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Could not record school '{cleaned}': {exc}")


@cached_view(SCHOOLS)
def list_school_names() -> list[str]:
    return [name for (name,) in db.session.query(School.name).order_by(School.name).all()]


def create_school(name: str | None) -> School:
    cleaned = _clean_name(name)
    if not cleaned:
        raise ValidationError("School name is required.", field_errors={'name': 'Required.'})
    if find_school(cleaned) is not None:
        raise DuplicateError("That school already exists.")
    school = School(name=cleaned)
    db.session.add(school)
    db.session.commit()
    invalidate(SCHOOLS)
    return school


def rename_school(school_id: str, name: str | None) -> School:
    school = db.session.get(School, school_id)
    if school is None:
        raise NotFoundError("School not found")
    cleaned = _clean_name(name)
    if not cleaned:
        raise ValidationError("School name is required.", field_errors={'name': 'Required.'})
    other = find_school(cleaned)
    if other is not None and other.id != school.id:
        raise DuplicateError("That school already exists.")
    school.name = cleaned
    db.session.commit()
    invalidate(SCHOOLS)
    return school


def delete_school(school_id: str) -> None:
    school = db.session.get(School, school_id)
    if school is None:
        raise NotFoundError("School not found")
    db.session.delete(school)
    db.session.commit()
    invalidate(SCHOOLS)


def list_schools() -> list[School]:
    return db.session.query(School).order_by(School.name).all()


__all__ = [
    'find_school',
    'ensure_school_exists',
    'list_school_names',
    'list_schools',
    'create_school',
    'rename_school',
    'delete_school',
]
