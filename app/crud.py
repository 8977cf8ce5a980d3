from typing import Iterable, List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import DuplicateEmailError, UserNotFoundError, UserStoreError

# Dialects with a native "INSERT ... ON CONFLICT DO NOTHING".
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# 4 bind parameters per row; PostgreSQL caps a statement at 65535.
BULK_INSERT_BATCH_SIZE = 1000


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_users(
    db: Session,
    skip: int = 0,
    take: Optional[int] = None,
    email_contains: Optional[str] = None,
) -> List[models.User]:
    """Return users, newest first.

    `skip`, `take` and `email_contains` are not exposed over HTTP but are
    available to callers of the CRUD layer.
    """
    stmt = select(models.User).order_by(
        models.User.created_at.desc(),
        models.User.id.desc(),
    )
    if email_contains:
        stmt = stmt.where(models.User.email.contains(email_contains))
    if skip:
        stmt = stmt.offset(skip)
    if take is not None:
        stmt = stmt.limit(take)
    return list(db.execute(stmt).scalars().all())


def create_user(db: Session, email: str, name: Optional[str] = None) -> models.User:
    """Insert one user.

    Raises:
        DuplicateEmailError: if the email is already taken.
    """
    user = models.User(email=email, name=name or None)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmailError(email) from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(user)
    return user


def create_users(
    db: Session,
    entries: Iterable[schemas.UserCreate],
    skip_duplicates: bool = True,
) -> int:
    """Insert many users in one transaction and return how many were stored.

    Rows go out in chunks of `BULK_INSERT_BATCH_SIZE` to stay under the
    driver's bind parameter limit. With `skip_duplicates` rows whose email
    already exists, in the table or earlier in the same batch, are dropped by
    the database instead of failing the batch.
    """
    now = models.utcnow()
    rows = [
        {
            "email": entry.email,
            "name": entry.name or None,
            "created_at": now,
            "updated_at": now,
        }
        for entry in entries
    ]
    if not rows:
        return 0

    if skip_duplicates:
        dialect = db.get_bind().dialect.name
        insert_for_dialect = _UPSERT_INSERTS.get(dialect)
        if insert_for_dialect is None:
            raise UserStoreError(
                f"Skipping duplicates is not supported on the '{dialect}' dialect"
            )

    inserted = 0
    try:
        for start in range(0, len(rows), BULK_INSERT_BATCH_SIZE):
            chunk = rows[start:start + BULK_INSERT_BATCH_SIZE]
            if skip_duplicates:
                stmt = (
                    insert_for_dialect(models.User)
                    .values(chunk)
                    .on_conflict_do_nothing(index_elements=["email"])
                )
            else:
                stmt = insert(models.User).values(chunk)
            inserted += db.execute(stmt).rowcount
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmailError() from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    return inserted


def update_user(
    db: Session,
    user_id: int,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> models.User:
    """Change a user's email and/or name. `updated_at` is refreshed by the ORM."""
    user = db.get(models.User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    if email is not None:
        user.email = email
    if name is not None:
        user.name = name or None

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmailError(email) from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> models.User:
    """Delete one user and return its last-known values.

    Raises:
        UserNotFoundError: if no user has this id.
    """
    user = db.get(models.User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    db.delete(user)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return user


def delete_all_users(db: Session) -> int:
    """Delete every user. Returns the number of rows removed."""
    try:
        result = db.execute(delete(models.User))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return result.rowcount
