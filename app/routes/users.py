import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db
from ..errors import UserStoreError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/user",
    tags=["users"],
    responses={
        400: {"model": schemas.ErrorResponse},
        500: {"model": schemas.ErrorResponse},
    },
)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _failure(action: str, exc: Exception) -> JSONResponse:
    """Collapse any data-layer failure into a plain 500 with its message."""
    if isinstance(exc, UserStoreError):
        logger.warning("%s failed (%s): %s", action, exc.code, exc)
    else:
        logger.exception("%s failed", action)
    return error_response(str(exc) or "Unknown error", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/create", response_model=schemas.UserResponse)
def create_user(payload: Optional[schemas.UserCreate] = None, db: Session = Depends(get_db)):
    if payload is None or not payload.email:
        return error_response("Email is required", status.HTTP_400_BAD_REQUEST)

    try:
        user = crud.create_user(db, payload.email, payload.name)
    except Exception as exc:
        return _failure("Create user", exc)

    logger.info("Created user id=%s", user.id)
    return schemas.UserResponse(
        message="User created successfully",
        user=schemas.UserOut.model_validate(user),
    )


@router.post("/create-many", response_model=schemas.CountResponse)
def create_many_users(payload: Any = Body(None), db: Session = Depends(get_db)):
    # Raw body: any non-array `users`, or a body that is not an object at
    # all, gets the same 400 as a missing array.
    users = payload.get("users") if isinstance(payload, dict) else None
    if not isinstance(users, list) or not users:
        return error_response(
            "Users array is required and must not be empty",
            status.HTTP_400_BAD_REQUEST,
        )
    try:
        entries = schemas.UserCreateMany(users=users).users
    except ValidationError as exc:
        return error_response(schemas.format_errors(exc), status.HTTP_400_BAD_REQUEST)
    if any(not entry.email for entry in entries):
        return error_response(
            "Every user requires an email", status.HTTP_400_BAD_REQUEST
        )

    try:
        count = crud.create_users(db, entries, skip_duplicates=True)
    except Exception as exc:
        return _failure("Create many users", exc)

    logger.info("Bulk insert stored %d of %d users", count, len(entries))
    return schemas.CountResponse(message="Users created successfully", count=count)


@router.delete("/delete", response_model=schemas.UserResponse)
def delete_user(payload: Optional[schemas.UserDelete] = None, db: Session = Depends(get_db)):
    if payload is None or payload.id is None:
        return error_response("User ID is required", status.HTTP_400_BAD_REQUEST)

    try:
        user = crud.delete_user(db, payload.id)
    except Exception as exc:
        return _failure("Delete user", exc)

    logger.info("Deleted user id=%s", user.id)
    return schemas.UserResponse(
        message="User deleted successfully",
        user=schemas.UserOut.model_validate(user),
    )


@router.delete("/delete-many", response_model=schemas.CountResponse)
def delete_all_users(db: Session = Depends(get_db)):
    try:
        count = crud.delete_all_users(db)
    except Exception as exc:
        return _failure("Delete all users", exc)

    logger.info("Deleted %d users", count)
    return schemas.CountResponse(message="All users deleted successfully", count=count)


@router.get("/get-all", response_model=schemas.UserListResponse)
def list_users(db: Session = Depends(get_db)):
    """Return all users, newest first."""
    try:
        users = crud.get_users(db)
    except Exception as exc:
        return _failure("List users", exc)

    return schemas.UserListResponse(
        users=[schemas.UserOut.model_validate(user) for user in users]
    )
