from typing import Optional


class UserStoreError(Exception):
    """Base class for failures raised by the CRUD layer.

    `code` is a short machine-readable tag. The HTTP layer logs it but only
    returns the message to the caller.
    """

    code = "store_error"


class DuplicateEmailError(UserStoreError):
    """Unique email violated.

    `email` is None when a bulk insert failed and the offending row is unknown.
    """

    code = "duplicate_email"

    def __init__(self, email: Optional[str] = None):
        self.email = email
        if email is None:
            message = "Unique constraint failed on the field: email (at least one row in the batch)"
        else:
            message = f"Unique constraint failed on the field: email ({email})"
        super().__init__(message)


class UserNotFoundError(UserStoreError):
    code = "not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User with id {user_id} not found")
