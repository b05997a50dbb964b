"""Application error types.

Model and auth code raise these; ``main.py`` installs a single handler that
turns any of them into ``{"error": {"message": ..., "status": ...}}``.
"""
from typing import List, Union


class AppError(Exception):
    status_code = 500

    def __init__(self, message: Union[str, List[str]] = "Internal Server Error"):
        super().__init__(message)
        self.message = message


class BadRequestError(AppError):
    status_code = 400

    def __init__(self, message: Union[str, List[str]] = "Bad Request"):
        super().__init__(message)


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, message: Union[str, List[str]] = "Unauthorized"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: Union[str, List[str]] = "Not Found"):
        super().__init__(message)
