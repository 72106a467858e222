"""Typed failures raised by the sales workflow services.

Routes translate these into the JSON error envelope; services never build HTTP
responses themselves.
"""

from __future__ import annotations

from typing import Any

from fastapi import status


class WorkflowError(Exception):
    code = "workflow_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(WorkflowError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(WorkflowError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


class AlreadyConvertedError(WorkflowError):
    code = "already_converted"
    status_code = status.HTTP_409_CONFLICT


class AlreadyConfirmedError(WorkflowError):
    code = "already_confirmed"
    status_code = status.HTTP_409_CONFLICT


class InvalidInputError(WorkflowError):
    code = "invalid_input"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DispatchFailedError(WorkflowError):
    code = "dispatch_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
