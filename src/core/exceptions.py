"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class InvalidWorkflowDefinitionException(ValidationException):
    """Raised when a workflow definition's steps or transitions are inconsistent."""


class DefinitionHasNoStepsException(DomainException):
    """Raised when a workflow is started from a definition without steps."""

    def __init__(self, definition_id: int, details: Optional[dict] = None):
        self.definition_id = definition_id
        super().__init__(
            f"Workflow definition {definition_id} has no steps",
            details or {"definition_id": definition_id}
        )


class WorkflowAlreadyRunningException(DomainException):
    """Raised when a case already has a running workflow instance."""

    def __init__(self, case_id: int, instance_id: str, details: Optional[dict] = None):
        self.case_id = case_id
        self.instance_id = instance_id
        super().__init__(
            f"Case {case_id} already has running workflow instance {instance_id}",
            details or {"case_id": case_id, "instance_id": instance_id}
        )


class StepMismatchException(DomainException):
    """Raised when completing a step that is not the instance's current step."""

    def __init__(
        self,
        instance_id: str,
        step_id: str,
        current_step_id: Optional[str],
        status: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.instance_id = instance_id
        self.step_id = step_id
        self.current_step_id = current_step_id
        self.status = status
        super().__init__(
            f"Step '{step_id}' is not the current step of instance {instance_id}",
            details or {
                "instance_id": instance_id,
                "step_id": step_id,
                "current_step_id": current_step_id,
                "status": status,
            }
        )
