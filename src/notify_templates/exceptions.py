"""Exception hierarchy for notify-templates.

Rendering and formatting never raise; they encode failures as visible text in
the generated HTML.  Everything below is raised by configuration, remote-fetch
and authorization code paths.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notify_templates.template.validation import ValidationResult


class NotifyTemplatesError(Exception):
    """Base class for all notify-templates errors."""


# -- Configuration ----------------------------------------------------------


class TemplateError(NotifyTemplatesError):
    """Problem with a template configuration."""


class TemplateValidationError(TemplateError):
    """Raised at save time when a template configuration does not validate."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        detail = "; ".join(result.errors) or "invalid template"
        super().__init__(f"Template validation failed: {detail}")


class TemplateNotFoundError(TemplateError):
    """Raised when a template document does not exist in the store."""


# -- Remote data ------------------------------------------------------------


class FeatureServiceError(NotifyTemplatesError):
    """A remote feature-service call failed.

    ``str(error)`` is always safe to show to an end user.
    """

    retryable: bool = False

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FeatureServiceTimeoutError(FeatureServiceError):
    """A remote call exceeded its timeout; the caller may try again."""

    retryable = True


# -- Authorization ----------------------------------------------------------


class AuthorizationError(NotifyTemplatesError):
    """Base class for authorization failures."""


class AuthenticationRequiredError(AuthorizationError):
    """The caller is not authenticated."""


class PermissionDeniedError(AuthorizationError):
    """The caller is authenticated but lacks the required role."""
