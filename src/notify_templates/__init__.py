"""notify-templates -- email template compilation and live-data aggregation.

Admins build notification emails from visual elements; this package turns
those element lists into inline-styled HTML, evaluates the statistics and
graphs they reference against a remote feature service (server-side where
possible, client-side otherwise) and substitutes the results.

Quick start::

    from notify_templates.template.compiler import compile_template
    from notify_templates.template.context import build_sample_context
    from notify_templates.template.loader import load_template_config

    template = load_template_config("template.yaml")
    html = compile_template(template, build_sample_context(template))
"""

from notify_templates._version import __version__
from notify_templates.config import TemplatesConfig, get_config, reset_config
from notify_templates.exceptions import (
    AuthenticationRequiredError,
    AuthorizationError,
    FeatureServiceError,
    FeatureServiceTimeoutError,
    NotifyTemplatesError,
    PermissionDeniedError,
    TemplateError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from notify_templates.types import ChartType, ElementType, FieldType, FormatType, LogicOperator, StatOperation

__all__ = [
    "__version__",
    "AuthenticationRequiredError",
    "AuthorizationError",
    "ChartType",
    "ElementType",
    "FeatureServiceError",
    "FeatureServiceTimeoutError",
    "FieldType",
    "FormatType",
    "LogicOperator",
    "NotifyTemplatesError",
    "PermissionDeniedError",
    "StatOperation",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "TemplatesConfig",
    "get_config",
    "reset_config",
]
