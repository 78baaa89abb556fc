"""Form system - build-once lifecycle with session-bound CSRF tokens."""

from formguard.forms.core import CsrfState, Form, FormState
from formguard.forms.csrf import CsrfToken, CsrfTokenEngine
from formguard.forms.elements import Element, elements_from_model
from formguard.forms.errors import ConfigurationError, FormError, InvalidCsrfToken
from formguard.forms.request import RequestSnapshot

__all__ = [
    "ConfigurationError",
    "CsrfState",
    "CsrfToken",
    "CsrfTokenEngine",
    "Element",
    "Form",
    "FormError",
    "FormState",
    "InvalidCsrfToken",
    "RequestSnapshot",
    "elements_from_model",
]
