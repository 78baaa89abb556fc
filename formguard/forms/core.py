"""Core Form class: build-once lifecycle, CSRF tokens and the submission gate."""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Iterable, Iterator, Mapping

from markupsafe import Markup, escape
from pydantic import BaseModel, ValidationError

from formguard.config import get_settings
from formguard.forms.csrf import CsrfToken, CsrfTokenEngine, default_seed_source
from formguard.forms.elements import Element, elements_from_model
from formguard.forms.errors import ConfigurationError, InvalidCsrfToken
from formguard.forms.request import RequestSnapshot
from formguard.forms.session import current_session_id
from formguard.lib import observability

logger = logging.getLogger(__name__)


class FormState(enum.Enum):
    NOT_BUILT = "not_built"
    BUILT = "built"


class CsrfState(enum.Enum):
    DISABLED = "disabled"
    ENABLED_NOT_EMBEDDED = "enabled_not_embedded"
    ENABLED_EMBEDDED = "enabled_embedded"


class Form:
    """A server-rendered form that is built once and protected by a CSRF token.

    Domain elements come from one of, in order of precedence:

    - a ``populate`` callable passed to the constructor,
    - an override of ``populate_fields()`` in a subclass,
    - the attached Pydantic ``model``, one element per model field.

    Usage:
        class ContactForm(Form):
            def populate_fields(self):
                self.add_element("email", "email", required=True)

        form = ContactForm(snapshot, name="contact", submit_label="Send")

        # In the GET handler
        html = form.render()

        # In the POST handler; raises InvalidCsrfToken on a forged request
        if form.is_submitted_and_valid():
            ...
    """

    model: type[BaseModel] | None = None

    def __init__(
        self,
        request: RequestSnapshot | None = None,
        *,
        name: str | None = None,
        action: str | None = None,
        method: str = "post",
        model: type[BaseModel] | None = None,
        populate: Callable[[Form], None] | None = None,
        submit_label: str | None = None,
        cancel_label: str | None = None,
        session_id: str | None = None,
        token_element_name: str | None = None,
        token_timeout: int | None = None,
        clock: Callable[[], float] = time.time,
        seed_source: Callable[[], int] = default_seed_source,
    ):
        config = get_settings().forms

        self.request = request
        self.name = name
        self.action = action
        self.method = method
        if model is not None:
            self.model = model
        self.submit_label = submit_label
        self.cancel_label = cancel_label
        self.submit_element_name = config.submit_element_name
        self.cancel_element_name = config.cancel_element_name

        self.state = FormState.NOT_BUILT
        self.data: BaseModel | None = None
        self.errors: dict[str, str] = {}

        self._populate = populate
        self._elements: dict[str, Element] = {}
        self._session_id = session_id
        self._token_disabled = False
        self._token_element_name = token_element_name or config.token_element_name
        self._csrf = CsrfTokenEngine(
            lambda: self.session_id,
            config.token_timeout if token_timeout is None else token_timeout,
            clock=clock,
            seed_source=seed_source,
        )

    # -- Lifecycle --

    @property
    def created(self) -> bool:
        return self.state is FormState.BUILT

    def build_form(self) -> None:
        """Add all elements to the form. Only the first call does anything.

        If populating fails the element set is rolled back and the form stays
        unbuilt, so the caller may retry.
        """
        if self.state is FormState.BUILT:
            return

        before = dict(self._elements)
        try:
            self.init_csrf_token()
            self.populate_fields()

            if self.submit_label:
                self.add_submit_button()

            if self.cancel_label:
                self.add_cancel_button()
        except Exception:
            self._elements = before
            raise

        if not self.action and self.request is not None:
            self.action = self.request.get_request_uri()

        self.state = FormState.BUILT
        logger.debug("Built form %r with elements %s", self.name, list(self._elements))

    def populate_fields(self) -> None:
        """Add the form's domain elements. Called once by build_form()."""
        if self._populate is not None:
            self._populate(self)
        elif self.model is not None:
            for element in elements_from_model(self.model):
                self.add_element(element)
        else:
            raise NotImplementedError(
                f"{type(self).__name__} must override populate_fields(), "
                "pass populate= or attach a model"
            )

    def pre_validation(self, fields: Mapping[str, str]) -> None:
        """Called with the submitted fields before validation, only when submitted."""

    def add_submit_button(self) -> Element:
        return self.add_element(
            self.submit_element_name,
            "submit",
            label=self.submit_label,
            attrs={"class_": "btn btn-primary pull-right"},
        )

    def add_cancel_button(self) -> Element:
        return self.add_element(
            self.cancel_element_name,
            "reset",
            label=self.cancel_label,
            attrs={"class_": "btn pull-right"},
        )

    # -- Elements --

    def add_element(self, element: Element | str, type: str = "text", **options) -> Element:
        """Add an element, or create one from a name, type and Element options."""
        if isinstance(element, str):
            element = Element(element, type, **options)

        if element.name == self._token_element_name:
            raise ConfigurationError(
                f'"{element.name}" is reserved for the CSRF token of this form'
            )
        if element.name in self._elements:
            raise ConfigurationError(f'The form already has an element named "{element.name}"')

        self._elements[element.name] = element
        return element

    def get_element(self, name: str) -> Element | None:
        return self._elements.get(name)

    def remove_element(self, name: str) -> bool:
        return self._elements.pop(name, None) is not None

    @property
    def elements(self) -> dict[str, Element]:
        return dict(self._elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(list(self._elements.values()))

    def __getitem__(self, name: str) -> Element:
        return self._elements[name]

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, name: str) -> bool:
        return name in self._elements

    def enable_auto_submit(self, trigger_elements: Iterable[str]) -> None:
        """Submit the form from the browser whenever one of the given elements changes.

        Raises:
            ConfigurationError: The form has no name, or an element does not exist yet.
        """
        if not self.name:
            raise ConfigurationError("You need to set a name for this form.")

        for element_name in trigger_elements:
            element = self.get_element(element_name)
            if element is None:
                raise ConfigurationError(
                    f'You need to add the element "{element_name}" to the form '
                    "before automatic submission can be enabled!"
                )
            element.set_attrib("onchange", f'$("#{self.name}").submit();')

    # -- Session --

    @property
    def session_id(self) -> str:
        """The session the CSRF token is bound to, resolved from the request context once.

        An explicit id (even an empty one) always wins. An unbound ambient
        session is not cached, so a later binding is picked up.
        """
        if self._session_id is not None:
            return self._session_id
        session_id = current_session_id()
        if session_id:
            self._session_id = session_id
        return session_id

    @session_id.setter
    def session_id(self, value: str) -> None:
        self._session_id = value

    # -- CSRF --

    @property
    def token_element_name(self) -> str:
        return self._token_element_name

    @property
    def token_timeout(self) -> int:
        return self._csrf.timeout

    @property
    def token_disabled(self) -> bool:
        return self._token_disabled

    @property
    def csrf_state(self) -> CsrfState:
        if self._token_disabled:
            return CsrfState.DISABLED
        if self._token_element_name in self._elements:
            return CsrfState.ENABLED_EMBEDDED
        return CsrfState.ENABLED_NOT_EMBEDDED

    def set_token_disabled(self, value: bool = True) -> None:
        """Turn CSRF protection off (removing an embedded token) or back on."""
        self._token_disabled = bool(value)
        if self._token_disabled:
            self._elements.pop(self._token_element_name, None)

    def init_csrf_token(self) -> None:
        """Embed a fresh token as a hidden element unless disabled or already embedded."""
        if self.csrf_state is not CsrfState.ENABLED_NOT_EMBEDDED:
            return

        self._elements[self._token_element_name] = Element(
            self._token_element_name,
            "hidden",
            value=self.generate_csrf_token_as_string(),
        )
        logger.debug("Embedded CSRF token in form %r", self.name)

    def generate_csrf_token(self) -> CsrfToken:
        return self._csrf.generate()

    def generate_csrf_token_as_string(self) -> str:
        return self._csrf.generate_string()

    def has_valid_csrf_token(self, value: str) -> bool:
        """Check a submitted token.

        False if this form never embedded one, or if there is no session to
        bind it to, since anyone can sign over an empty session id.
        """
        if self.get_element(self._token_element_name) is None:
            return False
        if not self.session_id:
            logger.warning("No session id for form %r; refusing CSRF token", self.name)
            return False
        return self._csrf.verify(value)

    def assert_valid_csrf_token(self, fields: Mapping[str, str]) -> None:
        """Raise InvalidCsrfToken unless the submitted fields carry a valid token.

        Does nothing while CSRF protection is disabled.
        """
        if self._token_disabled:
            return

        value = fields.get(self._token_element_name)
        if value is None or not self.has_valid_csrf_token(value):
            logger.warning("Rejected CSRF token for form %r", self.name)
            observability.warning("Rejected CSRF token for form {form}", form=self.name)
            raise InvalidCsrfToken()

    # -- Validation --

    def is_submitted_and_valid(self) -> bool:
        """True if the request submitted this form with a valid token and valid values.

        Raises:
            InvalidCsrfToken: The request is a submission but its token does not verify.
        """
        if self.request is None or not self.request.is_submission_method():
            return False

        with observability.span("form.is_submitted_and_valid", form=self.name):
            self.build_form()
            fields = self.request.get_submitted_fields()
            self.assert_valid_csrf_token(fields)

            submitted = True
            if self.submit_label:
                submitted = self.submit_element_name in fields

            if not submitted:
                return False

            self.pre_validation(fields)
            return self.is_valid(fields)

    def is_valid(self, fields: Mapping[str, str]) -> bool:
        """Repopulate elements from the submitted fields and validate them.

        With a model attached, values are validated by Pydantic and the model
        instance is stored in ``self.data``. Without one, required elements
        must be non-empty. ``self.errors`` holds the first error per field.
        """
        self.errors = {}
        self.data = None

        values: dict[str, str] = {}
        for element in self:
            element.error = None
            if element.is_button or element.name == self._token_element_name:
                continue
            element.value = str(fields.get(element.name, ""))
            values[element.name] = element.value

        if self.model is not None:
            self._validate_model(fields)
        else:
            for name, value in values.items():
                if self._elements[name].required and not value:
                    self.errors[name] = "Field required"

        for name, message in self.errors.items():
            element = self.get_element(name)
            if element is not None:
                element.error = message

        return not self.errors

    def _validate_model(self, fields: Mapping[str, str]) -> None:
        model_fields = self.model.model_fields
        validation_data = {k: v for k, v in fields.items() if k in model_fields}

        # Inject False for missing bool fields (unchecked checkboxes)
        for field_name, field_info in model_fields.items():
            if field_info.annotation is bool and field_name not in validation_data:
                validation_data[field_name] = False

        try:
            self.data = self.model(**validation_data)
        except ValidationError as e:
            for err in e.errors():
                field_name = str(err["loc"][0]) if err["loc"] else "__form__"
                # Only keep first error per field
                if field_name not in self.errors:
                    self.errors[field_name] = err["msg"]

    def error(self, name: str) -> str | None:
        return self.errors.get(name)

    @property
    def form_error(self) -> str | None:
        """Non-field error reported by model-level validators."""
        return self.errors.get("__form__")

    # -- Rendering --

    def render(self, template_engine=None) -> Markup:
        """Build the form and render it.

        Tries form-{name}.html then form.html through the template engine,
        falling back to programmatic markup.
        """
        from formguard.lib.template import Template

        self.build_form()

        if template_engine is not None:
            rendered = Template("form", self.name or "").try_render(template_engine, form=self)
            if rendered is not None:
                return Markup(rendered)

        return self._render_default()

    def _render_default(self) -> Markup:
        """Programmatic fallback when no template exists."""
        html = f'<form method="{escape(self.method)}"'
        if self.name:
            html += f' id="{escape(self.name)}" name="{escape(self.name)}"'
        if self.action:
            html += f' action="{escape(self.action)}"'
        html += ">\n"

        if self.form_error:
            html += f'<article role="alert">{escape(self.form_error)}</article>\n'

        for element in self:
            html += str(element) + "\n"

        html += "</form>"
        return Markup(html)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value})"
