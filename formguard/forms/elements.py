"""Form elements and their HTML rendering."""

from __future__ import annotations

from markupsafe import Markup, escape
from pydantic import BaseModel
from pydantic.fields import FieldInfo

BUTTON_TYPES = frozenset({"submit", "reset"})


class Element:
    """A single named form element with its current value and error state.

    Usable in templates as:
        {{ element }}              - full group (label + widget + error)
        {{ element.label_tag() }}  - just the label
        {{ element.widget() }}     - just the input/textarea/select/button
        {{ element.error }}        - error message or None
    """

    def __init__(
        self,
        name: str,
        type: str = "text",
        *,
        label: str | None = None,
        value: str = "",
        required: bool = False,
        choices: list[tuple[str, str]] | None = None,
        help_text: str | None = None,
        attrs: dict | None = None,
    ):
        self.name = name
        self.type = type
        self._label = label
        self.value = value
        self.required = required
        self.choices = choices or []
        self.help_text = help_text
        self.attrs: dict = dict(attrs or {})
        self.error: str | None = None

    # -- Properties --

    @property
    def id(self) -> str:
        return f"field-{self.name}"

    @property
    def label(self) -> str:
        if self._label is not None:
            return self._label
        return self.name.replace("_", " ").title()

    @property
    def is_button(self) -> bool:
        return self.type in BUTTON_TYPES

    @property
    def is_hidden(self) -> bool:
        return self.type == "hidden"

    def set_attrib(self, key: str, value: str) -> None:
        self.attrs[key] = value

    # -- Rendering --

    def label_tag(self) -> Markup:
        req = ' <span class="required">*</span>' if self.required else ""
        return Markup(f'<label for="{self.id}">{escape(self.label)}{req}</label>')

    def widget(self, **override_attrs) -> Markup:
        """Render the input/textarea/select/button element.

        Extra keyword arguments become HTML attributes:
            {{ element.widget(class_="wide", placeholder="...") }}
        """
        merged = {**self.attrs, **override_attrs}
        attrs_str = _render_attrs(merged)

        if self.is_button:
            return Markup(
                f'<button type="{self.type}" id="{self.id}" name="{self.name}" '
                f'value="{escape(self.label)}"{attrs_str}>{escape(self.label)}</button>'
            )

        if self.type == "textarea":
            return Markup(
                f'<textarea id="{self.id}" name="{self.name}"{attrs_str}>'
                f"{escape(self.value)}</textarea>"
            )

        if self.type == "select":
            html = f'<select id="{self.id}" name="{self.name}"{attrs_str}>'
            for val, display in self.choices:
                selected = " selected" if str(val) == self.value else ""
                html += f'<option value="{escape(str(val))}"{selected}>{escape(str(display))}</option>'
            html += "</select>"
            return Markup(html)

        if self.type == "checkbox":
            checked = " checked" if self.value else ""
            return Markup(
                f'<input type="checkbox" id="{self.id}" '
                f'name="{self.name}"{checked}{attrs_str}>'
            )

        # Default: <input type="...">
        return Markup(
            f'<input type="{self.type}" id="{self.id}" '
            f'name="{self.name}" value="{escape(self.value)}"{attrs_str}>'
        )

    def render(self) -> Markup:
        """Render label + widget + error as a complete field group.

        Hidden elements and buttons render as the bare widget.
        """
        if self.is_hidden or self.is_button:
            return self.widget()

        html = str(self.label_tag()) + "\n" + str(self.widget())
        if self.error:
            html += f'\n<small class="error">{escape(self.error)}</small>'
        if self.help_text:
            html += f'\n<small class="text-muted">{escape(self.help_text)}</small>'
        return Markup(html)

    def __str__(self) -> str:
        return str(self.render())

    def __html__(self) -> str:
        return str(self.render())

    def __repr__(self) -> str:
        return f"Element({self.name!r}, type={self.type!r}, value={self.value!r})"


# -- Model-derived elements --


def elements_from_model(model: type[BaseModel]) -> list[Element]:
    """Create one element per Pydantic model field, in definition order.

    Per-field options come from ``json_schema_extra``: label, widget,
    input_type, choices, help_text and attrs.
    """
    return [_element_for_field(name, info) for name, info in model.model_fields.items()]


def _element_for_field(name: str, info: FieldInfo) -> Element:
    extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
    default = None if info.is_required() else info.get_default()
    if isinstance(default, bool):
        value = "on" if default else ""
    else:
        value = "" if default is None else str(default)

    return Element(
        name,
        extra.get("widget") or _infer_type(info, extra),
        label=extra.get("label"),
        value=value,
        required=info.is_required(),
        choices=extra.get("choices"),
        help_text=extra.get("help_text"),
        attrs=extra.get("attrs"),
    )


def _infer_type(info: FieldInfo, extra: dict) -> str:
    """Infer element type from the Pydantic field annotation."""
    explicit = extra.get("input_type")
    if explicit:
        return explicit

    annotation = info.annotation
    if annotation is bool:
        return "checkbox"

    type_map = {
        "EmailStr": "email",
        "SecretStr": "password",
    }
    if annotation is not None and hasattr(annotation, "__name__"):
        return type_map.get(annotation.__name__, "text")
    return "text"


# -- Utilities --


def _render_attrs(attrs: dict) -> str:
    """Render a dict as HTML attributes string. Returns '' or ' key="val" key2="val2"'."""
    if not attrs:
        return ""
    parts = []
    for k, v in attrs.items():
        # Convert Python naming to HTML: class_ -> class, data_id -> data-id
        attr_name = k.rstrip("_").replace("_", "-")
        parts.append(f'{attr_name}="{escape(str(v))}"')
    return " " + " ".join(parts)
