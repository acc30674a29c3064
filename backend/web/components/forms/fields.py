"""
Form field components.

Each field renders label, control, help and error text in one wrapper so
every form in the portal shares the same markup.
"""

from typing import Optional, Sequence, Tuple

from ..base import Component


class FormField(Component):
    """Wrapper that renders label, input slot, help, and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text

    def _aria(self) -> dict:
        return {
            "aria_describedby": f"{self.field_id}-help" if self.help_text else None,
            "aria_invalid": "true" if self.error_text else "false",
        }

    def render(self, input_html: str) -> str:
        required_marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        help_html = (
            f'<p class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.field_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        wrapper = self.classes("form-field", form_field__error=bool(self.error_text))
        label_attrs = self.attributes(for_=self.field_id, class_="form-label")
        return (
            f'<div class="{wrapper}">'
            f"<label {label_attrs}>{self.escape(self.label)}{required_marker}</label>"
            f"{input_html}{help_html}{error_html}"
            "</div>"
        )


class TextInputField(FormField):
    """Single-line input (`text`, `email`, `password`, `number`)."""

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type=input_type,
            # Password fields never echo a submitted value back.
            value=None if input_type == "password" else value,
            autocomplete=autocomplete,
            required=self.required,
            **self._aria(),
            **attrs,
        )
        return super().render(f"<input {input_attrs}>")


class TextAreaField(FormField):
    def render(self, value: str = "", rows: int = 4, **attrs: str) -> str:
        textarea_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            rows=str(rows),
            required=self.required,
            **self._aria(),
            **attrs,
        )
        return super().render(f"<textarea {textarea_attrs}>{self.escape(value)}</textarea>")


class SelectField(FormField):
    """Select from (value, label) options; an empty first option when not required."""

    def render(self, options: Sequence[Tuple[str, str]], *, selected: Optional[str] = None, **attrs: str) -> str:
        items = [] if self.required else ['<option value="">&mdash;</option>']
        for value, label in options:
            opt_attrs = self.attributes(value=value, selected=(str(value) == str(selected)) if selected else False)
            items.append(f"<option {opt_attrs}>{self.escape(label)}</option>")
        select_attrs = self.attributes(
            id=self.field_id, name=self.field_id, required=self.required, **self._aria(), **attrs
        )
        return super().render(f"<select {select_attrs}>{''.join(items)}</select>")


class FileUploadField(FormField):
    def render(self, accept: Optional[str] = None, **attrs: str) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type="file",
            accept=accept,
            required=self.required,
            **self._aria(),
            **attrs,
        )
        return super().render(f"<input {input_attrs}>")


class CheckboxField(Component):
    def __init__(self, field_id: str, label: str) -> None:
        self.field_id = field_id
        self.label = label

    def render(self, checked: bool = False) -> str:
        attrs = self.attributes(id=self.field_id, name=self.field_id, type="checkbox", value="true", checked=checked)
        return (
            f'<div class="form-field form-field--checkbox">'
            f"<input {attrs}> <label for=\"{self.field_id}\">{self.escape(self.label)}</label></div>"
        )
