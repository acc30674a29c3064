"""
Submit button component.

Keeps the disabled state and the HTMX in-flight label consistent.
"""

from typing import Optional

from ..base import Component


class SubmitButton(Component):
    """Form action button."""

    def __init__(
        self,
        label: str,
        *,
        variant: str = "primary",
        disabled: bool = False,
        name: Optional[str] = None,
        value: Optional[str] = None,
        confirm: Optional[str] = None,
    ) -> None:
        self.label = label
        self.variant = variant
        self.disabled = disabled
        self.name = name
        self.value = value
        self.confirm = confirm

    def render(self) -> str:
        attrs = self.attributes(
            type="submit",
            class_=f"btn btn-{self.variant}",
            disabled=self.disabled,
            name=self.name,
            value=self.value,
            hx_confirm=self.confirm,
            hx_disabled_elt="this",
        )
        return f"<button {attrs}>{self.escape(self.label)}</button>"
