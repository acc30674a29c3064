"""Inline alert messages."""

from .base import Component


class Alert(Component):
    KINDS = ("error", "success", "info")

    def __init__(self, message: str, kind: str = "error"):
        self.message = message
        self.kind = kind if kind in self.KINDS else "info"

    def render(self) -> str:
        role = "alert" if self.kind == "error" else "status"
        return f'<div class="alert alert-{self.kind}" role="{role}">{self.escape(self.message)}</div>'
