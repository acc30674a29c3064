"""
Purchase request form (create and edit).
"""
from typing import Any, Dict, List, Mapping, Optional

from ..base import Component
from .fields import FileUploadField, SelectField, TextAreaField, TextInputField
from .submit import SubmitButton


class PurchaseRequestForm(Component):
    """Multipart form for a purchase request.

    Items are entered one per line as `description | quantity | unit price`.
    `errors` maps field names to messages; the `__all__` key holds a message
    for the whole form (e.g. a backend rejection).
    """

    def __init__(
        self,
        csrf_token: str,
        *,
        action: str,
        request_types: List[Mapping[str, Any]],
        values: Optional[Mapping[str, Any]] = None,
        errors: Optional[Dict[str, str]] = None,
        submit_label: str = "Submit Request",
    ):
        self.csrf_token = csrf_token
        self.action = action
        self.request_types = request_types
        self.values = values or {}
        self.errors = errors or {}
        self.submit_label = submit_label

    def _value(self, key: str) -> str:
        value = self.values.get(key)
        return "" if value is None else str(value)

    def render(self) -> str:
        type_options = [
            (str(t.get("id")), str(t.get("name") or t.get("id")))
            for t in self.request_types
            if t.get("is_active", True)
        ]
        fields = [
            TextInputField("title", "Title", required=True, error_text=self.errors.get("title")).render(
                value=self._value("title"), class_="form-input"
            ),
            TextAreaField("description", "Description", required=True, error_text=self.errors.get("description")).render(
                value=self._value("description"), class_="form-input"
            ),
            TextInputField("amount", "Amount (RWF)", required=True, error_text=self.errors.get("amount")).render(
                value=self._value("amount"), input_type="number", step="0.01", min="0.01", class_="form-input"
            ),
            SelectField(
                "request_type_id", "Request type", required=True, error_text=self.errors.get("request_type_id")
            ).render(type_options, selected=self._value("request_type_id"), class_="form-input"),
            TextAreaField(
                "items",
                "Items (optional)",
                help_text="One per line: description | quantity | unit price",
                error_text=self.errors.get("items"),
            ).render(value=self._value("items"), rows=5, class_="form-input"),
            FileUploadField("proforma", "Proforma invoice (optional)", error_text=self.errors.get("proforma")).render(
                accept=".pdf,image/*", class_="form-input"
            ),
        ]

        error_html = ""
        if self.errors.get("__all__"):
            error_html = f'<div class="alert alert-error" role="alert">{self.escape(self.errors["__all__"])}</div>'

        action = self.escape(self.action)
        return f"""
        <form method="post" action="{action}" enctype="multipart/form-data" class="request-form"
              hx-post="{action}" hx-target="#main-content" hx-encoding="multipart/form-data">
            <input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">
            {error_html}
            {''.join(fields)}
            <div class="form-actions">
                {SubmitButton(self.submit_label).render()}
            </div>
        </form>
        """
