"""
Profile page forms: contact details and account information.

Both post to /profile; the hidden `section` field selects the update.
"""
from typing import Any, Dict, Mapping, Optional

from ..base import Component
from .fields import TextAreaField, TextInputField
from .submit import SubmitButton


def _form(csrf_token: str, section: str, title: str, body: str, submit: str) -> str:
    return f"""
        <form method="post" action="/profile" class="profile-form" hx-post="/profile" hx-target="#main-content">
            <h2>{Component.escape(title)}</h2>
            <input type="hidden" name="csrf_token" value="{Component.escape(csrf_token)}">
            <input type="hidden" name="section" value="{section}">
            {body}
            <div class="form-actions">{SubmitButton(submit).render()}</div>
        </form>
        """


class ProfileDetailsForm(Component):
    def __init__(self, csrf_token: str, values: Optional[Mapping[str, Any]] = None, errors: Optional[Dict[str, str]] = None):
        self.csrf_token = csrf_token
        self.values = values or {}
        self.errors = errors or {}

    def _value(self, key: str) -> str:
        return str(self.values.get(key) or "")

    def render(self) -> str:
        v = self._value
        body = "".join(
            [
                TextInputField("department", "Department", error_text=self.errors.get("department")).render(
                    value=v("department"), class_="form-input"
                ),
                TextInputField("phone_number", "Phone number", error_text=self.errors.get("phone_number")).render(
                    value=v("phone_number"), input_type="tel", class_="form-input"
                ),
                TextAreaField("address", "Address", error_text=self.errors.get("address")).render(
                    value=v("address"), rows=2, class_="form-input"
                ),
            ]
        )
        return _form(self.csrf_token, "details", "Profile details", body, "Save profile")


class AccountForm(Component):
    def __init__(self, csrf_token: str, values: Optional[Mapping[str, Any]] = None, errors: Optional[Dict[str, str]] = None):
        self.csrf_token = csrf_token
        self.values = values or {}
        self.errors = errors or {}

    def _value(self, key: str) -> str:
        return str(self.values.get(key) or "")

    def render(self) -> str:
        v = self._value
        body = "".join(
            [
                TextInputField("username", "Username", required=True, error_text=self.errors.get("username")).render(
                    value=v("username"), autocomplete="username", class_="form-input"
                ),
                TextInputField("first_name", "First name", error_text=self.errors.get("first_name")).render(
                    value=v("first_name"), class_="form-input"
                ),
                TextInputField("last_name", "Last name", error_text=self.errors.get("last_name")).render(
                    value=v("last_name"), class_="form-input"
                ),
                TextInputField("email", "Email", required=True, error_text=self.errors.get("email")).render(
                    value=v("email"), input_type="email", autocomplete="email", class_="form-input"
                ),
            ]
        )
        return _form(self.csrf_token, "account", "Account information", body, "Save account")
