"""
Admin forms: user accounts, request types and approval levels.
"""
from typing import Any, Dict, List, Mapping, Optional

from identity_access.domain import Role

from ..base import Component
from .fields import CheckboxField, SelectField, TextAreaField, TextInputField
from .submit import SubmitButton

ROLE_OPTIONS = [(role.value, role.label) for role in Role]


class ActionButton(Component):
    """One-button form for row actions (delete, toggle) with CSRF token."""

    def __init__(self, csrf_token: str, action: str, label: str, *, variant: str = "secondary", confirm: Optional[str] = None):
        self.csrf_token = csrf_token
        self.action = action
        self.label = label
        self.variant = variant
        self.confirm = confirm

    def render(self) -> str:
        action = self.escape(self.action)
        button = SubmitButton(self.label, variant=self.variant, confirm=self.confirm).render()
        return (
            f'<form method="post" action="{action}" class="inline-form" hx-post="{action}" hx-target="#main-content">'
            f'<input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">{button}</form>'
        )


class _EntityForm(Component):
    action = ""
    title = ""
    submit_label = "Create"

    def __init__(self, csrf_token: str, values: Optional[Mapping[str, Any]] = None, errors: Optional[Dict[str, str]] = None):
        self.csrf_token = csrf_token
        self.values = values or {}
        self.errors = errors or {}

    def _value(self, key: str) -> str:
        value = self.values.get(key)
        return "" if value is None else str(value)

    def _fields(self) -> List[str]:
        raise NotImplementedError

    def render(self) -> str:
        error_html = ""
        if self.errors.get("__all__"):
            error_html = f'<div class="alert alert-error" role="alert">{self.escape(self.errors["__all__"])}</div>'
        return f"""
        <form method="post" action="{self.action}" class="admin-form" hx-post="{self.action}" hx-target="#main-content">
            <h2>{self.escape(self.title)}</h2>
            <input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">
            {error_html}
            {''.join(self._fields())}
            <div class="form-actions">{SubmitButton(self.submit_label).render()}</div>
        </form>
        """


class UserForm(_EntityForm):
    action = "/admin/users"
    title = "New user"
    submit_label = "Create user"

    def _fields(self) -> List[str]:
        e = self.errors.get
        return [
            TextInputField("username", "Username", required=True, error_text=e("username")).render(
                value=self._value("username"), class_="form-input"
            ),
            TextInputField("email", "Email", required=True, error_text=e("email")).render(
                value=self._value("email"), input_type="email", class_="form-input"
            ),
            TextInputField(
                "password", "Password", help_text="Leave empty to let the system generate one", error_text=e("password")
            ).render(input_type="password", autocomplete="new-password", class_="form-input"),
            TextInputField("password_confirm", "Confirm password", error_text=e("password_confirm")).render(
                input_type="password", autocomplete="new-password", class_="form-input"
            ),
            TextInputField("first_name", "First name").render(value=self._value("first_name"), class_="form-input"),
            TextInputField("last_name", "Last name").render(value=self._value("last_name"), class_="form-input"),
            SelectField("role", "Role", required=True, error_text=e("role")).render(
                ROLE_OPTIONS, selected=self._value("role") or Role.STAFF.value, class_="form-input"
            ),
            TextInputField("department", "Department").render(value=self._value("department"), class_="form-input"),
            TextInputField("phone_number", "Phone number").render(
                value=self._value("phone_number"), input_type="tel", class_="form-input"
            ),
            TextAreaField("address", "Address").render(value=self._value("address"), rows=2, class_="form-input"),
        ]


class RequestTypeForm(_EntityForm):
    action = "/admin/request-types"
    title = "New request type"
    submit_label = "Create request type"

    def _fields(self) -> List[str]:
        return [
            TextInputField("name", "Name", required=True, error_text=self.errors.get("name")).render(
                value=self._value("name"), class_="form-input"
            ),
            TextAreaField("description", "Description").render(value=self._value("description"), rows=2, class_="form-input"),
            CheckboxField("is_active", "Active").render(checked=self.values.get("is_active", True) is not False),
        ]


class ApprovalLevelForm(_EntityForm):
    action = "/admin/approval-levels"
    title = "New approval level"
    submit_label = "Create approval level"

    def __init__(
        self,
        csrf_token: str,
        request_types: List[Mapping[str, Any]],
        values: Optional[Mapping[str, Any]] = None,
        errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(csrf_token, values, errors)
        self.request_types = request_types

    def _fields(self) -> List[str]:
        e = self.errors.get
        type_options = [(str(t.get("id")), str(t.get("name") or t.get("id"))) for t in self.request_types]
        return [
            SelectField("request_type", "Request type", required=True, error_text=e("request_type")).render(
                type_options, selected=self._value("request_type"), class_="form-input"
            ),
            TextInputField("level_number", "Level number", required=True, error_text=e("level_number")).render(
                value=self._value("level_number") or "1", input_type="number", min="1", class_="form-input"
            ),
            SelectField("approver_role", "Approver role", required=True, error_text=e("approver_role")).render(
                ROLE_OPTIONS, selected=self._value("approver_role"), class_="form-input"
            ),
            CheckboxField("is_required", "Required").render(checked=self.values.get("is_required", True) is not False),
        ]
