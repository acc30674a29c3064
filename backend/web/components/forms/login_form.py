"""
Login form component.
"""
from typing import Optional

from ..base import Component
from .fields import TextInputField
from .submit import SubmitButton


class LoginForm(Component):
    """Username/password form posting to /login as a full page request.

    A successful login answers with a redirect, so the dashboard loads as a
    fresh page and the session is verified once more on arrival.
    """

    def __init__(self, csrf_token: str, *, username: str = "", error: Optional[str] = None):
        self.csrf_token = csrf_token
        self.username = username
        self.error = error

    def render(self) -> str:
        username = TextInputField("username", "Username", required=True).render(
            value=self.username, autocomplete="username", class_="form-input"
        )
        password = TextInputField("password", "Password", required=True).render(
            input_type="password", autocomplete="current-password", class_="form-input"
        )
        error_html = f'<div class="form-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        return f"""
        <form method="post" action="/login" class="login-form">
            <input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">
            {error_html}
            {username}
            {password}
            <div class="form-actions">
                {SubmitButton("Sign in").render()}
            </div>
        </form>
        """
