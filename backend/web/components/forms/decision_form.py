"""
Approve/reject and receipt forms on the request detail page.
"""
from typing import Optional

from ..base import Component
from .fields import FileUploadField, TextAreaField
from .submit import SubmitButton


class DecisionForm(Component):
    """Approve or reject a pending request with optional comments."""

    def __init__(self, csrf_token: str, request_id: str, *, error: Optional[str] = None):
        self.csrf_token = csrf_token
        self.request_id = request_id
        self.error = error

    def render(self) -> str:
        base = f"/requests/{self.escape(self.request_id)}"
        comments = TextAreaField(
            "comments", "Comments", help_text="Add any notes about your decision"
        ).render(rows=3, class_="form-input")
        error_html = f'<div class="alert alert-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        approve = self.attributes(
            type="submit", class_="btn btn-success", formaction=f"{base}/approve", hx_post=f"{base}/approve"
        )
        reject = self.attributes(
            type="submit",
            class_="btn btn-danger",
            formaction=f"{base}/reject",
            hx_post=f"{base}/reject",
            hx_confirm="Reject this request? This cannot be undone.",
        )
        return f"""
        <form method="post" action="{base}/approve" class="decision-form" hx-target="#main-content">
            <input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">
            {error_html}
            {comments}
            <div class="form-actions">
                <button {approve}>Approve</button>
                <button {reject}>Reject</button>
            </div>
        </form>
        """


class ReceiptForm(Component):
    """Upload or replace the receipt of an approved request."""

    def __init__(self, csrf_token: str, request_id: str, *, has_receipt: bool = False, error: Optional[str] = None):
        self.csrf_token = csrf_token
        self.request_id = request_id
        self.has_receipt = has_receipt
        self.error = error

    def render(self) -> str:
        action = f"/requests/{self.escape(self.request_id)}/receipt"
        upload = FileUploadField("receipt", "Receipt", required=True, error_text=self.error).render(
            accept=".pdf,image/*", class_="form-input"
        )
        label = "Replace Receipt" if self.has_receipt else "Submit Receipt"
        return f"""
        <form method="post" action="{action}" enctype="multipart/form-data" class="receipt-form"
              hx-post="{action}" hx-target="#main-content" hx-encoding="multipart/form-data">
            <input type="hidden" name="csrf_token" value="{self.escape(self.csrf_token)}">
            {upload}
            <div class="form-actions">{SubmitButton(label).render()}</div>
        </form>
        """
