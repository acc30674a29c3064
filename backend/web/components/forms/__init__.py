"""
Form components for the procurement portal.

Basic building blocks (fields, submit button) plus the page forms built from
them.
"""

from .fields import CheckboxField, FileUploadField, FormField, SelectField, TextAreaField, TextInputField
from .submit import SubmitButton
from .login_form import LoginForm
from .request_form import PurchaseRequestForm
from .decision_form import DecisionForm, ReceiptForm
from .profile_forms import AccountForm, ProfileDetailsForm
from .admin_forms import ActionButton, ApprovalLevelForm, RequestTypeForm, UserForm

__all__ = [
    "FormField",
    "TextAreaField",
    "FileUploadField",
    "TextInputField",
    "SelectField",
    "CheckboxField",
    "SubmitButton",
    "LoginForm",
    "PurchaseRequestForm",
    "DecisionForm",
    "ReceiptForm",
    "ProfileDetailsForm",
    "AccountForm",
    "ActionButton",
    "UserForm",
    "RequestTypeForm",
    "ApprovalLevelForm",
]
