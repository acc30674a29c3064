# Procurement portal component system
# Pure Python components for server-rendered HTML

from .base import Component
from .layout import Layout, LoadingView
from .navigation import Navigation
from .header import HeaderBar
from .alerts import Alert
from .data_table import Column, DataTable
from .forms import (
    AccountForm,
    ActionButton,
    ApprovalLevelForm,
    DecisionForm,
    LoginForm,
    ProfileDetailsForm,
    PurchaseRequestForm,
    ReceiptForm,
    RequestTypeForm,
    UserForm,
)

__all__ = [
    "Component",
    "Layout",
    "LoadingView",
    "Navigation",
    "HeaderBar",
    "Alert",
    "Column",
    "DataTable",
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
