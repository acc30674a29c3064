"""
Input models for the portal forms.

Why: Form posts arrive as flat string mappings. Validating them with pydantic
before calling the backend gives field-level messages the page can render
next to each input; the backend still validates everything again.
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator, model_validator

from identity_access.domain import Role


class _FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """Map a ValidationError to {field: first message}."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__all__",)
        key = str(loc[0])
        message = str(err.get("msg", "Invalid value"))
        # pydantic prefixes custom messages with "Value error, ".
        message = message.removeprefix("Value error, ")
        errors.setdefault(key, message)
    return errors


# --- Purchase requests ---------------------------------------------------------


class LineItem(_FormModel):
    description: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(gt=0)


def parse_items(text: str) -> List[LineItem]:
    """Parse one item per line: `description | quantity | unit price`.

    Blank lines are skipped. Raises ValueError naming the offending line.
    """
    items: List[LineItem] = []
    for number, line in enumerate((text or "").splitlines(), start=1):
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split("|")]
        if len(parts) != 3:
            raise ValueError(f"Line {number}: expected 'description | quantity | unit price'")
        try:
            items.append(LineItem(description=parts[0], quantity=parts[1], unit_price=parts[2]))
        except ValidationError:
            raise ValueError(f"Line {number}: quantity must be a whole number and unit price positive")
    return items


class PurchaseRequestInput(_FormModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10)
    amount: Decimal = Field(gt=0)
    request_type_id: str = Field(min_length=1)
    items: List[LineItem] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return Decimal(value.replace(",", "").strip())
            except InvalidOperation:
                raise ValueError("Amount must be a number")
        return value

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_items(value)
        return value

    def to_form_data(self) -> Dict[str, str]:
        """Multipart fields; items travel as a JSON string when present."""
        data = {
            "title": self.title,
            "description": self.description,
            "amount": str(self.amount),
            "request_type_id": self.request_type_id,
        }
        if self.items:
            data["items"] = json.dumps(self.model_dump(mode="json")["items"])
        return data


def items_to_text(items: Optional[List[Mapping[str, Any]]]) -> str:
    """Inverse of `parse_items` for pre-filling the edit form."""
    lines = []
    for item in items or []:
        lines.append(f"{item.get('description', '')} | {item.get('quantity', '')} | {item.get('unit_price', '')}")
    return "\n".join(lines)


# --- Profile ---------------------------------------------------------------------


class ProfileInput(_FormModel):
    department: str = ""
    phone_number: str = ""
    address: str = ""


class AccountInput(_FormModel):
    username: str = Field(min_length=3)
    first_name: str = ""
    last_name: str = ""
    email: EmailStr


# --- Admin -------------------------------------------------------------------------


class UserCreateInput(_FormModel):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = ""
    password_confirm: str = ""
    first_name: str = ""
    last_name: str = ""
    role: Role
    department: str = ""
    phone_number: str = ""
    address: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, value: Any) -> Any:
        role = Role.parse(value)
        if role is None:
            raise ValueError("Role is required")
        return role

    @model_validator(mode="after")
    def _passwords(self) -> "UserCreateInput":
        # An empty password lets the backend generate one.
        if self.password:
            if len(self.password) < 8:
                raise ValueError("Password must be at least 8 characters")
            if self.password != self.password_confirm:
                raise ValueError("Passwords must match")
        return self

    def to_payload(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["role"] = self.role.value
        return data


class RequestTypeInput(_FormModel):
    name: str = Field(min_length=2)
    description: str = ""
    is_active: bool = True


class ApprovalLevelInput(_FormModel):
    request_type: str = Field(min_length=1)
    level_number: int = Field(ge=1)
    approver_role: Role
    is_required: bool = True

    @field_validator("approver_role", mode="before")
    @classmethod
    def _role(cls, value: Any) -> Any:
        role = Role.parse(value)
        if role is None:
            raise ValueError("Approver role is required")
        return role

    def to_payload(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["approver_role"] = self.approver_role.value
        return data
