"""
In-memory stand-in for the procurement REST backend.

Plugged into the app through `httpx.MockTransport(backend.handler)`. It
implements just enough of the token, user and purchase request endpoints to
drive the web layer end to end, and records every call for assertions.

Knobs:
    expire_access_tokens()  -- every issued access token becomes invalid
    revoke_refresh_tokens() -- refresh attempts answer 401
    fail(method, path, status, body) -- force an error response
    unreachable = True      -- every call raises httpx.ConnectError
"""
from __future__ import annotations

import copy
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx


USERS: Dict[str, Dict[str, Any]] = {
    "alice": {
        "password": "alice-pass",
        "login": {"id": 1, "username": "alice", "email": "alice@example.org", "role": "staff",
                  "role_display": "Staff", "is_superuser": False},
        "me": {"id": 1, "username": "alice", "email": "alice@example.org", "first_name": "Alice",
               "last_name": "Mugisha", "profile": {"role": "staff", "role_display": "Staff"}},
    },
    "bob": {
        "password": "bob-pass",
        "login": {"id": 2, "username": "bob", "email": "bob@example.org", "role": "approver-level-2",
                  "role_display": "Approver Level 2", "is_superuser": False},
        "me": {"id": 2, "username": "bob", "email": "bob@example.org",
               "profile": {"role": "approver-level-2", "role_display": "Approver Level 2"}},
    },
    "fiona": {
        "password": "fiona-pass",
        "login": {"id": 3, "username": "fiona", "email": "fiona@example.org", "role": "finance",
                  "role_display": "Finance", "is_superuser": False},
        "me": {"id": 3, "username": "fiona", "email": "fiona@example.org", "role": "finance"},
    },
    "root": {
        "password": "root-pass",
        "login": {"id": 4, "username": "root", "email": "root@example.org", "role": "admin",
                  "role_display": "Administrator", "is_superuser": True},
        "me": {"id": 4, "username": "root", "email": "root@example.org", "is_superuser": True},
    },
}


def _purchase_request(pk: int, title: str, status: str, owner: int, amount: str, **extra: Any) -> Dict[str, Any]:
    data = {
        "id": pk,
        "title": title,
        "description": f"{title} for the office",
        "amount": amount,
        "status": status,
        "status_display": status.capitalize(),
        "request_type_name": "Equipment",
        "request_type_id": 1,
        "created_by": owner,
        "created_by_username": next(u for u, d in USERS.items() if d["login"]["id"] == owner),
        "created_at": "2026-10-01T09:00:00Z",
        "updated_at": "2026-10-02T09:00:00Z",
        "can_be_edited": status == "pending",
        "items": [{"description": title, "quantity": 1, "unit_price": amount}],
        "approvals": [],
    }
    data.update(extra)
    return data


@dataclass
class Call:
    method: str
    path: str
    params: Dict[str, str]
    authorization: Optional[str]
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


@dataclass
class FakeBackend:
    calls: List[Call] = field(default_factory=list)
    unreachable: bool = False

    def __post_init__(self) -> None:
        self.accounts = copy.deepcopy(USERS)
        self._counter = itertools.count(1)
        self.access_tokens: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.requests: Dict[int, Dict[str, Any]] = {
            1: _purchase_request(1, "Laptops", "pending", 1, "1250000.00"),
            2: _purchase_request(2, "Printer toner", "approved", 1, "80000.00", receipt=None),
            3: _purchase_request(3, "Conference chairs", "rejected", 1, "300000.00"),
        }
        self.request_types = [{"id": 1, "name": "Equipment", "description": "", "is_active": True}]
        self.users = [dict(d["me"], is_active=True) for d in self.accounts.values()]
        self.profiles = {d["login"]["id"]: {"department": "Operations", "phone_number": "", "address": ""} for d in self.accounts.values()}

    # --- Knobs ------------------------------------------------------------------

    def expire_access_tokens(self) -> None:
        self.access_tokens.clear()

    def revoke_refresh_tokens(self) -> None:
        self.refresh_tokens.clear()

    def fail(self, method: str, path: str, status: int, body: Any = None) -> None:
        self.failures[(method.upper(), path)] = (status, body)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [c.path for c in self.calls if method is None or c.method == method]

    # --- Helpers ------------------------------------------------------------------

    def _issue(self, username: str) -> Dict[str, str]:
        n = next(self._counter)
        access, refresh = f"access-{username}-{n}", f"refresh-{username}-{n}"
        self.access_tokens[access] = username
        self.refresh_tokens[refresh] = username
        return {"access": access, "refresh": refresh}

    def _caller(self, request: httpx.Request) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        return self.access_tokens.get(header.removeprefix("Bearer "))

    @staticmethod
    def _json(status: int, body: Any = None) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    # --- Transport handler --------------------------------------------------------

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method
        self.calls.append(
            Call(method, path, dict(request.url.params), request.headers.get("Authorization"), request.content)
        )
        if self.unreachable:
            raise httpx.ConnectError("backend down", request=request)
        forced = self.failures.get((method, path))
        if forced is not None:
            return self._json(*forced)

        if path == "/api/token/" and method == "POST":
            data = json.loads(request.content or b"{}")
            account = self.accounts.get(data.get("username"))
            if account is None or account["password"] != data.get("password"):
                return self._json(401, {"detail": "No active account found with the given credentials"})
            return self._json(200, {**self._issue(data["username"]), "user": account["login"]})

        if path == "/api/token/refresh/" and method == "POST":
            data = json.loads(request.content or b"{}")
            username = self.refresh_tokens.get(data.get("refresh"))
            if username is None:
                return self._json(401, {"detail": "Token is invalid or expired", "code": "token_not_valid"})
            access = f"access-{username}-{next(self._counter)}"
            self.access_tokens[access] = username
            return self._json(200, {"access": access})

        username = self._caller(request)
        if username is None:
            return self._json(401, {"detail": "Given token not valid for any token type"})
        return self._route(request, username)

    def _route(self, request: httpx.Request, username: str) -> httpx.Response:
        path, method = request.url.path, request.method
        user_id = self.accounts[username]["login"]["id"]
        parts = [p for p in path.split("/") if p]

        if path == "/api/auth/me/" and method == "GET":
            return self._json(200, self.accounts[username]["me"])
        if path == "/api/auth/profile/":
            if method == "PUT":
                self.profiles[user_id].update(json.loads(request.content))
            return self._json(200, self.profiles[user_id])
        if path == "/api/auth/user/" and method == "PATCH":
            self.accounts[username]["me"] = {**self.accounts[username]["me"], **json.loads(request.content)}
            return self._json(200, self.accounts[username]["me"])

        if path == "/api/request-types/" and method == "GET":
            return self._json(200, self.request_types)
        if path == "/api/users/":
            if method == "POST":
                created = {"id": 100 + len(self.users), **json.loads(request.content)}
                self.users.append(created)
                return self._json(201, created)
            return self._json(200, {"count": len(self.users), "results": self.users})

        if parts[:2] == ["api", "requests"]:
            return self._requests(request, parts[2:], user_id, username)
        return self._json(404, {"detail": "Not found."})

    def _requests(self, request: httpx.Request, rest: List[str], user_id: int, username: str) -> httpx.Response:
        method = request.method
        if not rest:
            if method == "POST":
                pk = max(self.requests) + 1
                self.requests[pk] = _purchase_request(pk, "New request", "pending", user_id, "1000.00")
                return self._json(201, self.requests[pk])
            status = request.url.params.get("status")
            rows = [r for r in self.requests.values() if status is None or r["status"] == status]
            return self._json(200, {"count": len(rows), "results": rows})

        pr = self.requests.get(int(rest[0])) if rest[0].isdigit() else None
        if pr is None:
            return self._json(404, {"detail": "Not found."})
        if len(rest) == 1:
            if method == "PUT":
                pr["title"] = "Edited request"
            return self._json(200, pr)

        action = rest[1]
        if action in ("approve", "reject") and method == "PATCH":
            body = json.loads(request.content or b"{}")
            pr["status"] = "approved" if action == "approve" else "rejected"
            pr["status_display"] = pr["status"].capitalize()
            pr["approvals"].append(
                {"approver": user_id, "approver_username": username, "action": f"{action}d",
                 "action_display": f"{action.capitalize()}d", "comments": body.get("comments"),
                 "approval_level_display": "Level 2", "created_at": "2026-10-03T10:00:00Z"}
            )
            return self._json(200, pr)
        if action == "submit-receipt" and method == "POST":
            pr["receipt"] = "/media/receipts/receipt.pdf"
            return self._json(200, pr)
        return self._json(404, {"detail": "Not found."})
