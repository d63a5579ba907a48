#!/usr/bin/env python3
"""
Maktub API smoke test.

Logs in as each seeded role (see ``manage.py ensure_test_users``) and hits
the main endpoints against a running server, reporting every failure.
"""
import os
import sys
import time
from dataclasses import dataclass
from typing import Dict, Optional

import requests

BASE_URL = os.getenv("MAKTUB_BASE_URL", "http://127.0.0.1:8000")
PASSWORD = os.getenv("MAKTUB_TEST_PASSWORD", "Maktub123!")

TEST_USERS = {
    "super_admin": "superadmin",
    "admin": "admin1",
    "supervisor": "supervisor1",
    "employee": "empleado1",
}


@dataclass
class CheckResult:
    success: bool
    endpoint: str
    method: str
    status_code: int
    response_time: float
    error_message: str = ""
    description: str = ""
    user_role: str = ""


class SmokeTester:
    def __init__(self):
        self.session = requests.Session()
        self.headers: Dict[str, str] = {}
        self.current_role: Optional[str] = None
        self.results = []
        self.errors = []

    def login(self, username: str, role: str) -> bool:
        print(f"🔐 login {username} ({role})")
        start = time.time()
        try:
            response = self.session.post(f"{BASE_URL}/api/auth/login",
                                         json={"username": username, "password": PASSWORD})
        except requests.RequestException as e:
            self._record(CheckResult(False, "/api/auth/login", "POST", 0, 0, str(e), "login", role))
            return False
        ok = response.status_code == 200
        if ok:
            self.headers = {"Authorization": f"Token {response.json()['token']}"}
            self.current_role = role
        self._record(CheckResult(ok, "/api/auth/login", "POST", response.status_code, time.time() - start,
                                 "" if ok else response.text[:200], "login", role))
        return ok

    def _record(self, result: CheckResult):
        self.results.append(result)
        if not result.success:
            self.errors.append(result)
        mark = "✅" if result.success else "❌"
        print(f"{mark} {result.method} {result.endpoint} {result.status_code} ({result.response_time:.2f}s)")

    def check(self, method: str, endpoint: str, data: Optional[dict] = None, expected: int = 200,
              description: str = "") -> CheckResult:
        start = time.time()
        try:
            response = self.session.request(method, f"{BASE_URL}{endpoint}", json=data, headers=self.headers)
            result = CheckResult(
                response.status_code == expected, endpoint, method, response.status_code, time.time() - start,
                "" if response.status_code == expected else response.text[:200], description, self.current_role,
            )
        except requests.RequestException as e:
            result = CheckResult(False, endpoint, method, 0, time.time() - start, str(e), description,
                                 self.current_role)
        self._record(result)
        return result

    def run_role(self, role: str):
        if not self.login(TEST_USERS[role], role):
            return
        cases = [
            ("GET", "/healthz", 200, "health"),
            ("GET", "/api/auth/me", 200, "me"),
            ("GET", "/api/profile", 200, "profile"),
            ("GET", "/api/contracts", 200, "contracts"),
            ("GET", "/api/contracts/stats", 200, "contract stats"),
            ("GET", "/api/contracts/history", 200, "contract history"),
            ("GET", "/api/billing", 200, "billing accounts"),
            ("GET", "/api/billing/review-comments", 200, "review comments"),
            ("GET", "/api/notifications", 200, "notifications"),
            ("GET", "/api/dashboard", 200, "dashboard"),
            ("GET", "/api/processes", 200, "processes"),
        ]
        if role in ("super_admin", "admin", "supervisor"):
            cases += [
                ("GET", "/api/billing/review-queue", 200, "review queue"),
                ("GET", "/api/users", 200, "users"),
            ]
        if role in ("super_admin", "admin"):
            cases += [
                ("GET", "/api/users/stats", 200, "user stats"),
                ("GET", "/api/activity", 200, "activity log"),
            ]
        else:
            cases.append(("GET", "/api/activity", 403, "activity log forbidden"))
        for method, endpoint, expected, description in cases:
            self.check(method, endpoint, None, expected, description)
        self.check("POST", "/api/auth/logout", None, 200, "logout")

    def run(self) -> bool:
        print("Maktub API smoke test")
        print("=" * 50)
        for role in TEST_USERS:
            self.run_role(role)
            self.session = requests.Session()
            self.headers = {}
            self.current_role = None
        total = len(self.results)
        print(f"\n{total - len(self.errors)}/{total} checks passed")
        for i, e in enumerate(self.errors, 1):
            print(f"{i}. [{e.user_role}] {e.method} {e.endpoint} -> {e.status_code}: {e.error_message}")
        return not self.errors


def main():
    sys.exit(0 if SmokeTester().run() else 1)


if __name__ == "__main__":
    main()
