from __future__ import annotations

import threading
from typing import Optional

from pydantic import BaseModel, Field

from appboot.security_passwords import DefaultPasswordManager


class PrincipalError(Exception):
    pass


class PrincipalNotFoundError(PrincipalError):
    pass


class PrincipalExistsError(PrincipalError):
    pass


class InvalidCredentialsError(PrincipalError):
    pass


class Principal(BaseModel):
    username: str = Field(..., min_length=1)
    password: Optional[str] = None
    role: Optional[str] = None
    resources: list[str] = Field(default_factory=list)
    enabled: bool = True


class InMemoryPrincipalManager:
    """Principals kept in a dict; passwords are stored encoded."""

    def __init__(self, password_manager: DefaultPasswordManager) -> None:
        self._password_manager = password_manager
        self._principals: dict[str, Principal] = {}
        self._lock = threading.Lock()

    def create(self, principal: Principal) -> None:
        if not principal.password:
            raise PrincipalError("principal password is required")
        encoded = self._password_manager.encode(principal.password)
        with self._lock:
            if principal.username in self._principals:
                raise PrincipalExistsError(f"principal {principal.username} already exists")
            self._principals[principal.username] = principal.model_copy(update={"password": encoded}, deep=True)

    def update(self, principal: Principal) -> None:
        with self._lock:
            current = self._principals.get(principal.username)
            if current is None:
                raise PrincipalNotFoundError(f"principal {principal.username} does not exist")
            self._principals[principal.username] = principal.model_copy(update={"password": current.password}, deep=True)

    def delete(self, username: str) -> None:
        with self._lock:
            if self._principals.pop(username, None) is None:
                raise PrincipalNotFoundError(f"principal {username} does not exist")

    def find(self, username: str) -> Principal:
        with self._lock:
            principal = self._principals.get(username)
        if principal is None:
            raise PrincipalNotFoundError(f"principal {username} does not exist")
        return principal.model_copy(deep=True)

    def exists(self, username: str) -> bool:
        with self._lock:
            return username in self._principals

    def change_password(self, username: str, raw_password: str) -> None:
        encoded = self._password_manager.encode(raw_password)
        with self._lock:
            current = self._principals.get(username)
            if current is None:
                raise PrincipalNotFoundError(f"principal {username} does not exist")
            self._principals[username] = current.model_copy(update={"password": encoded})

    def verify_resource(self, username: str, resource: str) -> bool:
        principal = self.find(username)
        return principal.enabled and resource in principal.resources

    def authenticate(self, username: str, raw_password: str) -> Principal:
        try:
            principal = self.find(username)
        except PrincipalNotFoundError:
            raise InvalidCredentialsError("invalid username or password") from None
        if not principal.enabled or not self._password_manager.matches(principal.password or "", raw_password):
            raise InvalidCredentialsError("invalid username or password")
        return principal
