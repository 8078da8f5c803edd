from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from bloodbank.core.config import Settings
from bloodbank.core.errors import Forbidden, Unauthorized


WILDCARD = "*"

security = HTTPBasic(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    username: str
    capabilities: frozenset[str]

    def has_capability(self, capability: str) -> bool:
        return WILDCARD in self.capabilities or capability in self.capabilities


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def authenticate(settings: Settings, username: str, password: str) -> CurrentUser | None:
    if settings.basic_auth_username and settings.basic_auth_password:
        valid_user = _matches(username, settings.basic_auth_username)
        valid_pass = _matches(password, settings.basic_auth_password)
        if valid_user and valid_pass:
            return CurrentUser(username=username, capabilities=frozenset({WILDCARD}))

    grant = settings.auth_users.get(username)
    if grant is None or not _matches(password, grant.password):
        return None

    capabilities = set(grant.capabilities)
    for role in grant.roles:
        capabilities.update(settings.auth_roles.get(role, []))
    return CurrentUser(username=username, capabilities=frozenset(capabilities))


def get_current_user(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> CurrentUser:
    if credentials is None:
        raise Unauthorized(headers={"WWW-Authenticate": "Basic"})

    settings: Settings = request.app.state.settings
    user = authenticate(settings, credentials.username, credentials.password)
    if user is None:
        raise Unauthorized(headers={"WWW-Authenticate": "Basic"})
    return user


def require_capability(capability: str, *, message: str | None = None) -> Callable[..., CurrentUser]:
    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_capability(capability):
            raise Forbidden(message)
        return user

    dependency.__name__ = f"require_{capability.replace('.', '_')}"
    return dependency
