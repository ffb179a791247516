from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from conftest import TEST_PASSWORD, TEST_SIGNATURE_KEY
from fastapi import HTTPException

from appboot.security import (
    AuthorizationFilter,
    DefaultAuthenticationService,
    DefaultAuthorizationService,
    ResourceDeniedError,
)
from appboot.security_jwt import JwtTokenManager, TokenError
from appboot.security_passwords import (
    BCRYPT_PREFIX,
    BcryptPasswordEncoder,
    DefaultPasswordGenerator,
    DefaultPasswordManager,
    PasswordPolicyError,
)
from appboot.security_principals import (
    InMemoryPrincipalManager,
    InvalidCredentialsError,
    Principal,
    PrincipalExistsError,
    PrincipalNotFoundError,
)


@pytest.fixture
def password_manager():
    return DefaultPasswordManager(BcryptPasswordEncoder(rounds=4), DefaultPasswordGenerator(length=12))


@pytest.fixture
def principal_manager(password_manager):
    manager = InMemoryPrincipalManager(password_manager)
    manager.create(Principal(username="alice", password=TEST_PASSWORD, role="admin", resources=["GET /api/info"]))
    return manager


@pytest.fixture
def token_manager():
    return JwtTokenManager(TEST_SIGNATURE_KEY, issuer="svc")


def test_bcrypt_encoder_encodes_with_prefix_and_matches():
    encoder = BcryptPasswordEncoder(rounds=4)
    encoded = encoder.encode(TEST_PASSWORD)

    assert encoded.startswith(BCRYPT_PREFIX)
    assert encoder.matches(encoded, TEST_PASSWORD)
    assert not encoder.matches(encoded, "something-else")
    assert not encoder.matches(encoded[len(BCRYPT_PREFIX) :], TEST_PASSWORD)


def test_bcrypt_encoder_rejects_out_of_range_rounds():
    with pytest.raises(ValueError):
        BcryptPasswordEncoder(rounds=3)


def test_generated_password_satisfies_policy():
    generator = DefaultPasswordGenerator(length=20, min_special_chars=3, min_numbers=3, min_uppercase=3)
    password = generator.generate()

    assert len(password) == 20
    generator.validate(password)


@pytest.mark.parametrize(
    ("password", "message"),
    [
        ("Sh0rt!#", "at least 16 characters"),
        ("NoSpecialChars12AB", "special characters"),
        ("No!Numbers#InHereAB", "numbers"),
        ("no!upper#case12here", "uppercase"),
    ],
)
def test_password_policy_violations(password, message):
    with pytest.raises(PasswordPolicyError, match=message):
        DefaultPasswordGenerator().validate(password)


def test_password_generator_rejects_impossible_policy():
    with pytest.raises(ValueError):
        DefaultPasswordGenerator(length=4, min_special_chars=2, min_numbers=2, min_uppercase=2)


def test_password_manager_validates_before_encoding(password_manager):
    with pytest.raises(PasswordPolicyError):
        password_manager.encode("weak")

    encoded = password_manager.encode(TEST_PASSWORD)
    assert password_manager.matches(encoded, TEST_PASSWORD)


def test_principal_manager_stores_encoded_passwords(principal_manager):
    stored = principal_manager.find("alice")
    assert stored.password.startswith(BCRYPT_PREFIX)
    assert principal_manager.exists("alice")
    assert not principal_manager.exists("bob")


def test_principal_manager_rejects_duplicates_and_unknown_users(principal_manager):
    with pytest.raises(PrincipalExistsError):
        principal_manager.create(Principal(username="alice", password=TEST_PASSWORD))
    with pytest.raises(PrincipalNotFoundError):
        principal_manager.find("bob")
    with pytest.raises(PrincipalNotFoundError):
        principal_manager.delete("bob")


def test_principal_manager_update_keeps_password(principal_manager):
    principal_manager.update(Principal(username="alice", password="ignored", resources=["GET /api/orders"]))

    assert principal_manager.verify_resource("alice", "GET /api/orders")
    assert not principal_manager.verify_resource("alice", "GET /api/info")
    assert principal_manager.authenticate("alice", TEST_PASSWORD).username == "alice"


def test_principal_manager_change_password(principal_manager):
    principal_manager.change_password("alice", "N3w!Passw0rd#XY")

    with pytest.raises(InvalidCredentialsError):
        principal_manager.authenticate("alice", TEST_PASSWORD)
    assert principal_manager.authenticate("alice", "N3w!Passw0rd#XY").username == "alice"


def test_disabled_principal_cannot_authenticate(principal_manager):
    principal_manager.update(Principal(username="alice", enabled=False, resources=["GET /api/info"]))

    with pytest.raises(InvalidCredentialsError):
        principal_manager.authenticate("alice", TEST_PASSWORD)
    assert not principal_manager.verify_resource("alice", "GET /api/info")


def test_token_manager_round_trip(token_manager):
    token = token_manager.generate(Principal(username="alice", role="admin"))
    claims = token_manager.validate(token)

    assert claims["sub"] == "alice"
    assert claims["role"] == "admin"
    assert claims["iss"] == "svc"


def test_token_manager_rejects_short_signature_key():
    with pytest.raises(ValueError, match="at least 32 bytes"):
        JwtTokenManager("too-short")


def test_token_manager_rejects_expired_token():
    issued_long_ago = JwtTokenManager(TEST_SIGNATURE_KEY, timeout_minutes=1, clock=lambda: 1_000_000.0)
    token = issued_long_ago.generate(Principal(username="alice"))

    with pytest.raises(TokenError):
        JwtTokenManager(TEST_SIGNATURE_KEY).validate(token)


def test_token_manager_rejects_foreign_issuer_and_key(token_manager):
    other_issuer = JwtTokenManager(TEST_SIGNATURE_KEY, issuer="other")
    other_key = JwtTokenManager("another-signature-key-0123456789abcdef", issuer="svc")

    with pytest.raises(TokenError):
        token_manager.validate(other_issuer.generate(Principal(username="alice")))
    with pytest.raises(TokenError):
        token_manager.validate(other_key.generate(Principal(username="alice")))


def test_authentication_service_issues_token(principal_manager, token_manager):
    service = DefaultAuthenticationService(principal_manager, token_manager)

    token = service.authenticate("alice", TEST_PASSWORD)

    assert token_manager.validate(token)["sub"] == "alice"
    with pytest.raises(InvalidCredentialsError):
        service.authenticate("alice", "wrong")
    with pytest.raises(InvalidCredentialsError):
        service.authenticate("nobody", TEST_PASSWORD)


def test_authorization_service_checks_resource(principal_manager, token_manager):
    service = DefaultAuthorizationService(token_manager, principal_manager)
    token = token_manager.generate(principal_manager.find("alice"))

    assert service.authorize(token, "GET /api/info").username == "alice"
    with pytest.raises(ResourceDeniedError):
        service.authorize(token, "DELETE /api/info")
    with pytest.raises(TokenError):
        service.authorize("garbage", "GET /api/info")


def _request(method="GET", path="/api/info"):
    return SimpleNamespace(method=method, url=SimpleNamespace(path=path), state=SimpleNamespace())


def test_authorization_filter_sets_principal_on_request(principal_manager, token_manager):
    authorization_filter = AuthorizationFilter(DefaultAuthorizationService(token_manager, principal_manager))
    token = token_manager.generate(principal_manager.find("alice"))
    request = _request()

    principal = asyncio.run(authorization_filter.authorize(request, authorization=f"Bearer {token}"))

    assert principal.username == "alice"
    assert request.state.principal.username == "alice"


def test_authorization_filter_maps_denied_resource_to_forbidden(principal_manager, token_manager):
    authorization_filter = AuthorizationFilter(DefaultAuthorizationService(token_manager, principal_manager))
    token = token_manager.generate(principal_manager.find("alice"))

    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(authorization_filter.authorize(_request(method="POST"), authorization=f"Bearer {token}"))

    assert exc_info.value.status_code == 403
