from typing import Callable, Dict

from fastapi import FastAPI
from fastapi.testclient import TestClient
import jwt
import pytest

from homebridge.api.dependencies.database import get_db
from homebridge.api.dependencies.services import get_stripe_gateway
from homebridge.core.config import settings
from homebridge.main import create_app
from homebridge.models import User


@pytest.fixture
def app(unit_db, gateway) -> FastAPI:
    application = create_app()

    def _override_get_db():
        yield unit_db

    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_stripe_gateway] = lambda: gateway
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def bearer_token(user: User, **claims) -> str:
    payload = {"sub": user.id, "role": user.role, "email": user.email, **claims}
    return jwt.encode(payload, settings.secret_key.get_secret_value(), algorithm=settings.algorithm)


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    def _headers(user: User, **claims) -> Dict[str, str]:
        return {"Authorization": f"Bearer {bearer_token(user, **claims)}"}

    return _headers
