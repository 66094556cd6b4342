"""Bearer token authentication against the user directory."""
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from docflow.core.security import create_access_token, decode_token
from docflow.db.session import get_db
from docflow.main import app


@pytest.fixture
def api(session_factory):
    def override_get_db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


async def _pending(token: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(
            "/api/v1/approval-flows/pending",
            headers={"Authorization": f"Bearer {token}"},
        )


def test_token_carries_subject_and_role():
    user_id = str(uuid.uuid4())
    payload = decode_token(create_access_token(user_id, "MANAGER"))
    assert payload["sub"] == user_id
    assert payload["role"] == "MANAGER"
    assert payload["type"] == "access"


@pytest.mark.asyncio
async def test_valid_token_resolves_user(api, make_user):
    user = make_user("Uma")
    response = await _pending(create_access_token(str(user.id), user.role))
    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0}


@pytest.mark.asyncio
async def test_inactive_user_rejected(api, make_user):
    user = make_user("Retired", is_active=False)
    response = await _pending(create_access_token(str(user.id), user.role))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_user_rejected(api):
    response = await _pending(create_access_token(str(uuid.uuid4()), "USER"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_rejected(api):
    response = await _pending("not-a-jwt")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_expired_token_rejected(api, make_user):
    user = make_user("Uma")
    response = await _pending(create_access_token(str(user.id), user.role, expires_minutes=-1))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_authorization_header_rejected(api):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/approval-flows/pending")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_openapi_advertises_plain_bearer_scheme():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/openapi.json")
    schemes = response.json()["components"]["securitySchemes"]
    assert schemes == {"HTTPBearer": {"type": "http", "scheme": "bearer"}}
