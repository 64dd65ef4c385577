import os

# test settings, before the application reads them
ADMIN_EMAIL = "writer@marginalia.blog"
os.environ["APP_ENV"] = "test"
os.environ["ALLOWED_EMAIL"] = ADMIN_EMAIL
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SITE_URL"] = "https://marginalia.blog"
os.environ["SITE_NAME"] = "Marginalia"

import pytest
from datetime import datetime, timedelta, UTC
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from marginalia.main import app
from marginalia.core.config import get_settings
from marginalia.core.security import create_session_token
from marginalia.db.database import Base, build_engine, get_session, SQLITE_TEST_DB
from marginalia.models.post import Post

# Test database
test_engine = build_engine(SQLITE_TEST_DB)
TestSessionLocal = sessionmaker(bind=test_engine, autoflush=False)

@pytest.fixture(autouse=True)
def clean_db():
    """Drop and recreate the test database"""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)

@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Uploads go to a per-test directory"""
    directory = tmp_path / "images"
    monkeypatch.setattr(get_settings(), "upload_dir", str(directory))
    return directory

@pytest.fixture
def client(clean_db):
    """Anonymous test client"""
    test_session = TestSessionLocal()

    # override the session dependency
    def override_get_session():
        try:
            yield test_session
        finally:
            test_session.close()

    app.dependency_overrides[get_session] = override_get_session

    client = TestClient(app)
    yield client

    test_session.close()
    app.dependency_overrides.clear()

@pytest.fixture
def admin_token():
    return create_session_token(ADMIN_EMAIL, "Writer", "https://marginalia.blog/me.png")

@pytest.fixture
def authenticated_client(client, admin_token):
    """Client carrying the admin session as a bearer token"""
    auth_client = TestClient(client.app)
    auth_client.headers = {"Authorization": f"Bearer {admin_token}"}
    return auth_client

@pytest.fixture
def db_session():
    """Direct database access for arranging data"""
    session = TestSessionLocal()
    yield session
    session.close()

@pytest.fixture
def make_post(authenticated_client):
    """Create a post through the API and return its JSON"""
    def _make_post(**fields):
        payload = {"type": "ESSAY", "title": "Untitled", "status": "PUBLISHED"}
        payload.update(fields)
        response = authenticated_client.post("/api/posts", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make_post

@pytest.fixture
def backdate(db_session):
    """Set created_at of posts so ordering is deterministic: first id is newest"""
    def _backdate(*post_ids):
        now = datetime.now(UTC)
        for offset, post_id in enumerate(post_ids):
            post = db_session.get(Post, post_id)
            post.created_at = now - timedelta(minutes=offset)
        db_session.commit()
    return _backdate
