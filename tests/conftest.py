"""Shared fixtures: an app on in-memory SQLite and logged-in clients."""

import pytest

from threatdesk import create_app
from threatdesk.config import TestingConfig
from threatdesk.extensions import db
from threatdesk.models.user_model import User


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    app.extensions["threatdesk.pollers"].cancel_all()
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def signup(client, email, password="correct-horse-battery"):
    resp = client.post("/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.get_json()
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["user"]


@pytest.fixture
def auth_client(app):
    client = app.test_client()
    client.user = signup(client, "analyst@example.com")
    return client


@pytest.fixture
def other_client(app):
    client = app.test_client()
    client.user = signup(client, "intruder@example.com")
    return client


@pytest.fixture
def users(app_ctx):
    alice = User(email="alice@example.com", password="x")
    bob = User(email="bob@example.com", password="x")
    db.session.add_all([alice, bob])
    db.session.commit()
    return alice.id, bob.id
