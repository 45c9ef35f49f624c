from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from rehearsal.main import create_app
from rehearsal.services.document_store import InMemoryDocumentStore
from rehearsal.services.session_service import SessionService


@dataclass
class Participant:
    identity_id: str
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def session_service(store) -> SessionService:
    return SessionService(store)


@pytest.fixture
def client(store):
    app = create_app(store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sign_in(client):
    def _sign_in() -> Participant:
        response = client.post("/auth/anonymous")
        assert response.status_code == 200
        data = response.json()
        return Participant(identity_id=data["identity_id"], token=data["token"])

    return _sign_in
