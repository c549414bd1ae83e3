"""
Configuration partagée pour tous les tests.
Override les dépendances get_db et get_render_client pour éviter toute
connexion réelle à PostgreSQL.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from app.database import get_db
from app.main import app
from app.services.render_client import get_render_client


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD et le client de rendu mockés."""
    mock_db = MagicMock()
    mock_renderer = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_render_client] = lambda: mock_renderer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
