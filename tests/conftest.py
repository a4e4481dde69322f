"""
Shared pytest fixtures for knockout bracket tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from knockout.models import Team


@pytest.fixture
def make_teams():
    """Factory for teams named Team 1..Team N with ids t1..tN."""
    def _make(count):
        return [Team(id=f"t{i + 1}", name=f"Team {i + 1}") for i in range(count)]
    return _make


@pytest.fixture
def four_teams():
    """Teams A, B, C, D in seeding order."""
    return [
        Team(id="a", name="A"),
        Team(id="b", name="B"),
        Team(id="c", name="C"),
        Team(id="d", name="D"),
    ]


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the service at an empty temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return data_dir


@pytest.fixture
def client(temp_data_dir):
    """Create a test client backed by the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
