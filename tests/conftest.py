"""Common test fixtures for the note graph mirror."""

import itertools

import pytest
from sqlalchemy import create_engine, text

from domains.mirror_hub.core.settings import Neo4jConnectionConfig, Neo4jSettings
from tests.fakes import FakeGraphSource, FakeMirrorStore, link, notes


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture(autouse=True)
def clean_neo4j_env(monkeypatch):
    """Keep developer NEO4J_* variables and .env files out of the tests."""
    for name in (
        "NEO4J_ENABLED",
        "NEO4J_URI",
        "NEO4J_USERNAME",
        "NEO4J_PASSWORD",
        "NEO4J_DATABASE",
        "NEO4J_SYNC_ON_INDEX",
        "NEO4J_STRICT_MODE",
        "NEO4J_BATCH_SIZE",
        "NEO4J_MAX_RESOLUTIONS_PER_TARGET",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_store():
    return FakeMirrorStore()


@pytest.fixture
def clock():
    """Deterministic ISO timestamps: 2026-01-01T00:00:01.000Z, ...02.000Z, ..."""
    counter = itertools.count(1)
    return lambda: f"2026-01-01T00:00:{next(counter):02d}.000Z"


@pytest.fixture
def scenario_a_source():
    """Notes A, B, C; A --supports--> [[B]]; target "B" resolves to note B."""
    return FakeGraphSource(notes("A", "B", "C"), [link("A", "B", rel="supports")])


@pytest.fixture
def neo4j_config():
    return Neo4jConnectionConfig(
        uri="bolt://localhost:7687",
        username="neo4j",
        password="secret",
        database="neo4j",
    )


@pytest.fixture
def enabled_settings():
    return Neo4jSettings(
        _env_file=None,
        enabled=True,
        uri="bolt://localhost:7687",
        username="neo4j",
        password="secret",
    )


# ==================== SQLite canonical source ====================

SQLITE_SCHEMA = [
    """
    CREATE TABLE notes (
        path TEXT PRIMARY KEY,
        note_id TEXT,
        created TEXT,
        title TEXT,
        summary TEXT,
        entity TEXT,
        layer TEXT,
        status TEXT,
        updated TEXT
    )
    """,
    """
    CREATE TABLE typed_links (
        from_path TEXT NOT NULL,
        rel TEXT NOT NULL,
        to_target TEXT NOT NULL,
        to_wikilink TEXT NOT NULL,
        position INTEGER NOT NULL,
        created_at TEXT
    )
    """,
]

SQLITE_NOTES = [
    {"path": "notes/Alpha.md", "note_id": "alpha-id", "title": "Alpha", "entity": "concept", "layer": "conceptual"},
    {"path": "archive/Alpha.md", "note_id": None, "title": "Old Alpha", "entity": None, "layer": None},
    {"path": "Alpha.md", "note_id": None, "title": "Root Alpha", "entity": None, "layer": None},
    {"path": "misc/x.md", "note_id": "Alpha", "title": "X", "entity": None, "layer": None},
    {"path": "misc/y.md", "note_id": None, "title": "Alpha", "entity": None, "layer": None},
]

SQLITE_LINKS = [
    {"from_path": "misc/x.md", "rel": "part_of", "to_target": "Alpha", "to_wikilink": "[[Alpha]]", "position": 1},
    {"from_path": "misc/x.md", "rel": "cites", "to_target": "y", "to_wikilink": "[[y]]", "position": 0},
    {"from_path": "misc/y.md", "rel": "supports", "to_target": "Nowhere", "to_wikilink": "[[Nowhere]]", "position": 0},
]


@pytest.fixture
def database_url(tmp_path):
    """A real SQLite index with the canonical notes / typed_links tables."""
    url = f"sqlite:///{tmp_path / 'index.sqlite'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        for ddl in SQLITE_SCHEMA:
            conn.execute(text(ddl))
        conn.execute(
            text(
                "INSERT INTO notes (path, note_id, title, entity, layer) "
                "VALUES (:path, :note_id, :title, :entity, :layer)"
            ),
            SQLITE_NOTES,
        )
        conn.execute(
            text(
                "INSERT INTO typed_links (from_path, rel, to_target, to_wikilink, position) "
                "VALUES (:from_path, :rel, :to_target, :to_wikilink, :position)"
            ),
            SQLITE_LINKS,
        )
    engine.dispose()
    return url
