"""
Embedding table for item similarity search.

The vector width comes from the embedding settings and cannot change once
rows are stored.
"""

from yoyo import step

from salesbot.settings import get_settings

__depends__ = {"0001.create-sales"}

dimensions = get_settings().EMBEDDING.DIMENSIONS

steps = [
    step("CREATE EXTENSION IF NOT EXISTS vector"),
    step(
        f"""
        CREATE TABLE IF NOT EXISTS sale_vectors (
            id UUID PRIMARY KEY REFERENCES sales (id) ON DELETE CASCADE,
            embedding vector({dimensions}),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS sale_vectors",
    ),
]
