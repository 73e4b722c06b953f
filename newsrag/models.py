"""Database ORM models and dynamic collection tables.

Defines:
- VectorCollection: registry row describing one named collection (dimension,
  distance metric). Its existence is what ``ensure_collection`` checks.
- DISTANCE_OPS: pgvector operator class per supported distance metric.
- point_table: builds the SQLAlchemy Table holding one collection's points
  (id, url, title, text, embedding) with a pgvector column of fixed dimension.
"""
import re
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Index, Integer, MetaData, String, Table, Text

from newsrag.db import Base

COLLECTION_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

# metric -> pgvector index operator class
DISTANCE_OPS = {
    "cosine": "vector_cosine_ops",
    "dot": "vector_ip_ops",
    "euclid": "vector_l2_ops",
}


class VectorCollection(Base):
    """Registry entry for a named vector collection.

    Each row records the fixed vector dimension and similarity metric of the
    points table named after it. Rows are created once and never updated.
    """
    __tablename__ = "vector_collections"

    name = Column(String(63), primary_key=True)
    dimension = Column(Integer, nullable=False)
    distance = Column(String(16), nullable=False, default="cosine")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


def point_table(name: str, dimension: int, metadata: MetaData) -> Table:
    """Return the Table definition for collection ``name``.

    Points are keyed by their deterministic id; url is indexed so a document's
    chunks can be inspected or removed together.

    Args:
        name: Validated collection name (also the table name).
        dimension: Vector dimension of the collection.
        metadata: MetaData the table is registered on.
    """
    if name in metadata.tables:
        return metadata.tables[name]
    return Table(
        name,
        metadata,
        Column("id", String(64), primary_key=True),  # md5("<url>#<index>")
        Column("url", String(2048), nullable=False, default=""),
        Column("title", Text, nullable=False, default=""),
        Column("text", Text, nullable=False, default=""),
        Column("embedding", Vector(dim=dimension), nullable=False),
        Column("updated_at", DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False),
        Index(f"idx_{name}_url", "url"),
    )
