"""Vector store adapter over PostgreSQL + pgvector.

A collection is a row in ``vector_collections`` plus a points table of the same
name with a ``vector(<dimension>)`` column and an HNSW index for its metric.

Operations:
- ensure_collection: idempotent create; a failed existence check counts as "missing".
- upsert: overwrite-by-id, one transaction per call.
- search: top-k by similarity, descending score, optional positive score floor.
- count / delete_collection: maintenance helpers.

Score conventions (higher is better):
    cosine -> 1 - cosine distance
    dot    -> inner product
    euclid -> negative L2 distance
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from sqlalchemy import MetaData, Table, func, inspect, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Select

from newsrag.errors import VectorStoreError
from newsrag.models import COLLECTION_NAME_RE, DISTANCE_OPS, VectorCollection, point_table

logger = logging.getLogger(__name__)


@dataclass
class IndexPoint:
    """A vector plus its payload, keyed by a deterministic id."""
    id: str
    vector: List[float]
    payload: Dict[str, str] = field(default_factory=dict)


@dataclass
class SearchHit:
    """A raw search match: id, similarity score and stored payload."""
    id: str
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)


class CollectionInfo(NamedTuple):
    name: str
    dimension: int
    distance: str


def _validate_name(name: str) -> None:
    if not COLLECTION_NAME_RE.match(name or ""):
        raise VectorStoreError(f"invalid collection name: {name!r}")


def search_statement(
    table: Table,
    distance: str,
    vector: Sequence[float],
    top_k: int,
    score_threshold: Optional[float] = None,
) -> Select:
    """Build the top-k similarity query for ``table``.

    Results are ordered by the metric's distance operator (ascending), which is
    descending similarity. A threshold of None or <= 0 applies no floor.
    """
    emb = table.c.embedding
    if distance == "cosine":
        order = emb.cosine_distance(vector)
        score = 1 - order
    elif distance == "dot":
        # pgvector's <#> returns the negative inner product
        order = emb.max_inner_product(vector)
        score = -order
    elif distance == "euclid":
        order = emb.l2_distance(vector)
        score = -order
    else:
        raise VectorStoreError(f"unsupported distance metric: {distance!r}")

    stmt = (
        select(table.c.id, table.c.url, table.c.title, table.c.text, score.label("score"))
        .order_by(order)
        .limit(top_k)
    )
    if score_threshold is not None and score_threshold > 0:
        stmt = stmt.where(score >= score_threshold)
    return stmt


class PgVectorStore:
    """Collection-scoped upsert and similarity search backed by pgvector.

    Args:
        engine: SQLAlchemy engine created once at startup.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._metadata = MetaData()
        self._known: Dict[str, CollectionInfo] = {}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lookup(self, name: str) -> Optional[CollectionInfo]:
        """Read the registry row for ``name``; may raise SQLAlchemyError."""
        if name in self._known:
            return self._known[name]
        reg = VectorCollection.__table__
        with self._engine.connect() as conn:
            row = conn.execute(
                select(reg.c.name, reg.c.dimension, reg.c.distance).where(reg.c.name == name)
            ).first()
        if row is None:
            return None
        info = CollectionInfo(row.name, int(row.dimension), row.distance)
        self._known[name] = info
        return info

    def _require(self, name: str) -> CollectionInfo:
        _validate_name(name)
        try:
            info = self._lookup(name)
        except SQLAlchemyError as e:
            raise VectorStoreError(f"failed to read collection {name!r}: {e}") from e
        if info is None:
            raise VectorStoreError(f"collection {name!r} does not exist")
        return info

    def _table(self, info: CollectionInfo) -> Table:
        return point_table(info.name, info.dimension, self._metadata)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ensure_collection(self, name: str, dimension: int, metric: str = "cosine") -> CollectionInfo:
        """Create collection ``name`` unless it already exists.

        A failing existence check is logged and treated like a missing
        collection; creation itself is IF NOT EXISTS throughout.

        Args:
            name: Collection (and table) name.
            dimension: Vector size every point must have.
            metric: One of "cosine", "dot", "euclid".

        Returns:
            CollectionInfo: The existing or newly created collection.

        Raises:
            VectorStoreError: On invalid arguments or if creation fails.
        """
        _validate_name(name)
        if metric not in DISTANCE_OPS:
            raise VectorStoreError(f"unsupported distance metric: {metric!r}")
        if dimension <= 0:
            raise VectorStoreError(f"dimension must be positive, got {dimension}")

        try:
            existing = self._lookup(name)
        except SQLAlchemyError as e:
            logger.warning("Collection check failed for %s (%s); treating as missing", name, e)
            existing = None

        if existing is not None:
            if existing.dimension != dimension or existing.distance != metric:
                logger.warning(
                    "Collection %s exists with dimension=%d distance=%s (requested %d/%s); keeping existing",
                    name, existing.dimension, existing.distance, dimension, metric,
                )
            else:
                logger.info("Collection exists: %s", name)
            return existing

        logger.info("Creating collection %s (dimension=%d, distance=%s)", name, dimension, metric)
        info = CollectionInfo(name, dimension, metric)
        table = self._table(info)
        reg = VectorCollection.__table__
        try:
            with self._engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                reg.create(conn, checkfirst=True)
                table.create(conn, checkfirst=True)
                conn.execute(
                    text(
                        f"CREATE INDEX IF NOT EXISTS idx_{name}_embedding "
                        f"ON {name} USING hnsw (embedding {DISTANCE_OPS[metric]})"
                    )
                )
                conn.execute(
                    pg_insert(reg)
                    .values(name=name, dimension=dimension, distance=metric, created_at=datetime.utcnow())
                    .on_conflict_do_nothing(index_elements=[reg.c.name])
                )
        except SQLAlchemyError as e:
            raise VectorStoreError(f"failed to create collection {name!r}: {e}") from e

        # Re-read: a concurrent creator may have registered different parameters.
        try:
            self._known.pop(name, None)
            return self._lookup(name) or info
        except SQLAlchemyError:
            return info

    def upsert(self, collection: str, points: Sequence[IndexPoint]) -> int:
        """Insert or overwrite points keyed by id, as a single transaction.

        Args:
            collection: Target collection name.
            points: Points to write; duplicate ids in one call keep the last.

        Returns:
            int: Number of points written.

        Raises:
            VectorStoreError: On dimension mismatch, missing collection or DB failure.
        """
        if not points:
            return 0
        info = self._require(collection)
        table = self._table(info)

        now = datetime.utcnow()
        rows: Dict[str, Dict[str, Any]] = {}
        for p in points:
            if len(p.vector) != info.dimension:
                raise VectorStoreError(
                    f"point {p.id} has dimension {len(p.vector)}, collection {collection!r} expects {info.dimension}"
                )
            payload = p.payload or {}
            rows[p.id] = {
                "id": p.id,
                "url": payload.get("url") or "",
                "title": payload.get("title") or "",
                "text": payload.get("text") or "",
                "embedding": list(p.vector),
                "updated_at": now,
            }

        stmt = pg_insert(table).values(list(rows.values()))
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.id],
            set_={
                "url": stmt.excluded.url,
                "title": stmt.excluded.title,
                "text": stmt.excluded.text,
                "embedding": stmt.excluded.embedding,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise VectorStoreError(f"upsert into {collection!r} failed: {e}") from e
        logger.debug("Upserted %d points into %s", len(rows), collection)
        return len(rows)

    def search(
        self,
        collection: str,
        vector: Sequence[float],
        top_k: int,
        score_threshold: Optional[float] = 0.0,
    ) -> List[SearchHit]:
        """Return the ``top_k`` most similar points, best first.

        Args:
            collection: Collection to search.
            vector: Query vector (must match the collection dimension).
            top_k: Maximum number of hits.
            score_threshold: Minimum score; None or <= 0 disables the floor.

        Returns:
            List[SearchHit]: Hits ordered by descending score (ties arbitrary);
            empty if the collection does not exist.
        """
        if top_k <= 0:
            return []
        _validate_name(collection)
        try:
            info = self._lookup(collection)
        except SQLAlchemyError as e:
            raise VectorStoreError(f"failed to read collection {collection!r}: {e}") from e
        if info is None:
            logger.warning("Search on missing collection %s; nothing indexed yet", collection)
            return []
        if len(vector) != info.dimension:
            raise VectorStoreError(
                f"query vector has dimension {len(vector)}, collection {collection!r} expects {info.dimension}"
            )
        stmt = search_statement(self._table(info), info.distance, list(vector), top_k, score_threshold)
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"search in {collection!r} failed: {e}") from e

        return [
            SearchHit(
                id=r["id"],
                score=float(r["score"]),
                payload={"url": r["url"], "title": r["title"], "text": r["text"]},
            )
            for r in rows
        ]

    def count(self, collection: str) -> int:
        """Return the number of points stored in ``collection``."""
        info = self._require(collection)
        table = self._table(info)
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(select(func.count()).select_from(table)).scalar_one())
        except SQLAlchemyError as e:
            raise VectorStoreError(f"count on {collection!r} failed: {e}") from e

    def delete_collection(self, collection: str) -> None:
        """Drop the points table and registry row (no-op if missing)."""
        _validate_name(collection)
        reg = VectorCollection.__table__
        try:
            with self._engine.begin() as conn:
                conn.execute(text(f"DROP TABLE IF EXISTS {collection}"))
                if inspect(conn).has_table(reg.name):
                    conn.execute(reg.delete().where(reg.c.name == collection))
        except SQLAlchemyError as e:
            raise VectorStoreError(f"failed to drop collection {collection!r}: {e}") from e
        self._known.pop(collection, None)
        if collection in self._metadata.tables:
            self._metadata.remove(self._metadata.tables[collection])
        logger.info("Dropped collection %s", collection)
