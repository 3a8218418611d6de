from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload
from app.models.query import Query, QueryResult, QueryStatus, utc_now
import logging

logger = logging.getLogger(__name__)


class QueryStore:
    """Persistence for queries and their per-platform result sets.

    Each call opens its own session, so the store can be shared between
    request handlers and background jobs. Status changes are
    compare-and-set: they only apply while the row is in the expected state.
    """

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def create(
        self,
        user_id: str,
        keywords: List[str],
        platforms: List[str],
        filters: Dict[str, Any],
    ) -> Query:
        async with self.session_maker() as session:
            query = Query(
                user_id=user_id,
                keywords=keywords,
                platforms=platforms,
                filters=filters,
                status=QueryStatus.PENDING.value,
                total_results=0,
            )
            session.add(query)
            await session.commit()
            return query

    async def get(self, query_id: str, with_results: bool = False) -> Optional[Query]:
        stmt = select(Query).where(Query.id == query_id)
        if with_results:
            stmt = stmt.options(selectinload(Query.results))

        async with self.session_maker() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def paginate(self, page: int, limit: int, user_id: Optional[str] = None) -> Tuple[Sequence[Query], int]:
        stmt = select(Query)
        count_stmt = select(func.count(Query.id))
        if user_id is not None:
            stmt = stmt.where(Query.user_id == user_id)
            count_stmt = count_stmt.where(Query.user_id == user_id)

        stmt = stmt.order_by(Query.created_at.desc(), Query.id.desc()).offset(page * limit).limit(limit)

        async with self.session_maker() as session:
            total = (await session.execute(count_stmt)).scalar() or 0
            queries = (await session.execute(stmt)).scalars().all()
            return queries, total

    async def transition(self, query_id: str, expected: QueryStatus, new: QueryStatus, **values: Any) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(
                update(Query)
                .where(Query.id == query_id, Query.status == expected.value)
                .values(status=new.value, updated_at=utc_now(), **values)
            )
            await session.commit()
            return result.rowcount == 1

    async def complete(self, query_id: str, results: List[Dict[str, Any]], total_results: int) -> bool:
        """Write result rows and mark the query COMPLETED in one transaction.

        ``results`` holds ``{"platform", "attributes", "data"}`` entries.
        Nothing is written when the query is no longer PROCESSING.
        """
        now = utc_now()
        async with self.session_maker() as session:
            result = await session.execute(
                update(Query)
                .where(Query.id == query_id, Query.status == QueryStatus.PROCESSING.value)
                .values(
                    status=QueryStatus.COMPLETED.value,
                    total_results=total_results,
                    completed_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount != 1:
                await session.rollback()
                return False

            for entry in results:
                session.add(QueryResult(
                    query_id=query_id,
                    platform=entry["platform"],
                    attributes=entry["attributes"],
                    data=entry["data"],
                ))
            await session.commit()
            return True

    async def fail_stale(self, older_than: datetime, error_message: str) -> List[str]:
        async with self.session_maker() as session:
            stale_ids = (await session.execute(
                select(Query.id).where(
                    Query.status == QueryStatus.PROCESSING.value,
                    Query.updated_at < older_than,
                )
            )).scalars().all()

            failed = []
            for query_id in stale_ids:
                result = await session.execute(
                    update(Query)
                    .where(Query.id == query_id, Query.status == QueryStatus.PROCESSING.value)
                    .values(status=QueryStatus.FAILED.value, error_message=error_message, updated_at=utc_now())
                )
                if result.rowcount == 1:
                    failed.append(query_id)
            await session.commit()
            return failed

    async def find_stale_pending(self, older_than: datetime) -> List[str]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(Query.id)
                .where(Query.status == QueryStatus.PENDING.value, Query.updated_at < older_than)
                .order_by(Query.created_at)
            )
            return list(result.scalars().all())
