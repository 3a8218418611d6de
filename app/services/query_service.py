"""Query lifecycle: create, process in the background, read back.

A query moves PENDING -> PROCESSING -> COMPLETED | FAILED. The request that
creates it only writes the PENDING row; searching the providers and storing
the results happens in a background job, and clients poll
``get_query_by_id`` until the status is terminal.
"""

import json
import logging
from datetime import timedelta
from functools import partial
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from pydantic import ValidationError

from app.core.redis import ResultCache
from app.core.tasks import BackgroundTaskRunner
from app.models.query import Platform, Query, QueryResult, QueryStatus, utc_now
from app.schemas.youtube import validation_message
from app.services.query_store import QueryStore

logger = logging.getLogger(__name__)

STALE_ERROR_MESSAGE = "Processing timed out"


class QueryNotFoundError(Exception):
    pass


class QueryValidationError(ValueError):
    pass


class SearchProvider(Protocol):
    result_attributes: Dict[str, Dict[str, str]]

    def validate_filters(self, keywords: List[str], filters: Dict[str, Any]) -> None: ...

    async def search(self, keywords: List[str], filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]: ...


def cache_key(query_id: str) -> str:
    return f"query:{query_id}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_result(result: QueryResult) -> Dict[str, Any]:
    return {
        "id": result.id,
        "platform": result.platform,
        "attributes": result.attributes,
        "data": list(result.data),
        "createdAt": _iso(result.created_at),
    }


def serialize_query(query: Query, include_results: bool = False) -> Dict[str, Any]:
    data = {
        "id": query.id,
        "userId": query.user_id,
        "keywords": list(query.keywords),
        "platforms": list(query.platforms),
        "status": query.status,
        "totalResults": query.total_results,
        "filters": dict(query.filters or {}),
        "createdAt": _iso(query.created_at),
        "updatedAt": _iso(query.updated_at),
        "completedAt": _iso(query.completed_at),
        "errorMessage": query.error_message,
    }
    if include_results:
        data["results"] = [serialize_result(r) for r in query.results]
    return data


class QueryOrchestrator:
    def __init__(
        self,
        store: QueryStore,
        cache: ResultCache,
        providers: Mapping[str, SearchProvider],
        task_runner: BackgroundTaskRunner,
        cache_ttl: int = 300,
        owner_scoped: bool = False,
    ):
        self.store = store
        self.cache = cache
        self.providers = dict(providers)
        self.task_runner = task_runner
        self.cache_ttl = cache_ttl
        self.owner_scoped = owner_scoped

    def validate(
        self,
        keywords: List[str],
        platforms: List[str],
        filters: Optional[Dict[str, Any]],
    ) -> Tuple[List[str], List[str], Dict[str, Any]]:
        if not keywords:
            raise QueryValidationError("At least one keyword is required")
        if any(not isinstance(k, str) or not k.strip() for k in keywords):
            raise QueryValidationError("Keywords must be non-empty strings")
        if not platforms:
            raise QueryValidationError("At least one platform is required")
        if filters is not None and not isinstance(filters, dict):
            raise QueryValidationError("Filters must be an object")

        normalized_platforms = []
        for platform in platforms:
            try:
                value = Platform(platform).value
            except ValueError:
                raise QueryValidationError(f"Unknown platform: {platform}")
            if value not in normalized_platforms:
                normalized_platforms.append(value)

        keywords = [k.strip() for k in keywords]
        filters = filters or {}

        for platform in normalized_platforms:
            provider = self.providers.get(platform)
            if provider is None:
                continue
            try:
                provider.validate_filters(keywords, filters)
            except ValidationError as e:
                raise QueryValidationError(f"Invalid filters for {platform}: {validation_message(e)}")

        return keywords, normalized_platforms, filters

    async def create_query(
        self,
        user_id: str,
        keywords: List[str],
        platforms: List[str],
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        keywords, platforms, filters = self.validate(keywords, platforms, filters)

        logger.info(f"Creating query for user {user_id}")
        query = await self.store.create(user_id, keywords, platforms, filters)
        data = serialize_query(query)

        self._submit(query.id)
        return data

    def _submit(self, query_id: str) -> None:
        self.task_runner.submit(
            self.process_query,
            query_id,
            on_error=partial(self._record_failure, query_id),
            name=f"process-query-{query_id}",
        )

    async def process_query(self, query_id: str) -> None:
        claimed = await self.store.transition(query_id, QueryStatus.PENDING, QueryStatus.PROCESSING)
        if not claimed:
            logger.warning(f"Query {query_id} is not pending, skipping", extra={"query_id": query_id})
            return

        logger.info(f"Processing query {query_id}", extra={"query_id": query_id})

        try:
            query = await self.store.get(query_id)
            if query is None:
                logger.warning(f"Query {query_id} disappeared before processing", extra={"query_id": query_id})
                return

            try:
                total_results = 0
                result_sets = []

                for platform in query.platforms:
                    provider = self.providers.get(platform)
                    if provider is None:
                        logger.info(
                            f"No search provider for {platform}, skipping",
                            extra={"query_id": query_id, "platform": platform},
                        )
                        continue

                    records = await provider.search(query.keywords, query.filters)
                    result_sets.append({
                        "platform": platform,
                        "attributes": provider.result_attributes,
                        "data": [json.dumps(record, ensure_ascii=False) for record in records],
                    })
                    total_results += len(records)

                if await self.store.complete(query_id, result_sets, total_results):
                    logger.info(
                        f"Query {query_id} completed with {total_results} results",
                        extra={"query_id": query_id, "status": QueryStatus.COMPLETED.value},
                    )
                else:
                    logger.warning(
                        f"Query {query_id} left PROCESSING before it completed, results dropped",
                        extra={"query_id": query_id},
                    )
            except Exception as e:
                logger.error(f"Error processing query {query_id}: {e}", exc_info=True, extra={"query_id": query_id})
                await self._mark_failed(query_id, e)
        finally:
            await self.cache.delete(cache_key(query_id))

    async def _mark_failed(self, query_id: str, error: BaseException) -> None:
        message = str(error) or type(error).__name__
        failed = await self.store.transition(
            query_id,
            QueryStatus.PROCESSING,
            QueryStatus.FAILED,
            error_message=message,
        )
        if failed:
            logger.info(
                f"Query {query_id} failed: {message}",
                extra={"query_id": query_id, "status": QueryStatus.FAILED.value},
            )

    async def _record_failure(self, query_id: str, error: BaseException) -> None:
        try:
            await self._mark_failed(query_id, error)
        finally:
            await self.cache.delete(cache_key(query_id))

    def _check_owner(self, data: Dict[str, Any], user_id: Optional[str]) -> None:
        if self.owner_scoped and user_id is not None and data["userId"] != user_id:
            raise QueryNotFoundError("Query not found")

    async def get_query_by_id(self, query_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        key = cache_key(query_id)
        cached = await self.cache.get(key)
        if cached is not None:
            self._check_owner(cached, user_id)
            return cached

        query = await self.store.get(query_id, with_results=True)
        if query is None:
            raise QueryNotFoundError("Query not found")

        data = serialize_query(query, include_results=True)
        self._check_owner(data, user_id)

        # Only terminal, successful queries are stable enough to cache
        if query.status == QueryStatus.COMPLETED.value:
            await self.cache.set(key, data, ttl=self.cache_ttl)

        return data

    async def get_queries(
        self,
        page: int,
        limit: int,
        user_id: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        owner = user_id if self.owner_scoped else None
        queries, total = await self.store.paginate(page, limit, user_id=owner)
        return [serialize_query(q) for q in queries], total

    async def sweep_stale_queries(self, timeout_minutes: int) -> List[str]:
        """Fail queries stuck in PROCESSING and resubmit stale PENDING ones.

        A PENDING row that outlived the timeout lost its job before the job
        claimed it (cancelled at shutdown, or the claim itself errored). It
        goes back through ``process_query`` so it still passes PROCESSING.
        Returns the ids that were failed.
        """
        cutoff = utc_now() - timedelta(minutes=timeout_minutes)
        failed = await self.store.fail_stale(cutoff, STALE_ERROR_MESSAGE)
        for query_id in failed:
            await self.cache.delete(cache_key(query_id))
            logger.warning(f"Query {query_id} timed out in PROCESSING", extra={"query_id": query_id})

        for query_id in await self.store.find_stale_pending(cutoff):
            logger.warning(f"Query {query_id} never started, resubmitting", extra={"query_id": query_id})
            self._submit(query_id)

        return failed
