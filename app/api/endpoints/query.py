
from fastapi import APIRouter, Depends, Query, status
from app.api.deps import get_orchestrator
from app.core.security import get_current_user_id
from app.schemas.query import CreateQueryRequest
from app.services.query_service import QueryOrchestrator
from typing import Any, Dict

router = APIRouter(prefix="/query", tags=["query"])

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_query(
    body: CreateQueryRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    query = await orchestrator.create_query(
        user_id,
        body.keywords,
        [p.value for p in body.platforms],
        body.filters,
    )
    return {
        "success": True,
        "message": "Query created successfully",
        "data": query,
    }

@router.get("")
async def get_queries(
    page: int = Query(default=0, ge=0, description="Zero-based page number"),
    limit: int = Query(default=12, ge=1, le=100, description="Page size"),
    user_id: str = Depends(get_current_user_id),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    queries, total = await orchestrator.get_queries(page, limit, user_id=user_id)
    return {
        "success": True,
        "data": queries,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": (page + 1) * limit < total,
        },
    }

@router.get("/{query_id}")
async def get_query(
    query_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    query = await orchestrator.get_query_by_id(query_id, user_id=user_id)
    return {
        "success": True,
        "data": query,
    }
