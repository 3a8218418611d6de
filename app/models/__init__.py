from app.models.query import Platform, Query, QueryResult, QueryStatus

__all__ = ["Platform", "Query", "QueryResult", "QueryStatus"]
