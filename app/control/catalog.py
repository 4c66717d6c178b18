"""Operator-managed configuration: recommended queries, scoring patterns, settings."""

from typing import Any, Dict, List, Mapping, Type

from pydantic import BaseModel, ValidationError

from app.domain.models import RecommendedQuery, ScoringPattern, Settings
from app.logging import get_logger
from app.persistence.database import get_session
from app.persistence.exceptions import RecordNotFoundError
from app.persistence.repositories import PatternRepository, QueryRepository, SettingsRepository

from .models import PatternInput, PatternUpdate, QueryInput, QueryUpdate, SettingsUpdate

logger = get_logger(__name__, component="catalog")


class InvalidInputError(ValueError):
    """Raised when catalog input fails validation; ``errors`` has one entry per field."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def _validate(model: Type[BaseModel], data: Mapping[str, Any]) -> BaseModel:
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"]) or "input"
            message = error["msg"].removeprefix("Value error, ")
            errors.append(f"{field_path}: {message}")
        raise InvalidInputError(errors) from e


class CatalogService:
    """CRUD over the catalog tables with input validation.

    Every method runs in its own transaction. Methods addressing a missing id
    raise RecordNotFoundError.
    """

    # Queries

    def list_queries(self) -> List[RecommendedQuery]:
        with get_session() as session:
            return QueryRepository(session).list_all()

    def create_query(self, data: Mapping[str, Any]) -> RecommendedQuery:
        validated = _validate(QueryInput, data)
        with get_session() as session:
            created = QueryRepository(session).create(RecommendedQuery(**validated.model_dump()))
        logger.info(
            "Recommended query created",
            extra={"event": "catalog.query.created", "query_id": created.id, "query": created.query},
        )
        return created

    def update_query(self, query_id: int, data: Mapping[str, Any]) -> RecommendedQuery:
        changes = _validate(QueryUpdate, data).model_dump(exclude_unset=True)
        with get_session() as session:
            return QueryRepository(session).update(query_id, changes)

    def toggle_query(self, query_id: int) -> RecommendedQuery:
        with get_session() as session:
            return QueryRepository(session).toggle(query_id)

    def delete_query(self, query_id: int) -> None:
        with get_session() as session:
            QueryRepository(session).delete(query_id)
        logger.info(
            "Recommended query deleted",
            extra={"event": "catalog.query.deleted", "query_id": query_id},
        )

    # Patterns

    def list_patterns(self) -> List[ScoringPattern]:
        with get_session() as session:
            return PatternRepository(session).list_all()

    def create_pattern(self, data: Mapping[str, Any]) -> ScoringPattern:
        validated = _validate(PatternInput, data)
        with get_session() as session:
            created = PatternRepository(session).create(ScoringPattern(**validated.model_dump()))
        logger.info(
            "Scoring pattern created",
            extra={
                "event": "catalog.pattern.created",
                "pattern_id": created.id,
                "pattern": created.pattern,
            },
        )
        return created

    def update_pattern(self, pattern_id: int, data: Mapping[str, Any]) -> ScoringPattern:
        changes = _validate(PatternUpdate, data).model_dump(exclude_unset=True)
        with get_session() as session:
            return PatternRepository(session).update(pattern_id, changes)

    def toggle_pattern(self, pattern_id: int) -> ScoringPattern:
        with get_session() as session:
            return PatternRepository(session).toggle(pattern_id)

    def delete_pattern(self, pattern_id: int) -> None:
        with get_session() as session:
            PatternRepository(session).delete(pattern_id)
        logger.info(
            "Scoring pattern deleted",
            extra={"event": "catalog.pattern.deleted", "pattern_id": pattern_id},
        )

    # Settings

    def get_settings(self) -> Settings:
        with get_session() as session:
            return SettingsRepository(session).get_or_create()

    def update_settings(self, data: Mapping[str, Any]) -> Settings:
        changes: Dict[str, Any] = _validate(SettingsUpdate, data).model_dump(exclude_unset=True)
        with get_session() as session:
            updated = SettingsRepository(session).update(changes)
        logger.info(
            "Settings updated",
            extra={"event": "catalog.settings.updated", "fields": sorted(changes)},
        )
        return updated


__all__ = ["CatalogService", "InvalidInputError", "RecordNotFoundError"]
