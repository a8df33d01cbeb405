"""Thin storage layer over the Flask-SQLAlchemy session.

Core components read and write records through ``Store`` so that database
failures reach them as tagged ``DomainError`` kinds: constraint violations
become ``ConflictError`` and anything else ``InternalError``. Tests substitute
a ``Store`` subclass to force individual writes to fail.
"""
from __future__ import annotations

from typing import Any, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ConflictError, InternalError, NotFoundError
from .extensions import db

T = TypeVar("T")


class Store:
    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    def get(self, model: type[T], ident: Any) -> T | None:
        if ident is None:
            return None
        try:
            return self.session.get(model, ident)
        except SQLAlchemyError as exc:
            current_app.logger.exception("Failed to load %s %s", model.__name__, ident, exc_info=exc)
            raise InternalError("Database error.", code="database_error") from exc

    def get_or_404(self, model: type[T], ident: Any, label: str | None = None) -> T:
        record = self.get(model, ident)
        if record is None:
            raise NotFoundError(f"{label or model.__name__} not found.")
        return record

    def save(self, *records: Any) -> None:
        """Add ``records`` and commit them as one unit."""
        for record in records:
            self.session.add(record)
        self._commit()

    def delete(self, record: Any) -> None:
        self.session.delete(record)
        self._commit()

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            current_app.logger.warning("Constraint violation on commit: %s", exc.orig)
            raise ConflictError("The record conflicts with an existing one.", code="conflict") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            current_app.logger.exception("Failed to commit changes", exc_info=exc)
            raise InternalError("Database error.", code="database_error") from exc
