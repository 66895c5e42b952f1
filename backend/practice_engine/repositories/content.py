"""Exercise item lookups used by the content resolver."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import ExerciseItemModel
from ..errors import ConflictError


class ExerciseItemRepository:
    def find_by_descriptor(self, session: Session, app_id: str, descriptor_key: str) -> Optional[str]:
        stmt = select(ExerciseItemModel.id).where(
            ExerciseItemModel.app_id == app_id,
            ExerciseItemModel.descriptor_key == descriptor_key,
        )
        return session.execute(stmt).scalars().first()

    def create(
        self,
        session: Session,
        *,
        app_id: str,
        content: Any,
        descriptor_key: Optional[str] = None,
        human_verified: bool = False,
    ) -> str:
        """Insert a new exercise item inside a savepoint.

        Raises :class:`ConflictError` when another writer already created the
        same (app, descriptor) pair; the outer transaction stays usable.
        """
        model = ExerciseItemModel(
            app_id=app_id,
            content=content,
            descriptor_key=descriptor_key,
            human_verified=human_verified,
        )
        try:
            with session.begin_nested():
                session.add(model)
        except IntegrityError as exc:
            raise ConflictError(
                f"Exercise item for app '{app_id}' and descriptor '{descriptor_key}' already exists."
            ) from exc
        return model.id

    def get(self, session: Session, exercise_id: str) -> Optional[ExerciseItemModel]:
        return session.get(ExerciseItemModel, exercise_id)


exercise_item_repository = ExerciseItemRepository()

__all__ = ["ExerciseItemRepository", "exercise_item_repository"]
