"""Awarded achievement persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import AwardedAchievementModel
from ..errors import ConflictError


class AwardedAchievementRepository:
    def awarded(self, session: Session, user_id: str) -> Dict[str, datetime]:
        stmt = select(AwardedAchievementModel.achievement_id, AwardedAchievementModel.awarded_at).where(
            AwardedAchievementModel.user_id == user_id
        )
        return {row.achievement_id: row.awarded_at for row in session.execute(stmt)}

    def insert(
        self,
        session: Session,
        user_id: str,
        achievement_id: str,
        *,
        at: Optional[datetime] = None,
    ) -> datetime:
        awarded_at = at or utcnow()
        try:
            with session.begin_nested():
                session.add(
                    AwardedAchievementModel(
                        user_id=user_id,
                        achievement_id=achievement_id,
                        awarded_at=awarded_at,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError(f"Achievement '{achievement_id}' already awarded to '{user_id}'.") from exc
        return awarded_at


awarded_achievement_repository = AwardedAchievementRepository()

__all__ = ["AwardedAchievementRepository", "awarded_achievement_repository"]
