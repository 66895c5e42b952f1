"""Raw outcome records and learner feedback."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import FeedbackModel, RawOutcomeModel
from ..states import OutcomeState


class RawOutcomeRepository:
    def create(
        self,
        session: Session,
        *,
        user_id: str,
        app_id: str,
        client_session_id: str,
        content: str,
    ) -> int:
        model = RawOutcomeModel(
            user_id=user_id,
            app_id=app_id,
            client_session_id=client_session_id,
            content=content,
            state=OutcomeState.UNPROCESSED.value,
        )
        session.add(model)
        session.flush()
        return model.id

    def list_unprocessed(self, session: Session, user_id: str) -> List[RawOutcomeModel]:
        stmt = (
            select(RawOutcomeModel)
            .where(
                RawOutcomeModel.user_id == user_id,
                RawOutcomeModel.state == OutcomeState.UNPROCESSED.value,
            )
            .order_by(RawOutcomeModel.created_at.asc(), RawOutcomeModel.id.asc())
        )
        return list(session.execute(stmt).scalars())

    def count_unprocessed(self, session: Session, user_id: str) -> int:
        stmt = select(func.count()).select_from(RawOutcomeModel).where(
            RawOutcomeModel.user_id == user_id,
            RawOutcomeModel.state == OutcomeState.UNPROCESSED.value,
        )
        return int(session.execute(stmt).scalar_one())

    def mark_consumed(
        self,
        session: Session,
        user_id: str,
        record_ids: Sequence[int],
        *,
        at: Optional[datetime] = None,
    ) -> int:
        """Flip the given records to consumed; rows already consumed are left alone."""
        if not record_ids:
            return 0
        stmt = (
            update(RawOutcomeModel)
            .where(
                RawOutcomeModel.user_id == user_id,
                RawOutcomeModel.id.in_(list(record_ids)),
                RawOutcomeModel.state == OutcomeState.UNPROCESSED.value,
            )
            .values(state=OutcomeState.CONSUMED.value, consumed_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        return int(session.execute(stmt).rowcount or 0)


class FeedbackRepository:
    def create(
        self,
        session: Session,
        *,
        user_id: Optional[str],
        app_id: str,
        comment: str,
        client_session_id: Optional[str] = None,
        content: Optional[str] = None,
        error_type: str = "general",
    ) -> str:
        model = FeedbackModel(
            user_id=user_id,
            app_id=app_id,
            client_session_id=client_session_id,
            content=content,
            comment=comment,
            error_type=error_type,
        )
        session.add(model)
        session.flush()
        return model.id

    def count_for_user(self, session: Session, user_id: str) -> int:
        stmt = select(func.count()).select_from(FeedbackModel).where(FeedbackModel.user_id == user_id)
        return int(session.execute(stmt).scalar_one())


raw_outcome_repository = RawOutcomeRepository()
feedback_repository = FeedbackRepository()

__all__ = [
    "FeedbackRepository",
    "RawOutcomeRepository",
    "feedback_repository",
    "raw_outcome_repository",
]
