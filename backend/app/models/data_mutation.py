"""DataMutation ORM model — ledger of every applied write to operational data."""
import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base


class ActionType(str, enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"


class DataMutation(Base):
    __tablename__ = "data_mutations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(64), nullable=False, index=True)
    record_id = Column(Integer, nullable=False)
    actor_id = Column(Integer, nullable=False)
    action_type = Column(SAEnum(ActionType), nullable=False)
    before_snapshot = Column(JSON, nullable=True)
    after_snapshot = Column(JSON, nullable=True)
    approval_request_id = Column(Integer, nullable=True)  # set when applied through review
    created_at = Column(DateTime(timezone=True), server_default=func.now())
