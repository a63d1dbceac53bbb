from models import Base
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String

from utils.time_utils import utcnow_sa_default


class ProblemTag(Base):
    __tablename__ = "problem_tags"

    problem_id = Column(
        BigInteger,
        ForeignKey("problems.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag = Column(String, primary_key=True)

    added_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow_sa_default
    )
