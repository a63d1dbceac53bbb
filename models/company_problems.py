from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String

from models import Base
from utils.time_utils import utcnow_sa_default


class CompanyProblem(Base):
    """Company X has been observed to ask problem Y.

    - source_file: window label of the snapshot file that last touched the row
      (e.g. 'all', 'thirty-days')
    - timeframe_tag: narrowest dated window the pair was seen in during the last
      run that observed it ('thirty-days', 'three-months', 'six-months'), or NULL
      when it only appeared in the 'all' / 'more-than-six' files
    - last_seen: UTC timestamp of the last run that observed the pair

    Rows are never deleted by ingestion; pairs missing from a run keep their
    previous values.
    """

    __tablename__ = "company_problems"
    __table_args__ = (Index("ix_company_problems_problem_id", "problem_id"),)

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        primary_key=True,
    )
    problem_id = Column(
        BigInteger,
        ForeignKey("problems.id", ondelete="CASCADE"),
        primary_key=True,
    )

    source_file = Column(String, nullable=True)
    timeframe_tag = Column(String, nullable=True)
    last_seen = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
