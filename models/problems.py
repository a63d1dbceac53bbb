from models import Base
from sqlalchemy import BigInteger, Column, DateTime, Float, String

from utils.time_utils import utcnow_sa_default


class Problem(Base):
    __tablename__ = "problems"

    # Supplied by the data source; never generated.
    id = Column(BigInteger, primary_key=True, autoincrement=False)

    url = Column(String, nullable=True)
    title = Column(String, nullable=True)
    difficulty = Column(String, nullable=True)

    # Percentages (0-100); NULL when the snapshot had no value.
    acceptance = Column(Float, nullable=True)
    frequency = Column(Float, nullable=True)

    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow_sa_default
    )
