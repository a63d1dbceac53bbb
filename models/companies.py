from models import Base
from sqlalchemy import Column, Integer, String


class Company(Base):
    """A company directory in the snapshot tree.

    `name` is the business key; `id` is assigned by the primary store on first
    insert and copied verbatim into the replica.
    """

    __tablename__ = "companies"
    # Keeps the high-water mark in sqlite_sequence so replicated ids are never reused.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
