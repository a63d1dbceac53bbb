"""SQLAlchemy models package.

Important: This project uses a single declarative Base defined in `db.py`.
Import `Base` from this package in all model modules.

Example:

    Base.metadata.create_all(engine)

Both the primary and the replica store are created from this metadata, so the
two schemas cannot drift apart.
"""

from db import Base  # re-export a single shared Base

# Import models so they are registered with SQLAlchemy metadata on startup.
# This makes `Base.metadata.create_all()` create all tables for a fresh DB.
from models.companies import Company  # noqa: F401
from models.problems import Problem  # noqa: F401
from models.problem_tags import ProblemTag  # noqa: F401
from models.company_problems import CompanyProblem  # noqa: F401
