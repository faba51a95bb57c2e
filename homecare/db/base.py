# homecare/db/base.py
from sqlalchemy import JSON, MetaData, Text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase

# Named constraints so the catalog snapshot is stable across re-applies.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# text[] on Postgres, JSON list elsewhere (SQLite in tests).
StringList = JSON().with_variant(postgresql.ARRAY(Text), "postgresql")


class Base(DeclarativeBase):
    """Every table the schema manager owns inherits from this."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
