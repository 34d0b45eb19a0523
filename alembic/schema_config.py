"""
Schema configuration helper for Alembic migrations.

Migrations read the target schema from settings so that every table lands
in DB_SCHEMA, matching the ORM models.

Usage in migrations:
    from schema_config import get_schema

    def upgrade():
        schema = get_schema()
        op.create_table('my_table', ..., schema=schema)
"""
from lessonguard.config import settings


def get_schema() -> str:
    """
    Get the database schema name for migrations.

    Returns:
        str: DB_SCHEMA (defaults to 'lessonguard')
    """
    return settings.DB_SCHEMA
