"""Tuning values for the database layer."""

# asyncpg connections are recycled hourly
POOL_RECYCLE_SECONDS = 3600
COMMAND_TIMEOUT_SECONDS = 60

MAX_LOGGED_STATEMENT_LENGTH = 500

NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
}
