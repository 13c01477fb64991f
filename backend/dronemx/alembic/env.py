# backend/dronemx/alembic/env.py

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# env.py lives in backend/dronemx/alembic; `import dronemx` needs backend/ on the path.
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from dronemx.database import Base, write_engine  # noqa: E402

# Register every table on Base.metadata.
from dronemx.apps.fleet import models as fleet_models  # noqa: F401, E402
from dronemx.apps.work import models as work_models  # noqa: F401, E402
from dronemx.apps.maintenance_program import models as maintenance_program_models  # noqa: F401, E402

target_metadata = Base.metadata

PLACEHOLDER_PREFIX = "driver://"


def _database_url() -> str:
    """alembic.ini's sqlalchemy.url, or the same env vars the app reads when the ini holds the placeholder."""
    url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if url.startswith(PLACEHOLDER_PREFIX):
        url = ""
    url = url or (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError(
            "Alembic has no database to migrate: set DATABASE_WRITE_URL / DATABASE_URL "
            "or sqlalchemy.url in alembic.ini."
        )
    return url


def _configure(url: str, **kwargs) -> None:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table instead.
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    url = _database_url()
    _configure(url, url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with write_engine.connect() as connection:
        _configure(str(write_engine.url), connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
