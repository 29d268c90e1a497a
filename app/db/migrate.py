"""Apply Alembic migrations to head from Python (startup script and tests)."""
from pathlib import Path

from alembic import command
from alembic.config import Config

ROOT = Path(__file__).resolve().parent.parent.parent


def alembic_config(database_url: str, output_buffer=None) -> Config:
    ini = ROOT / "alembic.ini"
    cfg = Config(str(ini), output_buffer=output_buffer) if ini.exists() else Config(output_buffer=output_buffer)
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    # ConfigParser interpolation: a literal % in the URL must be doubled
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def upgrade_to_head(database_url: str) -> None:
    command.upgrade(alembic_config(database_url), "head")


def downgrade_to_base(database_url: str) -> None:
    command.downgrade(alembic_config(database_url), "base")


def render_upgrade_sql(database_url: str, output_buffer) -> None:
    """Write the upgrade DDL for the URL's dialect to output_buffer without connecting."""
    command.upgrade(alembic_config(database_url, output_buffer), "head", sql=True)
