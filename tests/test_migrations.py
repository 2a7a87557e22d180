"""Alembic migrations build the same schema the models describe."""
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from app.database import Base


ROOT = Path(__file__).resolve().parents[1]


def alembic_config(db_path: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    return config


def table_columns(db_path: Path) -> dict:
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        return {
            name: {column["name"] for column in inspector.get_columns(name)}
            for name in inspector.get_table_names()
            if name != "alembic_version"
        }
    finally:
        engine.dispose()


def test_upgrade_matches_models_and_downgrade_drops(test_dir):
    db_path = test_dir / "migrated.db"
    db_path.unlink(missing_ok=True)
    config = alembic_config(db_path)

    command.upgrade(config, "head")

    columns = table_columns(db_path)
    assert set(columns) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        assert columns[name] == {c.name for c in table.columns}, name

    command.downgrade(config, "base")

    assert table_columns(db_path) == {}
