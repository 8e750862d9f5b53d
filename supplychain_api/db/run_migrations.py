"""
Run Alembic without an alembic.ini.

    python -m supplychain_api.db.run_migrations upgrade head
    python -m supplychain_api.db.run_migrations downgrade -1
    python -m supplychain_api.db.run_migrations current
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from alembic import command
from alembic.config import Config

from supplychain_api.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# command name -> (alembic function, default positional arguments)
COMMANDS: Dict[str, tuple[Callable[..., None], List[str]]] = {
    "upgrade": (command.upgrade, ["head"]),
    "downgrade": (command.downgrade, ["-1"]),
    "history": (command.history, []),
    "current": (command.current, []),
    "heads": (command.heads, []),
    "show": (command.show, ["head"]),
}


def build_config() -> Config:
    """Alembic Config pointing at the bundled migrations directory."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Read by offline mode only; env.py builds an async engine for online runs.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url.replace("%", "%%"))
    return cfg


# PUBLIC_INTERFACE
def main(argv: Sequence[str] | None = None) -> None:
    """Dispatch `<command> [args...]` to Alembic; exits with status 2 on an unknown command."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.exit(f"usage: run_migrations <{'|'.join(COMMANDS)}> [args...]")

    name, rest = args[0], args[1:]
    if name not in COMMANDS:
        logger.error("Unsupported Alembic command: %s", name)
        sys.exit(2)

    func, defaults = COMMANDS[name]
    func(build_config(), *(rest or defaults))


if __name__ == "__main__":
    main()
