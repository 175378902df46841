"""Run Alembic migrations for the scheduling database.

Usage:
    python scripts/migrate.py                    upgrade to head
    python scripts/migrate.py down [revision]    downgrade (default: one step)
    python scripts/migrate.py create <message>   autogenerate a revision
"""

import sys

from alembic import command
from alembic.config import Config

ALEMBIC_INI = "alembic.ini"


def run(action: str, *args: str) -> None:
    """Run one Alembic command, exiting non-zero on failure."""
    alembic_cfg = Config(ALEMBIC_INI)

    try:
        if action == "upgrade":
            command.upgrade(alembic_cfg, "head")
        elif action == "down":
            command.downgrade(alembic_cfg, args[0] if args else "-1")
        elif action == "create":
            command.revision(alembic_cfg, message=" ".join(args), autogenerate=True)
        else:
            print(__doc__)
            sys.exit(2)
        print(f"✓ {action} completed successfully!")
    except Exception as e:
        print(f"✗ {action} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) == 1:
        run("upgrade")
    elif sys.argv[1] == "create" and len(sys.argv) < 3:
        print(__doc__)
        sys.exit(2)
    else:
        run(sys.argv[1], *sys.argv[2:])
