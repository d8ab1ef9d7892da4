#!/usr/bin/env python3
"""
Create the rowing_samples table and its indexes in the DATABASE_URL database.

Safe to re-run: statements are idempotent, and duplicated report triples left
by older deployments are collapsed to their oldest row before the unique
index is created.
"""
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import rowtrack.datastore_pg as pg  # noqa: E402


def main() -> int:
    if not os.environ.get("DATABASE_URL"):
        print("DATABASE_URL environment variable not set")
        return 1
    pg.ensure_schema()
    print(f"Schema for {pg.TABLE} is up to date")
    return 0


if __name__ == "__main__":
    sys.exit(main())
