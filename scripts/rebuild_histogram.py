import sys

import jobworth.models  # noqa: F401
from jobworth.db.database import Base, database_gateway, engine
from jobworth.dependencies import get_histogram_store
from jobworth.services.reconcile import HistogramReconciler
from jobworth.stats.authoritative import AuthoritativeStore

"""
CLI usage:
python -m scripts.rebuild_histogram [--dry-run]
Replays every stored evaluation into the score histogram and prints the drift
before and after. --dry-run only prints the current drift.
"""


def main():
    args = sys.argv[1:]
    if args not in ([], ["--dry-run"]):
        print("Usage: python -m scripts.rebuild_histogram [--dry-run]")
        sys.exit(1)
    Base.metadata.create_all(bind=engine)
    with database_gateway.session() as db:
        reconciler = HistogramReconciler(AuthoritativeStore(db), get_histogram_store())
        before = reconciler.drift_report()
        print(f"before: {before.as_dict()}")
        if args == ["--dry-run"]:
            return
        after = reconciler.rebuild()
        print(f"after:  {after.as_dict()}")


if __name__ == '__main__':
    main()
