# rental_lifecycle/cli/__main__.py
from __future__ import annotations

import argparse
from datetime import date

from ..db import Base, SessionLocal, engine
from ..logging_config import configure_logging
from ..services.lifecycle_service import LifecycleService
from .seed_demo import seed_demo


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="rental_lifecycle")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init-db", help="create tables from model metadata (dev only; use alembic elsewhere)")

    seed = sub.add_parser("seed-demo")
    seed.add_argument("--landlord-email", default="landlord@demo.local")
    seed.add_argument("--tenant-email", default="tenant@demo.local")
    seed.add_argument("--monthly-rent", type=float, default=1500.0)
    seed.add_argument("--no-sample-property", action="store_true")

    exp = sub.add_parser("expire-contracts")
    exp.add_argument("--as-of", type=date.fromisoformat, default=None)

    args = p.parse_args(argv)
    configure_logging()

    if args.cmd == "init-db":
        Base.metadata.create_all(engine)
        print({"ok": True})
    elif args.cmd == "seed-demo":
        out = seed_demo(
            landlord_email=args.landlord_email,
            tenant_email=args.tenant_email,
            monthly_rent=args.monthly_rent,
            create_sample_property=(not args.no_sample_property),
        )
        print(
            {
                "ok": True,
                "landlord_id": out.landlord_id,
                "tenant_id": out.tenant_id,
                "sample_property_id": out.property_id,
            }
        )
    elif args.cmd == "expire-contracts":
        db = SessionLocal()
        try:
            expired = LifecycleService(db).expire_contracts(as_of=args.as_of)
        finally:
            db.close()
        print({"ok": True, "expired": expired})


if __name__ == "__main__":
    main()
