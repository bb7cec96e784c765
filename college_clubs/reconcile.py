"""Recompute cached membership data from the authoritative club member sets.

Fixes ``clubs.member_count`` and rebuilds ``user_joined_clubs`` so that a
user lists exactly the active clubs whose member set contains them. The
member sets themselves are never modified. Safe to run any number of
times; a second run reports no changes.

Usage::

    python -m college_clubs.reconcile [--dry-run]
"""

import argparse
import logging
from dataclasses import asdict, dataclass, field

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from .models import Club, club_members, user_joined_clubs

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    clubs_checked: int = 0
    member_counts_fixed: int = 0
    back_references_added: int = 0
    back_references_removed: int = 0
    # Clubs whose head is missing from the member set; reported, not repaired.
    heads_outside_members: list[int] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.member_counts_fixed or self.back_references_added or self.back_references_removed)

    def as_dict(self) -> dict:
        return asdict(self)


def reconcile(db: Session, dry_run: bool = False) -> ReconcileReport:
    report = ReconcileReport(dry_run=dry_run)

    clubs = db.execute(select(Club).order_by(Club.id)).scalars().all()
    active_ids = {club.id for club in clubs if club.is_active}
    for club in clubs:
        report.clubs_checked += 1
        actual = len(club.members)
        if club.member_count != actual:
            logger.info("Club %s member_count %s -> %s", club.id, club.member_count, actual)
            report.member_counts_fixed += 1
            if not dry_run:
                club.member_count = actual
        if club.club_head_id is not None and not club.has_member(club.club_head_id):
            report.heads_outside_members.append(club.id)
    if not dry_run:
        db.flush()

    expected = {
        (row.user_id, row.club_id)
        for row in db.execute(select(club_members.c.user_id, club_members.c.club_id))
        if row.club_id in active_ids
    }
    existing = {
        (row.user_id, row.club_id)
        for row in db.execute(select(user_joined_clubs.c.user_id, user_joined_clubs.c.club_id))
    }
    missing = sorted(expected - existing)
    stale = sorted(existing - expected)
    report.back_references_added = len(missing)
    report.back_references_removed = len(stale)

    if not dry_run:
        if missing:
            db.execute(
                insert(user_joined_clubs),
                [{"user_id": user_id, "club_id": club_id} for user_id, club_id in missing],
            )
        for user_id, club_id in stale:
            db.execute(
                delete(user_joined_clubs).where(
                    user_joined_clubs.c.user_id == user_id,
                    user_joined_clubs.c.club_id == club_id,
                )
            )
        db.flush()
        # Loaded joined_clubs collections no longer match the table.
        db.expire_all()

    if report.heads_outside_members:
        logger.warning("Clubs with a head outside their member set: %s", report.heads_outside_members)
    logger.info(
        "Reconciliation %s: %s clubs, %s counts fixed, %s back-references added, %s removed",
        "dry run" if dry_run else "applied",
        report.clubs_checked,
        report.member_counts_fixed,
        report.back_references_added,
        report.back_references_removed,
    )
    return report


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute club member counts and joined-club back-references")
    parser.add_argument("--dry-run", action="store_true", help="Report differences without writing them")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    from .db import Base, engine, session_scope
    from .main import configure_logging

    args = _parse_args(argv)
    configure_logging()
    Base.metadata.create_all(engine)
    with session_scope() as session:
        report = reconcile(session, dry_run=args.dry_run)
    for key, value in report.as_dict().items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
