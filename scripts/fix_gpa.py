#!/usr/bin/env python3
"""
GPA Backfill Script

Recomputes the normalized (0-4) GPA of applicants whose stored gpa is
missing or out of range, from the education entries of their profile.
Usage: python scripts/fix_gpa.py [--dry-run]
"""
import argparse
import sys
sys.path.insert(0, '.')

from bson import ObjectId

from app.db.mongodb import COLLECTIONS, get_collection
from app.utils.gpa import best_gpa


def needs_fix(gpa) -> bool:
    if gpa is None:
        return True
    try:
        return not 0 <= float(gpa) <= 4
    except (TypeError, ValueError):
        return True


def fix_gpas(collection, dry_run: bool = False) -> dict:
    """
    Returns:
        {"checked": n, "updated": n, "unparseable": n}
    """
    stats = {"checked": 0, "updated": 0, "unparseable": 0}
    cursor = collection.find(
        {"is_deleted": {"$ne": True}, "extracted_data": {"$ne": None}},
        {"gpa": 1, "extracted_data.education": 1},
    )
    for doc in cursor:
        if not needs_fix(doc.get("gpa")):
            continue
        stats["checked"] += 1

        gpa = best_gpa((doc.get("extracted_data") or {}).get("education"))
        if gpa is None:
            stats["unparseable"] += 1
            if doc.get("gpa") is None:
                continue
        if not dry_run:
            collection.update_one({"_id": ObjectId(doc["_id"])}, {"$set": {"gpa": gpa}})
        stats["updated"] += 1

    return stats


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill normalized applicant GPAs")
    parser.add_argument("--dry-run", action="store_true", help="report without writing")
    args = parser.parse_args()

    stats = fix_gpas(get_collection(COLLECTIONS["applicants"]), dry_run=args.dry_run)
    print(f"Checked {stats['checked']} applicants, updated {stats['updated']}, "
          f"{stats['unparseable']} without a parseable GPA"
          + (" (dry run)" if args.dry_run else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
