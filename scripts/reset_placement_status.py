#!/usr/bin/env python3
"""
Reset a college's students to not_placed for a new placement season.

Usage: python scripts/reset_placement_status.py <COLLEGE_CODE> [--batch 2024]
"""
import argparse
import sys
sys.path.insert(0, '.')

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import utcnow


def reset_placement_status(college_code: str, batch: int = None) -> int:
    """
    Returns:
        Number of students reset
    """
    college = get_collection(COLLECTIONS["colleges"]).find_one({"code": college_code.strip().upper()})
    if not college:
        raise LookupError(f"College {college_code} not found")

    query = {"college": college["_id"], "is_deleted": {"$ne": True}}
    if batch:
        query["batch"] = batch
    result = get_collection(COLLECTIONS["students"]).update_many(query, {"$set": {
        "placement_status": "not_placed",
        "placement_details": None,
        "updated_at": utcnow(),
    }})

    placed = get_collection(COLLECTIONS["students"]).count_documents({
        "college": college["_id"], "is_deleted": {"$ne": True}, "placement_status": "placed"
    })
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": college["_id"]}, {"$set": {"stats.placed_students": placed}}
    )
    return result.modified_count


def main():
    parser = argparse.ArgumentParser(description="Reset placement status for a college")
    parser.add_argument("college_code")
    parser.add_argument("--batch", type=int, default=None)
    args = parser.parse_args()

    try:
        count = reset_placement_status(args.college_code, args.batch)
    except LookupError as e:
        print(f"❌ {e}")
        sys.exit(1)
    print(f"✅ Reset {count} students of {args.college_code.upper()}")


if __name__ == "__main__":
    main()
