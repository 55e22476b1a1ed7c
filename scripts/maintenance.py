#!/usr/bin/env python3
"""
Command-line maintenance for the durable store and the artifact cache.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the repository root to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from panchayat.artifacts.cache import ArtifactCache
from panchayat.core import config
from panchayat.core.db import health_check, init_db
from panchayat.core.kinds import KINDS


def main():
    parser = argparse.ArgumentParser(
        description="Durable store and artifact cache maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --check                     # Check store schema and configuration
  %(prog)s --init                      # Create missing tables
  %(prog)s --purge --older-than 86400  # Drop cached artifacts older than a day
  %(prog)s --invalidate LND-1A2B3C4D5E6F

Environment variables:
- DB_PATH=./data/panchayat.db (database location)
- ARTIFACT_CACHE_DIR=./data/artifacts (artifact cache location)
        """
    )

    parser.add_argument("--check", "-c", action="store_true", help="Check store schema and configuration")
    parser.add_argument("--init", action="store_true", help="Create the per-kind tables if missing")
    parser.add_argument("--purge", "-p", action="store_true", help="Delete cached artifacts")
    parser.add_argument("--older-than", type=float, default=None,
                        help="With --purge, only delete artifacts older than this many seconds")
    parser.add_argument("--invalidate", metavar="RECORD_ID", action="append", default=[],
                        help="Delete every cached format of a record (repeatable)")
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")

    args = parser.parse_args()

    if not (args.check or args.init or args.purge or args.invalidate):
        parser.error("Must specify at least one maintenance operation")

    collections = [kind.collection for kind in KINDS.values()]
    results = {}

    if args.init:
        config.ensure_db_directory()
        init_db(collections, config.DB_PATH)
        results["init"] = {"db_path": config.DB_PATH, "tables": collections}

    if args.check:
        results["check"] = {
            "db_path": config.DB_PATH,
            "schema_ok": health_check(collections, config.DB_PATH),
            "config_issues": config.validate_generation_config(),
        }

    if args.purge or args.invalidate:
        cache = ArtifactCache(config.ARTIFACT_CACHE_DIR)
        if args.purge:
            results["purge"] = {"removed": cache.purge(args.older_than)}
        if args.invalidate:
            results["invalidate"] = {record_id: cache.invalidate(record_id) for record_id in args.invalidate}

    if args.json:
        print(json.dumps(results, indent=2, default=str))
    else:
        for operation, details in results.items():
            print(f"Operation: {operation}")
            for key, value in details.items():
                print(f"  {key}: {value}")

    check = results.get("check")
    if check and (not check["schema_ok"] or check["config_issues"]):
        sys.exit(1)


if __name__ == "__main__":
    main()
