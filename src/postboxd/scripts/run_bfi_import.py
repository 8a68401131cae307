"""
Run a BFI import from the command line.

Usage:
    python -m postboxd.scripts.run_bfi_import            # full import (PDF + changes)
    python -m postboxd.scripts.run_bfi_import --changes  # programme changes only

Exits 0 when the run succeeded or was degraded, 1 when it failed.
"""

import argparse
import asyncio
import logging
import sys

from postboxd.scrapers.bfi_pdf import ImportResult, run_bfi_import, run_programme_changes_import

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

RULE = "=" * 60


def print_result(result: ImportResult) -> None:
    print()
    print(RULE)
    print("IMPORT RESULTS")
    print(RULE)
    print(f"Status: {result.status.upper()}")
    print(f"Duration: {result.duration_ms}ms")
    print()

    if result.pdf_info:
        print("PDF Source:")
        print(f"  Label: {result.pdf_info['label']}")
        print(f"  Hash: {result.pdf_info['content_hash'][:16]}...")
        print(f"  Screenings: {result.pdf_screenings}")

    if result.changes_info:
        print("Programme Changes:")
        print(f"  Last Updated: {result.changes_info.get('last_updated') or 'Unknown'}")
        print(f"  Screenings: {result.changes_screenings}")

    print()
    print("Database Results:")
    print(f"  Added: {result.saved.added}")
    print(f"  Updated: {result.saved.updated}")
    print(f"  Failed: {result.saved.failed}")
    print(f"  Total Processed: {result.total_screenings}")

    if result.errors:
        print()
        print("Errors:")
        for i, (code, message) in enumerate(zip(result.error_codes, result.errors), start=1):
            print(f"  {i}. [{code}] {message}")

    print()
    print(RULE)


async def run(changes_only: bool) -> ImportResult:
    if changes_only:
        return await run_programme_changes_import("cli")
    return await run_bfi_import("cli")


def main() -> None:
    parser = argparse.ArgumentParser(description="Import BFI Southbank and BFI IMAX screenings.")
    parser.add_argument(
        "--changes",
        action="store_true",
        help="Only import the programme changes page (skip the guide PDF)",
    )
    args = parser.parse_args()

    print(RULE)
    print("BFI Import")
    print(f"Mode: {'Programme Changes Only' if args.changes else 'Full Import (PDF + Changes)'}")
    print(RULE)

    result = asyncio.run(run(args.changes))
    print_result(result)
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
