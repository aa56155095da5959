#!/usr/bin/env python3
"""
Reconcile Stuck Orders Script

Finds orders still unpaid locally while the gateway may already hold a
captured payment (callback lost, webhook not delivered) and applies them.
Also re-creates print jobs missing for paid file orders.

Usage:
    python scripts/reconcile_stuck_orders.py [--dry-run] [--minutes N] [--limit N]

Options:
    --dry-run     Print what would be repaired without making changes
    --minutes N   Only orders created more than N minutes ago (default: 5)
    --limit N     Maximum orders to check (default: 100)
"""
import os
import sys
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PAYMENT_FAILURE_GRACE_HOURS, RECONCILE_BATCH_LIMIT, RECONCILE_MIN_AGE_MINUTES


def main(argv=None):
    parser = argparse.ArgumentParser(description='Reconcile unpaid orders with Razorpay')
    parser.add_argument('--dry-run', action='store_true', help='Print what would be done without changes')
    parser.add_argument('--minutes', type=int, default=RECONCILE_MIN_AGE_MINUTES,
                        help=f'Only orders older than N minutes (default: {RECONCILE_MIN_AGE_MINUTES})')
    parser.add_argument('--limit', type=int, default=RECONCILE_BATCH_LIMIT,
                        help=f'Maximum orders to check (default: {RECONCILE_BATCH_LIMIT})')
    args = parser.parse_args(argv)

    print("=== Stuck Order Reconciliation ===")
    print(f"Mode: {'DRY RUN' if args.dry_run else 'LIVE'}")
    print(f"Older than: {args.minutes} minutes")
    print()

    # Need Flask app context for database + gateway client
    from app import create_app
    from services.reconciliation import engine_for_request
    app = create_app()

    with app.test_request_context():
        summary = engine_for_request().sweep_pending_orders(
            min_age_minutes=args.minutes,
            limit=args.limit,
            failure_grace_hours=PAYMENT_FAILURE_GRACE_HOURS,
            dry_run=args.dry_run,
        )

    print("=== Summary ===")
    print(f"Checked: {summary['checked']}")
    print(f"Completed: {summary['completed']}")
    print(f"Still pending: {summary['pending']}")
    print(f"All attempts failed: {summary['failed']} (marked failed: {summary['marked_failed']})")
    print(f"Print jobs created: {summary['print_jobs_created']}")
    print(f"Errors: {summary['errors']}")

    if args.dry_run and summary['completed'] > 0:
        print()
        print("Run without --dry-run to apply repairs")

    return 1 if summary['errors'] else 0


if __name__ == '__main__':
    sys.exit(main())
