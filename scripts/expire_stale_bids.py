#!/usr/bin/env python3
"""
Expire Stale Bids

Eagerly expires pending and countered bids that have outlived the bid TTL.
Bids also expire lazily whenever they are read or acted on; this job is for
keeping listings tidy on products nobody is looking at.

Usage:
    python expire_stale_bids.py tomatoes-organic-001 onions-red-002
    python expire_stale_bids.py --dry-run tomatoes-organic-001
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.bid import Bid
from domain.errors import ConflictError, StateError
from services.config import load_settings
from services.negotiation_service import NegotiationService

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Per-product counts from one sweep."""

    expired: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, int] = field(default_factory=dict)


def find_stale_bids(service: NegotiationService, product_id: str, now: datetime) -> List[Bid]:
    """Active bids on a product that are past the TTL (read without side effects)."""

    return [bid for bid in service.store.list_by_product(product_id) if service.lifecycle.is_expired(bid, now)]


def expire_stale_bids(
    service: NegotiationService,
    product_ids: Iterable[str],
    *,
    dry_run: bool = False,
) -> SweepReport:
    """
    Expire stale bids on each product.

    Returns:
        SweepReport with the number of bids expired (or that would be, on a
        dry run) per product, and the number skipped because they kept
        changing underneath the sweep.
    """

    now = service.now()
    report = SweepReport()
    for product_id in product_ids:
        stale = find_stale_bids(service, product_id, now)
        skipped = 0
        if not dry_run:
            for bid in list(stale):
                try:
                    service.expire_bid(bid.bid_id)
                except StateError:
                    # Settled by one of its parties since it was read.
                    stale.remove(bid)
                except ConflictError as e:
                    logger.warning(
                        f"Skipping bid {bid.bid_id}: {e.message}",
                        extra={"bid_id": str(bid.bid_id), "product_id": product_id, "code": e.code},
                    )
                    stale.remove(bid)
                    skipped += 1
        report.expired[product_id] = len(stale)
        report.skipped[product_id] = skipped
    return report


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Expire stale bids in the Supabase bid ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Expire stale bids on two products
  python expire_stale_bids.py tomatoes-organic-001 onions-red-002

  # Only report what would expire
  python expire_stale_bids.py --dry-run tomatoes-organic-001
        """
    )

    parser.add_argument(
        "product_ids",
        nargs="+",
        help="Product listings to sweep"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report stale bids without expiring them"
    )

    args = parser.parse_args()

    try:
        from repositories.client import get_supabase
        from repositories.supabase_bid_store import SupabaseBidStore

        settings = load_settings()
        service = NegotiationService(
            SupabaseBidStore(get_supabase()),
            settings.lifecycle(),
            max_attempts=settings.max_cas_attempts,
        )

        print(f"Bid TTL: {settings.bid_ttl}")
        print(f"Products: {len(args.product_ids)}")
        print()

        report = expire_stale_bids(service, args.product_ids, dry_run=args.dry_run)

        print("=" * 60)
        print("STALE BIDS (DRY RUN)" if args.dry_run else "EXPIRED BIDS")
        print("=" * 60)
        for product_id, count in report.expired.items():
            skipped = report.skipped.get(product_id, 0)
            print(f"  {product_id}: {count}" + (f" ({skipped} skipped, concurrent modification)" if skipped else ""))
        print(f"Total: {sum(report.expired.values())}")
        print(f"Skipped: {sum(report.skipped.values())}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
