"""
Preview a promo decision for a pet
==================================

Operator tool: runs the selection in FORCED_PREVIEW mode (consent, targeting,
tag exclusion and frequency caps are bypassed; the vet veto and the
description check still apply) against the configured database.

Usage:
    python backend/scripts/preview_selection.py PET_ID OWNER_ID [--context home_feed] [--service-type promo]
    python backend/scripts/preview_selection.py PET_ID OWNER_ID --normal
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

# Add backend to path
BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR))

from vetpromo.config import settings
from vetpromo.factory import get_selection_service
from vetpromo.recommender.context_rules import CONTEXT_RULES
from vetpromo.recommender.models import DecisionMode
from vetpromo.schemas.candidate import ServiceType

logger = logging.getLogger("preview_selection")


async def preview(pet_id: str, owner_id: str, context: str, service_type: str, mode: DecisionMode) -> int:
    service = get_selection_service()
    selection = await service.select(
        pet_id,
        owner_id,
        context=context,
        service_type=service_type,
        mode=mode,
    )

    if selection is None:
        print(f"No recommendation for pet {pet_id} in {context} (mode={mode.value})")
        return 1

    print(json.dumps(asdict(selection), indent=2, default=lambda v: getattr(v, "value", str(v))))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Preview the promo decision for a pet")
    parser.add_argument("pet_id", help="Pet ID")
    parser.add_argument("owner_id", help="Owner user ID")
    parser.add_argument(
        "--context",
        default="home_feed",
        help=f"Presentation context (known: {', '.join(CONTEXT_RULES)})"
    )
    parser.add_argument(
        "--service-type",
        default=None,
        choices=[s.value for s in ServiceType],
        help="Service type (default: the context's)"
    )
    parser.add_argument(
        "--normal",
        action="store_true",
        help="Run the normal owner-facing decision instead of the forced preview"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    mode = DecisionMode.NORMAL if args.normal else DecisionMode.FORCED_PREVIEW
    logger.info(f"Previewing pet {args.pet_id} for owner {args.owner_id} (mode={mode.value})")
    return asyncio.run(preview(args.pet_id, args.owner_id, args.context, args.service_type, mode))


if __name__ == "__main__":
    sys.exit(main())
