from __future__ import annotations

import argparse
import json
import sys

from loguru import logger

from .config import config_path, load_config
from .engine import find_agencies
from .errors import AgencySearchError
from .models import Certification, SearchCriteria, VeteranStatus


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="agency-search",
        description="Find federal contracting offices that buy in your industry",
    )
    parser.add_argument("--config", help="Path to config.toml")
    parser.add_argument("--naics", help="NAICS code (2-6 digits)")
    parser.add_argument("--zip", dest="zip_code", help="ZIP code of the business")
    parser.add_argument(
        "--certification",
        choices=[item.value for item in Certification],
        default=Certification.NONE.value,
        help="Business certification / set-aside type",
    )
    parser.add_argument(
        "--veteran",
        choices=[item.value for item in VeteranStatus],
        default=VeteranStatus.NOT_APPLICABLE.value,
        help="Veteran ownership status",
    )
    parser.add_argument("--psc", help="Product/service code, used when no NAICS is given")
    parser.add_argument("--exclude-dod", action="store_true", help="Drop defense offices")
    parser.add_argument("--verbose", action="store_true", help="Log per-page detail")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    config = load_config(config_path(args.config))
    criteria = SearchCriteria(
        certification=Certification(args.certification),
        naics_code=args.naics,
        zip_code=args.zip_code,
        veteran_status=VeteranStatus(args.veteran),
        psc_code=args.psc,
        exclude_dod=args.exclude_dod,
    )

    try:
        result = find_agencies(criteria, config)
    except AgencySearchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result.as_payload(), indent=2))


if __name__ == "__main__":
    main()
