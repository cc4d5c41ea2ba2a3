"""
CLI wrapper for compute_chart().

Usage:
    bazi-chart --birth-date YYYY-MM-DD --birth-time HH:MM --gender GENDER \
        (--timezone ZONE | --latitude LAT --longitude LON) \
        [--rounding {ceil,nearest,floor}] [--as-of YYYY-MM-DD] [--verbose]
"""

import argparse
import json
import logging
import sys
from datetime import datetime

from bazi_compute.astro_calendar import resolve_timezone
from bazi_compute.create_chart import compute_chart
from bazi_compute.errors import BaziError, InvalidBirthDataError
from bazi_compute.luck import age_on, annual_cycle_for_year, current_luck_cycle


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute a BaZi chart with luck and annual cycles.")
    parser.add_argument("--birth-date", required=True, dest="birth_date")
    parser.add_argument("--birth-time", required=True, dest="birth_time")
    parser.add_argument("--gender", required=True, choices=["male", "female"])
    parser.add_argument("--timezone", default=None,
                        help="IANA zone name; detected from coordinates when omitted")
    parser.add_argument("--latitude", type=float, default=None)
    parser.add_argument("--longitude", type=float, default=None)
    parser.add_argument("--rounding", default="nearest", choices=["ceil", "nearest", "floor"])
    parser.add_argument("--as-of", dest="as_of", default=None,
                        help="YYYY-MM-DD; also report the luck and annual pillar active on this date")
    parser.add_argument("--verbose", action="store_true")
    return parser


def run(args) -> dict:
    tz_name = args.timezone
    if tz_name is None:
        if args.latitude is None or args.longitude is None:
            raise InvalidBirthDataError("Either --timezone or both --latitude and --longitude are required")
        tz_name = resolve_timezone(args.latitude, args.longitude)

    result = compute_chart(
        birth_date=args.birth_date,
        birth_time=args.birth_time,
        gender=args.gender,
        timezone=tz_name,
        rounding=args.rounding,
    )
    output = result.to_dict()

    if args.as_of:
        try:
            as_of = datetime.strptime(args.as_of, "%Y-%m-%d").date()
        except ValueError as exc:
            raise InvalidBirthDataError(f"--as-of must look like YYYY-MM-DD, got {args.as_of!r}") from exc
        age = age_on(result.birth_moment.date(), as_of)
        cycle = current_luck_cycle(result.luck.cycles, age)
        annual = annual_cycle_for_year(result.annual, as_of.year)
        output["as_of"] = {
            "date": as_of.isoformat(),
            "age": age,
            "luck_cycle": cycle.to_dict() if cycle else {},
            "annual_cycle": annual.to_dict() if annual else {},
        }

    return output


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        output = run(args)
    except BaziError as exc:
        print(json.dumps(exc.to_dict(), indent=2, ensure_ascii=False))
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
