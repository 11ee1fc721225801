"""
Command line wrapper for the chart engines. Every subcommand prints JSON.

Usage:
    python -m tongshu.run bazi --birth-date 1990-05-15 --hour-index 5 --gender m
    python -m tongshu.run bazi --birth-date 1990-05-15 --birth-time 09:30 \
        --longitude 108.37 --gender f [--annual 2026]
    python -m tongshu.run bazi --birth-date 1990-04-21 --calendar lunar --hour-index 5 --gender m
    python -m tongshu.run terms --year 2024 [--method linear]
    python -m tongshu.run lunar --year 2023
    python -m tongshu.run lunar --from-solar 2024-02-10
    python -m tongshu.run lunar --to-solar 2023-02-01 [--leap]
    python -m tongshu.run flying-stars --year 2024 [--annual]
    python -m tongshu.run life-gua --year 1990 --gender m
    python -m tongshu.run hexagram [--lines 789687] [--seed 7] [--day-stem 甲] [--question 事业]
    python -m tongshu.run ziwei --birth-date 1990-05-15 --hour-index 5 --gender m
"""

import argparse
import json
import logging
import random
import sys
from datetime import date, datetime

from tongshu import bazi, fengshui, hexagram, lunar, ziwei
from tongshu.config import SOLAR_TERM_METHODS, get_settings
from tongshu.errors import InvalidInput, TongshuError
from tongshu.solar_terms import apply_lmt, compute_solar_terms

logger = logging.getLogger("tongshu")


def _parse_ymd(value: str, field: str) -> tuple:
    try:
        y, m, d = (int(part) for part in value.split("-"))
    except ValueError:
        raise InvalidInput(field, f"expected YYYY-MM-DD, got {value!r}")
    return y, m, d


def _parse_date(value: str, field: str) -> date:
    y, m, d = _parse_ymd(value, field)
    try:
        return date(y, m, d)
    except ValueError as e:
        raise InvalidInput(field, str(e))


def _resolve_birth(args) -> tuple:
    """(year, month, day, hour_index) from --birth-date plus --hour-index or --birth-time."""
    year, month, day = _parse_ymd(args.birth_date, "birth-date")
    if args.hour_index is not None:
        return year, month, day, args.hour_index
    if args.birth_time is None:
        raise InvalidInput("birth-time", "either --hour-index or --birth-time is required")

    try:
        hh, mm = (int(part) for part in args.birth_time.split(":"))
    except ValueError:
        raise InvalidInput("birth-time", f"expected HH:MM, got {args.birth_time!r}")
    if args.calendar == "lunar":
        return year, month, day, bazi.hour_index_for(hh)

    clock = datetime.combine(_parse_date(args.birth_date, "birth-date"), datetime.min.time())
    clock = clock.replace(hour=hh, minute=mm)
    if args.longitude is not None:
        clock = apply_lmt(clock, args.longitude)
        logger.info("LMT corrected birth time: %s", clock.isoformat())
    return clock.year, clock.month, clock.day, bazi.hour_index_for(clock.hour)


def cmd_bazi(args) -> dict:
    year, month, day, hour_index = _resolve_birth(args)
    request = bazi.ChartRequest(year, month, day, hour_index, args.gender,
                                calendar_type=args.calendar, leap_month=args.leap_month)
    chart = bazi.compute_chart(request)
    result = chart.to_dict()
    if args.annual is not None:
        result["annual"] = bazi.annual_interactions(chart, args.annual)
    return result


def cmd_terms(args) -> dict:
    terms = compute_solar_terms(args.year, method=args.method)
    return {"year": args.year, "method": args.method or get_settings().solar_term_method,
            "terms": [t.to_dict() for t in terms]}


def cmd_lunar(args) -> dict:
    if args.from_solar:
        return lunar.solar_to_lunar(_parse_date(args.from_solar, "from-solar")).to_dict()
    if args.to_solar:
        y, m, d = _parse_ymd(args.to_solar, "to-solar")
        solar = lunar.lunar_to_solar(y, m, d, leap=args.leap)
        return {"lunar": {"year": y, "month": m, "day": d, "leap": args.leap},
                "solar": solar.isoformat()}
    if args.year is None:
        raise InvalidInput("year", "one of --year, --from-solar or --to-solar is required")
    return lunar.lunar_year(args.year).to_dict()


def cmd_flying_stars(args) -> dict:
    if args.annual:
        return fengshui.annual_flying_stars(args.year).to_dict()
    return fengshui.flying_stars(args.year).to_dict()


def cmd_life_gua(args) -> dict:
    gua = fengshui.life_gua(args.year, args.gender)
    result = gua.to_dict()
    if args.sitting is not None:
        result["house_match"] = fengshui.house_match(gua, args.sitting).to_dict()
    return result


def cmd_hexagram(args) -> dict:
    if args.lines:
        values = [int(ch) for ch in args.lines if ch.isdigit()]
        reading = hexagram.hexagram_from_lines(values, day_stem=args.day_stem, question=args.question)
    else:
        reading = hexagram.cast_hexagram(random.Random(args.seed),
                                         day_stem=args.day_stem, question=args.question)
    return reading.to_dict()


def cmd_ziwei(args) -> dict:
    year, month, day, hour_index = _resolve_birth(args)
    if args.calendar == "lunar":
        # Validates the lunar date against the month table
        lunar.lunar_to_solar(year, month, day, leap=args.leap_month)
        birth = lunar.LunarDate(year, month, day, args.leap_month)
    else:
        birth = lunar.solar_to_lunar(_parse_date(f"{year}-{month}-{day}", "birth-date"))
    return ziwei.compute_ziwei(birth, hour_index, args.gender).to_dict()


def _add_birth_arguments(parser):
    parser.add_argument("--birth-date", required=True, dest="birth_date")
    hour = parser.add_mutually_exclusive_group()
    hour.add_argument("--hour-index", dest="hour_index", type=int, choices=range(12))
    hour.add_argument("--birth-time", dest="birth_time")
    parser.add_argument("--longitude", type=float, default=None)
    parser.add_argument("--gender", required=True, choices=["m", "f"])
    parser.add_argument("--calendar", default="solar", choices=list(bazi.CALENDAR_TYPES))
    parser.add_argument("--leap-month", dest="leap_month", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tongshu", description="Compute Chinese calendrical charts.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("bazi", help="four pillars chart")
    _add_birth_arguments(p)
    p.add_argument("--annual", type=int, default=None, help="also report this year's interactions")
    p.set_defaults(func=cmd_bazi)

    p = sub.add_parser("terms", help="24 solar terms of a year")
    p.add_argument("--year", required=True, type=int)
    p.add_argument("--method", choices=list(SOLAR_TERM_METHODS), default=None)
    p.set_defaults(func=cmd_terms)

    p = sub.add_parser("lunar", help="lunar calendar conversion")
    p.add_argument("--year", type=int, default=None)
    p.add_argument("--from-solar", dest="from_solar")
    p.add_argument("--to-solar", dest="to_solar")
    p.add_argument("--leap", action="store_true")
    p.set_defaults(func=cmd_lunar)

    p = sub.add_parser("flying-stars", help="nine palace flying stars")
    p.add_argument("--year", required=True, type=int)
    p.add_argument("--annual", action="store_true", help="use the annual star instead of the period star")
    p.set_defaults(func=cmd_flying_stars)

    p = sub.add_parser("life-gua", help="life gua and eight mansion directions")
    p.add_argument("--year", required=True, type=int)
    p.add_argument("--gender", required=True, choices=["m", "f"])
    p.add_argument("--sitting", default=None, help="house sitting direction, e.g. N or SW")
    p.set_defaults(func=cmd_life_gua)

    p = sub.add_parser("hexagram", help="six line hexagram")
    p.add_argument("--lines", default=None, help="six values 6-9, bottom line first")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--day-stem", dest="day_stem", default=None)
    p.add_argument("--question", default=None, choices=list(hexagram.USE_GODS))
    p.set_defaults(func=cmd_hexagram)

    p = sub.add_parser("ziwei", help="zi wei dou shu chart")
    _add_birth_arguments(p)
    p.set_defaults(func=cmd_ziwei)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        level = logging.DEBUG if args.verbose else get_settings().log_level
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        result = args.func(args)
    except TongshuError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
