"""
imeiwatch/cli.py
Command-line interface for imeiwatch.

USAGE:
  imeiwatch --file imeis.txt
  imeiwatch --imeis "359000000000001,359000000000002" --threshold 15
  imeiwatch --file imeis.txt --export-json relatorio.json --export-csv-dir ./relatorio
  imeiwatch --details 359000000000001

EXAMPLES:
  # Check a batch against a non-default lookup service
  imeiwatch --file imeis.txt --api-url http://tracker.local:3001

  # Narrow the offline window to one week before exporting
  imeiwatch --file imeis.txt --threshold 7 --export-csv-dir ./relatorio
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from imeiwatch import __version__
from imeiwatch.api import StatusAPI
from imeiwatch.config import ensure_config
from imeiwatch.errors import EmptyInput, InvalidFormat, LookupFailure, MissingDaysOffline
from imeiwatch.fields import format_key, format_value
from imeiwatch.report import build_report
from imeiwatch.report_export import export_to_json, write_csv_sheets

logger = logging.getLogger(__name__)

# ANSI colors
GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'imeiwatch',
        description = 'imeiwatch — IMEI connectivity status checker',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
BUCKETS:
  Online                  seen today
  Em Observação           1-2 days offline, or moved out of the offline window
  Offline                 3 days up to the threshold
  Não Encontrados         IMEIs the lookup service did not return
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--imeis', '-i',
        help    = 'IMEIs separated by comma or newline',
    )
    source.add_argument(
        '--file', '-f',
        type    = Path,
        help    = 'Text file with one IMEI per line (commas also accepted)',
    )
    source.add_argument(
        '--details', '-d',
        metavar = 'IMEI',
        help    = 'Show the raw detail payload of a single IMEI and exit',
    )
    parser.add_argument(
        '--threshold', '-t',
        type    = int,
        default = None,
        help    = 'Offline window in days (default: the batch maximum)',
    )
    parser.add_argument(
        '--api-url',
        default = None,
        help    = 'Lookup service URL (default: from imeiwatch_config.json)',
    )
    parser.add_argument(
        '--export-json',
        type    = Path,
        help    = 'Write the workbook export as JSON to this path',
    )
    parser.add_argument(
        '--export-csv-dir',
        type    = Path,
        help    = 'Write one CSV per sheet into this directory',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging',
    )
    parser.add_argument(
        '--version',
        action  = 'version',
        version = f'%(prog)s {__version__}',
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level   = log_level,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    config = ensure_config()
    api = StatusAPI(
        api_url     = args.api_url or config['api_url'],
        timeout_sec = config['timeout_sec'],
    )

    # ── DETAIL LOOKUP ────────────────────────────────────────
    if args.details:
        sys.exit(_show_details(api, args.details))

    # ── READ INPUT ───────────────────────────────────────────
    if args.file:
        if not args.file.exists():
            _print(f"{RED}Error: File not found: {args.file}{RESET}")
            sys.exit(1)
        raw = args.file.read_text(encoding='utf-8')
    else:
        raw = args.imeis

    threshold = args.threshold
    if threshold is None:
        threshold = config.get('default_threshold')

    # ── CHECK ────────────────────────────────────────────────
    if not api.client.is_available():
        _print(
            f"\n{RED}✗ Lookup service unavailable at {args.api_url or config['api_url']}.{RESET}\n"
            f"  Start the service or pass --api-url / set IMEIWATCH_API_URL.\n"
        )
        sys.exit(1)

    _step("Checking devices...")
    t0 = time.time()

    def progress(done, total):
        if not total:
            return
        pct = int((done / total) * 40)
        bar = '█' * pct + '░' * (40 - pct)
        sys.stdout.write(f"\r  [{bar}] {done * 100 // total}%")
        sys.stdout.flush()

    try:
        summary = api.run_check(raw, threshold=threshold, progress_cb=progress)
    except InvalidFormat as e:
        _print(f"{RED}Error: {e}{RESET}")
        sys.exit(1)
    except EmptyInput as e:
        _print(f"{RED}Error: {e}{RESET}")
        sys.exit(1)
    except (LookupFailure, MissingDaysOffline) as e:
        sys.stdout.write('\n')
        _print(f"{RED}Lookup failed: {e}{RESET}")
        sys.exit(1)
    except ValueError as e:
        _print(f"{RED}Error: {e}{RESET}")
        sys.exit(1)

    sys.stdout.write('\n')
    _ok(f"{summary['total_devices']} devices resolved in {_elapsed(t0)}")

    # ── SUMMARY ──────────────────────────────────────────────
    _print_summary(summary)

    # ── EXPORT ───────────────────────────────────────────────
    if args.export_json or args.export_csv_dir:
        report = build_report(api.batch, version=__version__)
        params = {'threshold': api.batch.threshold}
        if args.export_json:
            args.export_json.write_text(export_to_json(report, params), encoding='utf-8')
            _ok(f"JSON export → {args.export_json}")
        if args.export_csv_dir:
            paths = write_csv_sheets(report, args.export_csv_dir)
            _ok(f"{len(paths)} CSV sheets → {args.export_csv_dir}")


def _show_details(api: StatusAPI, imei: str) -> int:
    try:
        details = api.get_device_details(imei)
    except LookupFailure as e:
        _print(f"{RED}Lookup failed: {e}{RESET}")
        return 1
    if details is None:
        _print(f"{YELLOW}Details not found for IMEI {imei}.{RESET}")
        return 1

    for name, group in details['groups'].items():
        _print(f"\n{BOLD}{CYAN}{group['title']}{RESET}")
        for key, value in group['fields'].items():
            _print(f"  {format_key(key) + ':':<22} {format_value(value)}")

    if details['self_check']:
        _print(f"\n{BOLD}{CYAN}Self Check{RESET}")
        for item in details['self_check']:
            _print(f"  {item['label']:<22} {item['value']}")

    battery = details['battery']
    if battery:
        volts = battery['voltage_volts']
        volts_str = f"{volts:.2f}V" if volts is not None else '-'
        _print(f"\n  Battery: {battery['percentage']}% ({volts_str})")
    return 0


def _print_summary(summary):
    counts = summary['status_counts']
    _print(f"\n{BOLD}Threshold: {summary['threshold']} days "
           f"(max observed: {summary['max_days_offline']}){RESET}")
    _print(f"  {GREEN}Online        : {counts['Online']}{RESET}")
    _print(f"  {YELLOW}Em Observação : {counts['Em Observação']}{RESET}")
    _print(f"  {RED}Offline       : {counts['Offline']}{RESET}")
    _print(f"  Não encontrados: {summary['not_found_count']}")

    if summary['histogram']:
        _print(f"\n  Days offline:")
        for row in summary['histogram']:
            _print(f"    {row['range']:<12} {row['count']}")

    if summary['not_found']:
        _print(f"\n{YELLOW}Not found:{RESET}")
        for imei in summary['not_found']:
            _print(f"  {imei}")


# ── PRINT HELPERS ────────────────────────────────────────────

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)

def _elapsed(t0: float) -> str:
    s = time.time() - t0
    return f"{s:.1f}s" if s < 60 else f"{int(s//60)}m {int(s%60)}s"


if __name__ == '__main__':
    main()
