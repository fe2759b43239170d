import argparse
import getpass
import logging
import sys
from typing import List, Optional

import gspread

from ads_insights import pipeline
from ads_insights.config import load_settings
from ads_insights.credentials import ApiKeyStore, MissingApiKeyError
from ads_insights.sheets import SheetNotFoundError, open_workbook
from ads_insights.vision_api import VisionClient

logger = logging.getLogger("ads_insights")

COMMANDS = {
    "authorize": "Open the spreadsheet once to trigger authentication",
    "analyse": "Annotate images, then aggregate performance per object/label/word",
    "analyse-images": "Only annotate images and write objects/labels/text columns",
    "analyse-performance": "Only aggregate performance into the analysis sheets",
    "reset-data": "Clear the annotation columns and delete the analysis sheets",
    "reset-key": "Forget the stored Vision API key",
}


def _prompt(message: str) -> Optional[str]:
    if not sys.stdin.isatty():
        return None
    try:
        return getpass.getpass(message)
    except (EOFError, KeyboardInterrupt):
        return None


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="ads-insights", description="Image ads performance analysis")
    ap.add_argument("command", choices=list(COMMANDS), help="; ".join(f"{k}: {v}" for k, v in COMMANDS.items()))
    ap.add_argument("--spreadsheet", default=None, help="Google Sheets key/URL or a local .xlsx path (env ADS_SPREADSHEET)")
    ap.add_argument("--sheet", dest="data_sheet", default=None, help="Ads data sheet name (default: 'Ads Sample Data')")
    ap.add_argument("--credentials-file", dest="key_file", default=None, help="Where the API key is stored")
    ap.add_argument("--service-account", dest="service_account_file", default=None, help="Service account JSON for Google Sheets")
    ap.add_argument("--api-key", default=None, help="Vision API key to store before running")
    ap.add_argument("--env-file", default=None, help="Optional .env file")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    try:
        settings = load_settings(
            args.env_file,
            spreadsheet=args.spreadsheet,
            data_sheet=args.data_sheet,
            key_file=args.key_file,
            service_account_file=args.service_account_file,
        )
        key_store = ApiKeyStore(settings.key_file, settings.api_key_env)
        if args.api_key:
            key_store.set(args.api_key)

        if args.command == "reset-key":
            removed = pipeline.reset_api_key(key_store)
            logger.info("API key %s", "removed" if removed else "was not stored")
            return 0
        if args.command == "authorize":
            pipeline.authorize(settings)
            return 0

        workbook = open_workbook(settings)
        if args.command == "analyse":
            run = pipeline.analyse_images_performance(workbook, key_store, settings, prompt=_prompt)
            return 0 if run.ok else 1
        if args.command == "analyse-images":
            client = VisionClient.from_settings(key_store.ensure(_prompt), settings)
            run = pipeline.analyse_ads_images(workbook, client, settings)
            return 0 if run.ok else 1
        if args.command == "analyse-performance":
            pipeline.output_performance_analyses(workbook, settings)
            return 0
        if args.command == "reset-data":
            pipeline.reset_data(workbook, settings)
            return 0
    except (MissingApiKeyError, SheetNotFoundError, FileNotFoundError, ValueError,
            gspread.SpreadsheetNotFound, gspread.exceptions.APIError) as e:
        logger.error("%s", e)
        return 2
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
