#!/usr/bin/env python3
"""
Conditional Form Extractor - opens a form URL in a real browser and records
every field it can show, including fields revealed by earlier answers.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .browser import BrowserSession
from .config import BrowserConfig, DiscoveryConfig, load_config
from .engine import FormDiscoveryEngine
from .errors import ConfigError, FormDiscoveryError
from .logging_config import configure_logging
from .page import PlaywrightFormPage
from .storage import save_discovery

logger = logging.getLogger(__name__)


class ConditionalFormExtractor:
    def __init__(self, discovery_config: Optional[DiscoveryConfig] = None,
                 browser_config: Optional[BrowserConfig] = None):
        self.logger = logger
        self.discovery_config = discovery_config or DiscoveryConfig()
        self.browser_config = browser_config or BrowserConfig()

    async def extract_form_data(self, url: str) -> Dict[str, Any]:
        """Discover all fields on ``url`` and return a JSON-ready record."""
        async with BrowserSession(self.browser_config) as session:
            page = await session.open(url)

            try:
                page_title = await page.title()
                self.logger.info(f"Page title: {page_title}")
            except Exception as e:
                raise FormDiscoveryError("Page closed unexpectedly during navigation") from e

            form_page = PlaywrightFormPage(
                page,
                form_selector=self.browser_config.form_selector,
                settle_ms=self.browser_config.settle_ms,
                option_settle_ms=self.browser_config.option_settle_ms,
                field_settle_ms=self.browser_config.field_settle_ms,
                interaction_timeout=self.browser_config.interaction_timeout,
            )
            # Taken before any dummy data goes in
            html, is_form_html = None, False
            if self.browser_config.capture_form_html:
                html = await form_page.extract_form_html()
                is_form_html = html is not None
                if html is None:
                    self.logger.info("No forms found, using full page HTML")
                    html = await page.content()

            result = await FormDiscoveryEngine(self.discovery_config).discover(form_page)
            await session.save_debug_artifact(page, 'after_discovery')

            record = {
                'url': url,
                'page_title': page_title,
                'page_url': page.url,
                'timestamp': datetime.now().isoformat(),
            }
            if html is not None:
                record['html'] = html
                record['is_form_html'] = is_form_html
            record.update(result.to_dict())
            return record


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='form-discovery',
        description='Discover every field of a web form, including conditional ones'
    )
    parser.add_argument('url', help='Form or job posting URL (http:// or https://)')
    parser.add_argument('--config', help='JSON config file with "discovery" and "browser" sections')
    parser.add_argument('--output-dir', help='Directory for the JSON result')
    parser.add_argument('--max-iterations', type=int, help='Fill/re-snapshot rounds before giving up (default 5)')
    parser.add_argument('--option-cap', type=int, help='Largest select list to explore option by option (default 4)')
    parser.add_argument('--timeout', type=float, help='Stop discovery after this many seconds, keeping partial results')
    parser.add_argument('--headless', action='store_true', help='Run the browser without a window')
    parser.add_argument('--no-conditional', action='store_true',
                        help='Only record the fields visible on load; skip filling and option trials')
    parser.add_argument('--form-html', action='store_true',
                        help='Also store the cleaned form HTML (values and scripts removed) in the result')
    parser.add_argument('--click-apply', action='store_true', help='Click an "Apply" button before extracting')
    parser.add_argument('--debug', action='store_true', help='Verbose logging and debug screenshots')
    return parser


def resolve_configs(args: argparse.Namespace):
    discovery_config, browser_config = load_config(args.config)
    overrides = {}
    if args.max_iterations is not None:
        overrides['max_iterations'] = args.max_iterations
    if args.option_cap is not None:
        overrides['option_cardinality_cap'] = args.option_cap
    if args.timeout is not None:
        overrides['timeout'] = args.timeout
    if args.no_conditional:
        overrides['detect_conditional'] = False
    if overrides:
        discovery_config = replace(discovery_config, **overrides)
    if args.headless:
        browser_config.headless = True
    if args.click_apply:
        browser_config.click_apply_button = True
    if args.form_html:
        browser_config.capture_form_html = True
    if args.debug:
        browser_config.debug_artifacts = True
    if args.output_dir:
        browser_config.output_dir = args.output_dir
    return discovery_config, browser_config


def print_preview(fields: List[Dict[str, Any]], limit: int = 10) -> None:
    print("\n Fields Preview:")
    for i, field in enumerate(fields[:limit], 1):
        extra = ""
        if field.get('triggered_by'):
            extra = f" <- {field['triggered_by']}"
        elif field.get('conditional'):
            extra = f" (iteration {field.get('iteration')})"
        print(f"  {i}. {field['label'] or '<no label>'} ({field['type']}){extra}")
    if len(fields) > limit:
        print(f"  ... and {len(fields) - limit} more fields")


async def run(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging('form_discovery', level=logging.DEBUG if args.debug else logging.INFO)

    if not args.url.startswith(('http://', 'https://')):
        logger.error(f"Invalid URL provided: {args.url}. URL must start with http:// or https://")
        return 1

    try:
        discovery_config, browser_config = resolve_configs(args)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    extractor = ConditionalFormExtractor(discovery_config, browser_config)
    try:
        record = await extractor.extract_form_data(args.url)
    except Exception as e:
        logger.error(f"Error extracting form data: {e}")
        return 1

    try:
        output_path = save_discovery(record, browser_config.output_dir)
    except OSError as e:
        logger.error(f"Could not save results to {browser_config.output_dir}: {e}")
        return 1

    summary = record['summary']
    print(f" Form data extracted and saved to {output_path}")
    print(f" Found {summary['total_fields']} fields ({summary['conditional_fields']} conditional, "
          f"{summary['triggered_fields']} triggered by a choice)")
    if summary['bounded']:
        print(f" Stopped after {summary['rounds']} rounds: iteration limit reached")
    if summary['timed_out']:
        print(" Stopped early: timeout reached, results are partial")
    print_preview(record['fields'])
    return 0


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
