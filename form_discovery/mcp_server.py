#!/usr/bin/env python3
"""
MCP Server for Conditional Form Discovery
Provides one tool:
1. discover_form_fields - Discover every field of a form, including
   conditional fields revealed by earlier answers

This server implements the Model Context Protocol (MCP) specification
for integration with Claude Desktop and other MCP clients.
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import BrowserConfig, DiscoveryConfig
from .extractor import ConditionalFormExtractor
from .logging_config import configure_logging
from .storage import save_discovery

logger = logging.getLogger(__name__)

MAX_URLS = 5
TOOLS = ["discover_form_fields", "health_check"]

# Initialize FastMCP server
mcp = FastMCP("form-discovery-server")


def normalize_urls(url: Optional[str] = None, urls: Optional[List[str]] = None) -> List[str]:
    """Validate the url/urls arguments and return them as a list."""
    if urls and isinstance(urls, list):
        url_list = urls
    elif url and isinstance(url, str):
        url_list = [url]
    else:
        raise ValueError(f"Provide 'url' (string) or 'urls' (list of up to {MAX_URLS} URLs)")

    if len(url_list) > MAX_URLS:
        raise ValueError(f"Maximum of {MAX_URLS} URLs allowed per call")

    for u in url_list:
        if not u or not isinstance(u, str) or not u.startswith(('http://', 'https://')):
            raise ValueError(f"Invalid URL provided: {u}. URL must start with http:// or https://")
    return url_list


@mcp.tool()
async def discover_form_fields(
    url: Optional[str] = None,
    urls: Optional[List[str]] = None,
    max_iterations: int = 5,
    option_cardinality_cap: int = 4,
    detect_conditional: bool = True,
) -> Dict[str, Any]:
    """
    Discover every input field of one or more web forms, including conditional
    fields that only appear after other fields are filled in or an option is chosen.

    The form is filled with dummy values in a real browser but never submitted.

    Args:
        url: A single URL starting with http:// or https://
        urls: A list of URLs (max 5) to process in parallel
        max_iterations: Fill/re-check rounds before giving up (default 5)
        option_cardinality_cap: Largest dropdown to try option by option (default 4)
        detect_conditional: Set to false to record only the fields visible on load

    Returns:
        A summary plus one result per URL:
            {
              "status": "success|partial|error",
              "total_urls": 1,
              "succeeded": 1,
              "failed": 0,
              "results": [
                {
                  "status": "success",
                  "url": "https://...",
                  "page_title": "...",
                  "summary": { "total_fields": 6, "conditional_fields": 2, ... },
                  "fields": [ { "type": "text", "label": "First Name", ... } ],
                  "extracted_data_path": ".../discovery_....json"
                }
              ]
            }
    """
    try:
        url_list = normalize_urls(url, urls)
        discovery_config = DiscoveryConfig(
            max_iterations=max_iterations,
            option_cardinality_cap=option_cardinality_cap,
            detect_conditional=detect_conditional,
        )
        browser_config = BrowserConfig(headless=True)

        logger.info(f"Starting form discovery for {len(url_list)} URL(s)")

        # Concurrency limit (parallel but bounded); one browser per URL
        sem = asyncio.Semaphore(min(MAX_URLS, len(url_list)))

        async def discover_one(target_url: str) -> Dict[str, Any]:
            async with sem:
                try:
                    logger.info(f"Discovering fields for URL: {target_url}")
                    extractor = ConditionalFormExtractor(discovery_config, browser_config)
                    record = await extractor.extract_form_data(target_url)
                    output_path = save_discovery(record, browser_config.output_dir)
                    logger.info(f"Discovery complete for {target_url}. Fields: {record['summary']['total_fields']}")
                    return {
                        "status": "success",
                        "message": f"Discovered {record['summary']['total_fields']} form fields",
                        "url": target_url,
                        "page_title": record.get('page_title'),
                        "summary": record['summary'],
                        "fields": record['fields'],
                        "extracted_data_path": str(output_path),
                        "timestamp": record.get('timestamp')
                    }
                except Exception as e:
                    error_msg = f"Form discovery failed for {target_url}: {str(e)}"
                    logger.error(error_msg)
                    return {
                        "status": "error",
                        "message": error_msg,
                        "url": target_url,
                        "error_details": str(e)
                    }

        results = await asyncio.gather(*[discover_one(u) for u in url_list])

        success_count = sum(1 for r in results if r.get("status") == "success")
        error_count = len(results) - success_count
        overall_status = "success" if error_count == 0 else ("partial" if success_count > 0 else "error")

        return {
            "status": overall_status,
            "total_urls": len(url_list),
            "succeeded": success_count,
            "failed": error_count,
            "results": results
        }

    except Exception as e:
        error_msg = f"Form discovery failed: {str(e)}"
        logger.error(error_msg)
        return {
            "status": "error",
            "message": error_msg,
            "error_details": str(e),
            "results": []
        }


@mcp.tool()
async def health_check() -> Dict[str, Any]:
    """
    Check the health status of the form discovery server.

    Returns:
        A dictionary containing the server status and available tools
    """
    return {
        "status": "healthy",
        "server": "form-discovery-server",
        "version": __version__,
        "timestamp": datetime.now().isoformat(),
        "tools_available": TOOLS
    }


@mcp.resource("server://info")
def get_server_info() -> str:
    """Get information about the form discovery server."""
    return f"""# Form Discovery Server

Finds every input field of a web form, including fields that only appear
after other fields are answered.

## Available Tools:

### 1. discover_form_fields
- Input: `url` (single URL) or `urls` (list, up to {MAX_URLS}); optional
  `max_iterations` (default 5) and `option_cardinality_cap` (default 4)
- Output: per-URL field inventory. Conditional fields carry the iteration that
  revealed them, or `triggered_by` ("<question> = <option>") when a choice did.

### 2. health_check
- Input: None
- Output: Server status

## Server Status:
- Version: {__version__}
- Timestamp: {datetime.now().isoformat()}
"""


def main():
    """Main entry point for the MCP server."""
    configure_logging('mcp_server')
    logger.info(f"Starting Form Discovery MCP Server v{__version__}")
    logger.info(f"Available tools: {', '.join(TOOLS)}")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
