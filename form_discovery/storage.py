"""
JSON persistence of discovery records.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

_SLUG = re.compile(r'[^a-zA-Z0-9]')


def build_output_filename(url: str, when: Optional[datetime] = None) -> str:
    """discovery_<url slug>_<timestamp>.json; microseconds avoid collisions in parallel writes."""
    when = when or datetime.now()
    slug = _SLUG.sub('_', url)[:50]
    return f"discovery_{slug}_{when.strftime('%Y%m%d_%H%M%S_%f')}.json"


def save_discovery(record: Dict[str, Any], output_dir: Union[str, Path]) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / build_output_filename(record.get('url', 'form'))

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(record, f, indent=2, ensure_ascii=False)

    logger.info(f"Result saved to: {output_path}")
    return output_path


def load_discovery(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
