"""
Conditional Form Discovery

Finds every input field of a web form, including conditional fields that
only appear after earlier fields are filled in or an option is chosen,
without submitting anything.

Features:
- Fixed-point discovery: dummy-fill, re-snapshot, repeat until nothing new appears
- Choice exploration: tries every option of radio groups and short dropdowns
  and records which answer revealed which field
- Stable field identity across re-renders
- Playwright browser driver, JSON output, Claude Desktop integration via MCP

Usage:
    pip install conditional-form-discovery
    form-discovery https://company.com/careers/job-123/apply

Or from Python:
    result = await discover(PlaywrightFormPage(page))
"""

__version__ = "1.0.0"

from .config import BrowserConfig, DiscoveryConfig
from .engine import ChoiceExplorer, DiscoveryLoop, FormDiscoveryEngine, discover
from .errors import ConfigError, ExtractionError, FieldInteractionError, FormDiscoveryError
from .identity import identity_key
from .models import ChoiceOption, DiscoveryResult, FieldDescriptor, FieldKind
from .page import FormPage, PlaywrightFormPage

__all__ = [
    "BrowserConfig",
    "ChoiceExplorer",
    "ChoiceOption",
    "ConfigError",
    "DiscoveryConfig",
    "DiscoveryLoop",
    "DiscoveryResult",
    "ExtractionError",
    "FieldDescriptor",
    "FieldInteractionError",
    "FieldKind",
    "FormDiscoveryEngine",
    "FormDiscoveryError",
    "FormPage",
    "PlaywrightFormPage",
    "discover",
    "identity_key",
]
