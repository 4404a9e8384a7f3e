"""
Progressive form discovery.

Finds every input a form can show, including conditional fields that only
appear after other fields are filled in or a choice is made:

1. Snapshot the visible fields.
2. Dummy-fill them, snapshot again, and record whatever is new. Repeat until
   a round reveals nothing (fixed point) or ``max_iterations`` rounds ran.
3. For every radio group and short select, try each option in turn and
   attribute newly revealed fields to ``"<label> = <option text>"``.

Every page interaction is awaited before the next one starts; a diff always
sees the snapshot taken right after the preceding fill or selection.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from .config import DiscoveryConfig
from .errors import ExtractionError
from .filler import DummyFiller
from .models import DiscoveryResult, FieldDescriptor, FieldKind
from .page import FormPage
from .session import DiscoverySession

logger = logging.getLogger(__name__)


async def take_snapshot(page: FormPage, session: DiscoverySession, step: str) -> List[FieldDescriptor]:
    """Snapshot the page; any failure aborts the run with context."""
    try:
        fields = await page.extract_visible_fields()
    except Exception as e:
        logger.error(f"Snapshot failed during {step} (iteration {session.iteration}): {e}")
        raise ExtractionError(step, session.iteration, e) from e
    return [f for f in fields or [] if f.visible]


class DiscoveryLoop:
    """Fill and re-snapshot until no new fields appear or the bound is hit."""

    def __init__(self, page: FormPage, config: DiscoveryConfig, filler: Optional[DummyFiller] = None):
        self.page = page
        self.config = config
        self.filler = filler or DummyFiller()
        self.logger = logger

    async def run(self, session: DiscoverySession) -> None:
        self.logger.info("First pass: extracting initial fields...")
        current = await take_snapshot(self.page, session, "initial snapshot")
        session.seed(current)

        session.iteration = 1
        while True:
            if session.iteration > self.config.max_iterations:
                session.bounded = True
                self.logger.warning(
                    f"Reached maximum iterations ({self.config.max_iterations}), "
                    f"stopping with {len(session)} fields"
                )
                break

            self.logger.info(f"Iteration {session.iteration}: filling fields and detecting new ones...")
            await self.filler.fill(self.page, current, session)
            current = await take_snapshot(self.page, session, "fill round")
            session.rounds += 1

            new_fields = session.diff(current)
            if not new_fields:
                self.logger.info(f"No new fields in iteration {session.iteration}, fixed point reached")
                break

            self.logger.info(f"Found {len(new_fields)} new conditional fields in iteration {session.iteration}")
            for field in new_fields:
                self.logger.info(f"  New field: {field.label} ({field.kind.value}) - ID: {field.dom_id}")
                session.add(field.annotate(session.iteration))
            session.iteration += 1


class ChoiceExplorer:
    """Cycles the options of radio groups and short selects, one level deep."""

    def __init__(self, page: FormPage, config: DiscoveryConfig):
        self.page = page
        self.config = config
        self.logger = logger

    def is_eligible(self, field: FieldDescriptor) -> bool:
        if not field.choice_options:
            return False
        if field.kind == FieldKind.RADIO:
            return True
        if field.kind == FieldKind.SELECT:
            return len(field.choice_options) <= self.config.option_cardinality_cap
        return False

    def eligible_fields(self, fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
        return [f for f in fields if self.is_eligible(f)]

    async def explore(self, field: FieldDescriptor, session: DiscoverySession) -> int:
        """Try every option of ``field``; returns how many fields were revealed."""
        if not self.is_eligible(field):
            self.logger.debug(f"Not exploring {field.label} ({field.kind.value}): not eligible")
            return 0

        options = field.choice_options
        self.logger.info(f"Trying all {len(options)} options for: {field.label} ({field.kind.value})")
        session.explored.append(field.label)
        revealed = 0
        for index, option in enumerate(options):
            self.logger.debug(f"  Trying option {index + 1}: {option.text}")
            try:
                await self.page.select_option(field, index)
            except Exception as e:
                session.record_error("select", field, e)
                continue

            current = await take_snapshot(self.page, session, f"choice exploration of '{field.label}'")
            new_fields = session.diff(current)
            if not new_fields:
                continue

            trigger = f"{field.label} = {option.text}"
            self.logger.info(f"    Found {len(new_fields)} new fields for {trigger}")
            for new_field in new_fields:
                if session.add(new_field.annotate(session.iteration, triggered_by=trigger)):
                    revealed += 1
        return revealed


class FormDiscoveryEngine:
    """
    Runs one discovery session against a page.

    The loop runs to its fixed point first; the choice explorer then works
    through the eligible fields collected at that moment, sharing the same
    inventory so every reveal goes through the same identity rules.

    With ``detect_conditional`` off the run is a single snapshot.
    """

    def __init__(self, config: Optional[Union[DiscoveryConfig, Dict[str, Any]]] = None,
                 filler: Optional[DummyFiller] = None):
        if config is None:
            config = DiscoveryConfig()
        elif isinstance(config, dict):
            config = DiscoveryConfig.from_dict(config)
        self.config = config
        self.filler = filler or DummyFiller()
        self.logger = logger

    async def discover(self, page: FormPage) -> DiscoveryResult:
        session = DiscoverySession(self.config.unstable_id_markers)
        try:
            if self.config.timeout:
                await asyncio.wait_for(self._run(page, session), timeout=self.config.timeout)
            else:
                await self._run(page, session)
        except asyncio.TimeoutError:
            session.timed_out = True
            self.logger.warning(
                f"Discovery timed out after {self.config.timeout}s, returning {len(session)} fields found so far"
            )

        result = session.to_result()
        self.logger.info(
            f"Final result: {len(result)} total fields ({len(result.conditional_fields)} conditional, "
            f"{result.rounds} rounds, {'fixed point' if result.fixed_point else 'stopped early'})"
        )
        return result

    async def _run(self, page: FormPage, session: DiscoverySession) -> None:
        if not self.config.detect_conditional:
            self.logger.info("Conditional detection disabled: extracting visible fields only")
            session.seed(await take_snapshot(page, session, "initial snapshot"))
            return

        await DiscoveryLoop(page, self.config, self.filler).run(session)

        explorer = ChoiceExplorer(page, self.config)
        eligible = explorer.eligible_fields(session.fields)
        if not eligible:
            return
        self.logger.info(
            f"Handling {len(eligible)} multiple choice fields with at most "
            f"{self.config.option_cardinality_cap} options (radio groups unlimited)"
        )
        for field in eligible:
            await explorer.explore(field, session)


async def discover(page: FormPage, config: Optional[Union[DiscoveryConfig, Dict[str, Any]]] = None) -> DiscoveryResult:
    """Discover every field ``page`` can show. See FormDiscoveryEngine."""
    return await FormDiscoveryEngine(config).discover(page)
