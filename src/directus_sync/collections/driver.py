"""Restore driver: run collection restorers until nothing is deferred.

Records may reference records that do not exist yet, so a single ordered
pass is not enough. The driver cleans every collection once, then calls
each restorer in declaration order, pass after pass, until a full pass
defers nothing.

Each pass can only add applied records, so the loop is bounded by the
total record count. The driver enforces that bound (or a caller-provided
``max_passes``) and raises ``ConvergenceFailed`` when it is hit. A pass
that applies nothing while records are still deferred cannot be followed
by a more successful one, so it fails right away.

Usage:
    from directus_sync.collections.driver import RestoreDriver

    driver = RestoreDriver(restorers)
    report = await driver.run()
    for summary in report.collections:
        print(summary.collection, summary.created, summary.updated)
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from directus_sync.collections.models import CollectionSummary
from directus_sync.collections.restorer import CollectionRestorer
from directus_sync.errors import ConvergenceFailed

logger = logging.getLogger(__name__)


class DriverState(str, Enum):
    IDLE = "idle"
    CLEANED_UP = "cleaned_up"
    RESTORING = "restoring"
    CONVERGED = "converged"
    FAILED = "failed"


class RestoreReport(BaseModel):
    """Result of a converged restore run."""

    passes: int = 0
    cleaned: int = 0
    collections: list[CollectionSummary] = Field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(c.created for c in self.collections)

    @property
    def updated(self) -> int:
        return sum(c.updated for c in self.collections)


class RestoreDriver:
    """Convergence loop over a fixed, ordered list of restorers.

    Args:
        restorers: Restorers in restore order. Ordering is the caller's
            responsibility; the loop copes with any order, it only takes
            more passes.
        max_passes: Pass cap. ``None`` or ``0`` uses the total record count
            (at least 1).
    """

    def __init__(
        self,
        restorers: list[CollectionRestorer],
        max_passes: int | None = None,
    ) -> None:
        self.restorers = restorers
        self.max_passes = max_passes
        self.state = DriverState.IDLE
        self.passes = 0

    def _deferred_keys(self) -> list[str]:
        return [
            f"{r.name}:{item_id}"
            for r in self.restorers
            for item_id in r.pending
        ]

    async def run(self) -> RestoreReport:
        """Clean up, then restore until convergence.

        Returns:
            ``RestoreReport`` with per-collection totals.

        Raises:
            ConvergenceFailed: If records are still deferred when the pass
                cap is reached or a pass makes no progress.
            DirectusSyncError: Any restorer error; the run stops immediately.
        """
        try:
            return await self._run()
        except Exception:
            self.state = DriverState.FAILED
            raise

    async def _run(self) -> RestoreReport:
        total = sum(r.load() for r in self.restorers)
        cap = self.max_passes or max(total, 1)

        logger.info("---- Clean up collections ----")
        cleaned = 0
        for restorer in self.restorers:
            cleaned += await restorer.clean_up()
        self.state = DriverState.CLEANED_UP

        self.state = DriverState.RESTORING
        while True:
            self.passes += 1
            logger.info("---- Restore: pass %d ----", self.passes)

            retry = False
            applied = 0
            for restorer in self.restorers:
                if await restorer.restore():
                    retry = True
                applied += restorer.outcomes[-1].applied

            if not retry:
                self.state = DriverState.CONVERGED
                break

            if applied == 0:
                logger.error("Pass %d applied nothing; dependencies cannot resolve", self.passes)
                raise ConvergenceFailed(self._deferred_keys(), self.passes)

            if self.passes >= cap:
                logger.error("Pass cap (%d) reached with records still deferred", cap)
                raise ConvergenceFailed(self._deferred_keys(), self.passes)

        logger.info(
            "Restore converged after %d pass%s",
            self.passes, "es" if self.passes != 1 else "",
        )
        return RestoreReport(
            passes=self.passes,
            cleaned=cleaned,
            collections=[r.summary() for r in self.restorers],
        )
