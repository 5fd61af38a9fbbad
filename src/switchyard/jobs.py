"""Job registry: orchestrator-issued ids for long-running provider jobs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import hashlib
import json
import logging
from typing import TYPE_CHECKING

from switchyard.result import JobStatusResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from switchyard.adapters.base import Adapter

logger = logging.getLogger(__name__)

JOB_NOT_FOUND = "Job not found."


def derive_job_id(provider: str, provider_job_id: str) -> str:
    """Derive the orchestrator job id for a provider-native job.

    Pure and deterministic: the same underlying job always maps to the same
    id, so a retired id can never come to address a different job. The pair
    is JSON-encoded before hashing so separators inside either part cannot
    make two jobs collide.
    """
    key = json.dumps([provider, provider_job_id])
    digest = hashlib.sha256(key.encode()).hexdigest()
    return f"job-{digest[:32]}"


@dataclass(frozen=True)
class JobRecord:
    """Where an active job lives."""

    provider: str
    provider_job_id: str


class JobRegistry:
    """Active jobs keyed by orchestrator job id.

    Entries live from the first pending result until a status poll comes
    back completed or failed. State is process-lifetime only and is meant to
    be used from a single event loop.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobRecord] = {}

    def register(self, provider: str, provider_job_id: str) -> str:
        """Record a pending job and return its orchestrator id."""
        job_id = derive_job_id(provider, provider_job_id)
        self._jobs[job_id] = JobRecord(provider=provider, provider_job_id=provider_job_id)
        logger.debug("Registered job %s -> %s/%s", job_id, provider, provider_job_id)
        return job_id

    def get(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def retire(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    async def get_job_result(
        self, job_id: str, adapters: Mapping[str, Adapter]
    ) -> JobStatusResult:
        """Poll the provider for *job_id*, retiring the entry once terminal."""
        record = self._jobs.get(job_id)
        if record is None:
            return JobStatusResult(status="failed", error=JOB_NOT_FOUND)

        adapter = adapters.get(record.provider)
        if adapter is None or not adapter.capabilities.job_status:
            logger.error(
                "Provider %s cannot check job status for %s", record.provider, job_id
            )
            return JobStatusResult(
                status="failed",
                error=(
                    f"Provider '{record.provider}' does not support checking job status."
                ),
            )

        try:
            result = await adapter.check_job_status(record.provider_job_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Job status check for %s raised: %s", job_id, e)
            result = JobStatusResult(status="failed", error=str(e) or type(e).__name__)

        if result.is_terminal:
            self.retire(job_id)
            logger.info("Job %s finished with status %s", job_id, result.status)
        return result
