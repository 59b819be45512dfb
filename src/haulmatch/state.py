"""Shared per-cycle state handed to every scheduling unit."""

from dataclasses import dataclass, field
from typing import Optional

from .models import Insight, Job, MarketSnapshot, MatchedPair, Provider


@dataclass
class DispatchState:
    """
    Mutable state owned by the orchestrator.

    Units receive it by reference inside `execute()` and may mutate the
    records it holds, but must not keep a reference after returning.
    """

    jobs: list[Job] = field(default_factory=list)
    providers: list[Provider] = field(default_factory=list)
    matched_pairs: list[MatchedPair] = field(default_factory=list)
    market: Optional[MarketSnapshot] = None
    insights: list[Insight] = field(default_factory=list)

    def open_jobs(self) -> list[Job]:
        """Jobs still waiting for a provider."""
        return [j for j in self.jobs if j.is_open]

    def unpriced_jobs(self) -> list[Job]:
        return [j for j in self.jobs if j.is_open and not j.is_priced]

    def eligible_providers(self) -> list[Provider]:
        """Providers with an active or qualified status."""
        return [p for p in self.providers if p.is_eligible]

    def get_job(self, job_id: str) -> Optional[Job]:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None

    def upsert_provider(self, provider: Provider) -> None:
        """Add a provider, replacing any record with the same id."""
        for i, existing in enumerate(self.providers):
            if existing.id == provider.id:
                self.providers[i] = provider
                return
        self.providers.append(provider)

    def sizes(self) -> dict[str, int]:
        return {
            "jobs": len(self.jobs),
            "open_jobs": len(self.open_jobs()),
            "providers": len(self.providers),
            "matched_pairs": len(self.matched_pairs),
        }
