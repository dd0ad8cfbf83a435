"""Debounced thana-incharge lookup for the create-case form."""

from rahat_dashboard.client.sequencing import Debouncer
from rahat_dashboard.config import settings
from rahat_dashboard.schemas.schemas import DocsPage, ThanaIncharge
from rahat_dashboard.services.case_service import CaseService


class ThanaInchargeSearch:
    def __init__(self, cases: CaseService, *, delay: float | None = None):
        self.cases = cases
        self._debouncer = Debouncer(settings.search_debounce_seconds if delay is None else delay)

    async def search(self, q: str) -> DocsPage[ThanaIncharge] | None:
        """Results for `q`, or None if a newer search superseded this one."""
        return await self._debouncer.submit(self.cases.search_thana_incharge, q.strip())

    def cancel(self) -> None:
        self._debouncer.cancel()
