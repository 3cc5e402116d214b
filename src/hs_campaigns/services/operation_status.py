"""Persisted progress for long-running list creation runs.

Callers start a run detached from any request/response cycle and poll the
operation_status row this tracker maintains.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from hs_campaigns.config.settings import Settings
from hs_campaigns.services import list_store

logger = logging.getLogger(__name__)

LIST_CREATION = "list_creation"


class OperationTracker:
    """Best-effort status row for one run.

    Usage:
        ```python
        tracker = OperationTracker(total_campaigns=len(configs), user="ops@example.com")
        tracker.start()
        tracker.update_progress(processed=1, current_campaign="Spring Sale")
        tracker.complete()
        ```

    Persistence failures are logged and never interrupt the run.
    """

    def __init__(
        self,
        op_type: str = LIST_CREATION,
        *,
        total_campaigns: int = 0,
        user: Optional[str] = None,
        inter_campaign_delay: float = 0.0,
        settings: Optional[Settings] = None,
    ):
        self.op_type = op_type
        self.total_campaigns = total_campaigns
        self.user = user
        self.inter_campaign_delay = inter_campaign_delay
        self.settings = settings
        self.op_id: Optional[Any] = None
        self.status = "pending"
        self.processed = 0
        self.current_campaign: Optional[str] = None

    def _details(self) -> Dict[str, Any]:
        remaining = max(0, self.total_campaigns - self.processed)
        eta = datetime.now(timezone.utc) + timedelta(seconds=remaining * self.inter_campaign_delay)
        return {
            "totalCampaigns": self.total_campaigns,
            "processedCampaigns": self.processed,
            "currentCampaign": self.current_campaign,
            "estimatedCompletionTime": eta.isoformat(),
        }

    def start(self) -> None:
        self.status = "running"
        try:
            row = list_store.insert_operation_status(
                op_type=self.op_type,
                status=self.status,
                details=self._details(),
                user=self.user,
                settings=self.settings,
            )
            self.op_id = row.get("id")
        except Exception as e:
            logger.warning("Failed to record %s operation start: %s", self.op_type, e)

    def update_progress(self, *, processed: int, current_campaign: Optional[str] = None) -> None:
        self.processed = processed
        self.current_campaign = current_campaign
        self._persist(details=self._details())

    def complete(self) -> None:
        self.status = "completed"
        self._persist(status=self.status, end_time=datetime.now(timezone.utc), details=self._details())

    def fail(self, error: str) -> None:
        self.status = "failed"
        self._persist(
            status=self.status,
            end_time=datetime.now(timezone.utc),
            error=error,
            details=self._details(),
        )

    def _persist(self, **fields: Any) -> None:
        if self.op_id is None:
            return
        try:
            list_store.update_operation_status(self.op_id, settings=self.settings, **fields)
        except Exception as e:
            logger.warning("Failed to update operation %s: %s", self.op_id, e)
