"""Run sequencer for scheduled list creation.

Coordinates one run: filter validation → config loading → per-campaign
processing (strictly sequential, paced) → report → notification.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set, Union

from hs_campaigns.config.settings import Settings, get_settings
from hs_campaigns.models import CampaignConfig, CampaignFilters, CampaignResult, RunReport
from hs_campaigns.services import list_store, notifications
from hs_campaigns.services.filters import NoCampaignsError, validate_filters
from hs_campaigns.services.hubspot_client import HubSpotClient
from hs_campaigns.services.operation_status import OperationTracker
from hs_campaigns.workers import campaign_processor


logger = logging.getLogger(__name__)


def _log_run_event(run_id: str, stage: str, action: str, payload: dict[str, Any] | None = None) -> None:
    """Emit a structured log line for ops consumption."""
    data = payload or {}
    logger.info("EVENT|run_id=%s|stage=%s|action=%s|data=%s", run_id, stage, action, json.dumps(data, ensure_ascii=False, default=str))


def _coerce_filters(filters: Union[CampaignFilters, Dict[str, Any]]) -> CampaignFilters:
    if isinstance(filters, CampaignFilters):
        return validate_filters(filters.days, filters.mode)
    return validate_filters((filters or {}).get("days"), (filters or {}).get("mode"))


def format_duration(seconds: float) -> str:
    """``H hrs M mins`` with minutes rounded up."""
    total_minutes = int(math.ceil(max(0.0, seconds) / 60.0))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours} hrs {minutes} mins"


async def run_campaigns(
    client: HubSpotClient,
    configs: List[CampaignConfig],
    filters: Union[CampaignFilters, Dict[str, Any]],
    *,
    inter_campaign_delay: Optional[float] = None,
    tracker: Optional[OperationTracker] = None,
    run_id: Optional[str] = None,
) -> RunReport:
    """Process ``configs`` in order and return the aggregate report.

    Args:
        client: HubSpot client shared by every campaign of the run
        configs: Campaigns in run order
        filters: Filters the configs were selected with
        inter_campaign_delay: Minimum seconds between campaign starts
            (defaults to the configured inter-list delay)
        tracker: Optional persisted progress row
        run_id: Identifier used in log events (generated when omitted)

    Raises:
        InvalidFiltersError / NoCampaignsError before any remote call.
    """
    validated = _coerce_filters(filters)
    if not configs:
        raise NoCampaignsError("No campaigns found for the selected filters")

    delay = client.settings.inter_campaign_delay if inter_campaign_delay is None else inter_campaign_delay
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc)
    dedup_set: Set[int] = set()
    results: List[CampaignResult] = []

    _log_run_event(
        run_id,
        "run",
        "started",
        {"campaigns": len(configs), "days": validated.days, "mode": validated.mode, "delay_seconds": delay},
    )

    for index, config in enumerate(configs):
        if tracker is not None:
            tracker.update_progress(processed=index, current_campaign=config.campaign)

        campaign_started = time.monotonic()
        try:
            result = await campaign_processor.process_campaign(client, config, dedup_set, filters=validated)
        except Exception as e:
            logger.error("Campaign %s failed: %s", config.campaign, e)
            result = CampaignResult.failed(config, e)
        results.append(result)

        _log_run_event(
            run_id,
            "campaign",
            "completed" if result.success else "failed",
            {
                "campaign": config.campaign,
                "list_id": result.list_id,
                "added": result.contact_count,
                "requested": result.requested_count,
                "error": result.error,
            },
        )

        if index < len(configs) - 1:
            elapsed = time.monotonic() - campaign_started
            wait = max(0.0, delay - elapsed)
            if wait > 0:
                logger.info(
                    "Waiting %.1fs before next campaign (%d of %d done)",
                    wait,
                    index + 1,
                    len(configs),
                )
                await asyncio.sleep(wait)

    report = RunReport.summarize(
        run_id,
        configs,
        results,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )

    if tracker is not None:
        tracker.update_progress(processed=len(configs))
        tracker.complete()

    logger.info(
        "Run %s complete: %d succeeded, %d failed, %d/%d contacts (%d%% average)",
        run_id,
        report.succeeded,
        report.failed,
        report.total_fulfilled,
        report.total_requested,
        report.average_fulfillment,
    )
    _log_run_event(
        run_id,
        "run",
        "completed",
        {
            "succeeded": report.succeeded,
            "failed": report.failed,
            "total_requested": report.total_requested,
            "total_fulfilled": report.total_fulfilled,
            "average_fulfillment": report.average_fulfillment,
        },
    )
    return report


@dataclass
class RunPlan:
    """Configs selected for a run plus the summary shown before starting it."""

    filters: CampaignFilters
    configs: List[CampaignConfig]
    inter_campaign_delay: float
    summary: Dict[str, Any] = field(default_factory=dict)


def plan_run(
    filters: Union[CampaignFilters, Dict[str, Any]],
    today: Optional[date] = None,
    *,
    settings: Optional[Settings] = None,
    inter_campaign_delay: Optional[float] = None,
) -> RunPlan:
    """Validate filters, load matching configs and summarize the run.

    Raises:
        InvalidFiltersError for unknown filter values
        NoCampaignsError when nothing matches
    """
    validated = _coerce_filters(filters)
    settings = settings or get_settings()
    delay = settings.inter_campaign_delay if inter_campaign_delay is None else inter_campaign_delay

    configs = list_store.fetch_campaign_configs(validated, today, settings=settings)
    if not configs:
        raise NoCampaignsError(
            f"No campaigns found for filters days={validated.days} mode={validated.mode}"
        )

    summary = {
        "totalCampaigns": len(configs),
        "firstCampaign": {
            "brand": configs[0].brand,
            "campaign": configs[0].campaign,
            "date": configs[0].target_date.isoformat(),
        },
        "totalContacts": sum(c.count for c in configs),
        "estimatedCompletionTime": format_duration(len(configs) * delay),
        "filters": validated.model_dump(),
    }
    return RunPlan(filters=validated, configs=configs, inter_campaign_delay=delay, summary=summary)


async def execute_plan(
    plan: RunPlan,
    user: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    notify_email: Optional[str] = None,
) -> RunReport:
    """Run a plan end to end with status tracking and a final notification."""
    settings = settings or get_settings()
    tracker = OperationTracker(
        total_campaigns=len(plan.configs),
        user=user,
        inter_campaign_delay=plan.inter_campaign_delay,
        settings=settings,
    )
    tracker.start()

    try:
        async with HubSpotClient(settings) as client:
            report = await run_campaigns(
                client,
                plan.configs,
                plan.filters,
                inter_campaign_delay=plan.inter_campaign_delay,
                tracker=tracker,
            )
    except Exception as e:
        logger.error("List creation run failed: %s", e)
        tracker.fail(str(e))
        raise

    notifications.send_run_notification(report, to_email=notify_email)
    return report


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point: create today's (or a filtered day's) campaign lists."""
    import argparse
    import sys

    from hs_campaigns.workers.utils import load_env_files

    load_env_files()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Create HubSpot lists for scheduled campaigns")
    parser.add_argument("--days", default="today", help="today, t+1, t+2, t+3 or all")
    parser.add_argument("--mode", default="BAU", help="BAU, re-engagement or re-activation")
    parser.add_argument("--user", default=None, help="User recorded on the operation status row")
    parser.add_argument("--delay-minutes", type=float, default=None, help="Minutes between campaign starts")
    parser.add_argument("--notify-email", default=None, help="Email for the run summary")
    parser.add_argument("--dry-plan", action="store_true", help="Print the run summary and exit")
    args = parser.parse_args(argv)

    delay = args.delay_minutes * 60.0 if args.delay_minutes is not None else None

    try:
        plan = plan_run({"days": args.days, "mode": args.mode}, inter_campaign_delay=delay)
    except (ValueError, NoCampaignsError) as e:
        print(f"NOTHING TO RUN: {e}", file=sys.stderr)
        return 1

    print(json.dumps(plan.summary, indent=2, default=str))
    if args.dry_plan:
        return 0

    try:
        report = asyncio.run(execute_plan(plan, user=args.user, notify_email=args.notify_email))
    except Exception as e:
        print(f"RUN FAILED: {e}", file=sys.stderr)
        logger.exception("Unexpected error in campaign run")
        return 1

    print(notifications.format_run_report(report))
    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
