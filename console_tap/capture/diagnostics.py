"""Network health diagnostics computed from a ledger snapshot.

``summarize`` is a pure function of the exchanges it is given and the time
returned by ``now_fn``: it reads nothing else and mutates nothing, and all
of its lists follow exchange creation order, so identical input always
yields an identical report.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Sequence, Union
from urllib.parse import urlparse

from ..models.capture import (
    Completed,
    DiagnosticsReport,
    ExchangeEntry,
    Failed,
    NetworkExchange,
    ResourceCategory,
    elapsed_ms,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_STALE_THRESHOLD_MS = 5000


@dataclass(frozen=True)
class StatusPolicy:
    """Status code thresholds used to bucket completed exchanges.

    Numeric statuses below ``failure_threshold`` count as successful, and
    as clean when also below ``clean_threshold``. Non-numeric statuses
    (the websocket ``CLOSED`` sentinel) are successful but never clean.
    """
    failure_threshold: int = 400
    clean_threshold: int = 300

    def is_failure(self, status: Union[int, str]) -> bool:
        return isinstance(status, int) and status >= self.failure_threshold

    def is_clean(self, status: Union[int, str]) -> bool:
        return isinstance(status, int) and status < self.clean_threshold


def _hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def _entry(exchange: NetworkExchange, **extra) -> ExchangeEntry:
    return ExchangeEntry(
        exchange_id=exchange.exchange_id,
        method=exchange.request_type,
        url=exchange.url,
        resource_type=exchange.request.resource_type,
        **extra,
    )


def summarize(
    exchanges: Sequence[NetworkExchange],
    now_fn: Callable[[], datetime] = utc_now,
    stale_threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS,
    policy: StatusPolicy = StatusPolicy(),
) -> DiagnosticsReport:
    """Derive a health report from the final state of the ledger.

    Args:
        exchanges: Ledger snapshot, in creation order
        now_fn: Returns the reference time for pending ages (called once)
        stale_threshold_ms: Pending exchanges older than this are stuck
        policy: Status thresholds for completed exchanges

    Returns:
        DiagnosticsReport with counts, failures, pending classification,
        stuck exchanges and pending hostnames
    """
    now = now_fn()
    ordered = sorted(exchanges, key=lambda e: e.exchange_id)

    successful = 0
    clean = 0
    failed: List[ExchangeEntry] = []
    pending: List[ExchangeEntry] = []
    stuck: List[ExchangeEntry] = []
    by_category: Dict[ResourceCategory, List[ExchangeEntry]] = {
        category: [] for category in ResourceCategory
    }
    hosts: Dict[str, None] = {}

    for exchange in ordered:
        outcome = exchange.outcome

        if isinstance(outcome, Failed):
            failed.append(_entry(exchange, reason=outcome.reason))
            continue

        if isinstance(outcome, Completed):
            if policy.is_failure(outcome.status):
                failed.append(_entry(exchange, status=outcome.status))
            else:
                successful += 1
                if policy.is_clean(outcome.status):
                    clean += 1
            continue

        entry = _entry(exchange, age_ms=elapsed_ms(exchange.request.started_at, now))
        pending.append(entry)
        by_category[ResourceCategory.from_resource_type(entry.resource_type)].append(entry)
        if entry.age_ms > stale_threshold_ms:
            stuck.append(entry)

        host = _hostname(exchange.url)
        if host:
            hosts.setdefault(host, None)

    report = DiagnosticsReport(
        generated_at=now,
        stale_threshold_ms=stale_threshold_ms,
        successful=successful,
        clean=clean,
        failed=len(failed),
        pending=len(pending),
        failed_exchanges=tuple(failed),
        pending_exchanges=tuple(pending),
        pending_by_category={category: tuple(entries) for category, entries in by_category.items()},
        stuck_exchanges=tuple(stuck),
        pending_hosts=tuple(hosts),
    )

    logger.debug(
        f"Diagnostics: {successful} successful, {len(failed)} failed, "
        f"{len(pending)} pending ({len(stuck)} stuck)"
    )
    return report
