"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- YAML policy file watcher (hot reload)
- Slack webhook escalations
- APScheduler for the periodic SLA sweep
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from civictrack.config import SLAStatus, settings
from civictrack.core import ConfigurationException
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.sla.application import ISLAPolicyProvider
from civictrack.sla.domain import SLAPolicy, SLAReading
from civictrack.tickets.domain import Ticket

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, manager: "SLAPolicyManager", policy_path: Path):
        self.manager = manager
        self.policy_path = policy_path.resolve()
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path:
            logger.info("SLA policy file changed", extra={"path": event.src_path})
            self.manager.reload()

    on_created = on_modified


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy provider with hot-reload support.

    The watchdog observer calls reload() from its own thread; readers always
    see either the old or the new policy, never a partial one. A policy
    file that fails validation on reload is ignored and the previous policy
    stays active.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else None
        self._policy: Optional[SLAPolicy] = None
        self._lock = threading.Lock()
        self._observer = None

    def load(self, path: Optional[Path] = None) -> SLAPolicy:
        """
        Initial policy load.

        Raises:
            ConfigurationException: the file exists but is not a valid policy
        """
        if path is not None:
            self._path = Path(path)
        if self._path is None:
            raise RuntimeError("No SLA policy path given")

        try:
            policy = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, OSError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file: {self._path}", {"error": str(e)}
            ) from e

        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> SLAPolicy:
        if not path.exists():
            logger.warning("SLA policy file not found, using defaults", extra={"path": str(path)})
            return SLAPolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAPolicy(**data)

    def reload(self) -> bool:
        """Reload policy from file. Returns False and keeps the old policy on error."""
        if self._path is None:
            return False

        try:
            policy = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, OSError) as e:
            logger.error(
                "Failed to reload SLA policy, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = policy
        logger.info("SLA policy reloaded", extra={"path": str(self._path)})
        return True

    def get_policy(self) -> SLAPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("SLA policy not loaded. Call load() first.")
            return self._policy

    def start_watching(self) -> None:
        """
        Start watching the policy file's directory.

        Skipped when the file does not exist or inotify is unavailable
        (some containers); the loaded policy then stays static.
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "SLA policy file missing, not watching",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                PolicyFileHandler(self, self._path),
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the Slack webhook.

    CLOSED passes requests; after `failure_threshold` consecutive failures
    it goes OPEN and rejects everything for `recovery_timeout` seconds,
    then HALF_OPEN lets one probe through.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._monotonic = monotonic
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._monotonic()
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class SlackClient:
    """
    Slack webhook client for SLA escalations.

    Retries with exponential backoff behind a circuit breaker. Without a
    webhook URL every send is a logged no-op.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        backoff_base: float = 1.0
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._transport = transport
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._backoff_base = backoff_base
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    def build_message(self, ticket: Ticket, reading: SLAReading) -> Dict[str, Any]:
        """Build a Block Kit escalation message."""
        if reading.status == SLAStatus.OVERDUE:
            header = ":rotating_light: SLA Overdue"
        else:
            header = ":warning: SLA Critical"

        if reading.hours_left is None:
            remaining = "n/a"
        elif reading.hours_left <= 0:
            remaining = f"{abs(reading.hours_left):.1f}h overdue"
        else:
            remaining = f"{reading.hours_left:.1f}h left"

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header, "emoji": True}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{ticket.id}"},
                    {"type": "mrkdwn", "text": f"*Category:*\n{ticket.category.value}"},
                    {"type": "mrkdwn", "text": f"*Criticality:*\n{ticket.criticality.value.title()}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{ticket.status.value}"},
                    {"type": "mrkdwn", "text": f"*Ward:*\n{ticket.location.ward or 'unknown'}"},
                    {"type": "mrkdwn", "text": f"*Assigned to:*\n{ticket.assigned_to or 'unassigned'}"},
                ]
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": f"Deadline: {ticket.sla_deadline.isoformat()} | {remaining}"
                    }
                ]
            }
        ]
        return {"channel": self._channel, "blocks": blocks}

    async def send_escalation(
        self,
        ticket: Ticket,
        reading: SLAReading,
        max_retries: int = 3
    ) -> bool:
        """
        Post an escalation to Slack.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.debug("Slack webhook URL not configured, skipping escalation")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack escalation",
                extra={"ticket_id": ticket.id}
            )
            return False

        message = self.build_message(ticket, reading)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack escalation sent",
                        extra={"ticket_id": ticket.id, "sla_status": reading.status.value}
                    )
                    return True
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack escalation failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": ticket.id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA sweep.

    Manages the lifecycle of the scheduler and its single interval job.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func) -> None:
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_sweep",
            name="SLA Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
