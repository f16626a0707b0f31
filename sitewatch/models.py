"""
Django models for the sitewatch monitoring service.

Models: WatchedUrl, Generation

A WatchedUrl is a site the scheduler re-checks on an interval; a Generation
is one crawl-and-summarize attempt for a URL. Generation status changes are
applied with conditional UPDATEs so that concurrent workers cannot move a
job backwards or claim it twice.
"""

import re
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import Exists, OuterRef, Q
from django.utils import timezone

from sitewatch.exceptions import InvalidTransition
from sitewatch.signals import generation_status_changed


class GenerationStatus(models.TextChoices):
    """Status of a generation."""

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    DELETED = "deleted", "Deleted"


class GenerationTrigger(models.TextChoices):
    """What started a generation."""

    MANUAL = "manual", "Manual"
    AUTOMATIC = "automatic", "Automatic (change detected)"


class SignatureMethod(models.TextChoices):
    """Detection tier that produced a stored content signature."""

    HEADER = "header", "HTTP metadata"
    CONTENT = "content", "Canonical HTML hash"


# Legal moves; anything else raises InvalidTransition
ALLOWED_TRANSITIONS = {
    GenerationStatus.PENDING: {GenerationStatus.IN_PROGRESS, GenerationStatus.FAILED},
    GenerationStatus.IN_PROGRESS: {GenerationStatus.COMPLETED, GenerationStatus.FAILED},
    GenerationStatus.COMPLETED: {GenerationStatus.DELETED},
    GenerationStatus.FAILED: {GenerationStatus.DELETED},
    GenerationStatus.DELETED: set(),
}

ACTIVE_STATUSES = (GenerationStatus.PENDING, GenerationStatus.IN_PROGRESS)
TERMINAL_STATUSES = (GenerationStatus.COMPLETED, GenerationStatus.FAILED)

CONTENT_SIGNATURE_RE = re.compile(r"^[0-9a-f]{64}$")


def classify_signature(signature: str) -> str:
    """
    Infer the detection tier of a stored signature from its format.

    Used for signatures persisted before the tier was recorded. A 64-char
    lowercase hex digest is a content hash; anything else is header metadata.
    """
    if signature and CONTENT_SIGNATURE_RE.match(signature):
        return SignatureMethod.CONTENT
    return SignatureMethod.HEADER


def default_check_interval():
    return getattr(settings, "SITEWATCH_DEFAULT_CHECK_INTERVAL_MINUTES", 60)


def stale_generations(now=None) -> Q:
    """
    Filter for in-flight generations that have been running too long.

    Pending rows age from created_at, in-progress rows from started_at.
    """
    minutes = getattr(settings, "SITEWATCH_STALE_GENERATION_MINUTES", 60)
    cutoff = (now or timezone.now()) - timedelta(minutes=minutes)
    return (
        Q(status=GenerationStatus.PENDING, created_at__lt=cutoff)
        | Q(status=GenerationStatus.IN_PROGRESS, started_at__lt=cutoff)
    )


class WatchedUrlQuerySet(models.QuerySet):
    """Query helpers for the monitoring scheduler."""

    def active(self):
        return self.filter(is_active=True)

    def due_for_check(self, now=None):
        """
        Active watched URLs whose next check time has arrived.

        A URL is due when it was never checked, or when
        last_checked_at + check_interval_minutes <= now. URLs that already
        have a pending or in-progress generation are excluded so a slow
        generation is never doubled up by the next tick; stale in-flight
        generations do not count.
        """
        if now is None:
            now = timezone.now()

        in_flight = Generation.objects.filter(
            watched_url=OuterRef("pk"),
            status__in=ACTIVE_STATUSES,
        ).exclude(stale_generations(now))

        candidates = (
            self.active()
            .annotate(has_in_flight=Exists(in_flight))
            .filter(has_in_flight=False)
            .order_by("last_checked_at", "id")
        )

        # Interval arithmetic is done in Python to stay portable across
        # SQLite and PostgreSQL.
        return [
            watched for watched in candidates
            if watched.is_due(now)
        ]


class WatchedUrl(models.Model):
    """
    A URL the monitoring scheduler re-checks for content changes.

    Rows are soft-deleted via is_active; unwatching and re-watching the same
    URL reuses the row, so the normalized URL stays unique.
    """

    url = models.URLField(max_length=2000, unique=True, db_index=True)
    created_at = models.DateTimeField(default=timezone.now)

    # Scheduling
    last_checked_at = models.DateTimeField(null=True, blank=True)
    check_interval_minutes = models.PositiveIntegerField(
        default=default_check_interval,
        validators=[MinValueValidator(1)],
    )
    is_active = models.BooleanField(default=True, db_index=True)

    # Change detection
    last_signature = models.TextField(null=True, blank=True)
    last_signature_method = models.CharField(
        max_length=10, choices=SignatureMethod.choices, blank=True
    )

    objects = WatchedUrlQuerySet.as_manager()

    class Meta:
        db_table = "watched_urls"
        ordering = ["-created_at"]
        verbose_name = "Watched URL"
        verbose_name_plural = "Watched URLs"
        indexes = [
            models.Index(fields=["is_active", "last_checked_at"], name="watched_url_is_acti_4b1c2e_idx"),
        ]

    def __str__(self):
        state = "active" if self.is_active else "inactive"
        return f"{self.url} ({state}, every {self.check_interval_minutes}m)"

    @property
    def next_check_due_at(self):
        """When the next check is due; None means immediately."""
        if self.last_checked_at is None:
            return None
        return self.last_checked_at + timedelta(minutes=self.check_interval_minutes)

    @property
    def signature_method(self) -> str:
        """Tier of the stored signature, classifying legacy values by format."""
        if not self.last_signature:
            return ""
        return self.last_signature_method or classify_signature(self.last_signature)

    def is_due(self, now=None) -> bool:
        if not self.is_active:
            return False
        due_at = self.next_check_due_at
        if due_at is None:
            return True
        return due_at <= (now or timezone.now())

    def record_check(self, signature, method, checked_at=None):
        """Persist the outcome of a completed check."""
        self.last_signature = signature
        self.last_signature_method = method or ""
        self.last_checked_at = checked_at or timezone.now()
        self.save(update_fields=["last_signature", "last_signature_method", "last_checked_at"])

    def touch(self, checked_at=None):
        """Record that a check happened without changing the signature."""
        self.last_checked_at = checked_at or timezone.now()
        self.save(update_fields=["last_checked_at"])

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=["is_active"])

    def reactivate(self, check_interval_minutes=None):
        """Re-watch a previously unwatched URL; the next tick checks it."""
        self.is_active = True
        if check_interval_minutes:
            self.check_interval_minutes = check_interval_minutes
        self.save(update_fields=["is_active", "check_interval_minutes"])


class Generation(models.Model):
    """
    One crawl-and-summarize attempt for a URL.

    Status moves pending -> in_progress -> completed|failed, and a terminal
    generation may be marked deleted. Records are never hard-deleted.
    """

    job_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False, db_index=True)
    url = models.URLField(max_length=2000)
    watched_url = models.ForeignKey(
        WatchedUrl,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="generations",
    )

    status = models.CharField(
        max_length=20,
        choices=GenerationStatus.choices,
        default=GenerationStatus.PENDING,
        db_index=True,
    )
    trigger = models.CharField(
        max_length=20,
        choices=GenerationTrigger.choices,
        default=GenerationTrigger.MANUAL,
    )

    # Timing
    created_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    # Request options (max_pages, max_depth)
    options = models.JSONField(default=dict, blank=True)

    # Results
    output_reference = models.CharField(max_length=255, blank=True)
    error_message = models.TextField(blank=True)
    pages_crawled = models.IntegerField(default=0)
    page_errors = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "generations"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="generations_status_8d0f3a_idx"),
            models.Index(fields=["watched_url", "created_at"], name="generations_watched_2e7b91_idx"),
            models.Index(fields=["url", "created_at"], name="generations_url_c5a9d4_idx"),
        ]

    def __str__(self):
        return f"Generation {self.job_id} - {self.url} ({self.status})"

    @property
    def duration_seconds(self):
        """Calculate generation duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def is_running(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def create_pending(
        cls,
        url: str,
        trigger: str = GenerationTrigger.MANUAL,
        watched_url=None,
        job_id=None,
        options=None,
    ) -> "Generation":
        """Create a generation in the pending state and announce it."""
        generation = cls(
            url=url,
            trigger=trigger,
            watched_url=watched_url,
            options=options or {},
        )
        if job_id is not None:
            generation.job_id = job_id
        generation.save()
        generation._announce()
        return generation

    def _transition(self, target: str, from_statuses, **fields):
        """
        Move to target with a conditional UPDATE.

        Only rows still in one of from_statuses are updated, so two workers
        racing on the same job id cannot both succeed.
        """
        allowed_from = [
            status for status in from_statuses
            if target in ALLOWED_TRANSITIONS[status]
        ]
        updated = Generation.objects.filter(
            pk=self.pk,
            status__in=allowed_from,
        ).update(status=target, **fields)

        if not updated:
            current = (
                Generation.objects.filter(pk=self.pk)
                .values_list("status", flat=True)
                .first()
            )
            raise InvalidTransition(self.job_id, current or self.status, target)

        self.status = target
        for name, value in fields.items():
            setattr(self, name, value)
        self._announce()

    def _announce(self):
        """Send the status change once the surrounding transaction commits."""
        job_id, status = str(self.job_id), self.status
        transaction.on_commit(
            lambda: generation_status_changed.send(
                sender=Generation,
                job_id=job_id,
                status=status,
            )
        )

    @classmethod
    def fail_stale(cls, now=None) -> int:
        """
        Fail pending and in-progress generations that outlived the stale cut-off.

        Covers dispatches that never reached a worker and workers that died
        mid-run. Returns the number of generations failed.
        """
        failed = 0
        for generation in cls.objects.filter(stale_generations(now)):
            try:
                generation.mark_failed("Generation timed out")
            except InvalidTransition:
                continue
            failed += 1
        return failed

    def mark_in_progress(self):
        """Claim the job. Raises InvalidTransition if it was already claimed."""
        self._transition(
            GenerationStatus.IN_PROGRESS,
            [GenerationStatus.PENDING],
            started_at=timezone.now(),
        )

    def mark_completed(self, output_reference: str, pages_crawled: int = 0, page_errors=None):
        self._transition(
            GenerationStatus.COMPLETED,
            [GenerationStatus.IN_PROGRESS],
            completed_at=timezone.now(),
            output_reference=output_reference,
            pages_crawled=pages_crawled,
            page_errors=page_errors or [],
            error_message="",
        )

    def mark_failed(self, error_message: str, pages_crawled: int = 0, page_errors=None):
        """Terminate with the error captured verbatim; never keeps partial output."""
        self._transition(
            GenerationStatus.FAILED,
            [GenerationStatus.PENDING, GenerationStatus.IN_PROGRESS],
            completed_at=timezone.now(),
            error_message=error_message or "Unknown error",
            output_reference="",
            pages_crawled=pages_crawled,
            page_errors=page_errors or [],
        )

    def mark_deleted(self):
        """Mark a terminal generation deleted; the record stays queryable."""
        self._transition(
            GenerationStatus.DELETED,
            list(TERMINAL_STATUSES),
            deleted_at=timezone.now(),
            output_reference="",
        )

    def to_snapshot(self) -> dict:
        """Serializable view used by the API and notifier."""
        return {
            "job_id": str(self.job_id),
            "url": self.url,
            "status": self.status,
            "trigger": self.trigger,
            "watched_url_id": self.watched_url_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "pages_crawled": self.pages_crawled,
            "page_errors": self.page_errors,
            "error_message": self.error_message or None,
            "has_output": bool(self.output_reference),
        }
