"""
Django admin configuration for sitewatch models.

Watched URLs can be enabled, disabled, rescheduled and regenerated from
the admin; generations are read-only history.
"""

from django.contrib import admin
from django.utils.html import format_html

from sitewatch.models import Generation, GenerationStatus, WatchedUrl
from sitewatch.services import generation_service


STATUS_COLORS = {
    GenerationStatus.PENDING: "#ffc107",
    GenerationStatus.IN_PROGRESS: "#007bff",
    GenerationStatus.COMPLETED: "#28a745",
    GenerationStatus.FAILED: "#dc3545",
    GenerationStatus.DELETED: "#6c757d",
}


@admin.register(WatchedUrl)
class WatchedUrlAdmin(admin.ModelAdmin):
    """Admin interface for watched URLs."""

    list_display = [
        "url",
        "is_active_badge",
        "check_interval_minutes",
        "last_checked_at",
        "last_signature_method",
        "created_at",
    ]
    list_filter = ["is_active", "last_signature_method"]
    search_fields = ["url"]
    readonly_fields = [
        "created_at",
        "last_checked_at",
        "last_signature",
        "last_signature_method",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        ("URL", {
            "fields": ("url", "is_active", "created_at"),
        }),
        ("Schedule", {
            "fields": ("check_interval_minutes", "last_checked_at"),
        }),
        ("Change Detection", {
            "fields": ("last_signature", "last_signature_method"),
            "classes": ("collapse",),
        }),
    )

    actions = ["regenerate_now", "disable_urls", "enable_urls", "check_now"]

    def is_active_badge(self, obj):
        """Display active status as colored badge."""
        if obj.is_active:
            return format_html(
                '<span style="background-color: #28a745; color: white; '
                'padding: 2px 8px; border-radius: 4px;">Active</span>'
            )
        return format_html(
            '<span style="background-color: #6c757d; color: white; '
            'padding: 2px 8px; border-radius: 4px;">Inactive</span>'
        )
    is_active_badge.short_description = "Active"
    is_active_badge.admin_order_field = "is_active"

    @admin.action(description="Regenerate now")
    def regenerate_now(self, request, queryset):
        """Queue a manual generation for each selected URL."""
        count = 0
        for watched in queryset:
            generation_service.request_regeneration(watched.pk)
            count += 1
        self.message_user(request, f"Queued {count} generation(s).")

    @admin.action(description="Disable selected URLs")
    def disable_urls(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f"Disabled {count} URL(s).")

    @admin.action(description="Enable selected URLs")
    def enable_urls(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f"Enabled {count} URL(s).")

    @admin.action(description="Check on next tick")
    def check_now(self, request, queryset):
        """Clear last_checked_at so the next scheduler tick checks the URLs."""
        count = queryset.update(last_checked_at=None)
        self.message_user(request, f"Scheduled {count} URL(s) for the next tick.")


@admin.register(Generation)
class GenerationAdmin(admin.ModelAdmin):
    """Admin interface for generations (read-only history)."""

    list_display = [
        "job_id",
        "url",
        "status_badge",
        "trigger",
        "pages_crawled",
        "created_at",
        "duration_display",
    ]
    list_filter = ["status", "trigger", "created_at"]
    search_fields = ["url", "job_id"]
    readonly_fields = [
        "job_id",
        "url",
        "watched_url",
        "status",
        "trigger",
        "created_at",
        "started_at",
        "completed_at",
        "deleted_at",
        "options",
        "output_reference",
        "error_message",
        "pages_crawled",
        "page_errors",
    ]
    ordering = ["-created_at"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def status_badge(self, obj):
        """Display status as colored badge."""
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 2px 8px; border-radius: 4px;">{}</span>',
            STATUS_COLORS.get(obj.status, "#6c757d"),
            obj.get_status_display(),
        )
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    def duration_display(self, obj):
        if obj.duration_seconds is None:
            return "-"
        return f"{obj.duration_seconds:.1f}s"
    duration_display.short_description = "Duration"
