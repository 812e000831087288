from django.contrib import admin, messages

from drivers.models import Driver, DriverDocument
from services.verification import adjudicate_document


class DriverDocumentInline(admin.TabularInline):
    model = DriverDocument
    extra = 0
    fields = ["document_type", "status", "rejection_reason", "updated_at"]
    readonly_fields = fields
    can_delete = False


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    """Admin panel for managing drivers"""

    list_display = [
        "telegram_id",
        "first_name",
        "phone_number",
        "car_model",
        "car_number",
        "is_online",
        "is_verified",
        "rating",
        "total_rides",
    ]

    list_filter = [
        "is_online",
        "is_verified",
    ]

    search_fields = [
        "telegram_id",
        "first_name",
        "car_number",
    ]

    # Derived fields: changed only through document adjudication and ratings
    readonly_fields = [
        "is_verified",
        "rating",
        "total_rides",
        "created_at",
        "updated_at",
    ]

    inlines = [DriverDocumentInline]
    ordering = ("first_name",)


@admin.register(DriverDocument)
class DriverDocumentAdmin(admin.ModelAdmin):
    """
    Document review queue.

    Status changes go through the approve/reject actions so the driver's
    verified flag is recomputed every time.
    """

    list_display = ["id", "driver", "document_type", "status", "rejection_reason", "updated_at"]
    list_filter = ["status", "document_type"]
    search_fields = ["driver__telegram_id", "driver__first_name"]
    readonly_fields = ["driver", "document_type", "document_data", "status", "rejection_reason",
                       "created_at", "updated_at"]
    actions = ["approve_documents", "reject_documents"]

    def _adjudicate(self, request, queryset, approve, reason=None):
        done = 0
        for document in queryset:
            result = adjudicate_document(document.pk, approve, reason)
            if result.success:
                done += 1
            else:
                self.message_user(request, f"Document {document.pk}: {result.message}", messages.ERROR)
        return done

    @admin.action(description="Approve selected documents")
    def approve_documents(self, request, queryset):
        done = self._adjudicate(request, queryset, approve=True)
        self.message_user(request, f"{done} document(s) approved.", messages.SUCCESS)

    @admin.action(description="Reject selected documents")
    def reject_documents(self, request, queryset):
        done = self._adjudicate(request, queryset, approve=False, reason="Rejected by moderator")
        self.message_user(request, f"{done} document(s) rejected.", messages.SUCCESS)

    def has_add_permission(self, request):
        return False
