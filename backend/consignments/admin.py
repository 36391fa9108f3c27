from django import forms
from django.contrib import admin, messages

from consignments.models import ConsignmentUsage, RangeAssignment
from consignments.services.ledger import RangeLedger, validate_range_request


class RangeAssignmentForm(forms.ModelForm):
    class Meta:
        model = RangeAssignment
        fields = [
            "entity_type", "entity_id", "assigned_to_name", "start_number",
            "end_number", "assigned_by", "notes", "is_active",
        ]

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get("start_number"), cleaned.get("end_number")
        if self.instance.pk is None and start is not None and end is not None:
            errors = validate_range_request(start, end)
            if errors:
                raise forms.ValidationError(errors)
        elif self.instance.pk is not None and cleaned.get("is_active") and not self.instance.is_active:
            # The instance still holds the stored flag until _post_clean
            error = self.instance.reactivation_error()
            if error:
                raise forms.ValidationError(error)
        return cleaned


@admin.register(RangeAssignment)
class RangeAssignmentAdmin(admin.ModelAdmin):
    form = RangeAssignmentForm
    list_display = (
        "id",
        "entity_type",
        "entity_id",
        "assigned_to_name",
        "start_number",
        "end_number",
        "total_numbers",
        "is_active",
        "assigned_at",
    )
    list_filter = ("entity_type", "is_active")
    search_fields = ("entity_id", "assigned_to_name", "start_number")
    actions = ["revoke_ranges"]

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return [f.name for f in obj._meta.fields if f.name != "is_active"]
        return ["total_numbers", "assigned_at"]

    def save_model(self, request, obj, form, change):
        if change:
            obj.save(update_fields=["is_active"])
            return
        if not obj.assigned_by:
            obj.assigned_by = request.user.get_username()
        obj.save()

    def revoke_ranges(self, request, queryset):
        ledger = RangeLedger()
        for assignment in queryset.filter(is_active=True):
            ledger.revoke(assignment)
        messages.info(request, "Selected ranges revoked.")

    revoke_ranges.short_description = "Revoke selected ranges"


@admin.register(ConsignmentUsage)
class ConsignmentUsageAdmin(admin.ModelAdmin):
    list_display = (
        "consignment_number",
        "entity_type",
        "entity_id",
        "booking_reference",
        "status",
        "payment_status",
        "total_amount",
        "created_at",
    )
    list_filter = ("entity_type", "status", "payment_status", "payment_type")
    search_fields = ("consignment_number", "booking_reference", "entity_id")

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields if f.name not in ConsignmentUsage.MUTABLE_FIELDS]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        obj.save(update_fields=sorted(ConsignmentUsage.MUTABLE_FIELDS))
