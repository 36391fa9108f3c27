from django.contrib import admin, messages

from pricing.models import TariffVersion
from pricing.services.tariff_table import validate_tariff_config


@admin.register(TariffVersion)
class TariffVersionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "status",
        "entity_type",
        "entity_id",
        "effective_from",
        "created_at",
    )
    list_filter = ("status", "entity_type")
    search_fields = ("name", "entity_id")
    actions = ["validate_tables", "approve_versions"]

    def get_readonly_fields(self, request, obj=None):
        # Rate tables are frozen once saved; publish a new version instead
        if obj is not None:
            return [f.name for f in obj._meta.fields if f.name not in TariffVersion.MUTABLE_FIELDS]
        return ["created_at"]

    def save_model(self, request, obj, form, change):
        if change:
            obj.save(update_fields=sorted(TariffVersion.MUTABLE_FIELDS))
        else:
            obj.save()

    def validate_tables(self, request, queryset):
        any_warn = False
        for version in queryset:
            errors = validate_tariff_config(version.tables())
            if errors:
                any_warn = True
                for error in errors:
                    messages.warning(request, f"Tariff {version.id}: {error}")
        if not any_warn:
            messages.info(request, "Selected tariff versions are complete.")

    validate_tables.short_description = "Validate tariff tables"

    def approve_versions(self, request, queryset):
        for version in queryset.exclude(status=TariffVersion.STATUS_APPROVED):
            version.approve()
        messages.info(request, "Selected tariff versions approved.")

    approve_versions.short_description = "Approve selected tariff versions"
