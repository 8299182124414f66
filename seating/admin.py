from django.contrib import admin
from django.db.models import Count

from .models import Airplane, Reservation

admin.site.site_header = "Seat Reservations Admin"
admin.site.site_title = "Seat Reservations"
admin.site.index_title = "Fleet and bookings"


class ReservationInline(admin.TabularInline):
    model = Reservation
    extra = 0
    fields = ("user", "row_number", "seat_number", "created_at")
    readonly_fields = ("created_at",)
    autocomplete_fields = ("user",)


class OccupancyFilter(admin.SimpleListFilter):
    title = "occupancy"
    parameter_name = "occupancy"

    def lookups(self, request, model_admin):
        return (
            ("empty", "No reservations"),
            ("booked", "Some seats reserved"),
        )

    def queryset(self, request, queryset):
        value = self.value()
        if value == "empty":
            return queryset.filter(_reserved_count=0)
        if value == "booked":
            return queryset.filter(_reserved_count__gt=0)
        return queryset


@admin.register(Airplane)
class AirplaneAdmin(admin.ModelAdmin):
    list_display = ("id", "type", "n_rows", "seats_per_row", "capacity", "reserved_count")
    list_filter = (OccupancyFilter, "type")
    search_fields = ("type",)
    inlines = (ReservationInline,)
    actions = ("clear_reservations",)

    def get_readonly_fields(self, request, obj=None):
        readonly = super().get_readonly_fields(request, obj)
        if obj is not None and obj.reservations.exists():
            return (*readonly, "n_rows", "seats_per_row")
        return readonly

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_reserved_count=Count("reservations"))

    @admin.display(description="Capacity")
    def capacity(self, obj):
        return obj.capacity

    @admin.display(description="Reserved", ordering="_reserved_count")
    def reserved_count(self, obj):
        return obj._reserved_count

    @admin.action(description="Clear every reservation on selected airplanes")
    def clear_reservations(self, request, queryset):
        deleted, _per_model = Reservation.objects.filter(airplane__in=queryset).delete()
        self.message_user(request, f"Released {deleted} seat(s).")


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("airplane", "user", "row_number", "seat_number", "created_at")
    list_filter = ("airplane", "created_at")
    search_fields = ("user__username", "user__email", "airplane__type")
    readonly_fields = ("created_at",)
    autocomplete_fields = ("user",)
    list_select_related = ("airplane", "user")
