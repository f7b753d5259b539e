from django.contrib import admin
from .models import Event, Registration, Team, TeamMember, Ticket, ScanLog


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'status', 'organizer', 'start_time', 'capacity', 'registered_count', 'price', 'is_team_event')
    list_filter = ('status', 'is_team_event', 'start_time')
    search_fields = ('title', 'description', 'organizer__username')
    date_hierarchy = 'start_time'
    # Moved only by the registration service
    readonly_fields = ('registered_count',)


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ('user', 'event', 'status', 'payment_status', 'team', 'registered_at')
    list_filter = ('status', 'payment_status')
    search_fields = ('user__username', 'user__email', 'event__title', 'payment_reference')
    readonly_fields = ('status', 'payment_status', 'cancelled_at', 'cancel_reason')


class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0
    readonly_fields = ('user', 'role', 'position', 'registration', 'joined_at', 'left_at')
    can_delete = False


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'event', 'leader', 'status', 'member_count', 'min_size', 'max_size')
    list_filter = ('status',)
    search_fields = ('code', 'name', 'event__title', 'leader__username')
    readonly_fields = ('member_count', 'next_position')
    inlines = [TeamMemberInline]


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ('qr_code', 'event', 'user', 'status', 'generated_at', 'used_at')
    list_filter = ('status',)
    search_fields = ('qr_code', 'user__username', 'event__title')
    readonly_fields = ('qr_code', 'status', 'used_at', 'used_by', 'cancelled_at')


@admin.register(ScanLog)
class ScanLogAdmin(admin.ModelAdmin):
    list_display = ('scanned_by', 'outcome', 'event', 'qr_code', 'created_at')
    list_filter = ('outcome', 'created_at')
    search_fields = ('scanned_by__username', 'qr_code')
