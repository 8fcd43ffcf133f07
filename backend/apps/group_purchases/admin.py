# apps/group_purchases/admin.py

from django.contrib import admin
from django.utils.html import format_html
from apps.core.admin_site import custom_admin_site
from .models import GroupPurchase, Participant, GroupPurchaseUpdate
from .services.group_purchase_service import GroupPurchaseService


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0
    fields = ('user', 'quantity', 'status', 'created_at')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(GroupPurchase, site=custom_admin_site)
class GroupPurchaseAdmin(admin.ModelAdmin):
    list_display = (
        'title',
        'vendor_name',
        'creator',
        'status_display',
        'progress_display',
        'time_remaining_display',
        'created_at'
    )
    list_filter = (
        'status',
        'created_at',
        'deadline'
    )
    search_fields = (
        'title',
        'vendor_name',
        'creator__email'
    )
    # Quantity and status are owned by the engine
    readonly_fields = (
        'current_quantity',
        'status',
        'version',
        'progress_percent',
        'savings_per_unit',
        'created_at',
        'updated_at'
    )
    inlines = [ParticipantInline]

    fieldsets = (
        ('Purchase', {
            'fields': (
                'creator',
                'title',
                'description',
                'product_url',
                'image_url'
            )
        }),
        ('Vendor', {
            'fields': (
                'vendor_name',
                'vendor_contact'
            )
        }),
        ('Quantities & Pricing', {
            'fields': (
                'target_quantity',
                'current_quantity',
                'progress_percent',
                'unit_price',
                'discounted_unit_price',
                'savings_per_unit'
            )
        }),
        ('Lifecycle', {
            'fields': (
                'deadline',
                'status',
                'version',
                'created_at',
                'updated_at'
            )
        })
    )

    actions = ['expire_overdue']

    def status_display(self, obj):
        colors = {
            'open': 'blue',
            'fulfilled': 'green',
            'expired': 'gray',
            'cancelled': 'red'
        }
        color = colors.get(obj.status, 'black')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; border-radius: 3px;">{}</span>',
            color,
            obj.get_status_display()
        )
    status_display.short_description = 'Status'

    def progress_display(self, obj):
        return format_html(
            '{} / {} ({}%)',
            obj.current_quantity,
            obj.target_quantity,
            int(obj.progress_percent)
        )
    progress_display.short_description = 'Progress'

    def time_remaining_display(self, obj):
        if obj.deadline is None:
            return 'No deadline'
        if obj.time_remaining:
            days = obj.time_remaining.days
            hours = obj.time_remaining.seconds // 3600
            if days > 0:
                return f"{days}d {hours}h"
            return f"{hours}h"
        return format_html('<span style="color: red;">Ended</span>')
    time_remaining_display.short_description = 'Time Left'

    def expire_overdue(self, request, queryset):
        stats = GroupPurchaseService().process_expired_group_purchases()
        self.message_user(
            request, f"{stats['expired']} group purchase(s) expired.")
    expire_overdue.short_description = 'Expire purchases past their deadline'


@admin.register(Participant, site=custom_admin_site)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = (
        'user',
        'group_purchase',
        'quantity',
        'status',
        'created_at'
    )
    list_filter = ('status', 'created_at')
    search_fields = ('user__email', 'group_purchase__title')
    readonly_fields = ('group_purchase', 'user', 'quantity', 'created_at', 'updated_at')


@admin.register(GroupPurchaseUpdate, site=custom_admin_site)
class GroupPurchaseUpdateAdmin(admin.ModelAdmin):
    list_display = (
        'group_purchase',
        'event_type',
        'created_at'
    )
    list_filter = (
        'event_type',
        'created_at'
    )
    search_fields = ('group_purchase__title',)
    readonly_fields = ('group_purchase', 'event_type', 'event_data', 'created_at')
