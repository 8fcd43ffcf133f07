# apps/core/admin.py

from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _
from .models import User
from .admin_site import custom_admin_site


class CustomUserAdmin(BaseUserAdmin):
    """UserAdmin for email-based accounts."""

    list_display = ('email', 'first_name', 'last_name', 'company',
                    'is_staff', 'is_active')
    list_filter = ('is_staff', 'is_superuser', 'is_active')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal info'), {
         'fields': ('first_name', 'last_name', 'company', 'location')}),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2'),
        }),
    )

    search_fields = ('email', 'first_name', 'last_name', 'company')
    ordering = ('email',)
    filter_horizontal = ('groups', 'user_permissions',)


custom_admin_site.register(User, CustomUserAdmin)
