"""
Django app configuration for group purchases.
"""
from django.apps import AppConfig


class GroupPurchasesConfig(AppConfig):
    """Configuration for the group purchase coordination engine."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.group_purchases'
    verbose_name = 'Group Purchases'
