"""Django app configuration for batchledger."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class BatchLedgerConfig(AppConfig):
    """Configuration for batchledger app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "batchledger"
    verbose_name = _("Inventario por Lotes")
