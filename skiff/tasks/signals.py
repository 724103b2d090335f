"""
Signal handlers for the tasks app.
"""

from django.core.signals import setting_changed
from django.dispatch import receiver

from skiff.tasks.submitter import get_submitter


@receiver(setting_changed)
def reset_submitter(sender, setting, **kwargs):
    """Rebuild the shared submitter when CLOUD_TASKS settings change (tests)."""
    if setting in ("CLOUD_TASKS", "GCP_PROJECT_ID"):
        get_submitter.cache_clear()
