"""Mod Studio - compile visual script graphs into game scripts and mod packages."""
import logging

from modstudio.config.settings import settings

logging.getLogger(__name__).setLevel(settings.log_level)
