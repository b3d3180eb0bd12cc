from browserassist.assistant import BrowserAssistant
from browserassist.config.settings import Settings
from browserassist.domain.models.browser_models import BrowserFamily, CapabilityBag, Release

__all__ = ["BrowserAssistant", "Settings", "BrowserFamily", "CapabilityBag", "Release"]
