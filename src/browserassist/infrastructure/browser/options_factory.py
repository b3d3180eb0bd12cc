from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Type

from selenium.webdriver import ChromeOptions, EdgeOptions, FirefoxOptions, IeOptions
from selenium.webdriver.common.options import ArgOptions
from selenium.webdriver.safari.options import Options as SafariOptions

from browserassist.domain.models.browser_models import BrowserFamily, CapabilityBag, OptionsShape

logger = logging.getLogger(__name__)

OPTIONS_BY_BROWSER: Dict[str, Type[ArgOptions]] = {
    BrowserFamily.chrome.value: ChromeOptions,
    # Opera usa operadriver, que habla el dialecto de chromedriver
    BrowserFamily.opera.value: ChromeOptions,
    BrowserFamily.firefox.value: FirefoxOptions,
    BrowserFamily.safari.value: SafariOptions,
    BrowserFamily.edge.value: EdgeOptions,
    BrowserFamily.ie.value: IeOptions,
}

_VENDOR_KEYS = {shape.vendor_key for shape in OptionsShape if shape.vendor_key}

# claves JSON Wire heredadas -> W3C (sólo sesiones remotas)
_W3C_RENAMES = {"version": "browserVersion", "platform": "platformName"}
_FARM_OPTION_KEYS = ("username", "accessKey", "name", "build", "tags", "tunnelIdentifier")
FARM_OPTIONS_KEY = "sauce:options"


def build_options(capabilities: Mapping[str, Any], *, remote: bool = False) -> ArgOptions:
    """
    Traduce un CapabilityBag a un objeto Options de selenium.

    - '<vendor>:...Options'.binary  -> binary_location
    - args / prefs del vendor       -> add_argument / prefs
    - resto                         -> set_capability
    En remoto, además renombra claves heredadas a W3C y agrupa las de la
    granja bajo 'sauce:options'. No abre nada; sólo prepara el objeto.
    """
    caps = CapabilityBag(capabilities).to_dict()
    browser = caps.pop("browserName", None)
    options_cls = OPTIONS_BY_BROWSER.get(str(browser))
    if options_cls is None:
        raise ValueError(f"browserName sin Options conocidas: {browser!r}")
    opts = options_cls()

    for key in list(caps):
        if key in _VENDOR_KEYS:
            _apply_vendor(opts, caps.pop(key) or {})

    if remote:
        opts.set_capability("browserName", browser)
        farm_options = dict(caps.pop(FARM_OPTIONS_KEY, None) or {})
        for key in _FARM_OPTION_KEYS:
            if key in caps:
                farm_options[key] = caps.pop(key)
        for legacy, w3c in _W3C_RENAMES.items():
            if legacy in caps:
                caps.setdefault(w3c, caps.pop(legacy))
        if farm_options:
            opts.set_capability(FARM_OPTIONS_KEY, farm_options)

    for key, value in caps.items():
        opts.set_capability(key, value)
    return opts


# ------------------------------ helpers ------------------------------

def _apply_vendor(opts: ArgOptions, vendor: Mapping[str, Any]) -> None:
    for key, value in vendor.items():
        if key == "binary":
            if hasattr(opts, "binary_location"):
                opts.binary_location = value
            else:
                logger.debug("Options %s no acepta binario; se ignora", type(opts).__name__)
        elif key == "args":
            for arg in value or ():
                opts.add_argument(arg)
        elif key == "prefs" and isinstance(opts, FirefoxOptions):
            for name, pref in (value or {}).items():
                opts.set_preference(name, pref)
        elif hasattr(opts, "add_experimental_option"):
            opts.add_experimental_option(key, value)
        else:
            logger.debug("opción de vendor ignorada: %s", key)
