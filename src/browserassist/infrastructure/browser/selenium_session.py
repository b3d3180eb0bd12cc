from __future__ import annotations

import asyncio
import shutil
from typing import Any, Callable, Dict, Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.service import Service as ChromeService

from browserassist.config.settings import Settings
from browserassist.crosscutting.logging_config import get_logger
from browserassist.crosscutting.metrics import sessions_total
from browserassist.domain.models.browser_models import BrowserFamily, CapabilityBag
from browserassist.domain.ports.session_driver import SessionError
from browserassist.infrastructure.browser.options_factory import build_options

log = get_logger("selenium_session")


def _opera(options):
    # sin operadriver selenium-manager caería en chromedriver
    driver_path = shutil.which("operadriver")
    if driver_path is None:
        raise ValueError("operadriver no encontrado en el PATH")
    return webdriver.Chrome(options=options, service=ChromeService(executable_path=driver_path))


LOCAL_DRIVERS: Dict[str, Callable[[Any], Any]] = {
    BrowserFamily.chrome.value: lambda options: webdriver.Chrome(options=options),
    BrowserFamily.opera.value: _opera,
    BrowserFamily.firefox.value: lambda options: webdriver.Firefox(options=options),
    BrowserFamily.safari.value: lambda options: webdriver.Safari(options=options),
    BrowserFamily.edge.value: lambda options: webdriver.Edge(options=options),
    BrowserFamily.ie.value: lambda options: webdriver.Ie(options=options),
}


def safe_quit(driver) -> None:
    """Cierra el driver si está vivo (idempotente)."""
    if driver:
        try:
            driver.quit()
        except Exception:
            log.debug("driver_quit_failed", exc_info=True)


class SeleniumSessionDriver:
    """
    SessionDriver sobre selenium: local (webdriver.Chrome/Firefox/...) o
    remoto (webdriver.Remote contra el hub de la granja).

    Las llamadas a selenium son bloqueantes; corren en un thread para no
    frenar el event loop.
    """

    def __init__(self, settings: Settings, *, retry_delay_s: float = 2.0) -> None:
        self.settings = settings
        self.timeout_s = float(settings.session_timeout_s)
        self.attempts = max(1, int(settings.session_open_attempts))
        self.retry_delay_s = max(0.0, float(retry_delay_s))

    async def open(self, capabilities: CapabilityBag, *, endpoint: Optional[str] = None) -> Any:
        """Abre la sesión; reintenta ante WebDriverException y luego levanta SessionError."""
        browser = str(capabilities.get("browserName"))
        mode = "remote" if endpoint else "local"
        last_error: Optional[Exception] = None

        for attempt in range(1, self.attempts + 1):
            try:
                driver = await asyncio.to_thread(self._open_blocking, capabilities, endpoint)
                sessions_total.labels(browser=browser, mode=mode, status="ok").inc()
                log.info("session_opened", browser=browser, mode=mode, attempt=attempt)
                return driver
            except (WebDriverException, ValueError) as e:
                last_error = e
                log.error(
                    "session_open_failed",
                    browser=browser,
                    mode=mode,
                    attempt=attempt,
                    max_attempts=self.attempts,
                    error=str(e),
                )
                if isinstance(e, ValueError):
                    break
                if attempt < self.attempts:
                    await asyncio.sleep(self.retry_delay_s * attempt)

        sessions_total.labels(browser=browser, mode=mode, status="error").inc()
        raise SessionError(
            f"No se pudo abrir la sesión {browser} ({mode}) tras {self.attempts} intentos: {last_error}",
            details={"browser": browser, "mode": mode},
            cause=last_error,
        )

    async def close(self, session: Any) -> None:
        if session is None:
            return
        await asyncio.to_thread(safe_quit, session)
        log.debug("session_closed")

    # ------------------------------ helpers ------------------------------

    def _open_blocking(self, capabilities: CapabilityBag, endpoint: Optional[str]):
        options = build_options(capabilities, remote=endpoint is not None)
        if endpoint:
            driver = webdriver.Remote(command_executor=endpoint, options=options)
        else:
            factory = LOCAL_DRIVERS.get(str(capabilities.get("browserName")))
            if factory is None:
                raise ValueError(f"Sin driver local para {capabilities.get('browserName')!r}")
            driver = factory(options)

        try:
            driver.implicitly_wait(self.timeout_s)
            driver.set_page_load_timeout(self.timeout_s)
            driver.set_script_timeout(self.timeout_s)
        except WebDriverException:
            safe_quit(driver)
            raise
        return driver
