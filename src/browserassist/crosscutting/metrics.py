# -*- coding: utf-8 -*-
"""
Métricas Prometheus para observabilidad.

Expone:
- Resultado de probes de versión
- Chequeos de validez por familia
- Descargas (fetch) y su duración
- Sesiones abiertas
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =========================================================
# Métricas de resolución local
# =========================================================

# Probes de versión por resultado (ok, failed, timeout)
version_probes_total = Counter(
    "browserassist_version_probes_total",
    "Total version probes executed",
    ["result"]
)

# Chequeos de validez por familia y resultado
validity_checks_total = Counter(
    "browserassist_validity_checks_total",
    "Total local browser validity checks",
    ["family", "result"]
)

# =========================================================
# Métricas de descargas
# =========================================================

# Descargas por familia, release y resultado (fetched, skipped, error)
fetches_total = Counter(
    "browserassist_fetches_total",
    "Total fetch decisions",
    ["family", "release", "result"]
)

fetch_duration_seconds = Histogram(
    "browserassist_fetch_duration_seconds",
    "Artifact fetch duration in seconds",
    ["family"],
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0)
)

# =========================================================
# Métricas de sesiones
# =========================================================

sessions_total = Counter(
    "browserassist_sessions_total",
    "Total sessions opened",
    ["browser", "mode", "status"]
)


def get_metrics() -> bytes:
    """Retorna las métricas en formato Prometheus."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Retorna el content-type para métricas Prometheus."""
    return CONTENT_TYPE_LATEST
