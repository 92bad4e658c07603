from __future__ import annotations
from prometheus_client import Counter, CollectorRegistry, start_http_server
from ..config import get_settings

S = get_settings()

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
OTP_GENERATED = Counter("otp_generated_total", "OTP codes issued", ["purpose"], registry=REGISTRY)
OTP_VALIDATIONS = Counter("otp_validations_total", "OTP validation attempts", ["purpose", "outcome"], registry=REGISTRY)
OTP_CLEANED_UP = Counter("otp_cleaned_up_total", "OTP records deleted by retention cleanup", registry=REGISTRY)


def serve_metrics() -> bool:
    """Expose REGISTRY over HTTP for processes without a web app (workers)."""
    if not S.METRICS_ENABLED or not S.METRICS_PORT:
        return False
    start_http_server(S.METRICS_PORT, registry=REGISTRY)
    return True
