import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse

from apps.orders.settings_store import SettingsStore

logger = logging.getLogger("gateway.health")


def health_view(_request):
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except DatabaseError:
        logger.exception("health check: database unavailable")

    components = {"db": {"ok": db_ok}}
    if db_ok:
        snap = SettingsStore().snapshot()
        components["mail"] = {"configured": snap.email.configured}
        components["generation"] = {
            "configured": bool(snap.api_keys.openai_api_key),
            "http_adapters": bool(getattr(settings, "USE_HTTP_ADAPTERS", True)),
        }
        components["payments"] = {
            "configured": bool(snap.api_keys.stripe_webhook_secret or settings.STRIPE_WEBHOOK_SECRET)
        }

    code = 200 if db_ok else 503
    return JsonResponse(
        {"ok": db_ok, "env": settings.APP_ENV, "components": components},
        status=code,
    )


def liveness_view(_request):
    # process is up; no dependency checks
    return JsonResponse({"ok": True})
