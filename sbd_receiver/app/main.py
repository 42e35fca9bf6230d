import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version

import httpx
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from sbd_receiver.app.api.routes import router as inbound_router
from sbd_receiver.app.config import get_settings
from sbd_receiver.app.configuration import ReceiverConfiguration
from sbd_receiver.app.processor.module import SBDReceiverModule
from sbd_receiver.app.smp.client import SMPClient

logger = logging.getLogger("sbd_receiver.main")


def get_app_version() -> str:
    """
    Resolve application version.

    Falls back to the source version when not installed.
    """
    try:
        return version("sbd-receiver")
    except PackageNotFoundError:
        return "0.3.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Guarantees:
    - Fail-fast startup if configuration, the AP certificate or a
      configured handler is invalid
    - Handler registry and receiver configuration are complete before the
      first envelope is accepted
    - One shared HTTP transport for SMP lookups
    """
    logger.info(
        "sbd_receiver_startup_begin",
        extra={
            "service": "sbd-receiver",
            "version": get_app_version(),
        },
    )

    # ------------------------------------------------------------------
    # Load and validate configuration (FAIL FAST)
    # ------------------------------------------------------------------
    try:
        settings = get_settings()
    except Exception:
        logger.exception("invalid_sbd_receiver_configuration")
        raise

    app.state.settings = settings

    # ------------------------------------------------------------------
    # Persistent HTTP client for SMP lookups
    # ------------------------------------------------------------------
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            timeout=settings.smp_timeout_seconds,
            connect=10.0,
        ),
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=50,
        ),
        follow_redirects=True,
        headers={
            "User-Agent": f"sbd-receiver/{get_app_version()}",
        },
    )

    smp_client = None
    if settings.smp_url is not None or settings.sml_dns_zone:
        smp_client = SMPClient(
            app.state.http_client,
            smp_url=str(settings.smp_url) if settings.smp_url else None,
            sml_dns_zone=settings.sml_dns_zone,
            timeout=settings.smp_timeout_seconds,
        )

    try:
        configuration = ReceiverConfiguration.from_settings(
            settings, smp_client=smp_client
        )
        module = SBDReceiverModule.from_settings(settings, configuration)
    except Exception:
        logger.exception("sbd_receiver_wiring_failed")
        await app.state.http_client.aclose()
        raise

    app.state.configuration = configuration
    app.state.module = module

    logger.info(
        "sbd_receiver_startup_complete",
        extra={
            "receiver_check_enabled": configuration.receiver_check_enabled,
            "smp": smp_client.smp_host_uri if smp_client else None,
            "handlers": len(settings.handlers),
        },
    )

    try:
        yield
    finally:
        logger.info("sbd_receiver_shutdown_begin")

        try:
            await app.state.http_client.aclose()
        except Exception:
            logger.warning("http_client_shutdown_failed")


def create_app() -> FastAPI:
    """
    Application factory for the SBD receiver.
    """
    app = FastAPI(
        title="SBD Receiver",
        description=(
            "Validates inbound Standard Business Documents and verifies "
            "via SMP lookup that they are addressed to this access point."
        ),
        version=get_app_version(),
        docs_url="/docs",
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.include_router(inbound_router)

    @app.get(
        "/healthz",
        tags=["Monitoring"],
        summary="Liveness and readiness probe",
    )
    async def health_check():
        """
        Verifies that the runtime is alive and correctly initialized.

        Does NOT contact the SMP.
        """
        configuration = getattr(app.state, "configuration", None)
        return ORJSONResponse(
            content={
                "status": "ok" if configuration is not None else "starting",
                "service": "sbd-receiver",
                "version": app.version,
                "runtime": f"python {sys.version.split()[0]}",
                "receiver_check_enabled": (
                    configuration.receiver_check_enabled
                    if configuration is not None
                    else None
                ),
            }
        )

    return app


app = create_app()
