"""Endpoint health probes. Failures are reported, never raised."""

from __future__ import annotations

import logging

import httpx

from airbrx_deploy.models.reports import EndpointCheck, HealthReport, HealthStatus

logger = logging.getLogger(__name__)

DEPLOYED = "Deployed"


class HealthChecker:
    """Probes the public endpoints of one deployment.

    - admin API: ``GET https://<api cdn>/health`` must answer 200
    - gateway: ``GET https://<gateway cdn>/`` may answer anything
    - frontend: ``GET https://<app cdn>/`` must answer 200 and the app
      distribution must report ``Deployed``

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    client:
        Optional pre-built ``httpx.Client`` (tests pass one with a mock
        transport). When omitted a client is created per check run.
    """

    def __init__(self, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._timeout = timeout
        self._client = client

    def check_deployment(
        self,
        api_domain: str | None,
        gateway_domain: str | None,
        app_domain: str | None,
        app_distribution_status: str | None = None,
    ) -> HealthReport:
        if self._client is not None:
            return self._check_all(
                self._client, api_domain, gateway_domain, app_domain, app_distribution_status
            )
        with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
            return self._check_all(
                client, api_domain, gateway_domain, app_domain, app_distribution_status
            )

    def _check_all(
        self,
        client: httpx.Client,
        api_domain: str | None,
        gateway_domain: str | None,
        app_domain: str | None,
        app_distribution_status: str | None,
    ) -> HealthReport:
        checks = [
            self._probe(client, "api", api_domain, "/health", require_ok=True),
            self._probe(client, "gateway", gateway_domain, "/", require_ok=False),
            self._probe(client, "frontend", app_domain, "/", require_ok=True),
        ]
        if app_distribution_status is not None and app_distribution_status != DEPLOYED:
            frontend = checks[2]
            if frontend.status is HealthStatus.HEALTHY:
                checks[2] = frontend.model_copy(
                    update={
                        "status": HealthStatus.DEGRADED,
                        "detail": f"distribution {app_distribution_status} (may take 5-10 minutes)",
                    }
                )
        report = HealthReport(checks=checks, distribution_status=app_distribution_status)
        logger.info("Health: %s", report.status.value)
        return report

    def _probe(
        self,
        client: httpx.Client,
        name: str,
        domain: str | None,
        path: str,
        *,
        require_ok: bool,
    ) -> EndpointCheck:
        if not domain:
            return EndpointCheck(
                name=name, url="", status=HealthStatus.FAILED, detail="no endpoint deployed"
            )
        url = f"https://{domain}{path}"
        try:
            response = client.get(url, timeout=self._timeout)
        except httpx.TimeoutException:
            return EndpointCheck(
                name=name, url=url, status=HealthStatus.FAILED,
                detail=f"timed out after {self._timeout:.0f}s",
            )
        except httpx.HTTPError as exc:
            return EndpointCheck(
                name=name, url=url, status=HealthStatus.FAILED,
                detail=f"not reachable ({exc.__class__.__name__})",
            )

        code = response.status_code
        if not require_ok or code == 200:
            return EndpointCheck(name=name, url=url, status=HealthStatus.HEALTHY, status_code=code)
        return EndpointCheck(
            name=name,
            url=url,
            status=HealthStatus.DEGRADED,
            status_code=code,
            detail=f"HTTP {code} (CDN may still be deploying)",
        )
