"""License record issuance."""

from __future__ import annotations

from datetime import datetime

from packager.config import PackagerConfig
from packager.utils import to_base36, unix_millis

from .models import CustomerContext, LicenseKind, LicenseRecord


def evaluation_key(now: datetime, prefix: str = "EVAL") -> str:
    """Synthesize an evaluation key from the issue time, e.g. ``EVAL-LQX3K2A8``."""
    return f"{prefix}-{to_base36(unix_millis(now))}"


def issue_license(
    ctx: CustomerContext, now: datetime, config: PackagerConfig | None = None
) -> LicenseRecord:
    """Build the license record for one assembly run.

    A supplied key yields a perpetual license embedding that exact key;
    otherwise an evaluation key valid for ``config.evaluation_days`` is issued.
    """
    config = config or PackagerConfig()
    if ctx.license_key:
        return LicenseRecord(
            company_name=ctx.company_name,
            license_key=ctx.license_key,
            issued_at=now,
            kind=LicenseKind.PERPETUAL,
            deployment_type=ctx.deployment_type,
        )
    return LicenseRecord(
        company_name=ctx.company_name,
        license_key=evaluation_key(now, config.evaluation_key_prefix),
        issued_at=now,
        kind=LicenseKind.EVALUATION,
        deployment_type=ctx.deployment_type,
        valid_days=config.evaluation_days,
    )
