# solarcrm/routers/health.py
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from solarcrm.services import certificate
from solarcrm.services.steps import format_install_date
from solarcrm.storage import sign_if_bucket_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/sample/certificate")
def sample_certificate():
    """Render a certificate with canned data; handy for checking the template."""
    data = certificate.CertificateData(
        lead_id="SAMPLE-LEAD",
        customer_name="Sample Customer",
        project_type="Solar Rooftop",
        sized_kw=5.2,
        install_date=format_install_date(datetime.now(timezone.utc)),
        location="Patna, Bihar, India",
        certificate_id=f"SAMPLE-{str(int(time.time() * 1000))[-6:]}",
    )
    try:
        result = certificate.generate_certificate_pdf(data)
    except Exception:
        logger.exception("[certificate] sample generation failed")
        raise HTTPException(status_code=500, detail="Failed to generate sample")
    return {"ok": True, "certificateUrl": sign_if_bucket_url(result.public_url)}
