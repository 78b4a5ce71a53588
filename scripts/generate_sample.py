# scripts/generate_sample.py
import json
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from solarcrm.services.certificate import CertificateData, generate_certificate_pdf
from solarcrm.services.steps import format_install_date

data = CertificateData(
    lead_id="SAMPLE-LEAD",
    customer_name="Sample Customer",
    project_type="Solar Rooftop",
    sized_kw=6.5,
    install_date=format_install_date(datetime.now(timezone.utc)),
    location="Patna, Bihar, India",
    certificate_id=f"SAMPLE-{str(int(time.time() * 1000))[-6:]}",
)

result = generate_certificate_pdf(data)
print(json.dumps({"ok": True, "publicUrl": result.public_url, "filePath": result.file_path}, indent=2))
