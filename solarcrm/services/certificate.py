# solarcrm/services/certificate.py
"""
Installation completion certificates.

HTML template -> Chromium (Playwright) -> A4 PDF. The PDF lands in the
uploads dir; when a bucket is configured it is pushed to S3 under
certificates/ and the local copy is removed. A debug .html copy of the
filled template is always kept beside the PDF.
"""
import base64
import html
import logging
from dataclasses import dataclass
from pathlib import Path

from playwright.sync_api import sync_playwright

from solarcrm import storage
from solarcrm.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
TEMPLATE_PATH = TEMPLATES_DIR / "certificate.html"
DEFAULT_BG_PATH = TEMPLATES_DIR / "assets" / "certificate-bg.svg"

_MIME_BY_EXT = {
    ".png": "image/png",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


class TemplateReadFailed(Exception):
    pass


@dataclass
class CertificateData:
    lead_id: str
    customer_name: str
    project_type: str
    sized_kw: float
    install_date: str  # already formatted, e.g. "5 March 2025"
    location: str
    certificate_id: str


@dataclass
class CertificateResult:
    file_path: str
    public_url: str


def _format_kw(value) -> str:
    # 6.0 -> "6", 6.5 -> "6.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def background_data_url() -> str:
    """
    data: URL for the certificate background; "" when the image can't be read.
    """
    bg_path = Path(settings.CERTIFICATE_BG_PATH).resolve() if settings.CERTIFICATE_BG_PATH else DEFAULT_BG_PATH
    try:
        raw = bg_path.read_bytes()
    except OSError as e:
        logger.warning("[certificate] failed to read background %s, proceeding without: %r", bg_path, e)
        return ""
    mime = _MIME_BY_EXT.get(bg_path.suffix.lower(), "image/jpeg")
    data_url = f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"
    logger.info("[certificate] using background %s (%s), dataUrl length=%d", bg_path, mime, len(data_url))
    return data_url


def render_html(data: CertificateData, template_path: Path = TEMPLATE_PATH) -> str:
    try:
        page = template_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("[certificate] failed to read template at %s: %r", template_path, e)
        raise TemplateReadFailed(str(template_path)) from e

    replacements = {
        "__BG_DATA_URL__": background_data_url(),
        "{{customerName}}": html.escape(data.customer_name or ""),
        "{{projectType}}": html.escape(data.project_type or ""),
        "{{sizedKW}}": _format_kw(data.sized_kw),
        "{{installDate}}": html.escape(data.install_date or ""),
        "{{location}}": html.escape(data.location or ""),
        "{{certificateId}}": html.escape(data.certificate_id or ""),
    }
    for placeholder, value in replacements.items():
        page = page.replace(placeholder, value)
    return page


def render_pdf(page_html: str, out_path: Path) -> None:
    """
    Headless Chromium print to A4, zero margins, backgrounds on. Each browser
    call is bounded by CERTIFICATE_RENDER_TIMEOUT_SECONDS.
    """
    timeout_ms = max(1, settings.CERTIFICATE_RENDER_TIMEOUT_SECONDS) * 1000
    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(
            args=["--no-sandbox", "--disable-setuid-sandbox"],
            timeout=timeout_ms,
        )
        try:
            page = browser.new_page()
            page.set_default_timeout(timeout_ms)
            page.set_content(page_html, wait_until="networkidle")
            page.pdf(
                path=str(out_path),
                format="A4",
                print_background=True,
                margin={"top": "0mm", "bottom": "0mm", "left": "0mm", "right": "0mm"},
                prefer_css_page_size=True,
            )
        finally:
            browser.close()


def generate_certificate_pdf(data: CertificateData) -> CertificateResult:
    page_html = render_html(data)

    filename = storage.unique_filename(".pdf")
    out_path = storage.uploads_dir() / filename
    public_url = f"{storage.LOCAL_PREFIX}{filename}"

    debug_html_path = out_path.with_suffix(".html")
    debug_html_path.write_text(page_html, encoding="utf-8")
    logger.info("[certificate] debug HTML written to %s", debug_html_path)

    render_pdf(page_html, out_path)

    if storage.bucket_enabled():
        public_url = storage.put_object(f"certificates/{filename}", out_path.read_bytes(), "application/pdf")
        try:
            out_path.unlink()
        except OSError:
            logger.warning("[certificate] could not remove local copy %s", out_path)

    logger.info("[certificate] generated %s for lead=%s", public_url, data.lead_id)
    return CertificateResult(file_path=str(out_path), public_url=public_url)
