# app/services/report.py
import base64
import binascii
import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Union
from xml.sax.saxutils import escape

from PIL import Image as PILImage, UnidentifiedImageError
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Flowable, Image, PageBreak, Paragraph, SimpleDocTemplate, Spacer

from app.exceptions import RenderFailure
from app.models.plant_record import PlantRecord
from app.services.storage import remove_file

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)
IMAGE_BOX = (400, 400)  # points

NO_ISSUES = "No significant issues detected"
NO_CARE = "No specific care instructions"
NO_TREATMENT = "No treatments required"

_styles = getSampleStyleSheet()
TITLE = ParagraphStyle("ReportTitle", parent=_styles["Title"], fontSize=25, leading=30)
SUBTITLE = ParagraphStyle("ReportSubtitle", parent=_styles["Normal"], fontSize=12, alignment=TA_CENTER)
SECTION = ParagraphStyle("Section", parent=_styles["Heading2"], fontSize=18, leading=22, spaceBefore=6)
BODY = ParagraphStyle("Body", parent=_styles["Normal"], fontSize=12, leading=15)
BULLET = ParagraphStyle("Bullet", parent=BODY, leftIndent=12)
IMAGE_HEADING = ParagraphStyle("ImageHeading", parent=_styles["Heading2"], fontSize=16, alignment=TA_CENTER)


@dataclass
class RenderedReport:
    path: Path
    download_name: str


def decode_data_uri(value: str) -> bytes:
    """Decode a ``data:image/...;base64,`` URI (or bare base64) into bytes."""
    payload = "".join(DATA_URI_PREFIX.sub("", value.strip()).split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RenderFailure(f"Image is not valid base64 data: {e}") from e


def _text(value: str, fallback: str) -> Paragraph:
    return Paragraph(escape(value or fallback), BODY)


def _label(text: str) -> Paragraph:
    return Paragraph(f"<u>{escape(text)}</u>", BODY)


def _bullets(items: List[str], placeholder: str) -> List[Flowable]:
    if not items:
        return [Paragraph(escape(placeholder), BODY)]
    return [Paragraph(f"• {escape(item)}", BULLET) for item in items]


def flatten_to_rgb(pil_image: PILImage.Image) -> PILImage.Image:
    """Convert to RGB, compositing transparent areas onto white."""
    if pil_image.mode in ("RGBA", "LA", "PA") or "transparency" in pil_image.info:
        rgba = pil_image.convert("RGBA")
        background = PILImage.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return pil_image.convert("RGB")


def _image_flowable(image_bytes: bytes) -> Image:
    """Re-encode the image as JPEG and scale it into IMAGE_BOX, keeping the aspect ratio."""
    try:
        with PILImage.open(BytesIO(image_bytes)) as pil_image:
            rgb = flatten_to_rgb(pil_image)
    except (UnidentifiedImageError, OSError) as e:
        raise RenderFailure(f"Image could not be decoded: {e}") from e

    width, height = rgb.size
    scale = min(IMAGE_BOX[0] / width, IMAGE_BOX[1] / height)

    buffer = BytesIO()
    rgb.save(buffer, format="JPEG", quality=90)
    buffer.seek(0)

    flowable = Image(buffer, width=width * scale, height=height * scale)
    flowable.hAlign = "CENTER"
    return flowable


def build_story(record: PlantRecord, image_bytes: Optional[bytes] = None) -> List[Flowable]:
    """Lay out the report: header, the four fixed sections and an optional image page."""
    species = record.species
    health = record.health
    recommendations = record.recommendations

    story: List[Flowable] = [
        Paragraph("PLANT ANALYSIS REPORT", TITLE),
        Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", SUBTITLE),
        Spacer(1, 24),
    ]

    story.append(Paragraph("<u>1. Species Identification</u>", SECTION))
    story.append(_text(f"Name: {species.name or 'Unknown'}", ""))
    story.append(_text(f"Family: {species.family or 'Unknown'}", ""))
    story.append(_text(f"Origin: {species.origin or 'Unknown'}", ""))
    story.append(Spacer(1, 12))
    story.append(_label("Characteristics:"))
    story.append(_text(species.characteristics, "No characteristics identified"))
    story.append(Spacer(1, 24))

    story.append(Paragraph("<u>2. Health Assessment</u>", SECTION))
    story.append(_text(f"Status: {health.status or 'Unknown'}", ""))
    story.append(Spacer(1, 12))
    story.append(_label("Issues:"))
    story.extend(_bullets(health.issues, NO_ISSUES))
    story.append(Spacer(1, 12))
    story.append(_label("Assessment:"))
    story.append(_text(health.assessment, "No detailed assessment available"))
    story.append(Spacer(1, 24))

    story.append(Paragraph("<u>3. Care Recommendations</u>", SECTION))
    story.append(_label("Care Instructions:"))
    story.extend(_bullets(recommendations.care, NO_CARE))
    story.append(Spacer(1, 12))
    story.append(_label("Treatment Suggestions:"))
    story.extend(_bullets(recommendations.treatment, NO_TREATMENT))
    story.append(Spacer(1, 12))
    story.append(_label("Additional Notes:"))
    story.append(_text(recommendations.notes, "No additional notes"))
    story.append(Spacer(1, 24))

    story.append(Paragraph("<u>4. Interesting Facts</u>", SECTION))
    story.append(_text(record.interesting_facts, "No additional facts available"))

    if image_bytes:
        story.append(PageBreak())
        story.append(Paragraph("Plant Image", IMAGE_HEADING))
        story.append(Spacer(1, 12))
        story.append(_image_flowable(image_bytes))

    return story


class ReportRenderer:
    """Writes PlantRecords as PDF files into a temporary reports directory."""

    def __init__(self, reports_dir: Union[str, Path]):
        self.reports_dir = Path(reports_dir)

    def render(self, record: PlantRecord, image: Optional[str] = None) -> RenderedReport:
        """
        Render ``record`` to a uniquely named PDF and return its location.

        The file is complete when this returns. On any failure the partial file
        is removed and RenderFailure is raised.
        """
        timestamp = int(time.time() * 1000)
        download_name = f"PlantReport_{timestamp}.pdf"

        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create reports directory {self.reports_dir}: {e}", exc_info=True)
            raise RenderFailure(f"Could not create reports directory: {e}") from e

        path = self.reports_dir / f"PlantReport_{timestamp}_{uuid.uuid4().hex[:8]}.pdf"

        try:
            image_bytes = decode_data_uri(image) if image else None
            story = build_story(record, image_bytes)
            doc = SimpleDocTemplate(
                str(path),
                pagesize=letter,
                title="Plant Analysis Report",
                subject=record.species.name,
            )
            doc.build(story)
        except RenderFailure:
            remove_file(path, "partial report")
            raise
        except Exception as e:
            logger.error(f"PDF generation error: {e}", exc_info=True)
            remove_file(path, "partial report")
            raise RenderFailure(str(e)) from e

        logger.info(f"Rendered report for '{record.species.name}' to {path}")
        return RenderedReport(path=path, download_name=download_name)
