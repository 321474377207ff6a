import logging
import re
from datetime import date, datetime
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, KeepTogether
from sqlalchemy.ext.asyncio import AsyncSession
from clinic.config import get_settings
from clinic.exceptions import NotFoundError
from clinic.models.patient import Patient, TreatmentVisit
from clinic.services.patient_service import patient_service

logger = logging.getLogger(__name__)

settings = get_settings()

PRIMARY_BLUE = colors.Color(44 / 255, 82 / 255, 130 / 255)
LIGHT_BLUE = colors.Color(59 / 255, 130 / 255, 246 / 255)
DARK_GRAY = colors.Color(55 / 255, 65 / 255, 81 / 255)
LIGHT_GRAY = colors.Color(156 / 255, 163 / 255, 175 / 255)
CARD_BACKGROUND = colors.Color(248 / 255, 250 / 255, 252 / 255)
ACCENT_GREEN = colors.Color(34 / 255, 197 / 255, 94 / 255)


def _text(value: Optional[str], fallback: str = "Not provided") -> str:
    """Escape free text for a Paragraph, keeping line breaks."""
    if value is None or not str(value).strip():
        return fallback
    return escape(str(value)).replace("\n", "<br/>")


def _long_date(value) -> str:
    if not value:
        return "Not provided"
    return f"{value:%B} {value.day}, {value.year}"


def _sort_key(visit: TreatmentVisit) -> datetime:
    # SQLite hands back naive datetimes; compare everything naive.
    return visit.date.replace(tzinfo=None) if visit.date else datetime.min


def report_filename(patient: Patient, today: Optional[date] = None) -> str:
    today = today or date.today()
    name = re.sub(r"\s+", "_", patient.patient_name.strip())
    name = re.sub(r"[^A-Za-z0-9_.-]", "", name) or "patient"
    reference = re.sub(r"[^A-Za-z0-9_.-]", "", patient.reference_number or "")
    return f"MediCare_{name}_{reference}_{today.isoformat()}.pdf"


def render_patient_report(
    patient: Patient,
    visits: list[TreatmentVisit],
    clinic_name: str = "MediCare Clinic",
) -> bytes:
    """
    Lay out a patient record and the given visits as an A4 PDF.

    Visits are printed newest first and numbered by their chronological
    position in the patient's full history, so "Visit 3" means the same
    encounter whichever subset is exported.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=1.5 * cm, leftMargin=1.5 * cm,
        topMargin=1.5 * cm, bottomMargin=2.5 * cm,
        title=f"{clinic_name} - {patient.patient_name}",
    )

    styles = getSampleStyleSheet()
    clinic_style = ParagraphStyle("clinic", parent=styles["Title"], textColor=PRIMARY_BLUE, alignment=0)
    subtitle = ParagraphStyle("subtitle", parent=styles["Normal"], textColor=DARK_GRAY, spaceAfter=12)
    section = ParagraphStyle(
        "section", parent=styles["Heading2"], textColor=colors.white,
        backColor=LIGHT_BLUE, borderPadding=4, spaceBefore=12, spaceAfter=10,
    )
    label = ParagraphStyle("label", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=9, textColor=DARK_GRAY)
    value = ParagraphStyle("value", parent=styles["Normal"], fontSize=10, leading=13)
    visit_title = ParagraphStyle("visit_title", parent=styles["Heading3"], textColor=PRIMARY_BLUE, spaceAfter=2)

    story = [
        Paragraph(escape(clinic_name), clinic_style),
        Paragraph("Patient Management System", subtitle),
        Paragraph("PATIENT MEDICAL RECORD", section),
    ]

    full_name = " ".join(part for part in (patient.prefix, patient.patient_name) if part)
    info_rows = [
        ("PATIENT NAME", full_name, "REFERENCE PERSON", patient.reference_person),
        ("AGE", f"{patient.age} years" if patient.age else None, "CONTACT NUMBER", patient.contact_number),
        ("GENDER", patient.gender, "PATIENT ID", patient.reference_number),
        ("WEIGHT", patient.weight, "BLOOD PRESSURE", patient.bp),
        ("BLOOD SUGAR (RBS)", patient.rbs, "RECORD DATE", _long_date(patient.created_at)),
    ]
    table_data = [
        [
            [Paragraph(l1, label), Paragraph(_text(v1), value)],
            [Paragraph(l2, label), Paragraph(_text(v2), value)],
        ]
        for l1, v1, l2, v2 in info_rows
    ]
    info_table = Table(table_data, colWidths=[9 * cm, 9 * cm])
    info_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), CARD_BACKGROUND),
        ("BOX", (0, 0), (-1, -1), 0.3, LIGHT_GRAY),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 12))

    if patient.address:
        story.append(Paragraph("ADDRESS:", label))
        story.append(Paragraph(_text(patient.address), value))
        story.append(Spacer(1, 8))
    if patient.patient_problem:
        story.append(Paragraph("CHIEF COMPLAINT:", label))
        story.append(Paragraph(_text(patient.patient_problem), value))
        story.append(Spacer(1, 8))

    if visits:
        chronological = sorted(patient.visits, key=_sort_key)
        numbers = {v.id: index + 1 for index, v in enumerate(chronological)}
        story.append(Paragraph("TREATMENT HISTORY", section))

        for visit in sorted(visits, key=_sort_key, reverse=True):
            card = [
                Paragraph(f"Visit {numbers.get(visit.id, '')}", visit_title),
                Paragraph(_long_date(visit.date), subtitle),
            ]
            vitals = ", ".join(
                f"{name}: {escape(reading)}"
                for name, reading in (("Weight", visit.weight), ("BP", visit.bp), ("RBS", visit.rbs))
                if reading
            )
            for heading, content in (
                ("PRESCRIBED MEDICATIONS", visit.medicine_prescriptions),
                ("MEDICAL ADVISORIES", visit.advisories),
                ("CLINICAL NOTES", visit.notes),
            ):
                if content and content.strip():
                    card.append(Paragraph(f"{heading}:", label))
                    card.append(Paragraph(_text(content), value))
                    card.append(Spacer(1, 4))
            if vitals:
                card.append(Paragraph("VITALS:", label))
                card.append(Paragraph(vitals, value))

            card_table = Table([[card]], colWidths=[18 * cm])
            card_table.setStyle(TableStyle([
                ("BACKGROUND", (0, 0), (-1, -1), CARD_BACKGROUND),
                ("BOX", (0, 0), (-1, -1), 0.3, LIGHT_GRAY),
                ("LINEBEFORE", (0, 0), (0, -1), 4, ACCENT_GREEN),
                ("LEFTPADDING", (0, 0), (-1, -1), 12),
            ]))
            story.append(KeepTogether([card_table, Spacer(1, 10)]))

    generated_on = date.today().isoformat()

    def draw_footer(canvas, document):
        canvas.saveState()
        width, _ = A4
        canvas.setStrokeColor(LIGHT_GRAY)
        canvas.setLineWidth(0.5)
        canvas.line(1.5 * cm, 2 * cm, width - 1.5 * cm, 2 * cm)
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(LIGHT_GRAY)
        canvas.drawString(1.5 * cm, 1.4 * cm, f"Generated by {clinic_name} Patient Management System")
        canvas.drawString(1.5 * cm, 1.0 * cm, f"Generated on: {generated_on}")
        canvas.drawRightString(width - 1.5 * cm, 1.0 * cm, f"Page {canvas.getPageNumber()}")
        canvas.restoreState()

    doc.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    return buffer.getvalue()


class ReportService:
    async def generate(
        self,
        db: AsyncSession,
        owner_id: str,
        patient_id: str,
        visit_ids: Optional[list[str]] = None,
    ) -> tuple[str, bytes]:
        """Render the PDF for one of the caller's records. Returns (filename, content)."""
        patient = await patient_service.get_patient(db, owner_id, patient_id)

        if visit_ids:
            by_id = {v.id: v for v in patient.visits}
            missing = [vid for vid in visit_ids if vid not in by_id]
            if missing:
                raise NotFoundError("Treatment entry not found")
            visits = [by_id[vid] for vid in dict.fromkeys(visit_ids)]
        else:
            visits = list(patient.visits)

        content = render_patient_report(patient, visits, clinic_name=settings.clinic_name)
        logger.info("Rendered report for patient %s with %d visit(s)", patient.id, len(visits))
        return report_filename(patient), content


report_service = ReportService()
