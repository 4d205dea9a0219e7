"""
Medical PDF report: episodes and missed doses for a period, plus patient details.

Building the report is split in two steps:
- `build()` aggregates the stores into plain, translated rows (no I/O)
- `generate()` lays those rows out with ReportLab and writes the PDF
"""

import io
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import CondPageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from epifriend.domain.models import (
    Episode,
    EpisodeDetailLevel,
    MedicationLog,
    ReportOptions,
    ReportResult,
    utc_now,
    validate_leniently,
)
from epifriend.services.episode_store import EpisodeStore
from epifriend.services.i18n import Translator
from epifriend.services.medication_store import MedicationStore
from epifriend.services.settings_store import SettingsStore

logger = structlog.get_logger(__name__)

PRIMARY_COLOR = colors.Color(30 / 255, 58 / 255, 138 / 255)
MUTED_COLOR = colors.Color(100 / 255, 100 / 255, 100 / 255)
NOTES_COLUMN_WIDTH = 30 * mm


@dataclass
class TableSection:
    """One titled table. `rows` empty means the section shows `empty_message`."""

    title: str
    headers: list[str]
    rows: list[list[str]]
    empty_message: str
    font_size: int = 8
    column_widths: dict[int, float] = field(default_factory=dict)


@dataclass
class ReportContent:
    title: str
    generated: str
    patient_heading: str
    patient_lines: list[str]
    medical_notes_heading: str | None = None
    medical_notes: str | None = None
    sections: list[TableSection] = field(default_factory=list)


class ReportGenerator:
    """Read-only aggregation over the three stores, rendered as a PDF."""

    def __init__(
        self,
        episodes: EpisodeStore,
        medications: MedicationStore,
        settings: SettingsStore,
        translator: Translator,
        output_dir: str | Path = ".",
        file_prefix: str = "EpiFriend_Report",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.episodes = episodes
        self.medications = medications
        self.settings = settings
        self.t = translator
        self.output_dir = Path(output_dir)
        self.file_prefix = file_prefix
        self.clock = clock
        self.logger = logger.bind(component="report_generator")

    def parse_options(self, options: ReportOptions | Mapping[str, Any] | None) -> ReportOptions:
        """
        Validate options given as snake_case or camelCase keys.

        A malformed value falls back to that option's default; the other
        options are kept.
        """
        if options is None:
            return ReportOptions()
        if isinstance(options, ReportOptions):
            return options
        if not isinstance(options, Mapping):
            self.logger.warning("report_options_invalid", given=type(options).__name__)
            return ReportOptions()
        parsed, dropped = validate_leniently(ReportOptions, options)
        if dropped:
            self.logger.warning("report_options_invalid", options=dropped)
        return parsed

    def file_name(self) -> str:
        return f"{self.file_prefix}_{self.clock().date().isoformat()}.pdf"

    # -- aggregation -------------------------------------------------------

    def _in_range(self, options: ReportOptions, day: date) -> bool:
        return options.date_range is None or options.date_range.contains(day)

    def filter_episodes(self, options: ReportOptions) -> list[Episode]:
        return [e for e in self.episodes.episodes if self._in_range(options, e.timestamp.date())]

    def filter_missed(self, options: ReportOptions) -> list[MedicationLog]:
        return [
            log
            for log in self.medications.logs
            if log.status == "missed" and self._in_range(options, log.date)
        ]

    def _humanize(self, codes: list[str]) -> str:
        return ", ".join(self.t(f"common.{code}") for code in codes) if codes else "-"

    def _episode_row(self, episode: Episode, level: EpisodeDetailLevel) -> list[str]:
        t = self.t
        row = [
            t.format_date(episode.timestamp),
            t.format_time(episode.timestamp),
            t(f"common.episode_types.{episode.type or 'general'}"),
        ]
        if level == EpisodeDetailLevel.BASIC:
            return row

        emergency = [
            t(f"pdf.report.{flag}")
            for flag in ("someone_witnessed", "emergency_called", "went_to_hospital")
            if getattr(episode, flag)
        ]
        return [
            *row,
            episode.severity or "-",
            episode.duration or "-",
            self._humanize(episode.triggers),
            self._humanize(episode.symptoms),
            ", ".join(emergency) if emergency else "-",
            episode.notes or "-",
        ]

    def _episode_section(self, options: ReportOptions) -> TableSection:
        t = self.t
        level = options.episode_detail_level
        headers = [t("pdf.report.date"), t("pdf.report.time"), t("pdf.report.type")]
        if level == EpisodeDetailLevel.FULL:
            headers += [
                t(f"pdf.report.{name}")
                for name in ("severity", "duration", "triggers", "symptoms", "emergency", "notes")
            ]

        return TableSection(
            title=t("pdf.report.episodes"),
            headers=headers,
            rows=[self._episode_row(e, level) for e in self.filter_episodes(options)],
            empty_message=t("pdf.report.no_episodes_recorded"),
            column_widths={8: NOTES_COLUMN_WIDTH} if level == EpisodeDetailLevel.FULL else {},
        )

    def _missed_section(self, options: ReportOptions) -> TableSection:
        t = self.t
        rows = []
        for log in self.filter_missed(options):
            med = self.medications.get(log.med_id)
            # Logs for deleted medications are dropped
            if med is None:
                continue
            dose_label = (
                t("pdf.report.dose_label", current=log.dose_index + 1, total=med.frequency)
                if med.frequency > 1
                else t("pdf.report.single_dose")
            )
            rows.append([t.format_date(log.date), med.name, med.dosage, dose_label])

        return TableSection(
            title=t("pdf.report.missed_medications"),
            headers=[
                t("pdf.report.date"),
                t("pdf.report.medication"),
                t("pdf.report.medication_dosage"),
                t("pdf.report.medication_frequency"),
            ],
            rows=rows,
            empty_message=t("pdf.report.no_missed_medications_recorded"),
            font_size=9,
        )

    def build(self, options: ReportOptions | Mapping[str, Any] | None = None) -> ReportContent:
        """Collect everything the report shows, already translated and formatted."""
        opts = self.parse_options(options)
        t = self.t
        settings = self.settings.settings

        name = settings.profile.name or t("pdf.report.not_provided")
        patient_lines = [t("pdf.report.patient_name", name=name)]
        if settings.profile.date_of_birth:
            try:
                dob = t.format_date(date.fromisoformat(settings.profile.date_of_birth[:10]))
            except ValueError:
                dob = settings.profile.date_of_birth
            patient_lines.append(t("pdf.report.date_of_birth", dob=dob))

        content = ReportContent(
            title=t("pdf.report.title"),
            generated=t("pdf.report.generated", date=t.format_datetime(self.clock())),
            patient_heading=t("pdf.patient_info"),
            patient_lines=patient_lines,
        )

        if opts.include_patient_info:
            if settings.medical.allergies:
                allergies = ", ".join(settings.medical.allergies)
                patient_lines.append(t("pdf.report.allergies", allergies=allergies))
            if settings.emergency.doctor_name:
                patient_lines.append(t("pdf.report.doctor", doctorName=settings.emergency.doctor_name))
            if settings.emergency.neurologist_name:
                patient_lines.append(
                    t("pdf.report.neurologist", neurologistName=settings.emergency.neurologist_name)
                )
            if settings.medical.notes:
                content.medical_notes_heading = t("pdf.report.medical_notes")
                content.medical_notes = settings.medical.notes

        if opts.include_episodes:
            content.sections.append(self._episode_section(opts))
        if opts.include_missed_meds:
            content.sections.append(self._missed_section(opts))
        return content

    # -- rendering ---------------------------------------------------------

    def _column_widths(self, section: TableSection, available: float) -> list[float]:
        fixed = sum(section.column_widths.values())
        flexible = len(section.headers) - len(section.column_widths)
        share = (available - fixed) / flexible if flexible else 0
        return [section.column_widths.get(i, share) for i in range(len(section.headers))]

    def _table(self, section: TableSection, available: float) -> Table:
        cell_style = ParagraphStyle(
            "cell", fontName="Helvetica", fontSize=section.font_size, leading=section.font_size + 2
        )
        head_style = ParagraphStyle(
            "head", parent=cell_style, fontName="Helvetica-Bold", textColor=colors.white
        )
        data = [[Paragraph(escape(h), head_style) for h in section.headers]]
        data += [[Paragraph(escape(str(cell)), cell_style) for cell in row] for row in section.rows]

        table = Table(data, colWidths=self._column_widths(section, available), repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), PRIMARY_COLOR),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("TOPPADDING", (0, 0), (-1, -1), 2),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
                ]
            )
        )
        return table

    def render(self, content: ReportContent) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=14 * mm, rightMargin=14 * mm)
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "title", parent=styles["Title"], textColor=PRIMARY_COLOR, alignment=TA_CENTER
        )
        muted = ParagraphStyle("muted", parent=styles["Normal"], textColor=MUTED_COLOR)
        centered_muted = ParagraphStyle("centered_muted", parent=muted, alignment=TA_CENTER)
        small = ParagraphStyle("small", parent=styles["Normal"], fontSize=9, leading=11)

        elements: list[Any] = [
            Paragraph(escape(content.title), title_style),
            Paragraph(escape(content.generated), centered_muted),
            Spacer(1, 15),
            Paragraph(escape(content.patient_heading), styles["Heading2"]),
        ]
        elements += [Paragraph(escape(line), styles["Normal"]) for line in content.patient_lines]
        if content.medical_notes:
            elements.append(Paragraph(escape(content.medical_notes_heading or ""), styles["Normal"]))
            elements.append(Paragraph(escape(content.medical_notes).replace("\n", "<br/>"), small))
        elements.append(Spacer(1, 10))

        for section in content.sections:
            # Start a new page rather than strand a heading at the bottom
            elements.append(CondPageBreak(40 * mm))
            elements.append(Paragraph(escape(section.title), styles["Heading2"]))
            if section.rows:
                elements.append(self._table(section, doc.width))
            else:
                elements.append(Paragraph(escape(section.empty_message), muted))
            elements.append(Spacer(1, 15))

        doc.build(elements)
        return buffer.getvalue()

    def generate(self, options: ReportOptions | Mapping[str, Any] | None = None) -> ReportResult:
        """
        Build and write the report.

        The PDF is rendered fully in memory before anything touches disk, so a
        failure never leaves a partial file behind.
        """
        file_name = self.file_name()
        try:
            content = self.build(options)
            pdf = self.render(content)
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self.output_dir / file_name
            path.write_bytes(pdf)
        except Exception as e:
            self.logger.exception("report_generation_failed", file_name=file_name, error=str(e))
            return ReportResult(success=False, file_name=file_name)

        self.logger.info(
            "report_generated",
            file_name=file_name,
            sections=[s.title for s in content.sections],
            size=len(pdf),
        )
        return ReportResult(success=True, file_name=file_name, path=str(path))
