"""PDF export for AI artifacts.

Lays a completed artifact out on A4 pages with a running header and footer.
Rendering reads no clock and no network: the same artifact and metadata
always produce the same bytes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import MethodReturnValue, XPos, YPos

from ..ai.models import Artifact, ArtifactKind, CodeAnalysis, CodeIssue, CommitExplanation, TaskReport

logger = logging.getLogger(__name__)

# Brand palette (RGB)
PURPLE = (99, 102, 241)
BLUE = (59, 130, 246)
INDIGO = (139, 92, 246)
DANGER = (239, 68, 68)
WARNING = (251, 191, 36)
DARK = (31, 41, 55)
MEDIUM = (107, 114, 128)
LIGHT = (243, 244, 246)
WHITE = (255, 255, 255)

# Font sizes (pt)
H1, H2, H3, BODY, SMALL, CAPTION = 16, 14, 12, 10, 9, 8

# Layout (mm)
MARGIN_TOP = 25
MARGIN_BOTTOM = 25
MARGIN_LEFT = 20
MARGIN_RIGHT = 20
LINE_HEIGHT = 5
SECTION_SPACING = 8
PARAGRAPH_SPACING = 5

SEVERITY_COLORS = {"high": DANGER, "medium": WARNING, "low": MEDIUM}

_FENCE = re.compile(r"^```[\w+-]*[ \t]*$\n?", re.MULTILINE)
_BOLD = re.compile(r"(\*\*|__)(.*?)\1")
_ITALIC = re.compile(r"\*(.*?)\*")
_HEADING = re.compile(r"^[ \t]*#{1,6}\s+", re.MULTILINE)
_CODE = re.compile(r"`(.*?)`")

_PUNCTUATION = str.maketrans(
    {
        "\u2013": "-",
        "\u2014": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2022": "-",
        "\u2026": "...",
        "\u00a0": " ",
    }
)


def clean_markdown(text: str) -> str:
    """Strip bold, italic, heading and code markers, keeping the words."""
    text = _FENCE.sub("", text)
    text = _BOLD.sub(r"\2", text)
    text = _ITALIC.sub(r"\1", text)
    text = _HEADING.sub("", text)
    return _CODE.sub(r"\1", text)


def _latin1(text: str) -> str:
    # Core PDF fonts only cover Latin-1
    return text.translate(_PUNCTUATION).encode("latin-1", "replace").decode("latin-1")


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class ExportMetadata:
    """Context the artifact itself does not carry."""

    task_title: str = ""
    readable_id: str | int | None = None
    generated_at: datetime | None = None


@dataclass(frozen=True)
class DocumentHeader:
    title: str
    subtitle: str
    generated_at: datetime
    cached: bool


class ArtifactPDF(FPDF):
    """A4 document with a running header and footer on every page."""

    def __init__(self, header_info: DocumentHeader):
        super().__init__(orientation="portrait", unit="mm", format="A4")
        self.header_info = header_info
        self.set_margins(MARGIN_LEFT, MARGIN_TOP, MARGIN_RIGHT)
        self.set_auto_page_break(False)
        self.set_creation_date(_as_utc(header_info.generated_at))
        self.set_title(_latin1(header_info.title))
        self.set_author("Aether AI")
        self.add_page()

    @property
    def content_width(self) -> float:
        return self.w - MARGIN_LEFT - MARGIN_RIGHT

    @property
    def content_bottom(self) -> float:
        return self.h - MARGIN_BOTTOM

    # --- Page furniture ---

    def header(self) -> None:
        info = self.header_info
        top = MARGIN_TOP - 10

        self.set_font("helvetica", size=14)
        self.set_text_color(0, 0, 0)
        self.text(MARGIN_LEFT, top + 8, "aether.")

        meta_x = MARGIN_LEFT + 50
        meta_width = self.w - meta_x - MARGIN_RIGHT

        self.set_font("helvetica", "B", H1)
        self.set_text_color(*DARK)
        self.text(meta_x, top + 8, self._fit(info.title, meta_width))

        if info.subtitle:
            self.set_font("helvetica", size=SMALL)
            self.set_text_color(*MEDIUM)
            self.text(meta_x, top + 14, self._fit(info.subtitle, meta_width))

        badge = " [CACHED]" if info.cached else ""
        self.set_font("helvetica", size=CAPTION)
        self.set_text_color(*MEDIUM)
        stamp = info.generated_at.strftime("%Y-%m-%d %H:%M")
        self.text(meta_x, top + 18, f"Generated: {stamp}{badge}")

        separator_y = top + 22
        self.set_draw_color(*PURPLE)
        self.set_line_width(0.5)
        self.line(MARGIN_LEFT, separator_y, self.w - MARGIN_RIGHT, separator_y)

        self.set_y(separator_y + SECTION_SPACING)

    def footer(self) -> None:
        footer_y = self.h - MARGIN_BOTTOM + 10
        self.set_font("helvetica", size=CAPTION)
        self.set_text_color(*MEDIUM)

        date = self.header_info.generated_at.strftime("%Y-%m-%d")
        self.text(MARGIN_LEFT, footer_y, f"Generated by Aether AI - {date} - Confidential")

        label = f"Page {self.page_no()}"
        self.text(self.w - MARGIN_RIGHT - self.get_string_width(label), footer_y, label)

    def check_page_break(self, height_needed: float) -> bool:
        """Start a new page when ``height_needed`` does not fit on this one."""
        if self.get_y() + height_needed > self.content_bottom:
            self.add_page()
            return True
        return False

    # --- Building blocks ---

    def add_summary_box(self, title: str, content: str) -> None:
        """Shaded box with a heading. Long content continues in a new box on the next page."""
        self.check_page_break(40)
        self.set_font("helvetica", size=BODY)
        pending = self._split(content, self.content_width - 10)
        heading = title

        while pending:
            room = self.content_bottom - self.get_y() - 15
            take = max(1, int(room // LINE_HEIGHT))
            chunk, pending = pending[:take], pending[take:]
            self._draw_box(heading, chunk)
            if pending:
                self.add_page()
                heading = f"{title} (continued)"

        self.set_y(self.get_y() + SECTION_SPACING)

    def add_section(self, title: str, content: str) -> None:
        """Titled paragraph; breaks pages line by line."""
        self.check_page_break(30)

        self.set_fill_color(*PURPLE)
        self.rect(MARGIN_LEFT + 1, self.get_y() + 2.5, 2, 2, style="F")
        self.set_font("helvetica", "B", H2)
        self.set_text_color(*BLUE)
        self.set_x(MARGIN_LEFT + 7)
        self.cell(
            self.content_width - 7, 7, self._fit(title, self.content_width - 7),
            new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )

        self.set_font("helvetica", size=BODY)
        self.set_text_color(*DARK)
        for line in self._split(content, self.content_width - 7):
            self.check_page_break(LINE_HEIGHT)
            self.set_x(MARGIN_LEFT + 7)
            self.cell(self.content_width - 7, LINE_HEIGHT, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        self.set_y(self.get_y() + SECTION_SPACING)

    def add_code_issues(self, issues: list[CodeIssue]) -> None:
        self.check_page_break(20)
        self.set_font("helvetica", "B", H2)
        self.set_text_color(*DARK)
        self.cell(self.content_width, 7, "Identified Issues", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_y(self.get_y() + PARAGRAPH_SPACING)

        for issue in issues:
            self.check_page_break(15)
            y = self.get_y()

            self.set_fill_color(*SEVERITY_COLORS.get(issue.severity, MEDIUM))
            self.rect(MARGIN_LEFT, y, 20, 5, style="F")
            self.set_font("helvetica", "B", CAPTION)
            self.set_text_color(*WHITE)
            self.set_xy(MARGIN_LEFT, y)
            self.cell(20, 5, issue.severity.upper(), align="C")

            self.set_font("helvetica", "B", BODY)
            self.set_text_color(*DARK)
            self.set_xy(MARGIN_LEFT + 23, y)
            self.cell(self.content_width - 23, 5, self._fit(issue.title, self.content_width - 23))

            self.set_font("helvetica", size=SMALL)
            self.set_text_color(*MEDIUM)
            self.set_xy(MARGIN_LEFT + 5, y + 6)
            location = issue.file if issue.line is None else f"{issue.file}:{issue.line}"
            self.cell(self.content_width - 5, 5, self._fit(location, self.content_width - 5))

            self.set_y(y + 6 + LINE_HEIGHT + PARAGRAPH_SPACING)

    def add_line(self, text: str) -> None:
        self.check_page_break(15)
        self.set_font("helvetica", size=SMALL)
        self.set_text_color(*MEDIUM)
        self.cell(self.content_width, LINE_HEIGHT, self._fit(text, self.content_width),
                  new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_y(self.get_y() + SECTION_SPACING)

    # --- Internal ---

    def _draw_box(self, heading: str, lines: list[str]) -> None:
        y = self.get_y()
        height = len(lines) * LINE_HEIGHT + 15

        self.set_fill_color(*LIGHT)
        self.rect(MARGIN_LEFT, y, self.content_width, height, style="F")

        self.set_font("helvetica", "B", H3)
        self.set_text_color(*INDIGO)
        self.text(MARGIN_LEFT + 5, y + 7, self._fit(heading, self.content_width - 10))

        self.set_font("helvetica", size=BODY)
        self.set_text_color(*DARK)
        self.set_y(y + 10)
        for line in lines:
            self.set_x(MARGIN_LEFT + 5)
            self.cell(self.content_width - 10, LINE_HEIGHT, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        self.set_y(y + height)

    def _split(self, text: str, width: float) -> list[str]:
        """Wrap text to ``width`` in the current font."""
        lines = self.multi_cell(
            width, LINE_HEIGHT, _latin1(text), dry_run=True, output=MethodReturnValue.LINES
        )
        return lines or [""]

    def _fit(self, text: str, width: float) -> str:
        text = _latin1(text)
        if self.get_string_width(text) <= width:
            return text
        while text and self.get_string_width(text + "...") > width:
            text = text[:-1]
        return text + "..."


def _kind_of(artifact: Artifact) -> ArtifactKind:
    if isinstance(artifact, CommitExplanation):
        return ArtifactKind.COMMIT_EXPLANATION
    if isinstance(artifact, CodeAnalysis):
        return ArtifactKind.CODE_ANALYSIS
    if isinstance(artifact, TaskReport):
        return ArtifactKind.TASK_REPORT
    raise TypeError(f"Cannot export {type(artifact).__name__}")


def _commit_sha(artifact: Artifact) -> str:
    if isinstance(artifact, CommitExplanation) and artifact.sha:
        return artifact.sha
    return artifact.commit_sha


def _generated_at(artifact: Artifact, metadata: ExportMetadata) -> datetime:
    moment = artifact.timestamp or metadata.generated_at
    if moment is None:
        raise ValueError("Artifact has no generation time; pass ExportMetadata.generated_at")
    return _as_utc(moment)


def build_document(artifact: Artifact, metadata: ExportMetadata) -> ArtifactPDF:
    """Lay out an artifact. Raises ValueError when no generation time is known."""
    kind = _kind_of(artifact)
    generated_at = _generated_at(artifact, metadata)
    sha = _commit_sha(artifact)

    if kind == ArtifactKind.COMMIT_EXPLANATION:
        readable_id = artifact.readable_id if artifact.readable_id is not None else metadata.readable_id
        task_title = artifact.task_title or metadata.task_title
        header = DocumentHeader(
            "Commit Explanation", f"Task #{readable_id}: {task_title}", generated_at, artifact.cached
        )
    elif kind == ArtifactKind.CODE_ANALYSIS:
        header = DocumentHeader(
            "Code Security Analysis", f"Commit: {sha[:8]}", generated_at, artifact.cached
        )
    else:
        header = DocumentHeader(
            "Task Progress Report", metadata.task_title, generated_at, artifact.cached
        )

    pdf = ArtifactPDF(header)

    if isinstance(artifact, CommitExplanation):
        pdf.add_line(f"Commit SHA: {sha}")
        pdf.add_summary_box("What This Commit Does", clean_markdown(artifact.explanation))
        if artifact.how_it_fulfills_task:
            pdf.add_section("How It Fulfills the Task", clean_markdown(artifact.how_it_fulfills_task))
        pdf.add_section("Technical Details", clean_markdown(artifact.technical_details))
        if artifact.remaining_work:
            numbered = "\n".join(
                f"{i}. {clean_markdown(item)}" for i, item in enumerate(artifact.remaining_work, 1)
            )
            pdf.add_section("Remaining Work", numbered)
    elif isinstance(artifact, CodeAnalysis):
        pdf.add_summary_box(f"Quality Score: {artifact.score}", clean_markdown(artifact.summary))
        if artifact.issues:
            pdf.add_code_issues(artifact.issues)
        else:
            pdf.add_section("Analysis Result", "No security issues detected. Code quality is excellent.")
    elif isinstance(artifact, TaskReport):
        pdf.add_summary_box("Summary", clean_markdown(artifact.summary))
        for section in artifact.sections:
            pdf.add_section(section.title, clean_markdown(section.content))

    return pdf


def render_artifact(artifact: Artifact, metadata: ExportMetadata | None = None) -> bytes:
    """Render an artifact to PDF bytes."""
    return bytes(build_document(artifact, metadata or ExportMetadata()).output())


def export_filename(artifact: Artifact, metadata: ExportMetadata | None = None) -> str:
    """File name embedding the artifact kind, the commit prefix and the generation time."""
    kind = _kind_of(artifact)
    stamp = _generated_at(artifact, metadata or ExportMetadata()).strftime("%Y%m%dT%H%M%S")
    sha = _commit_sha(artifact)[:8]
    prefix = {
        ArtifactKind.COMMIT_EXPLANATION: "Aether_Commit",
        ArtifactKind.CODE_ANALYSIS: "Aether_Security_Analysis",
        ArtifactKind.TASK_REPORT: "Aether_Task_Report",
    }[kind]
    return f"{prefix}_{sha}_{stamp}.pdf"


def export_artifact(
    artifact: Artifact,
    metadata: ExportMetadata | None,
    directory: Path,
) -> Path:
    """Write the artifact's PDF into ``directory`` and return its path.

    An artifact without a timestamp is stamped with the current time.
    """
    metadata = metadata or ExportMetadata()
    if artifact.timestamp is None and metadata.generated_at is None:
        metadata = ExportMetadata(
            task_title=metadata.task_title,
            readable_id=metadata.readable_id,
            generated_at=datetime.now(timezone.utc),
        )

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(artifact, metadata)
    path.write_bytes(render_artifact(artifact, metadata))
    logger.info("Exported %s to %s", _kind_of(artifact), path)
    return path
