"""
High-level utilities for rendering Crafternia breakdown packages into printable PDFs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

import requests
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Frame, Paragraph

from crafternia.pipeline.pipeline import BreakdownPackage, StepAsset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageLayoutConfig:
    page_background: colors.Color
    cover_background: colors.Color
    accent_color: colors.Color
    warning_color: colors.Color
    text_color: colors.Color
    caption_color: colors.Color


DEFAULT_LAYOUT = PageLayoutConfig(
    page_background=colors.HexColor("#FBF8F3"),
    cover_background=colors.HexColor("#3E6B5A"),
    accent_color=colors.HexColor("#E9A23B"),
    warning_color=colors.HexColor("#B3412E"),
    text_color=colors.HexColor("#2B2A28"),
    caption_color=colors.HexColor("#5E5A55"),
)


PAGE_SIZES = {
    "a4": A4,
    "letter": LETTER,
    "square": (8 * inch, 8 * inch),
}


class BreakdownPDFBuilder:
    """
    Render breakdown packages into printable step-by-step guides.

    The builder creates:
      * A cover page with the concept, category, complexity and master image.
      * A materials page listing everything the project needs.
      * One page per step with its title, description, safety warning and image.
    """

    def __init__(
        self,
        *,
        page_size: tuple[float, float] = PAGE_SIZES["letter"],
        margin_mm: float = 16.0,
        layout: PageLayoutConfig = DEFAULT_LAYOUT,
        request_timeout: float = 30.0,
    ) -> None:
        self.page_size = page_size
        self.margin = margin_mm * mm
        self.layout = layout
        self.request_timeout = request_timeout

        self.title_style = ParagraphStyle(
            name="GuideTitle",
            fontName="Helvetica-Bold",
            fontSize=28,
            leading=32,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=12,
        )
        self.subtitle_style = ParagraphStyle(
            name="GuideSubtitle",
            fontName="Helvetica",
            fontSize=15,
            leading=19,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=10,
        )
        self.heading_style = ParagraphStyle(
            name="StepHeading",
            fontName="Helvetica-Bold",
            fontSize=20,
            leading=24,
            alignment=TA_LEFT,
            textColor=self.layout.text_color,
            spaceAfter=10,
        )
        self.body_style = ParagraphStyle(
            name="Body",
            fontName="Helvetica",
            fontSize=12,
            leading=16,
            alignment=TA_LEFT,
            textColor=self.layout.text_color,
            spaceAfter=8,
        )
        self.warning_style = ParagraphStyle(
            name="Warning",
            parent=self.body_style,
            fontName="Helvetica-Bold",
            textColor=self.layout.warning_color,
        )
        self.footer_style = ParagraphStyle(
            name="Footer",
            fontName="Helvetica-Oblique",
            fontSize=9,
            leading=11,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )

    def build_from_yaml(self, package_path: Path | str, output_path: Path | str) -> None:
        package = BreakdownPackage.from_yaml(package_path)
        self.build(package, output_path)

    def build(self, package: BreakdownPackage, output_path: Path | str) -> None:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        pdf = canvas.Canvas(str(output_file), pagesize=self.page_size)
        width, height = self.page_size

        self._draw_cover_page(pdf, package, width, height)
        self._draw_materials_page(pdf, package, width, height)
        for asset in package.steps:
            self._draw_step_page(pdf, package, asset, width, height)

        pdf.save()
        logger.info("Wrote %d-step guide to %s.", len(package.steps), output_file)

    # ------------------------------------------------------------------ cover rendering

    def _draw_cover_page(
        self,
        pdf: canvas.Canvas,
        package: BreakdownPackage,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.cover_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        text_height = height * 0.3
        frame = Frame(
            self.margin,
            height - self.margin - text_height,
            width - 2 * self.margin,
            text_height,
            showBoundary=0,
        )
        category = package.category.replace("_", " ").title()
        frame.addFromList(
            [
                Paragraph(escape(package.concept), self.title_style),
                Paragraph(f"A {category} project", self.subtitle_style),
                Paragraph(
                    f"{package.dissection.complexity} • "
                    f"complexity {package.dissection.complexity_score}/10 • "
                    f"{len(package.steps)} steps",
                    self.subtitle_style,
                ),
            ],
            pdf,
        )

        image_box = (
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - 3 * self.margin - text_height,
        )
        self._draw_image(pdf, package.master.image_url, *image_box)
        pdf.showPage()

    # ------------------------------------------------------------------ materials

    def _draw_materials_page(
        self,
        pdf: canvas.Canvas,
        package: BreakdownPackage,
        width: float,
        height: float,
    ) -> None:
        self._fill_page(pdf, width, height)
        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - 2 * self.margin,
            showBoundary=0,
        )
        flowables = [Paragraph("Materials", self.heading_style)]
        materials = package.dissection.materials or ("No materials listed.",)
        flowables.extend(Paragraph(f"• {escape(item)}", self.body_style) for item in materials)
        frame.addFromList(flowables, pdf)
        self._draw_footer(pdf, escape(package.concept), width)
        pdf.showPage()

    # ------------------------------------------------------------------ steps

    def _draw_step_page(
        self,
        pdf: canvas.Canvas,
        package: BreakdownPackage,
        asset: StepAsset,
        width: float,
        height: float,
    ) -> None:
        self._fill_page(pdf, width, height)

        text_height = height * 0.35
        frame = Frame(
            self.margin,
            height - self.margin - text_height,
            width - 2 * self.margin,
            text_height,
            showBoundary=0,
        )
        step = asset.step
        flowables = [
            Paragraph(f"Step {step.step_number}: {escape(step.title)}", self.heading_style),
            Paragraph(escape(step.description).replace("\n", "<br/>"), self.body_style),
        ]
        if step.safety_warning:
            flowables.append(Paragraph(f"Safety: {escape(step.safety_warning)}", self.warning_style))
        frame.addFromList(flowables, pdf)

        self._draw_image(
            pdf,
            asset.image_url,
            self.margin,
            self.margin + 20,
            width - 2 * self.margin,
            height - 2 * self.margin - text_height - 20,
        )

        footer_text = f"Step {step.step_number} of {len(package.steps)} • {escape(package.concept)}"
        self._draw_footer(pdf, footer_text, width)
        pdf.showPage()

    # ------------------------------------------------------------------ helpers

    def _fill_page(self, pdf: canvas.Canvas, width: float, height: float) -> None:
        pdf.setFillColor(self.layout.page_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)
        pdf.setFillColor(self._lighten(self.layout.accent_color, 0.2))
        pdf.rect(0, height - 6, width, 6, stroke=0, fill=1)

    def _draw_image(
        self,
        pdf: canvas.Canvas,
        url: str | None,
        x: float,
        y: float,
        box_width: float,
        box_height: float,
    ) -> None:
        image_reader = self._fetch_image(url) if url else None
        if image_reader is None:
            pdf.saveState()
            pdf.setStrokeColor(self._lighten(self.layout.caption_color, 0.5))
            pdf.setDash(4, 4)
            pdf.rect(x, y, box_width, box_height, stroke=1, fill=0)
            pdf.restoreState()
            return

        img_width, img_height = image_reader.getSize()
        scale = min(box_width / img_width, box_height / img_height)
        draw_width = img_width * scale
        draw_height = img_height * scale
        pdf.drawImage(
            image_reader,
            x + (box_width - draw_width) / 2,
            y + (box_height - draw_height) / 2,
            draw_width,
            draw_height,
            preserveAspectRatio=True,
            mask="auto",
        )

    def _draw_footer(self, pdf: canvas.Canvas, text: str, width: float) -> None:
        footer_frame = Frame(
            self.margin,
            8,
            width - 2 * self.margin,
            20,
            showBoundary=0,
        )
        footer_frame.addFromList([Paragraph(text, self.footer_style)], pdf)

    def _fetch_image(self, url: str) -> Optional[ImageReader]:
        try:
            response = requests.get(url, timeout=self.request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Could not fetch image %s: %s", url, exc)
            return None
        return ImageReader(BytesIO(response.content))

    @staticmethod
    def _lighten(color: colors.Color, amount: float = 0.5) -> colors.Color:
        amount = max(0.0, min(amount, 1.0))
        r = color.red + (1 - color.red) * amount
        g = color.green + (1 - color.green) * amount
        b = color.blue + (1 - color.blue) * amount
        return colors.Color(r, g, b)
