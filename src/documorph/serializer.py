"""
Write the document model to a .docx package with python-docx.
"""

from __future__ import annotations

from io import BytesIO

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.image.exceptions import UnrecognizedImageError
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Pt, RGBColor, Twips
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from .config import DocumentConfig, StyleSpec
from .images import image_placeholder
from .model import (
    BlockNode,
    Blockquote,
    CodeBlock,
    Heading,
    Hyperlink,
    Image,
    InlineImage,
    InlineRun,
    LineBreak,
    ListBlock,
    MathDisplay,
    MathInline,
    Paragraph,
    Rule,
    Table,
    TextRun,
)
from .utils import hex_to_rgb, print_error, print_info

EMU_PER_PX = 9525  # at 96 px per inch

ALIGNMENT_MAP = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

CODE_SHADING = "F5F5F5"
HEADER_SHADING = "E0E0E0"
QUOTE_INDENT_TWIPS = 720
LIST_SPACING_TWIPS = 100
BLOCK_SPACING_TWIPS = 240

# Children of w:pPr that must follow w:pBdr / w:shd
PPR_SUCCESSORS = (
    "w:tabs",
    "w:suppressAutoHyphens",
    "w:kinsoku",
    "w:wordWrap",
    "w:overflowPunct",
    "w:topLinePunct",
    "w:autoSpaceDE",
    "w:autoSpaceDN",
    "w:bidi",
    "w:adjustRightInd",
    "w:snapToGrid",
    "w:spacing",
    "w:ind",
    "w:contextualSpacing",
    "w:mirrorIndents",
    "w:suppressOverlap",
    "w:jc",
    "w:textDirection",
    "w:textAlignment",
    "w:textboxTightWrap",
    "w:outlineLvl",
    "w:divId",
    "w:cnfStyle",
    "w:rPr",
    "w:sectPr",
    "w:pPrChange",
)

TCPR_SHD_SUCCESSORS = ("w:noWrap", "w:tcMar", "w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark")


def px_to_emu(px: float) -> Emu:
    return Emu(int(round(px * EMU_PER_PX)))


def _border(edge: str, space: int) -> OxmlElement:
    element = OxmlElement(f"w:{edge}")
    element.set(qn("w:val"), "single")
    element.set(qn("w:sz"), "6")
    element.set(qn("w:space"), str(space))
    element.set(qn("w:color"), "auto")
    return element


def _shading(fill: str) -> OxmlElement:
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    return shd


def add_paragraph_border(paragraph, edge: str, space: int) -> None:
    """Add a single-line border on one edge of a paragraph."""
    pPr = paragraph._p.get_or_add_pPr()
    pBdr = OxmlElement("w:pBdr")
    pBdr.append(_border(edge, space))
    pPr.insert_element_before(pBdr, "w:shd", *PPR_SUCCESSORS)


def add_paragraph_shading(paragraph, fill: str) -> None:
    """Fill a paragraph's background."""
    pPr = paragraph._p.get_or_add_pPr()
    pPr.insert_element_before(_shading(fill), *PPR_SUCCESSORS)


def set_cell_shading(cell, fill: str) -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    tcPr.insert_element_before(_shading(fill), *TCPR_SHD_SUCCESSORS)


def set_cell_width_pct(cell, pct: float) -> None:
    """Cell width as a percentage (stored in fiftieths of a percent)."""
    tcW = cell._tc.get_or_add_tcPr().get_or_add_tcW()
    tcW.set(qn("w:type"), "pct")
    tcW.set(qn("w:w"), str(int(round(pct * 50))))


def set_table_width_pct(table, pct: float) -> None:
    tblPr = table._tbl.tblPr
    tblW = tblPr.find(qn("w:tblW"))
    if tblW is None:
        tblW = OxmlElement("w:tblW")
        tblPr.append(tblW)
    tblW.set(qn("w:type"), "pct")
    tblW.set(qn("w:w"), str(int(round(pct * 50))))


def format_paragraph(paragraph, alignment: str, space_before: int, space_after: int) -> None:
    pf = paragraph.paragraph_format
    if alignment in ALIGNMENT_MAP:
        pf.alignment = ALIGNMENT_MAP[alignment]
    pf.space_before = Twips(space_before)
    pf.space_after = Twips(space_after)


def apply_style_to_run(run, style: StyleSpec) -> None:
    """Apply style to run."""
    run.font.name = style.font_family
    run.font.size = Pt(style.font_size)
    run.font.bold = style.bold
    run.font.italic = style.italic
    run.font.underline = style.underline

    r, g, b = hex_to_rgb(style.color)
    run.font.color.rgb = RGBColor(r, g, b)

    # Use the same font for East Asian text
    if run._element.rPr is not None:
        rFonts = run._element.rPr.rFonts
        if rFonts is not None:
            rFonts.set(qn("w:eastAsia"), style.font_family)


def to_docx_image(data: bytes) -> BytesIO | None:
    """Re-encode an image python-docx cannot read as PNG."""
    try:
        with PILImage.open(BytesIO(data)) as image:
            if image.mode not in ("RGB", "RGBA", "L", "LA"):
                image = image.convert("RGBA")
            output = BytesIO()
            image.save(output, format="PNG")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        print_error(f"Cannot convert image for Word: {e}")
        return None
    output.seek(0)
    return output


class DocxWriter:
    """Appends document nodes to a python-docx Document."""

    def __init__(self, config: DocumentConfig, document=None):
        self.config = config
        self.document = document if document is not None else Document()
        section = self.document.sections[0]
        content_width = section.page_width - section.left_margin - section.right_margin
        self.max_image_width_px = config.image.max_width_px(content_width / EMU_PER_PX)

    def write(self, nodes: list[BlockNode]) -> None:
        for node in nodes:
            self.write_node(node)

    def write_node(self, node: BlockNode) -> None:
        if isinstance(node, Heading):
            paragraph = self.document.add_paragraph(style=f"Heading {node.level}")
            format_paragraph(paragraph, node.alignment, node.space_before, node.space_after)
            self.add_runs(paragraph, node.runs)
        elif isinstance(node, Paragraph):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, node.alignment, node.space_before, node.space_after)
            self.add_runs(paragraph, node.runs)
        elif isinstance(node, Blockquote):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, node.alignment, node.space_before, node.space_after)
            paragraph.paragraph_format.left_indent = Twips(QUOTE_INDENT_TWIPS)
            add_paragraph_border(paragraph, "left", space=6)
            self.add_runs(paragraph, node.runs)
        elif isinstance(node, CodeBlock):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, "left", node.space_before, node.space_after)
            add_paragraph_shading(paragraph, CODE_SHADING)
            # run.text turns "\n" into line breaks
            run = paragraph.add_run(node.text)
            apply_style_to_run(run, node.style)
        elif isinstance(node, ListBlock):
            style = "List Number" if node.ordered else "List Bullet"
            for item in node.items:
                paragraph = self.document.add_paragraph(style=style)
                format_paragraph(paragraph, node.alignment, LIST_SPACING_TWIPS, LIST_SPACING_TWIPS)
                self.add_runs(paragraph, item)
        elif isinstance(node, Table):
            self.write_table(node)
        elif isinstance(node, Rule):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, "left", BLOCK_SPACING_TWIPS, BLOCK_SPACING_TWIPS)
            add_paragraph_border(paragraph, "bottom", space=1)
        elif isinstance(node, Image):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, node.alignment, node.space_before, node.space_after)
            self.add_picture(paragraph, node.data, node.width_px, node.height_px, node.alt, self.config.paragraph)
        elif isinstance(node, MathDisplay):
            paragraph = self.document.add_paragraph()
            format_paragraph(paragraph, "center", BLOCK_SPACING_TWIPS, BLOCK_SPACING_TWIPS)
            self.add_math(paragraph, node.tex, node.image, node.fallback_style)
        else:
            raise TypeError(f"Unsupported document node: {type(node).__name__}")

    def write_table(self, node: Table) -> None:
        column_count = max((len(row) for row in node.rows), default=0)
        if column_count == 0:
            return

        table = self.document.add_table(rows=0, cols=column_count)
        table.style = self.document.styles["Table Grid"]
        set_table_width_pct(table, 100)

        for row in node.rows:
            docx_row = table.add_row()
            for cell, docx_cell in zip(row, docx_row.cells):
                set_cell_width_pct(docx_cell, cell.width_pct)
                paragraph = docx_cell.paragraphs[0]
                paragraph.alignment = ALIGNMENT_MAP["center" if cell.is_header else "left"]
                self.add_runs(paragraph, cell.runs)
                if cell.is_header:
                    set_cell_shading(docx_cell, HEADER_SHADING)

        spacer = self.document.add_paragraph()
        spacer.paragraph_format.space_before = Twips(BLOCK_SPACING_TWIPS)

    def add_runs(self, paragraph, runs: list[InlineRun], container=None) -> None:
        """Add inline runs to a paragraph, or to a hyperlink inside it."""
        for run in runs:
            if isinstance(run, TextRun):
                docx_run = paragraph.add_run(run.text)
                apply_style_to_run(docx_run, run.style)
            elif isinstance(run, LineBreak):
                docx_run = paragraph.add_run()
                docx_run.add_break(WD_BREAK.LINE)
            elif isinstance(run, Hyperlink):
                self.add_hyperlink(paragraph, run)
                continue
            elif isinstance(run, InlineImage):
                docx_run = self.add_picture(
                    paragraph, run.data, run.width_px, run.height_px, run.alt, self.config.paragraph
                )
            elif isinstance(run, MathInline):
                fallback = run.style.override(font_family="Cambria Math", italic=True)
                docx_run = self.add_math(paragraph, run.tex, run.image, fallback)
            else:
                raise TypeError(f"Unsupported inline run: {type(run).__name__}")

            if container is not None:
                container.append(docx_run._r)

    def add_hyperlink(self, paragraph, link: Hyperlink) -> None:
        r_id = paragraph.part.relate_to(link.href, RT.HYPERLINK, is_external=True)
        hyperlink = OxmlElement("w:hyperlink")
        hyperlink.set(qn("r:id"), r_id)
        paragraph._p.append(hyperlink)
        # Runs are created on the paragraph, then moved into the hyperlink
        self.add_runs(paragraph, link.children, container=hyperlink)

    def add_picture(self, paragraph, data: bytes, width_px: float, height_px: float, alt: str, style: StyleSpec):
        if width_px > self.max_image_width_px > 0:
            ratio = self.max_image_width_px / width_px
            print_info(
                f"Resized image: {width_px:.0f}x{height_px:.0f} -> "
                f"{width_px * ratio:.0f}x{height_px * ratio:.0f} px"
            )
            width_px, height_px = width_px * ratio, height_px * ratio

        run = paragraph.add_run()
        try:
            run.add_picture(BytesIO(data), width=px_to_emu(width_px), height=px_to_emu(height_px))
            return run
        except UnrecognizedImageError:
            converted = to_docx_image(data)
            if converted is not None:
                run.add_picture(converted, width=px_to_emu(width_px), height=px_to_emu(height_px))
                return run

        print_error(f"Image format not supported, writing placeholder: {alt or 'Image'}")
        run.text = image_placeholder(alt)
        apply_style_to_run(run, style)
        return run

    def add_math(self, paragraph, tex: str, image, fallback_style: StyleSpec):
        if image is not None:
            run = paragraph.add_run()
            run.add_picture(BytesIO(image.data), width=px_to_emu(image.width_px), height=px_to_emu(image.height_px))
            return run
        run = paragraph.add_run(tex)
        apply_style_to_run(run, fallback_style)
        return run


def add_toc(document, title: str = "Contents", max_level: int = 3) -> None:
    """Add table of contents at the beginning of document."""
    if not document.paragraphs:
        return

    first = document.paragraphs[0]
    toc_title = first.insert_paragraph_before(title)
    toc_title.style = document.styles["Heading 1"]

    toc_paragraph = first.insert_paragraph_before("")
    run = toc_paragraph.add_run()

    fld_char_begin = OxmlElement("w:fldChar")
    fld_char_begin.set(qn("w:fldCharType"), "begin")
    run._r.append(fld_char_begin)

    instr_text = OxmlElement("w:instrText")
    instr_text.set(qn("xml:space"), "preserve")
    instr_text.text = f' TOC \\o "1-{max_level}" \\h \\z \\u '
    run._r.append(instr_text)

    fld_char_separate = OxmlElement("w:fldChar")
    fld_char_separate.set(qn("w:fldCharType"), "separate")
    run._r.append(fld_char_separate)

    placeholder_run = toc_paragraph.add_run("Right-click here and select 'Update Field' to generate TOC")
    placeholder_run.italic = True
    placeholder_run.font.color.rgb = RGBColor(128, 128, 128)

    fld_char_end = OxmlElement("w:fldChar")
    fld_char_end.set(qn("w:fldCharType"), "end")
    placeholder_run._r.append(fld_char_end)

    page_break_paragraph = first.insert_paragraph_before("")
    page_break_run = page_break_paragraph.add_run()
    page_break_run.add_break(WD_BREAK.PAGE)

    print_info(f"Added TOC (levels 1-{max_level})")


def serialize(
    nodes: list[BlockNode],
    config: DocumentConfig | None = None,
    toc: bool = False,
    toc_title: str = "Contents",
    toc_max_level: int = 3,
) -> bytes:
    """Write nodes, in order, to a .docx package and return its bytes."""
    writer = DocxWriter(config or DocumentConfig())
    writer.write(nodes)

    if toc:
        add_toc(writer.document, title=toc_title, max_level=toc_max_level)

    output = BytesIO()
    writer.document.save(output)
    return output.getvalue()
