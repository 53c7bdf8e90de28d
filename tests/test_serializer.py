"""Tests for documorph serializer module."""

from io import BytesIO

import pytest
from docx import Document
from docx.oxml.ns import qn
from PIL import Image as PILImage

from documorph.config import DocumentConfig, StyleSpec
from documorph.model import (
    Blockquote,
    CodeBlock,
    Heading,
    Hyperlink,
    Image,
    InlineImage,
    LineBreak,
    ListBlock,
    MathDisplay,
    MathInline,
    Paragraph,
    Rule,
    Table,
    TableCell,
    TextRun,
)
from documorph.rasterizer import RasterImage
from documorph.serializer import EMU_PER_PX, px_to_emu, serialize

STYLE = StyleSpec()


def png_bytes(width=10, height=10, fmt="PNG"):
    output = BytesIO()
    PILImage.new("RGB", (width, height), "red").save(output, format=fmt)
    return output.getvalue()


def read_back(nodes, **kwargs):
    return Document(BytesIO(serialize(nodes, **kwargs)))


def run(text, **changes):
    return TextRun(text, STYLE.override(**changes) if changes else STYLE)


class TestBasics:
    """Tests for plain text blocks."""

    def test_returns_docx_package(self):
        data = serialize([Paragraph([run("hello")])])
        assert data.startswith(b"PK")

    def test_empty_document(self):
        assert read_back([]).paragraphs == []

    def test_order_preserved(self):
        doc = read_back([Paragraph([run("one")]), Paragraph([run("two")]), Paragraph([run("three")])])
        assert [p.text for p in doc.paragraphs] == ["one", "two", "three"]

    def test_heading_styles(self):
        doc = read_back([Heading(level, [run(f"H{level}")]) for level in (1, 2, 3)])
        assert [p.style.name for p in doc.paragraphs] == ["Heading 1", "Heading 2", "Heading 3"]

    def test_run_formatting(self):
        style = StyleSpec(font_family="Georgia", font_size=13, color="112233", bold=True, italic=True)
        doc = read_back([Paragraph([TextRun("styled", style)])])
        font = doc.paragraphs[0].runs[0].font
        assert font.name == "Georgia"
        assert font.size.pt == 13
        assert font.bold is True
        assert font.italic is True
        assert str(font.color.rgb) == "112233"

    def test_spacing_and_alignment(self):
        doc = read_back([Paragraph([run("x")], alignment="center", space_before=200, space_after=120)])
        fmt = doc.paragraphs[0].paragraph_format
        assert fmt.space_before.twips == 200
        assert fmt.space_after.twips == 120
        assert fmt.alignment == 1

    def test_line_break(self):
        doc = read_back([Paragraph([run("a"), LineBreak(), run("b")])])
        assert doc.paragraphs[0].text == "a\nb"

    def test_unknown_node(self):
        with pytest.raises(TypeError):
            serialize([object()])


class TestBlocks:
    """Tests for decorated blocks."""

    def test_blockquote(self):
        doc = read_back([Blockquote([run("quoted")])])
        paragraph = doc.paragraphs[0]
        assert paragraph.paragraph_format.left_indent.twips == 720
        assert paragraph._p.pPr.find(qn("w:pBdr")).find(qn("w:left")) is not None

    def test_code_block(self):
        """Test code keeps its line structure and is shaded."""
        doc = read_back([CodeBlock("def f():\n    return 1", StyleSpec(font_family="Courier New"))])
        paragraph = doc.paragraphs[0]
        assert paragraph.text == "def f():\n    return 1"
        assert paragraph.runs[0].font.name == "Courier New"
        assert paragraph._p.pPr.find(qn("w:shd")).get(qn("w:fill")) == "F5F5F5"

    def test_lists(self):
        doc = read_back(
            [
                ListBlock([[run("a")], [run("b")]], ordered=False),
                ListBlock([[run("first")]], ordered=True),
            ]
        )
        assert [p.style.name for p in doc.paragraphs] == ["List Bullet", "List Bullet", "List Number"]
        assert [p.text for p in doc.paragraphs] == ["a", "b", "first"]

    def test_rule(self):
        doc = read_back([Rule()])
        assert doc.paragraphs[0]._p.pPr.find(qn("w:pBdr")).find(qn("w:bottom")) is not None


class TestTable:
    """Tests for table output."""

    def test_cells_and_widths(self):
        """Test cells carry percentage widths."""
        rows = [
            [TableCell([run(h, bold=True)], is_header=True, width_pct=100 / 3) for h in "ABC"],
            [TableCell([run(d)], width_pct=100 / 3) for d in "123"],
        ]
        doc = read_back([Table(rows)])
        table = doc.tables[0]
        assert len(table.rows) == 2
        assert [cell.text for cell in table.rows[1].cells] == ["1", "2", "3"]

        tcW = table.rows[0].cells[0]._tc.tcPr.find(qn("w:tcW"))
        assert tcW.get(qn("w:type")) == "pct"
        assert tcW.get(qn("w:w")) == "1667"

        tblW = table._tbl.tblPr.find(qn("w:tblW"))
        assert tblW.get(qn("w:w")) == "5000"

    def test_header_shading(self):
        rows = [[TableCell([run("H")], is_header=True)], [TableCell([run("d")])]]
        table = read_back([Table(rows)]).tables[0]
        header_shd = table.rows[0].cells[0]._tc.tcPr.find(qn("w:shd"))
        assert header_shd.get(qn("w:fill")) == "E0E0E0"
        assert table.rows[1].cells[0]._tc.tcPr.find(qn("w:shd")) is None

    def test_grid_style(self):
        table = read_back([Table([[TableCell([run("x")])]])]).tables[0]
        assert table.style.name == "Table Grid"

    def test_empty_table_skipped(self):
        assert read_back([Table([])]).tables == []


class TestHyperlink:
    """Tests for hyperlink output."""

    def test_external_relationship(self):
        link = Hyperlink("https://example.com/page", [run("click", underline=True)])
        doc = read_back([Paragraph([run("Go "), link])])
        hyperlinks = doc.paragraphs[0]._p.findall(qn("w:hyperlink"))
        assert len(hyperlinks) == 1

        rel = doc.part.rels[hyperlinks[0].get(qn("r:id"))]
        assert rel.is_external
        assert rel.target_ref == "https://example.com/page"

        link_runs = hyperlinks[0].findall(qn("w:r"))
        assert [r.find(qn("w:t")).text for r in link_runs] == ["click"]


class TestImages:
    """Tests for pictures and formulas."""

    def test_px_to_emu(self):
        assert px_to_emu(100) == 100 * EMU_PER_PX

    def test_block_image(self):
        doc = read_back([Image("pic.png", png_bytes(), width_px=100, height_px=50)])
        shape = doc.inline_shapes[0]
        assert shape.width == px_to_emu(100)
        assert shape.height == px_to_emu(50)

    def test_wide_image_scaled(self):
        """Test images wider than the text column keep their aspect ratio."""
        doc = read_back([Image("big.png", png_bytes(), width_px=4000, height_px=1000)])
        section = doc.sections[0]
        content_width = section.page_width - section.left_margin - section.right_margin
        shape = doc.inline_shapes[0]
        assert shape.width <= content_width + EMU_PER_PX
        assert shape.width / shape.height == pytest.approx(4, rel=0.01)

    def test_converted_format(self):
        """Test formats Word cannot embed are re-encoded."""
        doc = read_back([Paragraph([InlineImage(png_bytes(16, 16, fmt="ICO"), 16, 16)])])
        assert len(doc.inline_shapes) == 1

    def test_unreadable_image_placeholder(self):
        doc = read_back([Image("x.png", b"not an image", width_px=10, height_px=10, alt="Logo")])
        assert len(doc.inline_shapes) == 0
        assert doc.paragraphs[0].text == "[Image: Logo]"

    def test_math_display_image(self):
        image = RasterImage(png_bytes(60, 20), width_px=30, height_px=10)
        doc = read_back([MathDisplay("x^2", image, STYLE)])
        assert doc.inline_shapes[0].width == px_to_emu(30)
        assert doc.paragraphs[0].alignment == 1

    def test_math_fallback_text(self):
        """Test formulas without an image are written as their source."""
        fallback = StyleSpec(font_family="Cambria Math", italic=True)
        inline = MathInline("a+b", None, STYLE)
        doc = read_back([MathDisplay("E = mc^2", None, fallback), Paragraph([run("sum "), inline])])
        assert doc.paragraphs[0].text == "E = mc^2"
        assert doc.paragraphs[0].runs[0].font.name == "Cambria Math"
        assert doc.paragraphs[1].text == "sum a+b"
        assert doc.paragraphs[1].runs[1].font.italic is True


class TestToc:
    """Tests for the table of contents field."""

    def test_toc_at_start(self):
        doc = read_back([Heading(1, [run("Intro")])], toc=True, toc_title="Overview", toc_max_level=2)
        paragraphs = doc.paragraphs
        assert paragraphs[0].text == "Overview"
        assert paragraphs[0].style.name == "Heading 1"

        instr = paragraphs[1]._p.findall(".//" + qn("w:instrText"))
        assert instr[0].text.strip().startswith('TOC \\o "1-2"')
        assert paragraphs[-1].text == "Intro"

    def test_toc_field_closed(self):
        doc = read_back([Paragraph([run("x")])], toc=True)
        types = [f.get(qn("w:fldCharType")) for f in doc.paragraphs[1]._p.findall(".//" + qn("w:fldChar"))]
        assert types == ["begin", "separate", "end"]

    def test_toc_without_content(self):
        assert read_back([], toc=True).paragraphs == []
