"""Integration tests for the images → PDF pagination driver (real Pillow + pymupdf)."""

import asyncio

import fitz
import pytest
from conftest import make_image_bytes, make_oriented_jpeg
from pageforge.errors import (
    DocumentWriteError, EmptyInputError, ImageCompressionError, ImageDecodeError, InvalidLayoutError, PageWriteError,
)
from pageforge.layout.geometry import mm_to_points
from pageforge.models.image import (
    DirectMode, FitMode, ImageUnit, OptimizedMode, Orientation, PageSize, PdfSettings, ProgressPhase,
)
from pageforge.models.job import JobState
from pageforge.pdf.image_to_pdf import ImagesToPdfJob, run_images_to_pdf
from pageforge.pdf.writer import FitzDocumentWriter


def _unit(name, width, height, fmt="PNG"):
    return ImageUnit.from_bytes(name, make_image_bytes(width, height, fmt))


def _broken(name):
    return ImageUnit(name=name, width=100, height=100, size_bytes=12, data=b"not an image")


class RecordingWriter(FitzDocumentWriter):
    def __init__(self, fail_on_place=None):
        self.calls = []
        self.fail_on_place = fail_on_place
        self.placed = 0

    def create_document(self, page_width_mm, page_height_mm, orientation="portrait"):
        self.calls.append("create")
        return super().create_document(page_width_mm, page_height_mm, orientation)

    def add_page(self, handle, page_width_mm, page_height_mm):
        self.calls.append("add_page")
        super().add_page(handle, page_width_mm, page_height_mm)

    def place_raster(self, handle, raster, x, y, width, height):
        self.placed += 1
        if self.placed == self.fail_on_place:
            raise RuntimeError("disk full")
        self.calls.append("place")
        super().place_raster(handle, raster, x, y, width, height)

    def finalize_document(self, handle):
        self.calls.append("finalize")
        return super().finalize_document(handle)

    def discard_document(self, handle):
        self.calls.append("discard")
        super().discard_document(handle)


def _image_dims(pdf):
    doc = fitz.open(stream=pdf, filetype="pdf")
    dims = [tuple(page.get_images()[0][2:4]) for page in doc]
    doc.close()
    return dims


def _placed_image(pdf):
    """Image bbox on page 1 plus the rendered colour a quarter and three quarters down it."""
    doc = fitz.open(stream=pdf, filetype="pdf")
    page = doc[0]
    bbox = page.get_image_rects(page.get_images()[0][0])[0]
    pix = page.get_pixmap(alpha=False)
    cx = int((bbox.x0 + bbox.x1) / 2)
    top = pix.pixel(cx, int(bbox.y0 + bbox.height * 0.25))
    bottom = pix.pixel(cx, int(bbox.y0 + bbox.height * 0.75))
    doc.close()
    return bbox, top, bottom


class ProgressLog:
    def __init__(self):
        self.events = []

    def __call__(self, current, total, phase, message):
        self.events.append((current, total, phase))


class TestPagination:
    async def test_one_page_per_image(self):
        images = [_unit("a.png", 400, 300), _unit("b.jpg", 300, 600, "JPEG"), _unit("c.png", 50, 50)]
        pdf = await run_images_to_pdf(images, PdfSettings())
        doc = fitz.open(stream=pdf, filetype="pdf")
        assert len(doc) == 3
        for page in doc:
            assert page.rect.width == pytest.approx(mm_to_points(210), abs=0.5)
            assert page.rect.height == pytest.approx(mm_to_points(297), abs=0.5)
            assert len(page.get_images()) == 1
        doc.close()

    async def test_letter_landscape_pages(self):
        settings = PdfSettings(page_size=PageSize.LETTER, orientation=Orientation.LANDSCAPE)
        pdf = await run_images_to_pdf([_unit("a.png", 400, 300)], settings)
        doc = fitz.open(stream=pdf, filetype="pdf")
        assert doc[0].rect.width == pytest.approx(792, abs=0.5)
        assert doc[0].rect.height == pytest.approx(612, abs=0.5)
        doc.close()

    async def test_direct_mode_preserves_order(self):
        images = [_unit("wide.png", 300, 100), _unit("tall.png", 100, 300), _unit("square.png", 200, 200)]
        pdf = await run_images_to_pdf(images, PdfSettings(conversion_mode=DirectMode()))
        doc = fitz.open(stream=pdf, filetype="pdf")
        dims = [(page.get_images()[0][2], page.get_images()[0][3]) for page in doc]
        doc.close()
        assert dims == [(300, 100), (100, 300), (200, 200)]

    async def test_fit_placement_lands_on_page(self):
        images = [_unit("tall.png", 1000, 2000)]
        settings = PdfSettings(fit_mode=FitMode.FIT, conversion_mode=DirectMode())
        pdf = await run_images_to_pdf(images, settings)
        doc = fitz.open(stream=pdf, filetype="pdf")
        bbox = doc[0].get_image_rects(doc[0].get_images()[0][0])[0]
        doc.close()
        assert bbox.x0 == pytest.approx(mm_to_points(35.75), abs=0.1)
        assert bbox.y0 == pytest.approx(mm_to_points(10), abs=0.1)
        assert bbox.width == pytest.approx(mm_to_points(138.5), abs=0.1)

    async def test_optimized_output_is_jpeg(self):
        pdf = await run_images_to_pdf(
            [_unit("big.png", 3000, 1500)], PdfSettings(conversion_mode=OptimizedMode(preset="verySmall")),
        )
        doc = fitz.open(stream=pdf, filetype="pdf")
        xref, _, width, height = doc[0].get_images()[0][:4]
        info = doc.extract_image(xref)
        doc.close()
        assert (width, height) == (1024, 512)
        assert info["ext"] in ("jpeg", "jpg")

    async def test_webp_input_in_direct_mode(self):
        pdf = await run_images_to_pdf([_unit("a.webp", 60, 40, "WEBP")], PdfSettings(conversion_mode=DirectMode()))
        assert pdf.startswith(b"%PDF")


    async def test_exif_rotation_matches_between_modes(self):
        unit = ImageUnit.from_bytes("phone.jpg", make_oriented_jpeg(6))
        direct = await run_images_to_pdf([unit], PdfSettings(conversion_mode=DirectMode()))
        optimized = await run_images_to_pdf([unit], PdfSettings(conversion_mode=OptimizedMode()))

        d_box, d_top, d_bottom = _placed_image(direct)
        o_box, o_top, o_bottom = _placed_image(optimized)

        assert tuple(d_box) == pytest.approx(tuple(o_box), abs=0.1)
        assert d_box.height > d_box.width
        # Displayed upright: red on top, blue below
        for top, bottom in ((d_top, d_bottom), (o_top, o_bottom)):
            assert top[0] > top[2]
            assert bottom[2] > bottom[0]

    async def test_independent_runs_proceed_concurrently(self):
        first = [_unit("wide-1.png", 300, 100), _unit("tall-1.png", 100, 300)]
        second = [_unit("square-2.png", 200, 200), _unit("wide-2.png", 320, 80), _unit("tall-2.png", 90, 270)]
        settings = PdfSettings(conversion_mode=DirectMode())

        pdf_a, pdf_b = await asyncio.gather(
            run_images_to_pdf(first, settings),
            run_images_to_pdf(second, settings),
        )

        assert _image_dims(pdf_a) == [(300, 100), (100, 300)]
        assert _image_dims(pdf_b) == [(200, 200), (320, 80), (90, 270)]


class TestJobLifecycle:
    async def test_progress_sequence_optimized(self):
        log = ProgressLog()
        job = ImagesToPdfJob([_unit("a.png", 40, 40), _unit("b.png", 40, 40)], PdfSettings(), on_progress=log)
        await job.run()
        assert log.events == [
            (1, 2, ProgressPhase.COMPRESSING),
            (2, 2, ProgressPhase.COMPRESSING),
            (1, 2, ProgressPhase.PLACING),
            (2, 2, ProgressPhase.PLACING),
            (2, 2, ProgressPhase.COMPLETE),
        ]
        assert job.state is JobState.COMPLETE

    async def test_progress_sequence_direct(self):
        log = ProgressLog()
        job = ImagesToPdfJob(
            [_unit("a.png", 40, 40)], PdfSettings(conversion_mode=DirectMode()), on_progress=log,
        )
        await job.run()
        assert [phase for _, _, phase in log.events] == [
            ProgressPhase.PROCESSING, ProgressPhase.PLACING, ProgressPhase.COMPLETE,
        ]

    async def test_result_contract(self):
        images = [_unit("a.png", 40, 40)]
        job = ImagesToPdfJob(images, PdfSettings(), verify=True)
        result = await job.run()
        assert result.page_count == 1
        assert result.size_bytes == len(result.pdf)
        assert result.mode == "optimized"
        assert len(result.content_hash) == 64
        assert result.estimated_size_bytes > 0
        assert [t.step for t in result.timings] == ["compress", "paginate", "verify"]
        assert result.verification.passed
        assert result.verification.checks_passed == 5

    async def test_input_snapshot(self):
        images = [_unit("a.png", 40, 40), _unit("b.png", 40, 40)]
        job = ImagesToPdfJob(images, PdfSettings())
        images.append(_unit("c.png", 40, 40))
        result = await job.run()
        assert result.page_count == 2


class TestFailures:
    async def test_empty_input(self):
        job = ImagesToPdfJob([], PdfSettings())
        with pytest.raises(EmptyInputError):
            await job.run()
        assert job.state is JobState.ERROR

    async def test_margin_leaving_no_content_area(self):
        job = ImagesToPdfJob([_unit("a.png", 40, 40)], PdfSettings(margin_mm=105))
        with pytest.raises(InvalidLayoutError):
            await job.run()

    async def test_compression_abort_on_second_image(self):
        log = ProgressLog()
        writer = RecordingWriter()
        images = [_unit("first.png", 40, 40), _broken("second.jpg"), _unit("third.png", 40, 40)]
        job = ImagesToPdfJob(images, PdfSettings(), on_progress=log, writer=writer)

        with pytest.raises(ImageCompressionError) as exc_info:
            await job.run()

        assert exc_info.value.image_name == "second.jpg"
        assert exc_info.value.phase == "compressing"
        assert job.state is JobState.ERROR
        assert writer.calls == []
        assert log.events[-1] == (1, 3, ProgressPhase.ERROR)
        assert ProgressPhase.COMPLETE not in [phase for _, _, phase in log.events]

    async def test_decode_failure_in_direct_mode(self):
        images = [_unit("a.png", 40, 40), _broken("b.png")]
        job = ImagesToPdfJob(images, PdfSettings(conversion_mode=DirectMode()))
        with pytest.raises(ImageDecodeError) as exc_info:
            await job.run()
        assert exc_info.value.image_name == "b.png"
        assert exc_info.value.phase == "processing"

    async def test_codec_failure_is_wrapped(self):
        class ExplodingCodec:
            async def compress_raster(self, image, preset):
                raise MemoryError("out of memory")

            async def load_raster_original(self, image):
                raise AssertionError("not used")

        job = ImagesToPdfJob([_unit("a.png", 40, 40)], PdfSettings(), codec=ExplodingCodec())
        with pytest.raises(ImageCompressionError) as exc_info:
            await job.run()
        assert "out of memory" in exc_info.value.message

    async def test_writer_failure_discards_document(self):
        log = ProgressLog()
        writer = RecordingWriter(fail_on_place=2)
        images = [_unit("a.png", 40, 40), _unit("b.png", 40, 40), _unit("c.png", 40, 40)]
        job = ImagesToPdfJob(images, PdfSettings(), on_progress=log, writer=writer)

        with pytest.raises(PageWriteError) as exc_info:
            await job.run()

        assert exc_info.value.image_name == "b.png"
        assert "disk full" in exc_info.value.message
        assert "finalize" not in writer.calls
        assert writer.calls[-1] == "discard"
        assert log.events[-1] == (1, 3, ProgressPhase.ERROR)

    async def test_empty_input_reports_error_event(self):
        log = ProgressLog()
        job = ImagesToPdfJob([], PdfSettings(), on_progress=log)
        with pytest.raises(EmptyInputError):
            await job.run()
        assert log.events == [(0, 0, ProgressPhase.ERROR)]

    async def test_invalid_layout_reports_error_event(self):
        log = ProgressLog()
        writer = RecordingWriter()
        job = ImagesToPdfJob([_unit("a.png", 40, 40)], PdfSettings(margin_mm=150), on_progress=log, writer=writer)
        with pytest.raises(InvalidLayoutError):
            await job.run()
        assert log.events == [(0, 1, ProgressPhase.ERROR)]
        assert job.state is JobState.ERROR
        assert writer.calls == []

    async def test_finalize_failure_is_wrapped(self):
        class FailingFinalizeWriter(RecordingWriter):
            def finalize_document(self, handle):
                raise RuntimeError("stream closed")

        log = ProgressLog()
        writer = FailingFinalizeWriter()
        job = ImagesToPdfJob(
            [_unit("a.png", 40, 40), _unit("b.png", 40, 40)], PdfSettings(), on_progress=log, writer=writer,
        )

        with pytest.raises(DocumentWriteError) as exc_info:
            await job.run()

        assert "stream closed" in exc_info.value.message
        assert (job.timings[-1].step, job.timings[-1].status) == ("paginate", "failed")
        assert writer.calls[-1] == "discard"
        assert log.events[-1] == (2, 2, ProgressPhase.ERROR)
