"""Tests for the composition driver against the in-memory library."""

import pytest
from conftest import make_png
from fakes import FakePage

from pdfbundler.services.composition import (
    CompositionDriver,
    ErrorCode,
    OperationResult,
    classify_error,
    fail,
    friendly_error,
    move_item,
    remove_item,
)
from pdfbundler.services.document_library import (
    CompressionLevel,
    EncryptionLevel,
    ImageDraw,
    ImageSource,
    Permissions,
    TextDraw,
)
from pdfbundler.services.layout import (
    ImageLayoutMode,
    OverlayPosition,
    WatermarkKind,
    WatermarkSpec,
    measure_text,
)
from pdfbundler.services.ranges import PageRange
from pdfbundler.services.recovery import Strategy
from pdfbundler.services.rotation import Direction
from pdfbundler.utils.exceptions import (
    OperationInProgressError,
    ParseError,
    RepairLimitReachedError,
    SaveError,
    ValidationError,
)


class TestMerge:
    def test_concatenates_in_input_order(self, driver, library):
        a = library.make("A", 2)
        b = library.make("B", 1)
        output = driver.merge([a, b])
        assert library.labels_of(output) == ["A.p1", "A.p2", "B.p1"]

    def test_order_follows_input_list(self, driver, library):
        a = library.make("A", 1)
        b = library.make("B", 2)
        assert library.labels_of(driver.merge([b, a])) == ["B.p1", "B.p2", "A.p1"]

    def test_single_save_and_all_closed(self, driver, library):
        driver.merge([library.make("A", 1), library.make("B", 1)])
        assert sum(d.save_calls for d in library.documents) == 1
        assert library.all_closed

    def test_no_sources(self, driver):
        with pytest.raises(ValidationError):
            driver.merge([])

    def test_unparseable_source(self, driver, library):
        with pytest.raises(ParseError):
            driver.merge([library.make("A", 1), b"garbage"])
        assert library.all_closed

    def test_save_failure_surfaces(self, driver, library):
        library.fail_save = True
        with pytest.raises(SaveError, match="disk full"):
            driver.merge([library.make("A", 1)])
        assert library.all_closed


class TestSplit:
    def test_named_ranges(self, driver, library):
        source = library.make("S", 3)
        outputs = driver.split(source, [PageRange(1, 2, "x"), PageRange(3, 3, "y")])
        assert [name for name, _data in outputs] == ["x", "y"]
        assert library.labels_of(outputs[0][1]) == ["S.p1", "S.p2"]
        assert library.labels_of(outputs[1][1]) == ["S.p3"]

    def test_overlapping_ranges_duplicate_pages(self, driver, library):
        source = library.make("S", 3)
        outputs = driver.split(source, [PageRange(1, 2, "a"), PageRange(2, 3, "b")])
        assert library.labels_of(outputs[0][1]) == ["S.p1", "S.p2"]
        assert library.labels_of(outputs[1][1]) == ["S.p2", "S.p3"]

    def test_ranges_clamped(self, driver, library):
        source = library.make("S", 3)
        [(_name, data)] = driver.split(source, [PageRange(0, 10, "all")])
        assert library.labels_of(data) == ["S.p1", "S.p2", "S.p3"]

    def test_copies_single_pages(self, driver, library):
        driver.split(library.make("S", 3), [PageRange(1, 3, "all")])
        assert library.copy_calls == [[0], [1], [2]]

    def test_one_save_per_output(self, driver, library):
        driver.split(library.make("S", 4), [PageRange(1, 1, "a"), PageRange(2, 4, "b")])
        assert sum(d.save_calls for d in library.documents) == 2
        assert library.all_closed

    def test_empty_range_list(self, driver, library):
        with pytest.raises(ValidationError):
            driver.split(library.make("S", 1), [])


class TestWatermark:
    def test_text_drawn_once_per_page_with_own_geometry(self, driver, library):
        pages = [FakePage("p1", 600, 800), FakePage("p2", 300, 200)]
        source = library.register(pages)
        spec = WatermarkSpec(text="DRAFT", size_percent=10, position=OverlayPosition.BOTTOM_LEFT)

        output = driver.watermark(source, spec)
        first, second = library.pages_of(output)

        assert len(first.draws) == 1 and len(second.draws) == 1
        draw = first.draws[0]
        assert isinstance(draw, TextDraw)
        assert draw.font_size == pytest.approx(60)
        assert (draw.x, draw.y) == (20, 20)
        assert draw.color == (1.0, 0.0, 0.0)
        assert draw.opacity == pytest.approx(0.3)
        assert draw.rotation == pytest.approx(45)
        assert second.draws[0].font_size == pytest.approx(20)

    def test_centered_text_uses_rendered_width(self, driver, library):
        source = library.register([FakePage("p1", 600, 800)])
        output = driver.watermark(source, WatermarkSpec(text="X", size_percent=10))
        draw = library.pages_of(output)[0].draws[0]
        assert draw.x == pytest.approx((600 - measure_text("X", 60)) / 2)
        assert draw.y == pytest.approx((800 - 60) / 2)

    def test_image_watermark(self, driver, library):
        source = library.register([FakePage("p1", 600, 800)])
        spec = WatermarkSpec(
            kind=WatermarkKind.IMAGE,
            image=make_png(200, 100),
            size_percent=50,
            position=OverlayPosition.TOP_RIGHT,
            opacity=0.5,
        )
        draw = library.pages_of(driver.watermark(source, spec))[0].draws[0]
        assert isinstance(draw, ImageDraw)
        assert (draw.width, draw.height) == (300, 150)
        assert (draw.x, draw.y) == (600 - 20 - 300, 800 - 20 - 150)
        assert draw.opacity == 0.5

    def test_missing_payload_rejected_before_loading(self, driver, library):
        with pytest.raises(ValidationError):
            driver.watermark(library.make("A", 1), WatermarkSpec(kind=WatermarkKind.IMAGE))
        assert library.load_calls == []

    def test_bad_color_rejected(self, driver, library):
        with pytest.raises(ValidationError):
            driver.watermark(library.make("A", 1), WatermarkSpec(color="red"))

    def test_unreadable_image_rejected(self, driver, library):
        spec = WatermarkSpec(kind=WatermarkKind.IMAGE, image=b"not an image")
        with pytest.raises(ValidationError):
            driver.watermark(library.make("A", 1), spec)


class TestRotate:
    def test_applies_tracker(self, driver, library):
        source = library.register([FakePage("p1"), FakePage("p2", rotation=90)])
        tracker = driver.rotation_tracker(source)
        tracker.rotate(1, Direction.CLOCKWISE)

        output = driver.rotate(source, tracker)
        pages = library.pages_of(output)
        assert [p.rotation for p in pages] == [0, 180]
        assert pages[0].rotation_calls == []

    def test_tracker_must_match_document(self, driver, library):
        source = library.make("A", 2)
        tracker = driver.rotation_tracker(library.make("B", 3))
        with pytest.raises(ValidationError):
            driver.rotate(source, tracker)
        assert library.all_closed


class TestImagesToDocument:
    def _images(self, count):
        return [ImageSource(data=make_png(40, 20), width=40, height=20) for _ in range(count)]

    def test_single_mode_one_page_each(self, driver, library):
        output = driver.images_to_document(self._images(3), ImageLayoutMode.SINGLE)
        pages = library.pages_of(output)
        assert len(pages) == 3
        assert all(len(p.draws) == 1 for p in pages)

    def test_grid_mode_one_page(self, driver, library):
        output = driver.images_to_document(self._images(5), ImageLayoutMode.GRID)
        [page] = library.pages_of(output)
        assert len(page.draws) == 5

    def test_no_images(self, driver):
        with pytest.raises(ValidationError):
            driver.images_to_document([])


class TestCompressProtect:
    def test_compress_passes_level(self, driver, library):
        output = driver.compress(library.make("A", 1), CompressionLevel.HIGH)
        assert library.options_of(output).compression is CompressionLevel.HIGH

    def test_protect_options(self, driver, library):
        perms = Permissions(copying=False)
        output = driver.protect(
            library.make("A", 1), "secret", permissions=perms, encryption=EncryptionLevel.RC4
        )
        options = library.options_of(output)
        assert options.user_password == "secret"
        assert options.encryption is EncryptionLevel.RC4
        assert options.permissions.copying is False
        assert options.permissions.printing is True

    def test_protect_requires_password(self, driver, library):
        with pytest.raises(ValidationError):
            driver.protect(library.make("A", 1), "")


class TestRepair:
    def test_repeated_requests_share_cascade(self, driver, session):
        for _ in range(3):
            assert not driver.repair(b"garbage").success
        assert session.repair_attempts == 3
        with pytest.raises(RepairLimitReachedError):
            driver.repair(b"garbage")

    def test_new_input_starts_fresh_cascade(self, driver, library, session):
        driver.repair(b"garbage")
        result = driver.repair(library.make("A", 2))
        assert result.success
        assert result.strategy is Strategy.STANDARD
        assert session.repair_attempts == 1


class TestProcessingGuard:
    def test_reentrant_call_refused(self, driver, library, session):
        with session.processing("merge"):
            with pytest.raises(OperationInProgressError):
                driver.split(library.make("A", 1), [PageRange(1, 1, "x")])

    def test_flag_released_after_failure(self, driver, library, session):
        with pytest.raises(ParseError):
            driver.compress(b"garbage", CompressionLevel.LOW)
        assert session.is_processing is False


class TestMergeList:
    def test_move_up_and_down(self):
        items = ["a", "b", "c"]
        assert move_item(items, 1, "up") is True
        assert items == ["b", "a", "c"]
        assert move_item(items, 1, "down") is True
        assert items == ["b", "c", "a"]

    def test_move_at_boundaries(self):
        items = ["a", "b"]
        assert move_item(items, 0, "up") is False
        assert move_item(items, 1, "down") is False
        assert items == ["a", "b"]

    def test_bad_direction(self):
        with pytest.raises(ValidationError):
            move_item(["a"], 0, "sideways")

    def test_remove(self):
        items = ["a", "b"]
        assert remove_item(items, 0) == "a"
        assert remove_item(items, 5) is None
        assert items == ["b"]


class TestErrorMapping:
    def test_classify(self):
        assert classify_error(FileNotFoundError()) is ErrorCode.FILE_NOT_FOUND
        assert classify_error(ParseError("bad")) is ErrorCode.CORRUPT_PDF
        assert classify_error(SaveError("x")) is ErrorCode.SAVE_FAILED
        assert classify_error(OperationInProgressError("merge")) is ErrorCode.BUSY
        assert classify_error(RepairLimitReachedError(3)) is ErrorCode.REPAIR_REFUSED
        assert classify_error(RuntimeError()) is ErrorCode.UNKNOWN

    def test_friendly_parse_error_suggests_repair(self):
        assert "repair" in friendly_error(ParseError("xref broken"))

    def test_fail(self):
        result = fail(SaveError("disk full"))
        assert isinstance(result, OperationResult)
        assert not result.success
        assert "disk full" in result.message
        assert result.error_code is ErrorCode.SAVE_FAILED


def test_driver_creates_session_when_omitted(library):
    assert CompositionDriver(library).session.is_processing is False
