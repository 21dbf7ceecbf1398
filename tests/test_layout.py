"""Tests for image grid and overlay placement geometry."""

import pytest

from pdfbundler.constants import A4_HEIGHT_PT, A4_WIDTH_PT, GRID_MARGIN_PT, OVERLAY_EDGE_INSET
from pdfbundler.services.layout import (
    ImageLayoutMode,
    OverlayPosition,
    WatermarkKind,
    WatermarkSpec,
    grid_cell,
    grid_for_count,
    image_overlay_geometry,
    layout_grid,
    layout_images,
    layout_single,
    measure_text,
    overlay_position,
    text_overlay_geometry,
)
from pdfbundler.utils.exceptions import ValidationError

A4 = (A4_WIDTH_PT, A4_HEIGHT_PT)


class TestGridForCount:
    def test_thresholds(self):
        assert grid_for_count(1) == (1, 1)
        assert grid_for_count(2) == (2, 1)
        assert grid_for_count(3) == (2, 2)
        assert grid_for_count(4) == (2, 2)
        assert grid_for_count(5) == (3, 2)
        assert grid_for_count(9) == (3, 3)
        assert grid_for_count(10) == (3, 4)

    def test_capacity_covers_count(self):
        for n in range(1, 40):
            cols, rows = grid_for_count(n)
            assert cols * rows >= n


class TestGridCell:
    def test_top_left_cell_starts_below_top_margin(self):
        cell = grid_cell(0, 0, (2, 2), (200, 400), margin=10)
        assert cell.x == pytest.approx(10)
        assert cell.width == pytest.approx(90)
        assert cell.height == pytest.approx(190)
        assert cell.y + cell.height == pytest.approx(390)

    def test_bottom_right_cell(self):
        cell = grid_cell(1, 1, (2, 2), (200, 400), margin=10)
        assert cell.x == pytest.approx(100)
        assert cell.y == pytest.approx(10)


class TestLayoutGrid:
    def test_every_image_fits_its_cell(self):
        sizes = [(640, 480), (100, 900), (1200, 300), (50, 50), (3000, 2000), (10, 400), (800, 800)]
        for n in range(1, len(sizes) + 1):
            grid = grid_for_count(n)
            placements = layout_grid(sizes[:n], A4)
            assert len(placements) == n
            cols, _rows = grid
            for i, placement in enumerate(placements):
                cell = grid_cell(i % cols, i // cols, grid, A4, GRID_MARGIN_PT)
                assert cell.contains(placement)
                assert placement.page_index == 0

    def test_scaled_to_ninety_percent_of_limiting_side(self):
        [placement] = layout_grid([(100, 100)], (220, 420), margin=10)
        # cell is 200x400, width is the limiting side
        assert placement.width == pytest.approx(180)
        assert placement.height == pytest.approx(180)
        assert placement.x == pytest.approx(20)
        assert placement.y == pytest.approx(10 + (400 - 180) / 2)

    def test_aspect_ratio_preserved(self):
        placements = layout_grid([(400, 200), (200, 400), (300, 300)], A4)
        assert placements[0].width / placements[0].height == pytest.approx(2.0)
        assert placements[1].width / placements[1].height == pytest.approx(0.5)

    def test_full_grid_starts_new_page(self):
        placements = layout_grid([(10, 10)] * 3, (220, 120), margin=10, grid=(2, 1))
        assert [p.page_index for p in placements] == [0, 0, 1]
        assert placements[2].x == pytest.approx(placements[0].x)
        assert placements[2].y == pytest.approx(placements[0].y)

    def test_fills_left_to_right_then_down(self):
        placements = layout_grid([(10, 10)] * 4, A4)
        assert placements[0].x < placements[1].x
        assert placements[0].y == pytest.approx(placements[1].y)
        assert placements[2].y < placements[0].y

    def test_empty(self):
        assert layout_grid([]) == []


class TestLayoutSingle:
    def test_one_page_per_image(self):
        placements = layout_single([(200, 100), (100, 200)], A4)
        assert [p.page_index for p in placements] == [0, 1]

    def test_scaled_to_fit_and_centered(self):
        [placement] = layout_single([(200, 100)], A4)
        assert placement.width == pytest.approx(A4_WIDTH_PT)
        assert placement.height == pytest.approx(A4_WIDTH_PT / 2)
        assert placement.x == pytest.approx(0)
        assert placement.y == pytest.approx((A4_HEIGHT_PT - A4_WIDTH_PT / 2) / 2)


class TestLayoutImages:
    def test_dispatch(self):
        sizes = [(10, 10)] * 3
        assert len({p.page_index for p in layout_images(sizes, ImageLayoutMode.GRID)}) == 1
        assert len({p.page_index for p in layout_images(sizes, ImageLayoutMode.SINGLE)}) == 3

    def test_zero_sized_image_rejected(self):
        with pytest.raises(ValidationError):
            layout_images([(0, 10)], ImageLayoutMode.SINGLE)


class TestOverlayPosition:
    def test_table(self):
        size, page = (100, 50), (600, 800)
        assert overlay_position(OverlayPosition.CENTER, size, page) == (250, 375)
        assert overlay_position(OverlayPosition.TOP_LEFT, size, page) == (20, 730)
        assert overlay_position(OverlayPosition.TOP_RIGHT, size, page) == (480, 730)
        assert overlay_position(OverlayPosition.BOTTOM_LEFT, size, page) == (20, 20)
        assert overlay_position(OverlayPosition.BOTTOM_RIGHT, size, page) == (480, 20)

    def test_box_inside_page(self):
        page_w, page_h = 500, 300
        for ow, oh in [(1, 1), (100, 40), (460, 260)]:
            for position in OverlayPosition:
                x, y = overlay_position(position, (ow, oh), (page_w, page_h))
                assert 0 <= x and x + ow <= page_w
                assert 0 <= y and y + oh <= page_h

    def test_corner_inset(self):
        x, y = overlay_position(OverlayPosition.BOTTOM_LEFT, (10, 10), (100, 100))
        assert (x, y) == (OVERLAY_EDGE_INSET, OVERLAY_EDGE_INSET)


class TestOverlayGeometry:
    def test_text_font_size_follows_shorter_side(self):
        geometry = text_overlay_geometry("DRAFT", 10, OverlayPosition.CENTER, (600, 800))
        assert geometry.font_size == pytest.approx(60)
        assert geometry.height == pytest.approx(60)
        assert geometry.width == pytest.approx(measure_text("DRAFT", 60))

    def test_text_width_uses_font_metrics(self):
        assert measure_text("WWW", 12) > measure_text("iii", 12)

    def test_image_size_and_aspect(self):
        geometry = image_overlay_geometry((200, 100), 50, OverlayPosition.TOP_LEFT, (600, 800))
        assert geometry.width == pytest.approx(300)
        assert geometry.height == pytest.approx(150)
        assert (geometry.x, geometry.y) == (20, 800 - 20 - 150)


class TestWatermarkSpec:
    def test_defaults(self):
        spec = WatermarkSpec()
        assert spec.kind is WatermarkKind.TEXT
        assert spec.text == "CONFIDENTIAL"
        assert spec.opacity == 0.3
        assert spec.rotation == 45
        assert spec.size_percent == 50
        assert spec.position is OverlayPosition.CENTER
        assert spec.rgb == (1.0, 0.0, 0.0)

    def test_validated_clamps(self):
        spec = WatermarkSpec(opacity=1.5, rotation=405, size_percent=150).validated()
        assert spec.opacity == 1.0
        assert spec.rotation == 45
        assert spec.size_percent == 100

    def test_validated_non_positive_size(self):
        assert WatermarkSpec(size_percent=0).validated().size_percent == 100
        assert WatermarkSpec(opacity=-1).validated().opacity == 0.0

    def test_missing_text_rejected(self):
        with pytest.raises(ValidationError):
            WatermarkSpec(text="").validated()

    def test_missing_image_rejected(self):
        with pytest.raises(ValidationError):
            WatermarkSpec(kind=WatermarkKind.IMAGE).validated()
