"""Tests for resize geometry."""

import pytest

from imgconv.geometry import compute_resize_plan, round_half_up, suffix


class TestCover:
    """Tests for cover (crop) geometry."""

    def test_landscape_source_square_target(self):
        """Test 4000x3000 cropped to 150x150 is exact and centred horizontally."""
        plan = compute_resize_plan(4000, 3000, 150, 150, crop=True)

        assert (plan.resize_width, plan.resize_height) == (200, 150)
        assert plan.crop_box == (25, 0, 175, 150)
        assert (plan.width, plan.height) == (150, 150)

    def test_portrait_source(self):
        """Test a source narrower than the target ratio is cropped vertically."""
        plan = compute_resize_plan(300, 900, 200, 100, crop=True)

        assert plan.resize_width == 200
        assert plan.resize_height == 600
        assert plan.crop_box == (0, 250, 200, 350)
        assert (plan.width, plan.height) == (200, 100)

    @pytest.mark.parametrize('ow,oh,w,h', [
        (4000, 3000, 150, 150),
        (3000, 4000, 150, 150),
        (1920, 1080, 300, 200),
        (1000, 999, 768, 512),
        (7, 5, 300, 300),
        (1234, 567, 89, 233),
    ])
    def test_output_is_exact(self, ow, oh, w, h):
        """Test cover output always equals the target for either aspect relation."""
        plan = compute_resize_plan(ow, oh, w, h, crop=True)

        assert (plan.width, plan.height) == (w, h)
        assert plan.resize_width >= w
        assert plan.resize_height >= h


class TestContain:
    """Tests for contain geometry."""

    @pytest.mark.parametrize('ow,oh,w,h', [
        (4000, 3000, 300, 300),
        (3000, 4000, 300, 300),
        (1920, 1080, 1024, 1024),
        (801, 333, 150, 150),
    ])
    def test_within_bounds_and_aspect(self, ow, oh, w, h):
        """Test contain stays within bounds and keeps aspect within 1px."""
        plan = compute_resize_plan(ow, oh, w, h, crop=False)

        assert plan.crop_box is None
        assert plan.width <= w and plan.height <= h
        assert abs(plan.height - plan.width * oh / ow) <= 1

    def test_width_only(self):
        """Test width-only bound."""
        plan = compute_resize_plan(4000, 3000, 300, 0)
        assert (plan.width, plan.height) == (300, 225)

    def test_height_only(self):
        """Test height-only bound."""
        plan = compute_resize_plan(4000, 3000, 0, 300)
        assert (plan.width, plan.height) == (400, 300)

    def test_crop_with_single_bound_is_contain(self):
        """Test crop needs both bounds."""
        plan = compute_resize_plan(4000, 3000, 300, 0, crop=True)
        assert plan.crop_box is None
        assert (plan.width, plan.height) == (300, 225)

    def test_zero_by_zero_is_noop(self):
        """Test 0x0 produces no plan."""
        assert compute_resize_plan(4000, 3000, 0, 0) is None

    def test_invalid_source(self):
        """Test non-positive source dimensions are rejected."""
        with pytest.raises(ValueError):
            compute_resize_plan(0, 100, 50, 50)


class TestHelpers:
    """Tests for rounding and suffixes."""

    def test_round_half_up(self):
        """Test .5 rounds up rather than to even."""
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_suffix(self):
        """Test filename suffixes."""
        assert suffix(150, 150, True) == '150x150-c'
        assert suffix(300, 200, False) == '300x200'
        assert suffix(768, 0) == '768w'
        assert suffix(0, 400) == '400h'
