import pytest

from piece_scanner.sensitivity import Sensitivity, SensitivityParams, to_params


class TestToParams:
    """Sensitivity level -> parameter bundle."""

    def test_medium_preset(self):
        """Medium uses the documented thresholds."""
        p = to_params(Sensitivity.MEDIUM)
        assert (p.canny_low, p.canny_high) == (60, 120)
        assert p.min_area_ratio == pytest.approx(0.0015)
        assert p.morph_kernel_size == 5
        assert p.min_solidity == pytest.approx(0.80)
        assert p.max_aspect_ratio == pytest.approx(4.0)

    def test_low_preset(self):
        """Low is the strictest level."""
        p = to_params(Sensitivity.LOW)
        assert (p.canny_low, p.canny_high, p.morph_kernel_size) == (80, 160, 5)
        assert (p.min_area_ratio, p.min_solidity, p.max_aspect_ratio) == pytest.approx((0.0020, 0.85, 3.5))

    def test_high_preset(self):
        """High is the most permissive level."""
        p = to_params(Sensitivity.HIGH)
        assert (p.canny_low, p.canny_high, p.morph_kernel_size) == (40, 80, 7)
        assert (p.min_area_ratio, p.min_solidity, p.max_aspect_ratio) == pytest.approx((0.0010, 0.75, 5.0))

    def test_levels_are_ordered(self):
        """Thresholds loosen step by step from low through medium to high."""
        low, medium, high = (to_params(level) for level in (Sensitivity.LOW, Sensitivity.MEDIUM, Sensitivity.HIGH))
        assert low.canny_low > medium.canny_low > high.canny_low
        assert low.canny_high > medium.canny_high > high.canny_high
        assert low.min_area_ratio > medium.min_area_ratio > high.min_area_ratio
        assert low.min_solidity > medium.min_solidity > high.min_solidity
        assert low.max_aspect_ratio < medium.max_aspect_ratio < high.max_aspect_ratio
        assert low.morph_kernel_size <= medium.morph_kernel_size <= high.morph_kernel_size

    def test_blur_kernel_is_constant(self):
        """Every level blurs with the same kernel."""
        assert {to_params(level).blur_kernel_size for level in Sensitivity} == {5}

    def test_accepts_string_values(self):
        """The enum's string value maps to the same bundle."""
        assert to_params("high") is to_params(Sensitivity.HIGH)

    def test_deterministic(self):
        """Repeated calls return equal bundles."""
        assert to_params("low") == to_params("low")

    def test_rejects_unknown_level(self):
        """Anything outside low/medium/high is an error."""
        with pytest.raises(ValueError):
            to_params("extreme")

    def test_params_are_immutable(self):
        """Bundles cannot be modified by callers."""
        params = to_params("medium")
        assert isinstance(params, SensitivityParams)
        with pytest.raises(AttributeError):
            params.canny_low = 1


class TestPackageExports:
    def test_ui_helpers_exported(self):
        """Status, badge and legacy-label helpers are part of the package API."""
        import piece_scanner
        from piece_scanner.quality import frame_quality_to_status, quality_badge
        from piece_scanner.scan_model import normalize_legacy_class

        assert piece_scanner.frame_quality_to_status is frame_quality_to_status
        assert piece_scanner.quality_badge is quality_badge
        assert piece_scanner.normalize_legacy_class is normalize_legacy_class
