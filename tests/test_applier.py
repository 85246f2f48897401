"""
Tests for per-pixel LUT application.
"""

import threading

import numpy as np
import pytest

from tonecurve.core.types import Acceleration, Channel, ColorSpace, CurveSpec, ProcessingOptions


S_POINTS = [(0, 0), (0.25, 0.2), (0.75, 0.8), (1, 1)]


def make_curve(points=S_POINTS, channel=Channel.RGB, variant="cubic_spline", size=256):
    from tonecurve.curves.lut import build_lut
    from tonecurve.processing.applier import ChannelCurve

    spec = CurveSpec(points, variant=variant, channel=channel)
    return ChannelCurve(spec.channel, build_lut(spec, size))


def random_image(shape, dtype=np.uint8, seed=0):
    rng = np.random.default_rng(seed)
    if dtype == np.float32:
        return rng.random(shape, dtype=np.float32)
    info = np.iinfo(dtype)
    return rng.integers(0, info.max + 1, size=shape, dtype=dtype)


class TestConversions:
    """Tests for normalize / denormalize / code_table."""

    def test_round_half_up(self):
        """Test 8-bit rounding and clamping."""
        from tonecurve.processing.applier import denormalize

        values = np.array([0.0, 0.4 / 255, 0.6 / 255, 127.4 / 255, 127.6 / 255, 1.0, 1.5, -0.2])
        assert denormalize(values, 8).tolist() == [0, 0, 1, 127, 128, 255, 255, 0]

    def test_float_clamped(self):
        """Test float output clamping."""
        from tonecurve.processing.applier import denormalize

        out = denormalize(np.array([-0.5, 0.25, 2.0]), 32)
        assert out.dtype == np.float32
        assert out.tolist() == [0.0, 0.25, 1.0]

    def test_normalize_nan(self):
        """Test that NaN float samples read as 0."""
        from tonecurve.processing.applier import normalize

        values = normalize(np.array([np.nan, 0.5, 3.0], dtype=np.float32), 32)
        assert values.tolist() == [0.0, 0.5, 1.0]

    def test_code_table_identity(self):
        """Test that the identity LUT gives the identity table."""
        from tonecurve.curves.lut import build_lut
        from tonecurve.processing.applier import code_table

        lut = build_lut(CurveSpec.identity(), 256)
        assert np.array_equal(code_table(lut, 8), np.arange(256, dtype=np.uint8))
        table16 = code_table(build_lut(CurveSpec.identity(), 4096), 16)
        assert np.array_equal(table16, np.arange(65536, dtype=np.uint16))

    def test_code_table_matches_formula(self):
        """Test the per-code table against the per-pixel formula."""
        from tonecurve.processing.applier import code_table

        curve = make_curve()
        table = code_table(curve.lut, 8)
        codes = np.arange(256)
        expected = np.floor(curve.lut.lookup(codes / 255.0) * 255 + 0.5)
        assert table.tolist() == np.clip(expected, 0, 255).astype(int).tolist()


class TestSplitRows:
    """Tests for split_rows()."""

    def test_covers_all_rows(self):
        """Test that bands are contiguous and complete."""
        from tonecurve.processing.applier import split_rows

        bands = split_rows(1000, 7)
        assert len(bands) == 7
        assert bands[0][0] == 0
        assert bands[-1][1] == 1000
        for (_, end), (start, _) in zip(bands, bands[1:]):
            assert end == start

    def test_more_parts_than_rows(self):
        """Test that there is never an empty band."""
        from tonecurve.processing.applier import split_rows

        assert split_rows(3, 8) == [(0, 1), (1, 2), (2, 3)]


class TestChannelApplier:
    """Tests for ChannelApplier."""

    def test_identity_unchanged(self):
        """Test that the identity curve leaves pixels unchanged."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((32, 48, 3))
        original = pixels.copy()
        curve = make_curve([(0, 0), (1, 1)], variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))
        assert np.array_equal(pixels, original)

    def test_red_channel_isolation(self):
        """Test that a red curve touches only red samples."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((40, 30, 4), seed=3)
        original = pixels.copy()
        curve = make_curve([(0, 0.2), (1, 0.9)], channel=Channel.RED, variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))

        assert not np.array_equal(pixels[..., 0], original[..., 0])
        assert pixels[..., 1:].tobytes() == original[..., 1:].tobytes()

    @pytest.mark.parametrize("channel,index", [(Channel.GREEN, 1), (Channel.BLUE, 2)])
    def test_single_channel(self, channel, index):
        """Test green and blue targeting."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = np.full((4, 4, 3), 100, dtype=np.uint8)
        curve = make_curve([(0, 1), (1, 1)], channel=channel, variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))
        assert np.all(pixels[..., index] == 255)
        others = [i for i in range(3) if i != index]
        assert np.all(pixels[..., others] == 100)

    def test_alpha_passthrough(self):
        """Test that the master curve leaves alpha alone."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((16, 16, 4), seed=5)
        alpha = pixels[..., 3].copy()
        curve = make_curve([(0, 1), (1, 1)], variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))
        assert np.all(pixels[..., :3] == 255)
        assert np.array_equal(pixels[..., 3], alpha)

    def test_grayscale_master(self):
        """Test the master curve on a single-channel buffer."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = np.full((8, 8), 51, dtype=np.uint8)
        curve = make_curve([(0, 1), (1, 0)], variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))
        assert np.all(pixels == 204)

    def test_16bit(self):
        """Test 16-bit buffers against the interpolated formula."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((20, 20, 3), dtype=np.uint16, seed=9)
        original = pixels.copy()
        curve = make_curve(size=4096)
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))

        expected = np.floor(curve.lut.lookup(original / 65535.0) * 65535 + 0.5)
        assert np.array_equal(pixels, np.clip(expected, 0, 65535).astype(np.uint16))

    def test_float(self):
        """Test float buffers, including NaN samples."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((10, 10, 3), dtype=np.float32, seed=11)
        pixels[0, 0, 0] = np.nan
        original = pixels.copy()
        curve = make_curve([(0, 0), (1, 0.5)], variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))

        assert pixels[0, 0, 0] == 0.0
        np.testing.assert_allclose(pixels[1:], original[1:] * 0.5, atol=1e-6)

    def test_separate_output(self):
        """Test that the input is not mutated when an output is given."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((12, 12, 3))
        original = pixels.copy()
        out = np.zeros_like(pixels)
        curve = make_curve([(0, 1), (1, 0)], variant="linear")
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels), ImageBuffer.from_array(out))

        assert np.array_equal(pixels, original)
        assert np.array_equal(out, 255 - original)

    def test_master_before_channel(self):
        """Test that master curves run before per-channel curves."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = np.full((2, 2, 3), 0, dtype=np.uint8)
        red = make_curve([(0, 0), (1, 1)], channel=Channel.RED, variant="linear")
        red_invert = make_curve([(0, 1), (1, 0)], channel=Channel.RED, variant="linear")
        master_half = make_curve([(0, 0.5), (1, 0.5)], variant="linear")

        ChannelApplier().apply([red_invert, master_half, red], ImageBuffer.from_array(pixels))
        # master -> 128 everywhere, then red inverted -> 127, then red identity
        assert pixels[0, 0].tolist() == [127, 128, 128]

    def test_luminance(self):
        """Test that a luminance curve keeps hue ratios."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier, LUMA_WEIGHTS

        pixels = np.zeros((1, 3, 3), dtype=np.float32)
        pixels[0, 0] = [0.2, 0.4, 0.1]
        pixels[0, 1] = [0.0, 0.0, 0.0]
        pixels[0, 2] = [0.5, 0.5, 0.5]
        original = pixels.copy().astype(np.float64)
        curve = make_curve([(0, 0.1), (1, 1.0)], channel=Channel.LUMINANCE, variant="linear", size=4096)
        ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))

        luma = original[0, 0] @ LUMA_WEIGHTS
        target = curve.lut.lookup(luma)
        np.testing.assert_allclose(pixels[0, 0], original[0, 0] * target / luma, atol=1e-6)
        # black takes LUT(0) on every channel
        np.testing.assert_allclose(pixels[0, 1], [0.1, 0.1, 0.1], atol=1e-6)
        # gray stays gray
        assert pixels[0, 2, 0] == pytest.approx(pixels[0, 2, 1])

    def test_lab_channels(self):
        """Test LAB curves on a LAB buffer."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = np.full((4, 4, 3), 10, dtype=np.uint8)
        buffer = ImageBuffer.from_array(pixels, color_space=ColorSpace.LAB)
        curve = make_curve([(0, 1), (1, 1)], channel=Channel.LAB_A, variant="linear")
        ChannelApplier().apply([curve], buffer)
        assert pixels[0, 0].tolist() == [10, 255, 10]

    def test_lab_curve_on_rgb_buffer(self):
        """Test that a LAB curve on an RGB buffer raises before writing."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import BufferMismatchError
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((4, 4, 3))
        original = pixels.copy()
        curve = make_curve(channel=Channel.LAB_L)
        with pytest.raises(BufferMismatchError):
            ChannelApplier().apply([curve], ImageBuffer.from_array(pixels))
        assert np.array_equal(pixels, original)

    def test_channel_missing(self):
        """Test a red curve on a grayscale buffer."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import BufferMismatchError
        from tonecurve.processing.applier import ChannelApplier

        buffer = ImageBuffer.from_array(np.zeros((4, 4), dtype=np.uint8))
        with pytest.raises(BufferMismatchError):
            ChannelApplier().apply([make_curve(channel=Channel.RED)], buffer)

    def test_output_shape_mismatch(self):
        """Test that mismatched buffers raise before any write."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import BufferMismatchError
        from tonecurve.processing.applier import ChannelApplier

        source = ImageBuffer.from_array(random_image((8, 8, 3)))
        out = np.zeros((8, 9, 3), dtype=np.uint8)
        with pytest.raises(BufferMismatchError):
            ChannelApplier().apply([make_curve()], source, ImageBuffer.from_array(out))
        assert not out.any()

    def test_read_only_output(self):
        """Test that a read-only output is rejected."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import BufferMismatchError
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((4, 4, 3))
        pixels.setflags(write=False)
        with pytest.raises(BufferMismatchError):
            ChannelApplier().apply([make_curve()], ImageBuffer.from_array(pixels))

    def test_padded_bytes_buffer(self):
        """Test raw memory with row padding; padding bytes are untouched."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        width, height, stride = 5, 4, 20
        data = bytearray(b'\x07' * (stride * height))
        buffer = ImageBuffer.from_bytes(data, width, height, 3, 8, stride=stride)
        curve = make_curve([(0, 1), (1, 1)], variant="linear")
        ChannelApplier().apply([curve], buffer, options=ProcessingOptions(thread_count=2))

        for row in range(height):
            assert data[row * stride: row * stride + 15] == b'\xff' * 15
            assert data[row * stride + 15: (row + 1) * stride] == b'\x07' * 5

    def test_empty_curve_list(self):
        """Test that no curves copies input to output."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((4, 4, 3))
        out = np.zeros_like(pixels)
        ChannelApplier().apply([], ImageBuffer.from_array(pixels), ImageBuffer.from_array(out))
        assert np.array_equal(out, pixels)


class TestParallelism:
    """Tests for threaded application."""

    def test_parallel_matches_serial(self):
        """Test that 8 threads give the same pixels as one (2000x2000 RGB)."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier

        source = random_image((2000, 2000, 3), seed=42)
        serial_out = np.empty_like(source)
        parallel_out = np.empty_like(source)
        curve = make_curve()
        applier = ChannelApplier()

        serial = applier.apply(
            [curve], ImageBuffer.from_array(source), ImageBuffer.from_array(serial_out),
            options=ProcessingOptions(acceleration=Acceleration.SERIAL),
        )
        parallel = applier.apply(
            [curve], ImageBuffer.from_array(source), ImageBuffer.from_array(parallel_out),
            options=ProcessingOptions(thread_count=8),
        )

        assert serial.backend == "cpu-serial"
        assert parallel.backend == "cpu-parallel"
        assert parallel.threads == 8
        assert np.array_equal(serial_out, parallel_out)

    def test_cancel_before_start(self):
        """Test that a cancelled token leaves the output untouched."""
        from tonecurve.core.base import CancelToken
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import ApplyCancelled
        from tonecurve.processing.applier import ChannelApplier

        pixels = random_image((64, 64, 3))
        original = pixels.copy()
        token = CancelToken()
        token.cancel()
        with pytest.raises(ApplyCancelled):
            ChannelApplier().apply([make_curve()], ImageBuffer.from_array(pixels), cancel=token)
        assert np.array_equal(pixels, original)

    def test_cancel_mid_run(self, monkeypatch):
        """Test cancellation between row batches keeps the output untouched."""
        from tonecurve.core.base import CancelToken
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.errors import ApplyCancelled
        from tonecurve.processing import applier as applier_module

        pixels = random_image((256, 32, 3))
        original = pixels.copy()
        token = CancelToken()
        calls = []
        lock = threading.Lock()
        real_process_rows = applier_module.process_rows

        def counting_process_rows(*args, **kwargs):
            with lock:
                calls.append(1)
                if len(calls) == 3:
                    token.cancel()
            return real_process_rows(*args, **kwargs)

        monkeypatch.setattr(applier_module, "process_rows", counting_process_rows)
        options = ProcessingOptions(thread_count=2, rows_per_batch=8)
        with pytest.raises(ApplyCancelled):
            applier_module.ChannelApplier().apply(
                [make_curve([(0, 1), (1, 1)], variant="linear")],
                ImageBuffer.from_array(pixels), options=options, cancel=token,
            )
        assert np.array_equal(pixels, original)
        assert len(calls) < 256 // 8


class TestOpenCLApplier:
    """Tests for the GPU path."""

    def test_compose_tables(self):
        """Test folding per-channel tables."""
        from tonecurve.processing.applier import plan_channels
        from tonecurve.processing.gpu import compose_tables
        from tonecurve.core.buffer import ImageBuffer

        buffer = ImageBuffer.from_array(np.zeros((2, 2, 3), dtype=np.uint8))
        plans = plan_channels(
            [
                make_curve([(0, 1), (1, 0)], variant="linear"),
                make_curve([(0, 1), (1, 0)], channel=Channel.RED, variant="linear"),
            ],
            buffer,
        )
        tables = compose_tables(plans, 3)
        assert tables.shape == (3, 256)
        assert np.array_equal(tables[0], np.arange(256))
        assert np.array_equal(tables[1], 255 - np.arange(256))

    def test_supports(self):
        """Test GPU eligibility."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import plan_channels
        from tonecurve.processing.gpu import OpenCLApplier

        gpu = OpenCLApplier()
        rgb8 = ImageBuffer.from_array(np.zeros((2, 2, 3), dtype=np.uint8))
        rgb16 = ImageBuffer.from_array(np.zeros((2, 2, 3), dtype=np.uint16))
        assert gpu.supports(rgb8, plan_channels([make_curve()], rgb8))
        assert not gpu.supports(rgb16, plan_channels([make_curve()], rgb16))
        luminance = make_curve(channel=Channel.LUMINANCE)
        assert not gpu.supports(rgb8, plan_channels([luminance], rgb8))

    def test_gpu_request_matches_cpu(self):
        """Test that requesting the GPU gives CPU-identical output (or falls back)."""
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.processing.applier import ChannelApplier
        from tonecurve.processing.gpu import OpenCLApplier

        source = random_image((64, 80, 4), seed=8)
        cpu_out = np.empty_like(source)
        gpu_out = np.empty_like(source)
        curves = [make_curve(), make_curve([(0, 0.1), (1, 0.9)], channel=Channel.BLUE)]

        ChannelApplier().apply(curves, ImageBuffer.from_array(source), ImageBuffer.from_array(cpu_out))
        report = ChannelApplier(gpu=OpenCLApplier()).apply(
            curves, ImageBuffer.from_array(source), ImageBuffer.from_array(gpu_out),
            options=ProcessingOptions(acceleration=Acceleration.GPU),
        )
        assert report.backend in ("gpu-opencl", "cpu-serial", "cpu-parallel")
        assert np.array_equal(cpu_out, gpu_out)

    def test_gpu_disabled_falls_back(self, caplog):
        """Test the CPU fallback when the GPU path is disabled."""
        import logging
        from tonecurve.core.buffer import ImageBuffer
        from tonecurve.core.hardware import AccelerationConfig, GPUBackend
        from tonecurve.processing.applier import ChannelApplier
        from tonecurve.processing.gpu import OpenCLApplier

        gpu = OpenCLApplier(AccelerationConfig(backend=GPUBackend.NONE))
        pixels = random_image((8, 8, 3))
        with caplog.at_level(logging.INFO, logger="tonecurve.processing.applier"):
            report = ChannelApplier(gpu=gpu).apply(
                [make_curve()], ImageBuffer.from_array(pixels),
                options=ProcessingOptions(acceleration=Acceleration.GPU, thread_count=1),
            )
        assert report.backend == "cpu-serial"
        assert "using CPU" in caplog.text
