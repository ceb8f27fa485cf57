"""Tests for the complete lenticular generation pipeline.

This module tests the flow from encoded uploads to PNG output, including
configuration loading, host-level limits, error reporting and the command
line driver.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import cv2
import numpy as np
import pytest
import yaml

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from lenticular import codec, config, evaluate, pipeline
from scripts import generate_lenticular


def solid_png(width, height, bgr):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = bgr
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


class TestGenerate(unittest.TestCase):
    """Test the generate pipeline."""

    def setUp(self):
        """Create encoded red and blue uploads."""
        self.red = solid_png(4, 2, (0, 0, 255))
        self.blue = solid_png(4, 2, (255, 0, 0))

    def test_red_blue_columns(self):
        result = pipeline.generate(
            [self.red, self.blue], {"lines_per_unit": 300, "base_resolution": 300}
        )

        self.assertTrue(result.ok)
        self.assertEqual((result.width, result.height), (4, 2))

        composite = codec.decode_image(result.png)
        self.assertEqual(composite.shape, (2, 4, 4))
        for x, expected in enumerate([(0, 0, 255), (255, 0, 0)] * 2):
            self.assertTrue(np.all(composite[:, x, :3] == expected), f"column {x}")

    def test_metrics(self):
        result = pipeline.generate([self.red, self.blue, self.red])
        metrics = result.metrics

        self.assertEqual(metrics["n_inputs"], 3)
        self.assertEqual(metrics["n_sources"], 3)
        self.assertEqual(metrics["strip_width_px"], 4)
        self.assertEqual(metrics["canvas_size"], (4, 2))
        self.assertAlmostEqual(sum(metrics["coverage"]), 1.0)
        self.assertEqual(set(metrics["stage_timings"]), {"decode", "interlace", "encode"})

    def test_single_image_reported(self):
        result = pipeline.generate([self.red])

        self.assertFalse(result.ok)
        self.assertIsNone(result.png)
        self.assertEqual(result.error, "InsufficientSources")

    def test_rejected_upload_leaves_too_few(self):
        result = pipeline.generate([self.red, b"junk"], names=["red.png", "junk.png"])

        self.assertFalse(result.ok)
        self.assertEqual(result.error, "InsufficientSources")
        self.assertEqual(result.sources, ["red.png"])
        self.assertEqual(result.rejected[0][0], "junk.png")

    def test_rejected_upload_others_proceed(self):
        result = pipeline.generate([self.red, b"junk", self.blue])

        self.assertTrue(result.ok)
        self.assertEqual(len(result.rejected), 1)
        self.assertEqual(result.metrics["n_rejected"], 1)

    def test_zero_lines_per_unit(self):
        result = pipeline.generate([self.red, self.blue], {"lines_per_unit": 0})
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "InvalidParameter")

    def test_host_limits(self):
        for settings in ({"lines_per_unit": 5}, {"base_resolution": 301}, {"lines_per_unit": "x"}):
            result = pipeline.generate([self.red, self.blue], settings)
            self.assertEqual(result.error, "InvalidParameter", settings)

    def test_partial_config_keeps_defaults(self):
        result = pipeline.generate([self.red, self.blue], config={"output": {}})

        self.assertTrue(result.ok, result.message)
        self.assertEqual(result.metrics["strip_width_px"], 4)

    def test_empty_config_with_settings(self):
        result = pipeline.generate(
            [self.red, self.blue], settings={"lines_per_unit": 100}, config={}
        )

        self.assertTrue(result.ok, result.message)
        self.assertEqual(result.metrics["strip_width_px"], 3)

    def test_bad_config_section_reported(self):
        result = pipeline.generate([self.red, self.blue], config={"limits": 5})
        self.assertEqual(result.error, "InvalidParameter")

    def test_identical_inputs_identical_output(self):
        first = pipeline.generate([self.red, self.blue], {"orientation": "horizontal"})
        second = pipeline.generate([self.red, self.blue], {"orientation": "horizontal"})
        self.assertEqual(first.png, second.png)


class TestCheckLimits(unittest.TestCase):
    """Test host-level bounds."""

    def test_bounds_inclusive(self):
        pipeline.check_limits(
            {"lines_per_unit": 10, "base_resolution": 300},
            {"min_value": 10, "max_value": 300},
        )

    def test_nan_rejected(self):
        with self.assertRaises(pipeline.InvalidParameter):
            pipeline.check_limits({"lines_per_unit": float("nan"), "base_resolution": 300}, {})


class TestConfig(unittest.TestCase):
    """Test configuration loading."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def write_config(self, data):
        path = os.path.join(self.tmp_dir, "config.yaml")
        with open(path, "w") as f:
            yaml.safe_dump(data, f)
        return path

    def test_repository_config(self):
        cfg = config.load_config()
        self.assertEqual(cfg["interlace"]["lines_per_unit"], 75)
        self.assertEqual(cfg["output"]["filename"], "lenticular-image.png")

    def test_partial_override(self):
        path = self.write_config({"interlace": {"orientation": "horizontal"}})
        cfg = config.load_config(path)

        self.assertEqual(cfg["interlace"]["orientation"], "horizontal")
        self.assertEqual(cfg["interlace"]["base_resolution"], 300.0)
        self.assertEqual(cfg["output"]["png_compression"], 3)

    def test_defaults_not_mutated(self):
        path = self.write_config({"interlace": {"lines_per_unit": 50}})
        config.load_config(path)
        self.assertEqual(config.DEFAULT_CONFIG["interlace"]["lines_per_unit"], 75.0)

    def test_merge_config_partial(self):
        cfg = config.merge_config({"interlace": {"orientation": "horizontal"}, "limits": None})

        self.assertEqual(cfg["interlace"]["orientation"], "horizontal")
        self.assertEqual(cfg["interlace"]["lines_per_unit"], 75.0)
        self.assertEqual(cfg["limits"]["max_value"], 300.0)
        self.assertEqual(config.DEFAULT_CONFIG["interlace"]["orientation"], "vertical")

    def test_bad_section(self):
        path = self.write_config({"interlace": [1, 2, 3]})
        with self.assertRaises(config.InvalidParameter):
            config.load_config(path)


class TestEvaluate(unittest.TestCase):
    """Test coverage metrics and timing."""

    def test_coverage_even(self):
        coverage = evaluate.source_coverage((12, 5), 2, 3)
        for share in coverage:
            self.assertAlmostEqual(share, 1 / 3)

    def test_coverage_narrow_canvas(self):
        coverage = evaluate.source_coverage((5, 100), 4, 3)
        self.assertEqual(coverage, [0.8, 0.2, 0.0])

    def test_coverage_horizontal(self):
        coverage = evaluate.source_coverage((5, 4), 1, 2, orientation="horizontal")
        self.assertEqual(coverage, [0.5, 0.5])

    def test_timer(self):
        with evaluate.Timer("test") as timer:
            pass
        self.assertGreaterEqual(timer.elapsed, 0.0)
        self.assertEqual(timer.elapsed, timer.end_time - timer.start_time)

    def test_timer_not_entered(self):
        self.assertEqual(evaluate.Timer("idle").elapsed, 0.0)


class TestGeneratorScript(unittest.TestCase):
    """Test the command line driver."""

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.paths = []
        for name, bgr in [("a.png", (0, 0, 255)), ("b.png", (255, 0, 0))]:
            path = self.tmp_dir / name
            path.write_bytes(solid_png(8, 3, bgr))
            self.paths.append(str(path))

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_run_generator_writes_png(self):
        output = self.tmp_dir / "out" / "lenticular-image.png"
        result = generate_lenticular.run_generator(
            self.paths, str(output), config.load_config()
        )

        self.assertTrue(result.ok)
        self.assertTrue(output.exists())
        composite = codec.read_image(output)
        self.assertEqual(composite.shape, (3, 8, 4))
        # Default 75 LPI at 300 DPI gives 4 px strips
        self.assertTrue(np.all(composite[:, :4, 2] == 255))
        self.assertTrue(np.all(composite[:, 4:, 0] == 255))

    def test_missing_file_is_rejected(self):
        result = generate_lenticular.run_generator(
            self.paths + [str(self.tmp_dir / "missing.png")],
            str(self.tmp_dir / "out.png"),
            config.load_config(),
        )
        self.assertTrue(result.ok)
        self.assertEqual([name for name, _ in result.rejected], ["missing.png"])

    def test_main_exit_code_on_failure(self):
        argv = ["generate_lenticular.py", "-i", self.paths[0], "-o", str(self.tmp_dir / "x.png")]
        with mock.patch.object(sys, "argv", argv):
            with self.assertRaises(SystemExit) as ctx:
                generate_lenticular.main()
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
