"""
Tests for the projective compositor.

Scenes use a unit Earth with a projector at geostationary distance above
0 deg latitude / 0 deg longitude unless stated otherwise.

Run with:
    python -m pytest tests/test_compositor.py -v
"""

import unittest

import numpy as np

from frame_service.compositor import (
    BASE_COLOR,
    base_shade,
    border_fade,
    composite,
    composite_points,
    project_source,
    sample_texture,
    smoothstep,
)
from frame_service.projector import look_at_matrix, perspective_matrix, ProjectorSource

GEO_DISTANCE = 42_164.0 / 6_371.0


def uniform_source(color, eye=(GEO_DISTANCE, 0.0, 0.0), fov_deg=17.33, label="src"):
    eye = np.asarray(eye, dtype=float)
    distance = np.linalg.norm(eye)
    texture = np.empty((8, 8, len(color)), dtype=np.float32)
    texture[:] = color
    return ProjectorSource(
        texture=texture,
        camera_matrix=look_at_matrix(eye, np.zeros(3)),
        camera_position=eye,
        projection_matrix=perspective_matrix(fov_deg, 1.0, 0.01 * distance, 2.0 * distance),
        label=label,
    )


def on_sphere(lat_deg, lon_deg):
    lat, lon = np.radians(lat_deg), np.radians(lon_deg)
    return np.array([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])


class TestComposite(unittest.TestCase):
    """Test suite for per-point blending."""

    def setUp(self):
        self.red = uniform_source((1.0, 0.0, 0.0), label="red")
        self.blue = uniform_source((0.0, 0.0, 1.0), label="blue")

    def test_full_coverage_at_subsatellite_point(self):
        sample = composite(on_sphere(0, 0), [self.red])
        self.assertAlmostEqual(sample.weight, 1.0, places=6)
        np.testing.assert_allclose(sample.color, [1.0, 0.0, 0.0], atol=1e-6)

    def test_uncovered_points_use_base_shade(self):
        for point in [on_sphere(0, 180), on_sphere(0, 90), on_sphere(45, -150)]:
            with self.subTest(point=point):
                sample = composite(point, [self.red])
                self.assertEqual(sample.weight, 0.0)
                np.testing.assert_allclose(sample.color, base_shade(point)[0])

    def test_no_sources_is_base_shade(self):
        colors, weights = composite_points([on_sphere(10, 20)], [])
        np.testing.assert_allclose(colors, base_shade(on_sphere(10, 20)))
        self.assertEqual(weights[0], 0.0)

    def test_oblique_facing_mixes_toward_base(self):
        point = on_sphere(5, 0)
        sample = composite(point, [self.red])

        self.assertGreater(sample.weight, 0.9)
        self.assertLess(sample.weight, 1.0)
        expected = base_shade(point)[0] * (1.0 - sample.weight) + np.array([1.0, 0.0, 0.0]) * sample.weight
        np.testing.assert_allclose(sample.color, expected, atol=1e-6)

    def test_border_margin_blends_between_base_and_image(self):
        """A point inside the edge margin of a narrow source is partly faded."""
        narrow = uniform_source((1.0, 0.0, 0.0), fov_deg=4.0)
        eye = narrow.camera_position
        # Ray through ndc y = 0.9 (v = 0.95, inside the 0.1 edge margin).
        direction = np.array([-1.0, 0.0, 0.9 * np.tan(np.radians(2.0))])
        direction /= np.linalg.norm(direction)
        b = np.dot(eye, direction)
        t = -b - np.sqrt(b * b - (np.dot(eye, eye) - 1.0))
        point = eye + t * direction

        facing = np.dot(point, (eye - point) / np.linalg.norm(eye - point))
        fade = float(border_fade(0.5, 0.95))
        self.assertLess(fade, 1.0)

        sample = composite(point, [narrow])
        self.assertGreater(sample.weight, 0.0)
        self.assertAlmostEqual(sample.weight, fade * facing, places=6)
        self.assertLess(sample.weight, facing)

        base = base_shade(point)[0]
        red = np.array([1.0, 0.0, 0.0])
        for channel in range(3):
            low, high = sorted([base[channel], red[channel]])
            self.assertGreater(sample.color[channel], low)
            self.assertLess(sample.color[channel], high)

    def test_overlapping_sources_are_averaged(self):
        sample = composite(on_sphere(0, 0), [self.red, self.blue])
        self.assertAlmostEqual(sample.weight, 2.0, places=6)
        np.testing.assert_allclose(sample.color, [0.5, 0.0, 0.5], atol=1e-6)

    def test_transparent_texels_do_not_contribute(self):
        clear = uniform_source((1.0, 1.0, 1.0, 0.0))
        sample = composite(on_sphere(0, 0), [clear])
        self.assertEqual(sample.weight, 0.0)
        np.testing.assert_allclose(sample.color, base_shade(on_sphere(0, 0))[0])

    def test_points_behind_projector_rejected(self):
        behind = np.array([[2.0 * GEO_DISTANCE, 0.0, 0.0]])
        _, weights = project_source(behind, self.red, facing_threshold=-2.0, depth_test=False)
        self.assertEqual(weights[0], 0.0)

    def test_outside_field_of_view_rejected(self):
        narrow = uniform_source((1.0, 0.0, 0.0), fov_deg=2.0)
        _, weights = project_source(on_sphere(0, 0)[None, :], narrow)
        self.assertGreater(weights[0], 0.0)
        _, weights = project_source(on_sphere(0, 20)[None, :], narrow)
        self.assertEqual(weights[0], 0.0)

    def test_source_limit(self):
        sources = [uniform_source((0.2 * i, 0.0, 0.0)) for i in range(6)]
        with self.assertLogs("frame_service.compositor", level="WARNING"):
            _, weights = composite_points(on_sphere(0, 0), sources)
        self.assertAlmostEqual(weights[0], 4.0, places=5)

    def test_vectorized_matches_single_point(self):
        points = np.array([on_sphere(0, 0), on_sphere(5, 3), on_sphere(0, 180)])
        colors, weights = composite_points(points, [self.red, self.blue])
        for i, point in enumerate(points):
            sample = composite(point, [self.red, self.blue])
            np.testing.assert_allclose(colors[i], sample.color)
            self.assertAlmostEqual(weights[i], sample.weight)


class TestHelpers(unittest.TestCase):

    def test_smoothstep(self):
        np.testing.assert_allclose(smoothstep(0.0, 1.0, [-1.0, 0.0, 0.5, 1.0, 2.0]),
                                   [0.0, 0.0, 0.5, 1.0, 1.0])

    def test_border_fade(self):
        self.assertEqual(float(border_fade(0.5, 0.5)), 1.0)
        self.assertEqual(float(border_fade(0.0, 0.5)), 0.0)
        self.assertEqual(float(border_fade(0.5, 1.0)), 0.0)
        partial = float(border_fade(0.95, 0.5))
        self.assertGreater(partial, 0.0)
        self.assertLess(partial, 1.0)

    def test_bilinear_sampling(self):
        texture = np.array([[[0.0], [1.0]]])
        np.testing.assert_allclose(sample_texture(texture, np.array([0.0, 0.5, 1.0]), np.zeros(3))[:, 0],
                                   [0.0, 0.5, 1.0])

    def test_v_origin_is_bottom_row(self):
        texture = np.array([[[1.0]], [[0.0]]])
        np.testing.assert_allclose(sample_texture(texture, np.zeros(2), np.array([0.0, 1.0]))[:, 0],
                                   [0.0, 1.0])

    def test_base_shade_bounds(self):
        shade = base_shade(np.array([on_sphere(0, 0), on_sphere(30, 60)]))
        self.assertTrue(np.all(shade <= BASE_COLOR + 1e-12))
        self.assertTrue(np.all(shade >= 0.5 * BASE_COLOR - 1e-12))


if __name__ == "__main__":
    unittest.main()
