import numpy as np
import pytest

from depth_arm.algo.segmentation import (
    BackgroundSegmenter,
    SegmentationConfig,
    _diamond_offsets,
    label_depth_regions,
    largest_region,
    segment_background,
)


def test_2x2_block_is_one_cluster_of_area_4():
    depth = np.zeros((4, 4), dtype=np.uint16)
    depth[1:3, 1:3] = 1000

    cluster_map, areas = label_depth_regions(depth, 0.001, 0.05, 1)
    assert areas == {1: 4}
    assert np.all(cluster_map[1:3, 1:3] == 1)
    assert np.count_nonzero(cluster_map) == 4

    out = segment_background(depth, 0.001, 0.05, 1)
    assert out.dtype == np.uint16
    assert np.array_equal(out, depth)


def test_areas_cover_all_foreground_and_only_largest_survives():
    depth = np.zeros((8, 10), dtype=np.uint16)
    depth[0:3, 0:3] = 800       # 9 px
    depth[5:8, 4:10] = 1500     # 18 px
    depth[0, 9] = 2000          # 1 px
    seg = BackgroundSegmenter(SegmentationConfig(max_depth_delta_m=0.05, manhattan_radius=1))

    out, info = seg.segment_debug(depth, 0.001)

    assert sum(info["areas"].values()) == np.count_nonzero(depth)
    assert len(info["areas"]) == 3
    assert info["areas"][info["winner"]] == 18
    assert np.array_equal(out[5:8, 4:10], depth[5:8, 4:10])
    assert np.count_nonzero(out) == 18
    assert np.all(out[info["cluster_map"] != info["winner"]] == 0)


def test_depth_jump_splits_regions():
    depth = np.array([[1000, 1000, 1200, 1200, 1200]], dtype=np.uint16)
    _, areas = label_depth_regions(depth, 0.001, 0.05, 1)
    assert areas == {1: 2, 2: 3}


def test_growth_compares_against_neighbor_not_seed():
    # Every step is 40 mm, the ends are 120 mm apart
    depth = np.array([[1000, 1040, 1080, 1120]], dtype=np.uint16)
    _, areas = label_depth_regions(depth, 0.001, 0.05, 1)
    assert areas == {1: 4}


def test_radius_bridges_dropouts():
    depth = np.array([[1000, 0, 1000]], dtype=np.uint16)
    _, areas_r1 = label_depth_regions(depth, 0.001, 0.05, 1)
    _, areas_r2 = label_depth_regions(depth, 0.001, 0.05, 2)
    assert areas_r1 == {1: 1, 2: 1}
    assert areas_r2 == {1: 2}


def test_neighborhood_is_a_diamond():
    offsets = _diamond_offsets(2)
    assert len(offsets) == 12
    assert (2, 0) in offsets and (1, 1) in offsets
    assert (2, 1) not in offsets and (2, 2) not in offsets

    # Diagonal pixel is reachable with radius 2 but not radius 1
    depth = np.zeros((3, 3), dtype=np.uint16)
    depth[0, 0] = 1000
    depth[1, 1] = 1000
    _, areas = label_depth_regions(depth, 0.001, 0.05, 1)
    assert len(areas) == 2
    _, areas = label_depth_regions(depth, 0.001, 0.05, 2)
    assert areas == {1: 2}


def test_segment_is_idempotent():
    rng = np.random.default_rng(3)
    depth = rng.integers(900, 1100, size=(12, 12)).astype(np.uint16)
    depth[rng.random((12, 12)) < 0.4] = 0

    once = segment_background(depth, 0.001, 0.05, 1)
    twice = segment_background(once, 0.001, 0.05, 1)
    assert np.array_equal(once, twice)


def test_all_zero_grid_is_a_noop():
    depth = np.zeros((5, 6), dtype=np.uint16)
    out, info = BackgroundSegmenter().segment_debug(depth, 0.001)
    assert info["areas"] == {}
    assert info["winner"] is None
    assert np.count_nonzero(out) == 0
    assert out.shape == depth.shape


def test_single_pixel_grid():
    depth = np.array([[700]], dtype=np.uint16)
    _, areas = label_depth_regions(depth, 0.001, 0.05, 3)
    assert areas == {1: 1}
    assert np.array_equal(segment_background(depth, 0.001, 0.05, 3), depth)


def test_ties_keep_first_region_in_scan_order():
    depth = np.zeros((4, 7), dtype=np.uint16)
    depth[2:4, 0:2] = 1000
    depth[0:2, 5:7] = 1000
    cluster_map, areas = label_depth_regions(depth, 0.001, 0.05, 1)
    # The top-right block is met first in row-major order
    assert cluster_map[0, 5] == 1
    assert largest_region(areas) == 1
    out = segment_background(depth, 0.001, 0.05, 1)
    assert np.count_nonzero(out[0:2, 5:7]) == 4
    assert np.count_nonzero(out[2:4, 0:2]) == 0


def test_input_grid_is_not_modified():
    depth = np.zeros((4, 4), dtype=np.uint16)
    depth[0:2, 0:2] = 1000
    depth[3, 3] = 1000
    before = depth.copy()
    segment_background(depth, 0.001, 0.05, 1)
    assert np.array_equal(depth, before)


@pytest.mark.parametrize(
    "scale, delta, radius",
    [(0.0, 0.05, 1), (-0.001, 0.05, 1), (0.001, 0.0, 1), (0.001, 0.05, 0)],
)
def test_invalid_parameters_raise(scale, delta, radius):
    depth = np.ones((2, 2), dtype=np.uint16)
    with pytest.raises(ValueError):
        label_depth_regions(depth, scale, delta, radius)


def test_config_from_dict_ignores_unknown_keys():
    cfg = SegmentationConfig.from_dict({"manhattan_radius": 3, "bogus": 1})
    assert cfg.manhattan_radius == 3
    assert not hasattr(cfg, "bogus")
