import numpy as np
import pytest
from PIL import Image

from terrain_planes.gridmap import GridMap, load_gridmap_from_image


def test_add_get_exists():
    g = GridMap((1.0, 2.0), 0.5)
    g.add("a")
    assert g.exists("a")
    assert not g.exists("b")
    assert np.isnan(g.get("a")).all()
    with pytest.raises(ValueError):
        g.add("c", np.zeros((3, 3)))
    with pytest.raises(KeyError):
        g.get("b")


def test_index_position_round_trip():
    g = GridMap((2.0, 3.0), 0.1, (0.5, -0.5))
    for row, col in [(0, 0), (5, 7), (19, 29)]:
        p = g.position_of_index(row, col)
        assert g.index_of_position(*p) == (row, col)
    assert g.position_of_index(0, 0)[0] > g.position_of_index(1, 0)[0]


def test_index_outside_rejected():
    g = GridMap((1.0, 1.0), 0.1)
    with pytest.raises(ValueError):
        g.index_of_position(5.0, 0.0)


def test_submap_keeps_data():
    g = GridMap((2.0, 2.0), 0.1)
    g.add("e", np.arange(400, dtype=float).reshape(20, 20))
    sub = g.submap((0.0, 0.0), (1.0, 1.0))
    assert sub.size == (10, 10)
    r, c = g.index_of_position(*sub.position_of_index(0, 0))
    assert sub.get("e")[0, 0] == g.get("e")[r, c]


def test_load_from_image(tmp_path):
    pixels = np.array([[0, 255], [255, 0], [0, 0]], dtype=np.uint8)
    path = tmp_path / "t.png"
    Image.fromarray(pixels).save(path)
    g = load_gridmap_from_image(str(path), "elev", "odom", 0.1, 1.25)
    assert g.size == (3, 2)
    assert g.frame_id == "odom"
    assert np.allclose(g.get("elev"), pixels / 255.0 * 1.25)
    assert np.allclose(g.position, [0.0, 0.0])


def test_load_missing_file(tmp_path):
    with pytest.raises(OSError):
        load_gridmap_from_image(str(tmp_path / "none.png"), "e", "f", 0.1, 1.0)