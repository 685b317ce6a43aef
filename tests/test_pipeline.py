"""
End-to-end tests for image I/O helpers and the pipeline entry point.

Run with: python -m pytest tests/test_pipeline.py -v
"""
from pathlib import Path

import numpy as np
import pytest
import yaml
from PIL import Image

import run_pipeline
from src.utils.image_io import (
    ensure_output_dirs,
    load_detection_map,
    load_mask,
    make_disc_mask,
    make_peak_detection,
)


@pytest.fixture
def mask_png(tmp_path) -> Path:
    mask = make_disc_mask(20, 16, [(8, 8, 4)])
    path = tmp_path / "mask.png"
    Image.fromarray((mask * 255).astype(np.uint8)).save(path)
    return path


@pytest.fixture
def detection_npy(tmp_path) -> Path:
    certainty = np.zeros((12, 18))
    certainty[6, 9] = 1.0
    certainty[2, 3] = 0.5
    path = tmp_path / "detection.npy"
    np.save(path, certainty)
    return path


class TestImageIO:

    def test_load_mask_roundtrips_png(self, mask_png):
        mask = load_mask(str(mask_png))
        assert mask.dtype == bool
        np.testing.assert_array_equal(mask, make_disc_mask(20, 16, [(8, 8, 4)]))

    def test_load_detection_map_from_certainties(self, detection_npy):
        log_map = load_detection_map(str(detection_npy))
        assert log_map[6, 9] == 0.0
        assert log_map[2, 3] == pytest.approx(np.log(0.5))
        assert log_map[0, 0] == -np.inf

    def test_load_detection_map_from_log_values(self, tmp_path):
        path = tmp_path / "log.npy"
        np.save(path, np.full((3, 3), -2.0))
        np.testing.assert_array_equal(load_detection_map(str(path), log_values=True),
                                      np.full((3, 3), -2.0))

    @pytest.mark.parametrize("bad", [-0.1, 1.5, -3.0])
    def test_load_detection_map_rejects_values_outside_unit_interval(self, tmp_path, bad):
        path = tmp_path / "not_certainties.npy"
        values = np.full((3, 3), 0.5)
        values[1, 2] = bad
        np.save(path, values)
        with pytest.raises(AssertionError, match="log_values=True"):
            load_detection_map(str(path))

    def test_load_detection_map_from_image(self, tmp_path):
        path = tmp_path / "detection.png"
        img = np.zeros((5, 6), dtype=np.uint8)
        img[2, 3] = 255
        Image.fromarray(img).save(path)
        log_map = load_detection_map(str(path))
        assert log_map.shape == (5, 6)
        assert log_map[2, 3] == pytest.approx(0.0)
        assert log_map[0, 0] == -np.inf

    def test_synthetic_inputs(self):
        mask = make_disc_mask(7, 5, [(3, 2, 1)])
        assert mask.shape == (5, 7)
        assert mask.sum() == 5
        peaks = make_peak_detection(7, 5, [(6, 4)])
        assert peaks[4, 6] == 0.0
        assert np.isneginf(peaks).sum() == 34

    def test_ensure_output_dirs(self, tmp_path):
        ensure_output_dirs(["a", "b"], base=str(tmp_path / "out"))
        assert (tmp_path / "out" / "a").is_dir()
        assert (tmp_path / "out" / "b").is_dir()


def write_config(tmp_path, mask_png, detection_npy) -> Path:
    cfg = {
        "results_dir": str(tmp_path / "results"),
        "workers": 2,
        "noise": {"stddev": 1.5},
        "detection": {"false_positive_rate": 0.0, "false_negative_rate": 0.0},
        "visualization": {"colormap": "magma"},
        "masks": [
            {"name": "file_mask", "path": str(mask_png)},
            {"name": "disc", "synthetic": {"width": 24, "height": 18, "discs": [[12, 9, 4]]}},
        ],
        "detections": [
            {"name": "file_detection", "tag": "nose", "path": str(detection_npy),
             "false_negative_rate": 0.01},
            {"name": "peak", "tag": "eye",
             "synthetic": {"width": 20, "height": 10, "peaks": [[5, 5]]}},
        ],
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(cfg))
    return path


class TestRunPipeline:

    def test_full_run_writes_figures(self, tmp_path, mask_png, detection_npy, capsys):
        config = write_config(tmp_path, mask_png, detection_npy)
        metrics = run_pipeline.main(["--config", str(config)])

        results = tmp_path / "results"
        for scene in ("file_mask", "disc"):
            assert (results / scene / "distance_transform.jpg").is_file()
            assert (results / scene / "signed_profile.jpg").is_file()
        for scene in ("file_detection", "peak"):
            assert (results / scene / "detection_map.jpg").is_file()

        by_name = {m["scene"]: m for m in metrics}
        assert by_name["disc"]["value_2"] < 0.0
        assert by_name["peak"]["value_1"] == pytest.approx(-np.log(2 * np.pi) - 2 * np.log(1.5))
        assert "Results Summary" in capsys.readouterr().out

    def test_scene_subset_and_no_detections(self, tmp_path, mask_png, detection_npy):
        config = write_config(tmp_path, mask_png, detection_npy)
        metrics = run_pipeline.main(["--config", str(config), "--scenes", "disc", "peak",
                                     "--no-detections", "--workers", "1"])
        assert [m["scene"] for m in metrics] == ["disc"]

    def test_missing_config_exits(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            run_pipeline.main(["--config", str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1
        assert "[ERROR]" in capsys.readouterr().out

    def test_unknown_scene_exits(self, tmp_path, mask_png, detection_npy):
        config = write_config(tmp_path, mask_png, detection_npy)
        with pytest.raises(SystemExit):
            run_pipeline.main(["--config", str(config), "--scenes", "nothing"])

    def test_missing_input_exits(self, tmp_path, mask_png, detection_npy):
        config = write_config(tmp_path, mask_png, detection_npy)
        mask_png.unlink()
        with pytest.raises(SystemExit):
            run_pipeline.main(["--config", str(config)])
