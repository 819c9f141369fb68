import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("zarr")
pytest.importorskip("skimage")

from irregular_watershed.data_io.mask_io import load_mask_stack, save_mask_stack
from irregular_watershed.pipelines.irregular_watershed_cli import build_parser, config_from_args, main
from irregular_watershed.segmentation.config import ConvexityDriven, FixedIterations


def test_parser_defaults_match_fixed_iteration_mode(tmp_path):
    args = build_parser().parse_args([str(tmp_path / "in.zarr"), str(tmp_path / "out.zarr")])
    config = config_from_args(args)
    assert config.strategy == FixedIterations(cycles=1)
    assert config.polarity.foreground_value == 255


def test_parser_selects_convexity_mode_and_inverted_polarity(tmp_path):
    args = build_parser().parse_args(
        ["in.tif", "out.tif", "--convexity-threshold", "0.9", "--inverted", "--connectivity", "4"]
    )
    config = config_from_args(args)
    assert config.strategy == ConvexityDriven(threshold=0.9)
    assert config.polarity.foreground_value == 0
    assert config.connectivity == 4


def test_invalid_erosions_exit_with_usage_error(tmp_path):
    with pytest.raises(SystemExit) as info:
        main([str(tmp_path / "in.zarr"), str(tmp_path / "out.zarr"), "--erosions", "0"])
    assert info.value.code == 2


def test_main_corrects_a_stack(tmp_path, capsys):
    stack = np.zeros((1, 20, 20), dtype=np.uint8)
    stack[0, 4:16, 4:16] = 255
    src = save_mask_stack(tmp_path / "in.zarr", stack)
    out = tmp_path / "out.zarr"

    main([str(src), str(out), "--erosions", "2", "--log-level", "WARNING"])

    corrected, _ = load_mask_stack(out)
    assert corrected.shape == stack.shape
    assert (tmp_path / "out_report.csv").exists()
    assert "Corrected 1 slice(s)" in capsys.readouterr().out
