import pytest

np = pytest.importorskip("numpy")
pd = pytest.importorskip("pandas")
zarr = pytest.importorskip("zarr")
pytest.importorskip("skimage")

from irregular_watershed.data_io.mask_io import load_mask_stack, save_mask_stack
from irregular_watershed.segmentation.config import IrregularWatershedConfig
from irregular_watershed.segmentation.postprocess import correct_mask_file, report_path_for


def _mask_stack():
    stack = np.zeros((2, 24, 24), dtype=np.uint8)
    stack[0, 4:20, 4:20] = 255
    stack[1, 3:10, 3:10] = 255
    stack[1, 14:21, 14:21] = 255
    return stack


def test_zarr_round_trip_keeps_attrs(tmp_path):
    stack = _mask_stack()
    path = save_mask_stack(tmp_path / "masks.zarr", stack, attrs={"pixel_size_um": 0.5})

    loaded, attrs = load_mask_stack(path)

    np.testing.assert_array_equal(loaded, stack)
    assert attrs["pixel_size_um"] == 0.5


def test_load_resolves_zarr_group_to_first_array(tmp_path):
    group = zarr.open_group((tmp_path / "group.zarr").as_posix(), mode="w")
    arr = group.zeros(name="mask", shape=(4, 4), dtype=np.uint8)
    arr[:] = 255

    loaded, _ = load_mask_stack(tmp_path / "group.zarr")

    assert loaded.shape == (4, 4)
    assert (loaded == 255).all()


def test_tiff_round_trip(tmp_path):
    stack = _mask_stack()
    path = save_mask_stack(tmp_path / "masks.tif", stack)

    loaded, attrs = load_mask_stack(path)

    np.testing.assert_array_equal(loaded, stack)
    assert attrs == {}


def test_save_refuses_to_overwrite(tmp_path):
    path = save_mask_stack(tmp_path / "masks.zarr", _mask_stack())
    with pytest.raises(FileExistsError):
        save_mask_stack(path, _mask_stack())
    save_mask_stack(path, _mask_stack()[:1], overwrite=True)
    assert load_mask_stack(path)[0].shape == (1, 24, 24)


def test_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError):
        save_mask_stack(tmp_path / "masks.npy", _mask_stack())
    with pytest.raises(ValueError):
        load_mask_stack(tmp_path / "masks.npy")


def test_png_takes_a_single_plane(tmp_path):
    stack = _mask_stack()
    with pytest.raises(ValueError):
        save_mask_stack(tmp_path / "masks.png", stack)
    assert not (tmp_path / "masks.png").exists()

    path = save_mask_stack(tmp_path / "plane.png", stack[:1])

    loaded, _ = load_mask_stack(path)
    np.testing.assert_array_equal(loaded, stack[0])


def test_missing_input(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_mask_stack(tmp_path / "absent.zarr")


def test_correct_mask_file_writes_mask_report_and_params(tmp_path):
    src = save_mask_stack(tmp_path / "in.zarr", _mask_stack())
    out = tmp_path / "out" / "corrected.zarr"
    config = IrregularWatershedConfig(erosion_cycles=2)

    report = correct_mask_file(src, out, config)

    corrected, attrs = load_mask_stack(out)
    assert corrected.shape == (2, 24, 24)
    assert corrected.dtype == np.uint8
    assert set(np.unique(corrected)) <= {0, 255}
    assert attrs["irregular_watershed"]["erosion_cycles"] == 2
    assert len(report) == 2
    on_disk = pd.read_csv(report_path_for(out))
    assert on_disk["slice"].tolist() == [0, 1]


def test_correct_mask_file_refuses_existing_output(tmp_path):
    src = save_mask_stack(tmp_path / "in.zarr", _mask_stack())
    out = save_mask_stack(tmp_path / "out.zarr", _mask_stack())
    with pytest.raises(FileExistsError):
        correct_mask_file(src, out)
