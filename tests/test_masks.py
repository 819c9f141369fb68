import pytest

np = pytest.importorskip("numpy")

from irregular_watershed.segmentation.masks import (
    InvalidMaskError,
    MaskPolarity,
    count_changed,
    from_binary,
    to_binary,
    validate_binary,
)


def test_to_binary_respects_polarity():
    image = np.array([[0, 255], [255, 0]], dtype=np.uint8)

    normal = to_binary(image, MaskPolarity())
    inverted = to_binary(image, MaskPolarity().inverted())

    assert normal.tolist() == [[False, True], [True, False]]
    assert inverted.tolist() == [[True, False], [False, True]]


def test_from_binary_restores_encoding_and_dtype():
    mask = np.array([[True, False]])
    polarity = MaskPolarity(foreground_value=0, background_value=255)

    out = from_binary(mask, polarity, dtype=np.uint8)

    assert out.dtype == np.uint8
    assert out.tolist() == [[0, 255]]


def test_boolean_masks_pass_through():
    mask = np.array([[True, False]])
    assert to_binary(mask, MaskPolarity()).tolist() == [[True, False]]
    assert from_binary(mask, MaskPolarity(), dtype=bool).tolist() == [[True, False]]


def test_boolean_masks_follow_a_boolean_polarity():
    mask = np.array([[True, False]])
    inverted = MaskPolarity(foreground_value=False, background_value=True)

    assert to_binary(mask, inverted).tolist() == [[False, True]]
    assert from_binary(np.array([[False, True]]), inverted, dtype=bool).tolist() == [[True, False]]
    assert to_binary(mask, MaskPolarity(True, False)).tolist() == [[True, False]]


def test_validate_binary_rejects_extra_values():
    image = np.array([[0, 128], [255, 0]], dtype=np.uint8)
    with pytest.raises(InvalidMaskError):
        validate_binary(image, MaskPolarity())


def test_validate_binary_rejects_non_2d():
    with pytest.raises(InvalidMaskError):
        validate_binary(np.zeros((2, 3, 3), dtype=np.uint8), MaskPolarity())


def test_validate_binary_accepts_single_valued_image():
    validate_binary(np.zeros((4, 4), dtype=np.uint8), MaskPolarity())
    validate_binary(np.full((4, 4), 255, dtype=np.uint8), MaskPolarity())


def test_count_changed():
    a = np.zeros((3, 3), dtype=bool)
    b = a.copy()
    b[1, :] = True
    assert count_changed(a, b) == 3
