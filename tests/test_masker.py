import numpy as np
import pytest
from PIL import Image

from deformslam.masking.filters import BorderFilter, BrightFilter, PredefinedFilter
from deformslam.masking.masker import Masker


def test_empty_masker_full_mask():
    img = np.zeros((20, 30, 3), dtype=np.uint8)
    mask = Masker().mask(img)
    assert mask.shape == (20, 30)
    assert (mask == 255).all()


def test_mask_with_dark_image_and_bright_filter():
    img = np.full((40, 40), 60, dtype=np.uint8)
    masker = Masker([BrightFilter(200)])
    assert (masker.mask(img) == 255).all()


def test_mask_not_above_filter_masks():
    img = np.full((60, 60), 60, dtype=np.uint8)
    img[25:35, 25:35] = 250
    masker = Masker([BrightFilter(200), BorderFilter(3, 3, 3, 3, 0)])
    masks = masker.all_masks(img)
    assert set(masks) == {"BrightFilter", "BorderFilter", "Global"}
    assert np.array_equal(masks["Global"], masker.mask(img))
    assert (masks["Global"] <= np.bitwise_and(masks["BrightFilter"], masks["BorderFilter"])).all()


def test_add_delete_and_describe():
    masker = Masker()
    masker.add_filter(BrightFilter(10))
    masker.add_filter(BorderFilter(1, 2, 3, 4, 5))
    assert masker.describe_filters() == (
        "List of filters (2):\n"
        "\t-Bright mask with th_ = 10\n"
        "\t-Border mask with parameters [1,2,3,4]\n"
    )
    masker.delete_filter(0)
    assert len(masker) == 1
    assert isinstance(masker.filters[0], BorderFilter)


def test_describe_empty():
    assert Masker().describe_filters() == "List of filters (0):\n"


def test_delete_out_of_range():
    with pytest.raises(IndexError):
        Masker().delete_filter(0)


def test_load_from_txt(tmp_path):
    img_path = tmp_path / "pre.png"
    Image.fromarray(np.full((20, 20), 255, dtype=np.uint8)).save(img_path)
    cfg = tmp_path / "filters.txt"
    cfg.write_text(
        "BorderFilter 1 2 3 4 5\n"
        "\n"
        "Unknown 7\n"
        "BrightFilter 12abc\n"
        f"Predefined {img_path}\n",
        encoding="utf-8",
    )
    masker = Masker.from_txt(cfg)
    kinds = [type(f) for f in masker.filters]
    assert kinds == [BorderFilter, BrightFilter, PredefinedFilter]
    assert masker.filters[1].threshold == 12
    assert masker.filters[0].description() == "Border mask with parameters [1,2,3,4]"


def test_load_from_txt_bad_integer(tmp_path):
    cfg = tmp_path / "filters.txt"
    cfg.write_text("BrightFilter high\n", encoding="utf-8")
    with pytest.raises(ValueError):
        Masker.from_txt(cfg)


def test_load_from_txt_missing_param(tmp_path):
    cfg = tmp_path / "filters.txt"
    cfg.write_text("BorderFilter 1 2 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        Masker.from_txt(cfg)


def test_load_from_missing_file(tmp_path):
    masker = Masker.from_txt(tmp_path / "nothing.txt")
    assert len(masker) == 0


def test_load_appends_to_existing(tmp_path):
    cfg = tmp_path / "filters.txt"
    cfg.write_text("BrightFilter 30\n", encoding="utf-8")
    masker = Masker([BrightFilter(5)])
    masker.load_from_txt(cfg)
    assert [f.threshold for f in masker.filters] == [5, 30]