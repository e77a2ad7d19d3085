from unittest.mock import MagicMock, call

import pytest

from gee_primer.analysis.masking import (
    cloud_mask_for,
    mask_landsat_clouds,
    mask_s2_clouds,
    mask_s2_scl,
    qa_bits_clear,
    reflectance_scaler,
    scale_reflectance,
    threshold_mask,
)


def test_qa_bits_clear_tests_each_bit():
    qa = MagicMock()
    qa_bits_clear(qa, [10, 11])
    assert qa.bitwiseAnd.call_args_list == [call(1 << 10), call(1 << 11)]
    with pytest.raises(ValueError):
        qa_bits_clear(qa, [])


def test_mask_s2_clouds_uses_qa60():
    image = MagicMock()
    result = mask_s2_clouds(image)
    image.select.assert_called_once_with('QA60')
    assert image.select.return_value.bitwiseAnd.call_args_list == [call(1024), call(2048)]
    image.updateMask.assert_called_once()
    assert result is image.updateMask.return_value


def test_mask_landsat_clouds_checks_five_bits():
    image = MagicMock()
    mask_landsat_clouds(image)
    image.select.assert_called_once_with('QA_PIXEL')
    masks = [c.args[0] for c in image.select.return_value.bitwiseAnd.call_args_list]
    assert masks == [2, 4, 8, 16, 32]


def test_mask_s2_scl_keeps_listed_classes():
    image = MagicMock()
    mask_s2_scl(image, keep=(4, 6))
    scl = image.select.return_value
    assert scl.eq.call_args_list == [call(4), call(6)]
    with pytest.raises(ValueError):
        mask_s2_scl(image, keep=())


def test_cloud_mask_for_matches_qa_band():
    assert cloud_mask_for('sentinel2') is mask_s2_clouds
    assert cloud_mask_for('landsat8') is mask_landsat_clouds
    assert cloud_mask_for('Landsat-7') is mask_landsat_clouds


def test_scale_reflectance_landsat_applies_offset():
    image = MagicMock()
    scale_reflectance(image, 'landsat8')
    optical = image.select.return_value
    image.select.assert_called_once_with(['SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B6', 'SR_B7'])
    optical.multiply.assert_called_once_with(0.0000275)
    optical.multiply.return_value.add.assert_called_once_with(-0.2)
    image.addBands.assert_called_once_with(optical.multiply.return_value.add.return_value, None, True)


def test_scale_reflectance_sentinel2_has_no_offset():
    image = MagicMock()
    reflectance_scaler('sentinel2')(image)
    optical = image.select.return_value
    optical.multiply.assert_called_once_with(0.0001)
    optical.multiply.return_value.add.assert_not_called()
    image.addBands.assert_called_once_with(optical.multiply.return_value, None, True)


def test_threshold_mask():
    image = MagicMock()
    threshold_mask(image, 'NDVI', '>', 0.3)
    image.select.assert_called_once_with('NDVI')
    image.select.return_value.gt.assert_called_once_with(0.3)
    image.updateMask.assert_called_once_with(image.select.return_value.gt.return_value)
    with pytest.raises(ValueError):
        threshold_mask(image, 'NDVI', 'in', [1, 2])
