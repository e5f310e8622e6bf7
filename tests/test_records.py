import math
import pytest

from cep_common.records import (
    MODEL_FEATURES,
    RECORD_COLUMNS,
    SECTOR_SHARE_COLUMNS,
    CountyRecord,
    pad_fips,
    records_from_frame,
)
from conftest import make_county_frame


@pytest.mark.parametrize("raw, expected", [
    ("1001", "01001"),
    (1001, "01001"),
    (1001.0, "01001"),
    ("1001.0", "01001"),
    ("01001", "01001"),
    ("48201", "48201"),
    (" 6037 ", "06037"),
])
def test_pad_fips(raw, expected):
    assert pad_fips(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "NA", float("nan")])
def test_pad_fips_blank_is_none(raw):
    assert pad_fips(raw) is None


def test_pad_fips_rejects_garbage():
    with pytest.raises(ValueError):
        pad_fips("12a45")
    with pytest.raises(ValueError):
        pad_fips("1234567")


def test_model_features_cover_all_sectors():
    assert len(SECTOR_SHARE_COLUMNS) == 11
    assert set(SECTOR_SHARE_COLUMNS) <= set(MODEL_FEATURES)
    assert "poverty_rate" in MODEL_FEATURES


def test_records_from_frame_roundtrips_fields():
    df = make_county_frame(n=5)
    recs = records_from_frame(df)
    assert len(recs) == 5
    assert recs[0].geoid == "01001"
    assert set(recs[0].sector_counts()) == {c.replace("share_", "") for c in SECTOR_SHARE_COLUMNS}


def test_county_record_rejects_short_geoid():
    df = make_county_frame(n=1)
    row = df[RECORD_COLUMNS].iloc[0].to_dict()
    row["geoid"] = "1001"
    with pytest.raises(ValueError, match="5 digits"):
        CountyRecord(**row)


def test_records_from_frame_keeps_missing_as_nan():
    df = make_county_frame(n=2)
    df.loc[0, "hours_male"] = None
    recs = records_from_frame(df)
    assert math.isnan(recs[0].hours_male)


def test_geometry_is_optional_and_not_a_record_column():
    assert "geometry" not in RECORD_COLUMNS
    recs = records_from_frame(make_county_frame(n=2))
    assert recs[0].geometry is None
