import pandas as pd
import pytest

from class_model.data_splitting import train_validation_split, validation_size


def test_split_sizes_and_partition(synthetic):
    train, val = train_validation_split(synthetic, fraction=0.3, seed=42)
    assert len(val) == 60
    assert len(train) == 140
    assert set(train["ID"]).isdisjoint(val["ID"])
    assert set(train["ID"]) | set(val["ID"]) == set(synthetic["ID"])


def test_split_is_reproducible(synthetic):
    _, a = train_validation_split(synthetic, seed=3)
    _, b = train_validation_split(synthetic, seed=3)
    _, c = train_validation_split(synthetic, seed=4)
    assert a["ID"].tolist() == b["ID"].tolist()
    assert a["ID"].tolist() != c["ID"].tolist()


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1, 1.5])
def test_invalid_fraction_raises(synthetic, fraction):
    with pytest.raises(ValueError):
        train_validation_split(synthetic, fraction=fraction)


def test_duplicate_ids_raise():
    df = pd.DataFrame({"ID": [1, 1, 2], "Target": ["0", "1", "0"]})
    with pytest.raises(ValueError):
        train_validation_split(df)


def test_validation_size_rounds():
    assert validation_size(200, 0.3) == 60
    assert validation_size(10, 0.25) == 2
