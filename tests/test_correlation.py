import math
import pathlib
import sys

import numpy as np
import polars as pl
import pytest
from scipy.stats import t as student_t

SRC_ROOT = pathlib.Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from ortholog_trait_pca.correlation import (
    bicor,
    cluster_order,
    correlation_order,
    correlation_pvalues,
)


def test_bicor_perfectly_linear_columns_is_exactly_one() -> None:
    frame = pl.DataFrame({"A": [1.0, 2.0, 3.0], "B": [10.0, 20.0, 30.0]})

    result = bicor(frame)

    assert result.coefficient("A", "B") == 1.0
    assert result.coefficient("B", "A") == 1.0
    assert result.p_value("A", "B") == 0.0


def test_bicor_matrix_is_symmetric_with_unit_diagonal() -> None:
    rng = np.random.default_rng(7)
    data = rng.normal(size=(25, 6))
    frame = pl.DataFrame({f"G{i}": data[:, i] for i in range(6)})

    result = bicor(frame)

    assert result.row_labels == result.column_labels == tuple(frame.columns)
    assert np.array_equal(result.coefficients, result.coefficients.T)
    assert np.allclose(np.diag(result.coefficients), 1.0)
    assert np.all(result.n_obs == 25)


def test_bicor_resists_outliers_better_than_pearson() -> None:
    x = np.arange(20, dtype=float)
    y = x + np.sin(x)
    y[0] = 1000.0

    robust = bicor(x, y).coefficients[0, 0]
    pearson = np.corrcoef(x, y)[0, 1]

    assert robust > 0.8
    assert robust > pearson


def test_bicor_uses_pairwise_complete_observations() -> None:
    frame = pl.DataFrame(
        {
            "A": [1.0, 2.0, 3.0, 4.0, None],
            "B": [2.0, 4.0, 6.0, 8.0, 10.0],
            "C": [None, 1.0, 3.0, 2.0, 5.0],
        }
    )

    result = bicor(frame)
    index = {label: i for i, label in enumerate(result.row_labels)}

    assert result.coefficient("A", "B") == 1.0
    assert result.n_obs[index["A"], index["B"]] == 4
    assert result.n_obs[index["A"], index["C"]] == 3
    assert result.n_obs[index["B"], index["B"]] == 5

    expected = bicor(np.array([2.0, 3.0, 4.0]), np.array([1.0, 3.0, 2.0])).coefficients[0, 0]
    assert result.coefficient("A", "C") == pytest.approx(expected)


def test_bicor_constant_column_is_undefined() -> None:
    frame = pl.DataFrame({"A": [1.0, 2.0, 3.0, 4.0], "flat": [5.0, 5.0, 5.0, 5.0]})

    result = bicor(frame)

    assert math.isnan(result.coefficient("A", "flat"))
    assert math.isnan(result.p_value("A", "flat"))
    assert result.coefficient("A", "A") == 1.0


def test_bicor_rectangular_against_second_table() -> None:
    scores = pl.DataFrame({"PC1": [1.0, 2.0, 3.0, 4.0], "PC2": [4.0, 1.0, 3.0, 2.0]})
    traits = pl.DataFrame({"weight": [2.0, 4.0, 6.0, 8.0], "age": [8, 6, 4, 2]})

    result = bicor(scores, traits)

    assert result.coefficients.shape == (2, 2)
    assert result.row_labels == ("PC1", "PC2")
    assert result.column_labels == ("weight", "age")
    assert result.coefficient("PC1", "weight") == 1.0
    assert result.coefficient("PC1", "age") == -1.0


def test_bicor_rejects_mismatched_rows() -> None:
    with pytest.raises(ValueError):
        bicor(np.zeros((3, 2)), np.zeros((4, 1)))


def test_correlation_pvalues_follow_student_t() -> None:
    p_values = correlation_pvalues(np.array([0.5, 0.0, 0.9]), np.array([10, 10, 2]))

    statistic = math.sqrt(8) * 0.5 / math.sqrt(1 - 0.25)
    assert p_values[0] == pytest.approx(2 * student_t.sf(statistic, 8))
    assert p_values[1] == pytest.approx(1.0)
    assert math.isnan(p_values[2])


def test_correlation_order_keeps_correlated_genes_adjacent() -> None:
    rng = np.random.default_rng(3)
    first = rng.normal(size=30)
    second = rng.normal(size=30)
    frame = pl.DataFrame(
        {
            "Actb": first,
            "Il6": second,
            "Gapdh": first + rng.normal(scale=0.05, size=30),
            "Tnf": second + rng.normal(scale=0.05, size=30),
        }
    )

    order = correlation_order(bicor(frame))

    assert sorted(order) == sorted(frame.columns)
    assert abs(order.index("Actb") - order.index("Gapdh")) == 1
    assert abs(order.index("Il6") - order.index("Tnf")) == 1


def test_correlation_order_requires_square_result() -> None:
    result = bicor(np.arange(8.0).reshape(4, 2), np.arange(4.0))

    with pytest.raises(ValueError):
        correlation_order(result)


def test_cluster_order_short_inputs_keep_order() -> None:
    assert cluster_order(np.array([[1.0, 2.0], [3.0, 4.0]])) == [0, 1]
    assert sorted(cluster_order(np.array([[0.0], [5.0], [0.1], [5.2]]))) == [0, 1, 2, 3]


def test_correlation_result_frame_and_reorder() -> None:
    frame = pl.DataFrame({"A": [1.0, 2.0, 3.0], "B": [3.0, 1.0, 2.0], "C": [1.0, 3.0, 2.0]})
    result = bicor(frame)

    reordered = result.reorder(rows=["C", "A"], columns=["B"])
    table = reordered.to_frame("n_obs")

    assert reordered.coefficients.shape == (2, 1)
    assert reordered.coefficient("C", "B") == result.coefficient("C", "B")
    assert table.columns == ["label", "B"]
    assert table.get_column("label").to_list() == ["C", "A"]
