import pathlib
import sys

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

SRC_ROOT = pathlib.Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from ortholog_trait_pca.config import DatabaseConfig
from ortholog_trait_pca.database import (
    connection_scope,
    fetch_expression,
    fetch_traits,
    retrieve_tables,
)
from ortholog_trait_pca.models import Base, ExpressionValue, ProbeAnnotation


def _seed(db_path: pathlib.Path) -> str:
    url = f"sqlite:///{db_path}"
    engine = create_engine(url)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all(
            [
                ProbeAnnotation(probe_id="p1", gene_symbol="Actb"),
                ProbeAnnotation(probe_id="p2", gene_symbol="Actb"),
                ProbeAnnotation(probe_id="p3", gene_symbol="Tnf"),
            ]
        )
        session.flush()
        for sample_id, values in {"M1": (1.0, 2.0, 5.0), "M2": (3.0, 4.0, 6.0)}.items():
            for probe_id, value in zip(("p1", "p2", "p3"), values):
                session.add(
                    ExpressionValue(sample_id=sample_id, probe_id=probe_id, expression_value=value)
                )
        session.commit()
    with engine.begin() as connection:
        connection.execute(
            text("CREATE TABLE clinical_traits (sample_id TEXT, weight REAL, sex TEXT)")
        )
        connection.execute(
            text(
                "INSERT INTO clinical_traits VALUES "
                "('M1', 21.5, 'F'), ('M2', 24.0, 'M'), ('M3', 22.0, 'F')"
            )
        )
    engine.dispose()
    return url


def test_fetch_expression_default_query_joins_annotation(tmp_path: pathlib.Path) -> None:
    url = _seed(tmp_path / "expression.db")

    with connection_scope(DatabaseConfig(connection_string=url)) as connection:
        expression = fetch_expression(connection)

    assert expression.columns == ["sample_id", "probe_id", "gene_symbol", "expression_value"]
    assert expression.height == 6
    assert set(expression.get_column("gene_symbol").to_list()) == {"Actb", "Tnf"}


def test_fetch_traits_and_custom_expression_query(tmp_path: pathlib.Path) -> None:
    url = _seed(tmp_path / "expression.db")

    with connection_scope(DatabaseConfig(connection_string=url)) as connection:
        traits = fetch_traits(connection)
        expression = fetch_expression(
            connection,
            "SELECT e.sample_id, e.probe_id, p.gene_symbol, e.expression_value "
            "FROM expression_value e JOIN probe_annotation p ON e.probe_id = p.probe_id "
            "WHERE p.gene_symbol = 'Tnf' ORDER BY e.sample_id",
        )

    assert traits.columns == ["sample_id", "weight", "sex"]
    assert traits.height == 3
    assert expression.get_column("expression_value").to_list() == [5.0, 6.0]


def test_fetch_expression_requires_expected_columns(tmp_path: pathlib.Path) -> None:
    url = _seed(tmp_path / "expression.db")

    with connection_scope(DatabaseConfig(connection_string=url)) as connection:
        with pytest.raises(ValueError):
            fetch_expression(connection, "SELECT sample_id FROM expression_value")


def test_retrieve_tables_runs_both_queries(tmp_path: pathlib.Path) -> None:
    url = _seed(tmp_path / "expression.db")

    tables = retrieve_tables(
        DatabaseConfig(
            connection_string=url,
            trait_query="SELECT sample_id, weight FROM clinical_traits",
        )
    )

    assert tables.traits.columns == ["sample_id", "weight"]
    assert tables.expression.height == 6


def test_retrieve_tables_renames_configured_expression_sample_column(
    tmp_path: pathlib.Path,
) -> None:
    url = _seed(tmp_path / "expression.db")

    tables = retrieve_tables(
        DatabaseConfig(
            connection_string=url,
            sample_column="mouse_id",
            expression_query=(
                "SELECT e.sample_id AS mouse_id, e.probe_id, p.gene_symbol, e.expression_value "
                "FROM expression_value e JOIN probe_annotation p ON e.probe_id = p.probe_id"
            ),
        )
    )

    assert tables.expression.columns == [
        "sample_id",
        "probe_id",
        "gene_symbol",
        "expression_value",
    ]
    assert tables.expression.height == 6


def test_retrieve_tables_query_errors_propagate(tmp_path: pathlib.Path) -> None:
    url = _seed(tmp_path / "expression.db")

    with pytest.raises(OperationalError):
        retrieve_tables(DatabaseConfig(connection_string=url, trait_query="SELECT * FROM missing"))
