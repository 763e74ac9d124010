import logging
import pathlib
import sys

import pytest

SRC_ROOT = pathlib.Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from ortholog_trait_pca.orthologs import (
    GeneListError,
    load_candidate_genes,
    load_ortholog_table,
    resolve_orthologs,
)


def _write(path: pathlib.Path, text: str) -> pathlib.Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_ortholog_table_custom_columns_and_blank_rows(tmp_path: pathlib.Path) -> None:
    path = _write(
        tmp_path / "orthologs.tsv",
        "HGNC\tMGI\tscore\n"
        "TNF\tTnf\t1\n"
        "IL6\t\t1\n"
        "TNF\tTnf\t1\n"
        " ACTB \tActb\t1\n",
    )

    table = load_ortholog_table(path, human_column="HGNC", mouse_column="MGI")

    assert table.columns == ["human_symbol", "mouse_symbol"]
    assert table.rows() == [("TNF", "Tnf"), ("ACTB", "Actb")]


def test_load_ortholog_table_requires_columns(tmp_path: pathlib.Path) -> None:
    path = _write(tmp_path / "orthologs.tsv", "human\tmouse\nTNF\tTnf\n")

    with pytest.raises(GeneListError):
        load_ortholog_table(path)


def test_load_candidate_genes_preserves_order_and_deduplicates(tmp_path: pathlib.Path) -> None:
    path = _write(tmp_path / "candidates.csv", "gene,source\nIL6,a\nTNF,b\nIL6,c\n,d\n")

    genes = load_candidate_genes(path, delimiter=",")

    assert genes == ["IL6", "TNF"]


def test_load_candidate_genes_requires_column(tmp_path: pathlib.Path) -> None:
    path = _write(tmp_path / "candidates.tsv", "symbol\nIL6\n")

    with pytest.raises(GeneListError):
        load_candidate_genes(path)


def test_resolve_orthologs_inner_join_keeps_one_to_many(
    tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture
) -> None:
    orthologs = load_ortholog_table(
        _write(
            tmp_path / "orthologs.tsv",
            "human_symbol\tmouse_symbol\n"
            "ACTB\tActb\n"
            "CCL3\tCcl3\n"
            "CCL3\tCcl3l1\n"
            "TNF\tTnf\n",
        )
    )
    caplog.set_level(logging.WARNING)

    resolved = resolve_orthologs(["TNF", "NOTAGENE", "CCL3"], orthologs)

    assert resolved.rows() == [("TNF", "Tnf"), ("CCL3", "Ccl3"), ("CCL3", "Ccl3l1")]
    assert resolved.get_column("mouse_symbol").null_count() == 0
    assert "NOTAGENE" in caplog.text


def test_resolve_orthologs_unmapped_candidate_gives_empty_result(tmp_path: pathlib.Path) -> None:
    orthologs = load_ortholog_table(
        _write(tmp_path / "orthologs.tsv", "human_symbol\tmouse_symbol\nTNF\tTnf\n")
    )

    resolved = resolve_orthologs(["IL6"], orthologs)

    assert resolved.height == 0
    assert resolved.columns == ["human_symbol", "mouse_symbol"]
