from __future__ import annotations

import pytest

from cleftdetect.ai.labels import LabelMap, canonical_class, load_label_map, parse_labels
from cleftdetect.ai.types import CLEFT, NON_CLEFT


def test_parse_labels_filters_blank_lines_and_index_prefix() -> None:
    text = "0 Cleft\n1 Non-Cleft\n\n  \n"
    assert parse_labels(text) == ["Cleft", "Non-Cleft"]


def test_parse_labels_handles_crlf_and_plain_names() -> None:
    assert parse_labels("non_cleft\r\ncleft\r\n") == ["non_cleft", "cleft"]


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Cleft", CLEFT),
        ("cleft", CLEFT),
        ("Non-Cleft", NON_CLEFT),
        ("non cleft", NON_CLEFT),
        ("NON_CLEFT", NON_CLEFT),
        ("noncleft", NON_CLEFT),
        ("Normal", NON_CLEFT),
    ],
)
def test_canonical_class(name: str, expected: str) -> None:
    assert canonical_class(name) == expected


def test_canonical_class_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        canonical_class("dog")


def test_label_map_keeps_file_order() -> None:
    labels = LabelMap.from_text("0 Non-Cleft\n1 Cleft\n")
    assert labels.classes == (NON_CLEFT, CLEFT)
    assert labels.index_of(CLEFT) == 1
    assert labels.index_of(NON_CLEFT) == 0
    assert len(labels) == 2


@pytest.mark.parametrize(
    "text",
    ["Cleft\n", "Cleft\nNon-Cleft\nOther\n", "Cleft\ncleft\n"],
)
def test_label_map_requires_both_classes_once(text: str) -> None:
    with pytest.raises(ValueError):
        LabelMap.from_text(text)


def test_load_label_map_reads_file(tmp_path) -> None:
    path = tmp_path / "labels.txt"
    path.write_text("Cleft\nNon-Cleft\n\n", encoding="utf-8")
    assert load_label_map(path).names == ("Cleft", "Non-Cleft")


def test_byte_order_mark_is_ignored(tmp_path) -> None:
    assert parse_labels("\ufeff0 Cleft\n1 Non-Cleft\n") == ["Cleft", "Non-Cleft"]

    path = tmp_path / "labels.txt"
    path.write_bytes("0 Cleft\r\n1 Non-Cleft\r\n".encode("utf-8-sig"))
    assert load_label_map(path).classes == (CLEFT, NON_CLEFT)
