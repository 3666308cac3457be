import pytest

from enhanced_metrics.common.errors import ContractError
from enhanced_metrics.common.models import DatasetBlock
from enhanced_metrics.pipeline.columns import ColumnKind, ColumnSpec, DatasetSchema
from enhanced_metrics.pipeline.decoder import decode_block
from enhanced_metrics.pipeline.encoder import (
    build_column_dictionary,
    check_block_lengths,
    dictionary_key,
    encode_array_column,
    encode_dataset,
    encode_scalar_column,
)


RECORDS = [
    {"state": "OH", "code": "T1019", "rate": "$10.00"},
    {"state": "TX", "code": "T1019", "rate": None},
    {"state": "OH", "code": "", "rate": "$12.50"},
    {"state": "CA", "code": "S5125", "rate": "$10.00"},
]


def _schema(*columns: ColumnSpec) -> DatasetSchema:
    return DatasetSchema(name="test", columns=tuple(columns))


def test_dictionary_codes_follow_first_seen_order():
    assert build_column_dictionary(RECORDS, "state") == {"OH": 0, "TX": 1, "CA": 2}


def test_dictionary_is_dense_and_skips_absent_values():
    dictionary = build_column_dictionary(RECORDS, "code")
    assert dictionary == {"T1019": 0, "S5125": 1}
    assert sorted(dictionary.values()) == list(range(len(dictionary)))


def test_dictionary_keeps_zero_and_false_as_real_values():
    records = [{"n": 0}, {"n": 5}, {"n": False}, {"n": 0.0}]
    assert build_column_dictionary(records, "n") == {"0": 0, "5": 1, "false": 2}


def test_dictionary_key_stringifies_like_json_keys():
    assert dictionary_key("x") == "x"
    assert dictionary_key(True) == "true"
    assert dictionary_key(12) == "12"
    assert dictionary_key(50.0) == "50"
    assert dictionary_key(12.5) == "12.5"
    assert dictionary_key({"a": 1}) == '{"a":1}'


def test_empty_input_yields_empty_dictionary():
    assert build_column_dictionary([], "state") == {}


def test_scalar_column_uses_sentinel_for_absent_and_unmapped():
    dictionary = build_column_dictionary(RECORDS, "rate")
    assert encode_scalar_column(RECORDS, "rate", dictionary) == [0, -1, 1, 0]
    assert encode_scalar_column([{"rate": "$99"}], "rate", dictionary) == [-1]
    assert encode_scalar_column([{}], "rate", dictionary) == [-1]


def test_array_column_preserves_cell_shape():
    records = [
        {"modifier_1": ["U1", "HQ"]},
        {"modifier_1": "U1"},
        {"modifier_1": None},
        {"modifier_1": ["HQ", None]},
        {"modifier_1": []},
    ]
    dictionary = build_column_dictionary(records, "modifier_1", multi_value=True)
    assert dictionary == {"U1": 0, "HQ": 1}
    assert encode_array_column(records, "modifier_1", dictionary) == [[0, 1], 0, -1, [1, -1], []]


def test_scalar_column_keys_list_values_as_a_whole():
    records = [{"tags": ["a", "b"]}, {"tags": ["a", "b"]}]
    dictionary = build_column_dictionary(records, "tags")
    assert dictionary == {'["a","b"]': 0}
    assert encode_scalar_column(records, "tags", dictionary) == [0, 0]


def test_encode_dataset_round_trips_through_decoder():
    records = [
        {"state": "OH", "modifier_1": ["A", "B"], "rate": "$10.00"},
        {"state": "TX", "modifier_1": "A", "rate": ""},
        {"state": "OH", "modifier_1": None, "rate": "$11.00"},
    ]
    schema = _schema(
        ColumnSpec("state"),
        ColumnSpec("modifier_1", ColumnKind.MULTI_VALUE),
        ColumnSpec("rate"),
    )

    block = encode_dataset(records, schema)
    decoded = decode_block(block.to_dict())

    assert decoded == [
        {"state": "OH", "modifier_1": ["A", "B"], "rate": "$10.00"},
        {"state": "TX", "modifier_1": "A", "rate": None},
        {"state": "OH", "modifier_1": None, "rate": "$11.00"},
    ]


def test_every_encoded_column_matches_record_count():
    schema = _schema(ColumnSpec("state"), ColumnSpec("code"), ColumnSpec("missing"))
    block = encode_dataset(RECORDS, schema)

    assert block.total_records == len(RECORDS)
    for values in block.encoded_columns.values():
        assert len(values) == block.total_records
    assert block.encoded_columns["missing"] == [-1, -1, -1, -1]
    assert block.dictionaries["missing"] == {}


def test_empty_dataset_produces_empty_block():
    block = encode_dataset([], _schema())
    assert block.to_dict() == {"m": {}, "v": {}, "c": [], "total_records": 0}


def test_empty_dataset_with_declared_columns_keeps_column_order():
    block = encode_dataset([], _schema(ColumnSpec("a"), ColumnSpec("b", ColumnKind.MULTI_VALUE)))
    assert block.to_dict() == {"m": {"a": {}, "b": {}}, "v": {"a": [], "b": []}, "c": ["a", "b"], "total_records": 0}


def test_check_block_lengths_rejects_short_column():
    block = DatasetBlock(dictionaries={"a": {}}, encoded_columns={"a": [-1]}, column_order=["a"], total_records=2)
    with pytest.raises(ContractError):
        check_block_lengths("test", block)
