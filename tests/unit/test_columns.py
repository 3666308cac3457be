from enhanced_metrics.pipeline.columns import (
    ColumnKind,
    DatasetPolicy,
    resolve_dataset_schema,
    undeclared_columns,
)


MASTER_POLICY = DatasetPolicy(
    name="master_data",
    table="master_data_sept_2",
    multi_value_prefix="modifier_",
    scalar_columns=frozenset(
        {"modifier_1_details", "modifier_2_details", "modifier_3_details", "modifier_4_details"}
    ),
)


def test_master_data_modifier_columns_are_multi_value_except_details():
    records = [
        {
            "id": 1,
            "service_code": "T1019",
            "modifier_1": "U1",
            "modifier_1_details": "Rural",
            "modifier_4": None,
            "modifier_4_details": None,
            "modifier_id_pk": "9",
        }
    ]
    schema = resolve_dataset_schema(MASTER_POLICY, records)
    kinds = {column.name: column.kind for column in schema.columns}

    assert schema.column_order == [
        "id",
        "service_code",
        "modifier_1",
        "modifier_1_details",
        "modifier_4",
        "modifier_4_details",
        "modifier_id_pk",
    ]
    assert kinds["modifier_1"] is ColumnKind.MULTI_VALUE
    assert kinds["modifier_4"] is ColumnKind.MULTI_VALUE
    assert kinds["modifier_id_pk"] is ColumnKind.MULTI_VALUE
    assert kinds["modifier_1_details"] is ColumnKind.SCALAR
    assert kinds["service_code"] is ColumnKind.SCALAR


def test_declared_columns_take_precedence_over_record_keys():
    policy = DatasetPolicy(
        name="recent_rate_changes",
        derived_from="master_data",
        columns=("service_code", "modifiers"),
        multi_value_columns=frozenset({"modifiers"}),
    )
    schema = resolve_dataset_schema(policy, [{"modifiers": [], "service_code": "A", "extra": 1}])

    assert schema.column_order == ["service_code", "modifiers"]
    assert schema.columns[1].kind is ColumnKind.MULTI_VALUE


def test_schema_for_empty_dataset_without_declaration_is_empty():
    policy = DatasetPolicy(name="provider_alerts", table="provider_alerts")
    assert resolve_dataset_schema(policy, []).columns == ()


def test_undeclared_columns_reports_keys_missing_from_first_record():
    policy = DatasetPolicy(name="provider_alerts", table="provider_alerts")
    records = [{"id": 1}, {"id": 2, "summary": "x"}, {"id": 3, "summary": "y", "link": "z"}]
    schema = resolve_dataset_schema(policy, records)

    assert schema.column_order == ["id"]
    assert undeclared_columns(schema, records) == ["summary", "link"]
