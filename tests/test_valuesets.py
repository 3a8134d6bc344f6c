"""Tests for value set loading and code resolution."""

import json
from datetime import date

import pytest

from hcert_verifier.valuesets import (
    CATEGORIES,
    VACCINE_MEDICINAL_PRODUCT,
    CodedValue,
    ValueSet,
    ValueSets,
    load_value_set,
    load_value_sets,
)


@pytest.fixture
def valuesets_dir(tmp_path, value_set_docs):
    for category, doc in value_set_docs.items():
        (tmp_path / f"{category}.json").write_text(json.dumps(doc), encoding="utf-8")
    return tmp_path


class TestValueSet:

    def test_from_json(self, value_set_docs):
        value_set = ValueSet.from_json(value_set_docs["vaccine-medicinal-product"])
        assert value_set.value_set_id == "vaccines-covid-19-names"
        assert value_set.value_set_date == date(2021, 4, 27)
        entry = value_set.get("EU/1/20/1528")
        assert entry.display == "Comirnaty"
        assert entry.lang == "en"
        assert entry.active is True
        assert value_set.get("unknown") is None

    def test_from_json_missing_values(self):
        with pytest.raises(KeyError):
            ValueSet.from_json({"valueSetId": "x", "valueSetDate": "2021-01-01"})


class TestLoading:

    def test_load_value_set(self, valuesets_dir):
        value_set = load_value_set(valuesets_dir / "disease-agent-targeted.json")
        assert value_set.get("840539006").display == "COVID-19"

    def test_missing_file(self, tmp_path, caplog):
        assert load_value_set(tmp_path / "nope.json") is None
        assert "nope.json" in caplog.text

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_value_set(path) is None

    def test_wrong_document_shape(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert load_value_set(path) is None

    def test_load_value_sets(self, valuesets_dir):
        value_sets = load_value_sets(valuesets_dir)
        for category in CATEGORIES:
            assert value_sets.get_set(category) is not None

    def test_load_value_sets_partial(self, valuesets_dir):
        (valuesets_dir / "vaccine-mah-manf.json").unlink()
        value_sets = load_value_sets(valuesets_dir)
        assert value_sets.vaccine_mah_manf is None
        assert value_sets.disease_agent_targeted is not None

    def test_load_value_sets_missing_directory(self, tmp_path):
        value_sets = load_value_sets(tmp_path / "absent")
        assert value_sets == ValueSets()


class TestResolve:

    def test_resolved(self, valuesets_dir):
        coded = load_value_sets(valuesets_dir).resolve(VACCINE_MEDICINAL_PRODUCT, "EU/1/20/1528")
        assert coded.code == "EU/1/20/1528"
        assert coded.display == "Comirnaty"
        assert str(coded) == "EU/1/20/1528"

    def test_unknown_code(self, valuesets_dir):
        coded = load_value_sets(valuesets_dir).resolve(VACCINE_MEDICINAL_PRODUCT, "EU/1/99/0000")
        assert coded == CodedValue("EU/1/99/0000")

    def test_missing_set(self):
        coded = ValueSets().resolve(VACCINE_MEDICINAL_PRODUCT, "EU/1/20/1528")
        assert coded.metadata is None
        assert coded.display == "EU/1/20/1528"
