"""Tests for reference-data loading, indexing and consistency checks."""

import json

import pytest


def _tags(regions, contrast):
    from ctreport.models import ContrastTag, RegionTag
    from ctreport.report.study_tags import StudyTags

    return StudyTags(
        regions=frozenset(RegionTag(r) for r in regions),
        contrast=ContrastTag(contrast),
    )


def _reference(fuzzy=()):
    from ctreport.models import FindingEntry, FuzzyEntry, NormalPhrase, ReferenceData

    return ReferenceData(
        normal_phrases=(
            NormalPhrase(text="Espacios pleurales libres.", regions={"TC-TORAX"}, contrast={"SIEMPRE"}),
            NormalPhrase(text="No se observan signos de TEP central.", regions={"TC-TORAX"}, contrast={"CON CONTRASTE"}),
        ),
        findings=(
            FindingEntry(
                zona_anatomica="Pleura",
                frase_normal="Espacios pleurales libres.",
                hallazgos_patologicos=["Derrame pleural derecho."],
                hallazgos_adicionales=["Pequeña lámina de derrame pleural."],
            ),
        ),
        fuzzy_lexicon=tuple(FuzzyEntry(**f) for f in fuzzy),
    )


def test_packaged_reference_data_loads(reference):
    assert len(reference.normal_phrases) > 20
    assert any(f.anatomical_zone == "Otros" and f.normal_phrase is None for f in reference.findings)
    assert reference.fuzzy_lexicon


def test_packaged_reference_data_is_consistent(reference):
    from ctreport.report.catalog_check import check_reference_data

    assert check_reference_data(reference) == []


def test_template_selection_by_region_and_contrast(reference):
    from ctreport.report.catalog_index import select_template

    with_contrast = select_template(reference, _tags(["TC-TORAX"], "CON CONTRASTE"))
    without_contrast = select_template(reference, _tags(["TC-TORAX"], "SIN CONTRASTE"))
    abdomen = select_template(reference, _tags(["TC-ABDOMEN"], "SIN CONTRASTE"))

    assert "No se observan signos de TEP central." in with_contrast
    assert "No se observan signos de TEP central." not in without_contrast
    assert "Espacios pleurales libres." in without_contrast
    assert not any("pleurales" in line for line in abdomen)
    assert "No se identifican lesiones focales hepáticas en el estudio basal." in abdomen
    assert "Vena porta y ramas portales intrahepáticas permeables." not in abdomen


def test_template_keeps_reference_order(reference):
    from ctreport.report.catalog_index import select_template

    template = select_template(reference, _tags(["TC-TORAX", "TC-ABDOMEN"], "CON CONTRASTE"))
    assert template[0] == "Estructuras mediastínicas sin alteraciones significativas."
    assert template.index("Espacios pleurales libres.") < template.index(
        "Hígado de tamaño y morfología normal y contornos lisos."
    )


def test_no_regions_means_empty_template(reference):
    from ctreport.report.catalog_index import select_template

    assert select_template(reference, _tags([], "CON CONTRASTE")) == ()


def test_indexes_are_keyed_by_normalized_text():
    from ctreport.report.catalog_index import build_catalog_index

    index = build_catalog_index(_reference(), _tags(["TC-TORAX"], "CON CONTRASTE"))
    assert index.pathological["derrame pleural derecho"].normal_phrase == "Espacios pleurales libres."
    assert index.additional["pequena lamina de derrame pleural"].zone == "Pleura"
    assert "Espacios pleurales libres." in index.anchors
    assert index.lookup_exact("derrame pleural derecho")[0] == "pathological"
    assert index.lookup_exact("nada") is None


def test_fuzzy_index_last_write_wins(caplog):
    from ctreport.report.catalog_index import build_catalog_index

    reference = _reference(fuzzy=[
        {"hallazgo_oficial": "Derrame pleural derecho.", "sinonimos": ["liquido pleural"]},
        {"hallazgo_oficial": "Pequeña lámina de derrame pleural.", "sinonimos": ["líquido pleural"]},
    ])
    index = build_catalog_index(reference, _tags(["TC-TORAX"], "CON CONTRASTE"))

    assert index.fuzzy["liquido pleural"].official == "Pequeña lámina de derrame pleural."
    assert index.fuzzy["derrame pleural derecho"].official == "Derrame pleural derecho."
    assert "maps to both" in caplog.text


def test_fuzzy_exclusions_are_normalized():
    from ctreport.report.catalog_index import build_catalog_index

    reference = _reference(fuzzy=[
        {"hallazgo_oficial": "Derrame pleural derecho.", "sinonimos": ["Derrame pleural"], "excluir": ["Derrame  pleural."]},
    ])
    index = build_catalog_index(reference, _tags(["TC-TORAX"], "CON CONTRASTE"))
    assert index.fuzzy["derrame pleural"].exclusions == frozenset({"derrame pleural"})


def test_none_sentinel_anchor():
    from ctreport.models import FindingEntry

    for value in (None, "", "none", "Null.", "NULL"):
        entry = FindingEntry(zona_anatomica="Otros", frase_normal=value)
        assert entry.normal_phrase is None


def test_invalid_contrast_condition_rejected():
    from pydantic import ValidationError

    from ctreport.models import NormalPhrase

    with pytest.raises(ValidationError):
        NormalPhrase(text="Espacios pleurales libres.", regions={"TC-TORAX"}, contrast={"A VECES"})


def test_load_reference_data_from_directory(tmp_path):
    from ctreport.reference import load_reference_data

    (tmp_path / "normal_phrases.json").write_text(json.dumps([
        {"text": "Espacios pleurales libres.", "regions": ["TC-TORAX"], "contrast": ["SIEMPRE"]},
    ]), encoding="utf-8")
    (tmp_path / "findings.json").write_text(json.dumps([
        {"zona_anatomica": "Pleura", "frase_normal": "Espacios pleurales libres.",
         "hallazgos_patologicos": ["Derrame pleural derecho."], "hallazgos_adicionales": []},
    ]), encoding="utf-8")

    reference = load_reference_data(tmp_path)
    assert len(reference.normal_phrases) == 1
    assert reference.findings[0].pathological_phrases == ("Derrame pleural derecho.",)
    assert reference.fuzzy_lexicon == ()


def test_load_reference_data_errors(tmp_path):
    from ctreport.reference import ReferenceDataError, load_reference_data

    with pytest.raises(ReferenceDataError, match="not found"):
        load_reference_data(tmp_path)

    (tmp_path / "normal_phrases.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "findings.json").write_text("[]", encoding="utf-8")
    with pytest.raises(ReferenceDataError, match="Invalid JSON"):
        load_reference_data(tmp_path)

    (tmp_path / "normal_phrases.json").write_text(json.dumps([{"regions": ["TC-TORAX"]}]), encoding="utf-8")
    with pytest.raises(ReferenceDataError, match="Invalid reference data"):
        load_reference_data(tmp_path)


def test_check_reference_data_reports_inconsistencies():
    from ctreport.report.catalog_check import check_reference_data

    reference = _reference(fuzzy=[
        {"hallazgo_oficial": "Neumotórax.", "sinonimos": ["aire pleural"], "excluir": ["neumotorax a tension"]},
    ])
    problems = check_reference_data(reference)
    assert any("'Neumotórax.' is not in the finding tables" in p for p in problems)
    assert any("is not one of its variants" in p for p in problems)


def test_check_reference_data_reports_fuzzy_anchor_mismatch():
    from ctreport.report.catalog_check import check_reference_data

    reference = _reference(fuzzy=[
        {
            "hallazgo_oficial": "Derrame pleural derecho.",
            "frase_normal": "No se observan signos de TEP central.",
            "sinonimos": ["liquido pleural derecho"],
        },
    ])
    problems = check_reference_data(reference)
    assert problems == [
        "fuzzy official finding 'Derrame pleural derecho.' names anchor "
        "'No se observan signos de TEP central.' but the finding tables use 'Espacios pleurales libres.'"
    ]
