import pytest

from case_triage.classifier import MODEL_NAME, classify
from case_triage.errors import InputValidationError
from case_triage.schema import PatientContext


@pytest.mark.parametrize(
    "text",
    [
        "Severe headache since this morning",
        "He is unconscious but breathing",
        "Bleeding from a cut, also a cough and high fever",
        "I think I had a seizure and now I have intense pain",
        "Possible poisoning after eating mushrooms",
    ],
)
def test_urgent_keyword_wins_over_lower_tiers(text):
    r = classify(text)
    assert r.rule_tier == "urgent"
    assert r.urgency_level == "critical"
    assert r.confidence == "high"


def test_multiple_urgent_keywords_do_not_compound():
    r = classify("Severe bleeding, chest pain, stroke symptoms")
    assert r.rule_tier == "urgent"
    assert r.risk_flags.count("severe_symptoms") == 1


def test_high_tier_when_no_urgent_keyword():
    r = classify("Broken bone in my wrist after a fall")
    assert r.rule_tier == "high"
    assert r.urgency_level == "urgent"
    assert r.confidence == "high"


def test_moderate_tier_for_common_symptoms():
    r = classify("Mild cough and a runny nose")
    assert r.rule_tier == "moderate"
    assert r.urgency_level == "moderate"
    assert r.confidence == "medium"
    assert r.structured_symptoms == {"cough": True}


def test_low_tier_sore_throat_example():
    r = classify("Slight sore throat, feeling tired")
    assert r.rule_tier == "low"
    assert r.urgency_level == "routine"
    assert r.confidence == "low"
    assert r.risk_flags == []


def test_chest_pain_and_breathing_example():
    r = classify("Severe chest pain and difficulty breathing for the last hour")
    assert r.rule_tier == "urgent"
    assert r.urgency_level == "critical"
    assert "respiratory_distress" in r.risk_flags
    assert r.confidence == "high"
    assert r.structured_symptoms["painLocation"] == "chest"
    assert r.structured_symptoms["breathingDifficulty"] is True


def test_classify_is_deterministic():
    ctx = {"medicalHistory": ["Type 2 Diabetes"], "allergies": ["penicillin"], "age": 54}
    text = "Fever and stomach ache, allergic to nuts"
    a = classify(text, ctx).model_dump_json(by_alias=True)
    b = classify(text, ctx).model_dump_json(by_alias=True)
    assert a == b


def test_chronic_history_escalates_moderate_to_high():
    r = classify("Persistent cough for a week", PatientContext(medical_history=["DIABETES mellitus"]))
    assert r.rule_tier == "high"
    assert r.urgency_level == "urgent"
    assert "chronic_condition_present" in r.risk_flags


def test_chronic_history_does_not_escalate_low():
    r = classify("Feeling tired", {"medical_history": ["hypertension"]})
    assert r.rule_tier == "low"
    assert "chronic_condition_present" in r.risk_flags


def test_allergy_escalates_low_to_moderate():
    r = classify("I am allergic to something in the garden", {"allergies": ["pollen"]})
    assert r.rule_tier == "moderate"
    assert "allergy_alert" in r.risk_flags


def test_allergy_needs_known_allergies():
    r = classify("I am allergic to something in the garden")
    assert r.rule_tier == "low"
    assert "allergy_alert" not in r.risk_flags


def test_escalation_never_lowers_urgency():
    r = classify(
        "Severe swelling, allergic to bees",
        {"medicalHistory": ["heart disease"], "allergies": ["bee venom"]},
    )
    assert r.rule_tier == "urgent"
    assert "chronic_condition_present" in r.risk_flags
    assert "allergy_alert" in r.risk_flags


def test_substring_matching_is_kept():
    r = classify("A painstaking recovery")
    assert r.rule_tier == "moderate"
    assert r.structured_symptoms["pain"] is True


def test_symptom_indicators_and_flags():
    r = classify("back pain, fever, nausea and feeling dizzy, shortness of breath at night")
    s = r.structured_symptoms
    assert s["painLocation"] == "back"
    assert s["fever"] and s["nauseaVomiting"] and s["dizziness"] and s["breathingDifficulty"]
    assert "fever_present" in r.risk_flags
    assert "respiratory_distress" in r.risk_flags


def test_recommendations_follow_tier_templates():
    a = classify("cough")
    b = classify("headache and rash")
    assert a.recommendations == b.recommendations
    assert a.summary == b.summary
    assert len(a.recommendations) == 3


@pytest.mark.parametrize("text", ["", "   \n\t"])
def test_empty_description_is_low_without_flags(text):
    r = classify(text)
    assert r.rule_tier == "low"
    assert r.risk_flags == []
    assert r.structured_symptoms == {}


def test_model_name_is_reported():
    assert classify("cough").ai_model == MODEL_NAME


@pytest.mark.parametrize("bad", [None, 42, ["chest pain"]])
def test_non_string_description_is_rejected(bad):
    with pytest.raises(InputValidationError):
        classify(bad)


@pytest.mark.parametrize(
    "ctx",
    [
        {"medicalHistory": "diabetes"},
        {"allergies": [1, 2]},
        {"age": "old"},
        ["diabetes"],
    ],
)
def test_malformed_context_is_rejected(ctx):
    with pytest.raises(InputValidationError):
        classify("cough", ctx)


def test_wire_shape_uses_camel_case():
    payload = classify("high fever").model_dump(by_alias=True)
    for key in ("urgencyLevel", "structuredSymptoms", "riskFlags", "summary",
                "recommendations", "aiModel", "confidence"):
        assert key in payload
