import pytest

from assist.skills import SkillNormalizer, SkillTaxonomy


@pytest.fixture(scope="module")
def normalizer():
    return SkillNormalizer()


def names(skills):
    return [s.base_name for s in skills]


def test_exact_and_synonym(normalizer):
    [python] = normalizer.normalize("Python")
    assert python.base_name == "Python"
    assert python.method == "exact"
    assert python.category == "PROGRAMMING_LANGUAGE"

    [k8s] = normalizer.normalize("k8s")
    assert k8s.base_name == "Kubernetes"
    assert k8s.method == "synonym"


def test_compound_split(normalizer):
    assert names(normalizer.normalize("React/Next.js")) == ["React", "Next.js"]
    assert names(normalizer.normalize("Python, SQL; Docker")) == ["Python", "SQL", "Docker"]


def test_known_skill_with_separator_is_not_split(normalizer):
    assert names(normalizer.normalize("CI/CD")) == ["CI/CD"]


def test_version_and_parenthetical_variants(normalizer):
    [python] = normalizer.normalize("Python 3.11")
    assert python.base_name == "Python"
    assert python.detailed_variant == "Python 3.11"

    [aws] = normalizer.normalize("AWS (Lambda, S3)")
    assert aws.base_name == "AWS"
    assert aws.detailed_variant == "AWS (Lambda, S3)"


def test_fuzzy_match_for_misspelling(normalizer):
    [skill] = normalizer.normalize("Kuberntes")
    assert skill.base_name == "Kubernetes"
    assert skill.method == "fuzzy"


def test_unknown_skill_kept_as_new(normalizer):
    [skill] = normalizer.normalize("Underwater Basket Weaving", category="SOFT_SKILL")
    assert skill.base_name == "Underwater Basket Weaving"
    assert skill.method == "new"
    assert skill.category == "SOFT_SKILL"


def test_unknown_category_falls_back_to_other(normalizer):
    [skill] = normalizer.normalize("Underwater Basket Weaving", category="HOBBY")
    assert skill.category == "OTHER"


def test_dedupes_by_base_name(normalizer):
    assert names(normalizer.normalize("Python, python3, Python 3.12")) == ["Python"]
    assert names(normalizer.normalize_many(["React", "reactjs", "SQL"])) == ["React", "SQL"]


def test_empty_input(normalizer):
    assert normalizer.normalize("  ") == []


def test_custom_taxonomy():
    normalizer = SkillNormalizer([SkillTaxonomy("Kafka", ["apache kafka"], "DATA")], fuzzy_threshold=95)
    [skill] = normalizer.normalize("Apache Kafka")
    assert skill.base_name == "Kafka"
    assert normalizer.lookup("python") is None


def test_extract_finds_skills_with_evidence(normalizer):
    text = "Built services in Python and Go, deployed on AWS using k8s."
    found = normalizer.extract(text)

    assert [s.canonical_skill for s in found] == ["Python", "AWS", "Kubernetes"]
    assert "Python" in found[0].evidence_text
    assert text[found[0].span_start:found[0].span_end] == "Python"
