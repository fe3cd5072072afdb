import json

import pytest

from gatekeeper.catalog import FeatureCatalog, can_access_feature, get_default_catalog
from gatekeeper.models import PlanTier


# ----- Default table -----

def test_default_catalog_free_features():
    catalog = get_default_catalog()
    assert catalog.can_access_feature("free", "basic_calorie_logging") is True
    assert catalog.can_access_feature("free", "ai_coach_chat") is False


def test_trial_matches_pro():
    catalog = get_default_catalog()
    assert catalog.features_for(PlanTier.TRIAL) == catalog.features_for(PlanTier.PRO)
    assert catalog.can_access_feature("trial", "ai_food_analyzer") is True
    assert catalog.can_access_feature("trial", "export_reports") is False


def test_premium_gets_everything():
    catalog = get_default_catalog()
    assert catalog.features_for("premium") == catalog.known_features()


def test_catalog_is_monotonic_across_ranks():
    catalog = get_default_catalog()
    tiers = catalog.tiers()
    for lower in tiers:
        for higher in tiers:
            if catalog.tier_rank(higher) >= catalog.tier_rank(lower):
                assert catalog.features_for(lower) <= catalog.features_for(higher)


@pytest.mark.parametrize("feature", ["", "   ", "unregistered_feature", "AI_COACH_CHAT"])
def test_unknown_features_fail_closed(feature):
    assert can_access_feature("premium", feature) is False


def test_unknown_plan_is_treated_as_free():
    assert can_access_feature("platinum", "ai_coach_chat") is False
    assert can_access_feature(None, "profile") is True


# ----- Loader -----

def _write(tmp_path, data):
    path = tmp_path / "plans.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_loader_accumulates_lower_ranks(tmp_path):
    path = _write(tmp_path, {
        "plans": {
            "free": {"rank": 0, "features": ["a"]},
            "pro": {"rank": 1, "features": [" b "]},
            "premium": {"rank": 2, "features": ["c"]},
        }
    })
    catalog = FeatureCatalog.from_file(path)
    assert catalog.features_for("free") == frozenset({"a"})
    assert catalog.features_for("pro") == frozenset({"a", "b"})
    assert catalog.features_for("premium") == frozenset({"a", "b", "c"})


def test_loader_missing_tier_falls_back_to_free(tmp_path):
    path = _write(tmp_path, {"plans": {"free": {"rank": 0, "features": ["a"]}}})
    catalog = FeatureCatalog.from_file(path)
    assert catalog.can_access_feature("premium", "a") is True


def test_loader_rejects_unknown_plan(tmp_path):
    path = _write(tmp_path, {"plans": {"custom": {"rank": 0, "features": ["x"]}}})
    with pytest.raises(ValueError, match="Unknown plan"):
        FeatureCatalog.from_file(path)


def test_loader_missing_plans_key(tmp_path):
    path = _write(tmp_path, {})
    with pytest.raises(ValueError, match="'plans'"):
        FeatureCatalog.from_file(path)


def test_loader_empty_plans(tmp_path):
    path = _write(tmp_path, {"plans": {}})
    with pytest.raises(ValueError, match="at least one plan"):
        FeatureCatalog.from_file(path)


@pytest.mark.parametrize("rank", [-1, "1", None, True])
def test_loader_rejects_bad_rank(tmp_path, rank):
    path = _write(tmp_path, {"plans": {"free": {"rank": rank, "features": []}}})
    with pytest.raises(ValueError, match="rank"):
        FeatureCatalog.from_file(path)


def test_loader_rejects_blank_feature_key(tmp_path):
    path = _write(tmp_path, {"plans": {"free": {"rank": 0, "features": ["  "]}}})
    with pytest.raises(ValueError, match="invalid feature key"):
        FeatureCatalog.from_file(path)
