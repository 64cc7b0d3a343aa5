"""Tests for employment policy loading."""

import json
import pytest
from pathlib import Path

from des.policy import EmploymentPolicy


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


class TestPolicy:
    def test_repository_config_loads(self) -> None:
        policy = EmploymentPolicy.from_config_dir(CONFIG_DIR)
        assert (policy.rating_min, policy.rating_max) == (1, 5)
        assert policy.enforce_rating_bounds
        assert policy.allow_zero_salary

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert EmploymentPolicy.from_config_dir(tmp_path) == EmploymentPolicy()

    def test_overrides(self, tmp_path: Path) -> None:
        (tmp_path / "employment_policy.json").write_text(json.dumps({
            "reviews": {"rating_min": 0, "rating_max": 10},
            "contracts": {"allow_zero_salary": False},
        }), encoding="utf-8")
        policy = EmploymentPolicy.from_config_dir(tmp_path)
        assert policy.review_config() == {
            "rating_min": 0, "rating_max": 10, "enforce_rating_bounds": True,
        }
        assert policy.contract_config() == {"allow_zero_salary": False}

    def test_inverted_bounds_rejected(self) -> None:
        with pytest.raises(ValueError):
            EmploymentPolicy(rating_min=5, rating_max=1)
