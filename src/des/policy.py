"""Employment policy — tunable parameters loaded from config/.

The policy file is plain JSON so it can be reviewed and diffed alongside
code. Engines receive plain dicts (see review_config / contract_config)
and never read files themselves.

Example config/employment_policy.json:
    {
      "reviews": {"rating_min": 1, "rating_max": 5, "enforce_rating_bounds": true},
      "contracts": {"allow_zero_salary": true}
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

POLICY_FILENAME = "employment_policy.json"

DEFAULT_RATING_MIN = 1
DEFAULT_RATING_MAX = 5


@dataclass(frozen=True)
class EmploymentPolicy:
    """Resolved policy values with defaults applied."""
    rating_min: int = DEFAULT_RATING_MIN
    rating_max: int = DEFAULT_RATING_MAX
    enforce_rating_bounds: bool = True
    allow_zero_salary: bool = True

    def __post_init__(self) -> None:
        if self.rating_min > self.rating_max:
            raise ValueError(
                f"rating_min ({self.rating_min}) exceeds "
                f"rating_max ({self.rating_max})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmploymentPolicy:
        reviews = data.get("reviews", {})
        contracts = data.get("contracts", {})
        return cls(
            rating_min=int(reviews.get("rating_min", DEFAULT_RATING_MIN)),
            rating_max=int(reviews.get("rating_max", DEFAULT_RATING_MAX)),
            enforce_rating_bounds=bool(reviews.get("enforce_rating_bounds", True)),
            allow_zero_salary=bool(contracts.get("allow_zero_salary", True)),
        )

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> EmploymentPolicy:
        """Load the policy file from a config directory.

        A missing file yields the defaults; a malformed one raises.
        """
        path = config_dir / POLICY_FILENAME
        if not path.exists():
            return cls()
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    def review_config(self) -> dict[str, Any]:
        return {
            "rating_min": self.rating_min,
            "rating_max": self.rating_max,
            "enforce_rating_bounds": self.enforce_rating_bounds,
        }

    def contract_config(self) -> dict[str, Any]:
        return {"allow_zero_salary": self.allow_zero_salary}
