"""Review aggregator — post-contract feedback and company statistics.

Reviews may only be left once a contract has ended (TERMINATED or
COMPLETED), by the employee or the company owner. They are appended,
never deduplicated or overwritten.

Company statistics walk the company's employee credentials and every
contract held under each credential, including contracts the same
identity later signed with other companies. The scan is
O(employees x contracts x reviews); callers that need stats often
should cache them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from des.access import Action, require
from des.engine.lifecycle import ContractEngine
from des.engine.state_machine import ContractStateMachine
from des.errors import InvalidArgumentError
from des.models.contract import REVIEWABLE_STATUSES, CompanyStats, ContractStatus, Review
from des.policy import DEFAULT_RATING_MAX, DEFAULT_RATING_MIN
from des.registry.companies import CompanyRegistry


def truncated_mean(values: list[int]) -> int:
    """Integer mean rounded toward zero; 0 for an empty list."""
    if not values:
        return 0
    total = sum(values)
    quotient = abs(total) // len(values)
    return quotient if total >= 0 else -quotient


class ReviewAggregator:
    """Stores reviews and derives per-company statistics."""

    def __init__(
        self,
        engine: ContractEngine,
        companies: CompanyRegistry,
        config: Optional[dict[str, Any]] = None,
    ) -> None:
        config = config or {}
        self._engine = engine
        self._companies = companies
        self._rating_min = config.get("rating_min", DEFAULT_RATING_MIN)
        self._rating_max = config.get("rating_max", DEFAULT_RATING_MAX)
        self._enforce_bounds = config.get("enforce_rating_bounds", True)
        self._reviews: dict[int, list[Review]] = {}

    @classmethod
    def from_records(
        cls,
        engine: ContractEngine,
        companies: CompanyRegistry,
        records: list[dict[str, Any]],
        config: Optional[dict[str, Any]] = None,
    ) -> ReviewAggregator:
        aggregator = cls(engine, companies, config)
        for r in records:
            review = Review(
                contract_id=int(r["contract_id"]),
                rating=int(r["rating"]),
                comments=r.get("comments", ""),
                reviewer=r["reviewer"],
                submitted_utc=(
                    datetime.fromisoformat(r["submitted_utc"])
                    if r.get("submitted_utc") else None
                ),
            )
            aggregator._reviews.setdefault(review.contract_id, []).append(review)
        return aggregator

    def submit_review(
        self,
        contract_id: int,
        rating: int,
        comments: str,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Review:
        contract = self._engine.get(contract_id)
        ContractStateMachine.require_status(contract, REVIEWABLE_STATUSES, "review")
        require(
            Action.SUBMIT_REVIEW, caller,
            company=self._engine.company_of(contract), contract=contract,
        )
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidArgumentError(f"Rating must be an integer, got {rating!r}")
        if self._enforce_bounds and not (self._rating_min <= rating <= self._rating_max):
            raise InvalidArgumentError(
                f"Rating {rating} outside [{self._rating_min}, {self._rating_max}]"
            )
        if now is None:
            now = datetime.now(timezone.utc)

        review = Review(
            contract_id=contract_id,
            rating=rating,
            comments=comments,
            reviewer=caller,
            submitted_utc=now,
        )
        self._reviews.setdefault(contract_id, []).append(review)
        return review

    def get_reviews(self, contract_id: int) -> list[Review]:
        """Reviews for a contract in submission order."""
        self._engine.get(contract_id)
        return list(self._reviews.get(contract_id, []))

    def get_company_stats(
        self,
        company_id: int,
        now: Optional[datetime] = None,
    ) -> CompanyStats:
        company = self._companies.get(company_id)
        if now is None:
            now = datetime.now(timezone.utc)

        total_contracts = 0
        active_contracts = 0
        active_employees = 0
        ratings: list[int] = []
        for credential_id in list(company.employee_ids):
            employee_active = False
            for contract_id in self._engine.get_employee_contracts(credential_id):
                contract = self._engine.get(contract_id)
                total_contracts += 1
                if contract.status == ContractStatus.ACTIVE:
                    active_contracts += 1
                if contract.is_active_at(now):
                    employee_active = True
                ratings.extend(r.rating for r in self._reviews.get(contract_id, []))
            if employee_active:
                active_employees += 1

        return CompanyStats(
            company_id=company_id,
            total_employees=len(company.employee_ids),
            active_employees=active_employees,
            total_contracts=total_contracts,
            active_contracts=active_contracts,
            average_rating=truncated_mean(ratings),
        )

    def to_records(self) -> list[dict[str, Any]]:
        return [
            {
                "contract_id": r.contract_id,
                "rating": r.rating,
                "comments": r.comments,
                "reviewer": r.reviewer,
                "submitted_utc": r.submitted_utc.isoformat() if r.submitted_utc else None,
            }
            for cid in sorted(self._reviews)
            for r in self._reviews[cid]
        ]
