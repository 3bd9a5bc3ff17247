import pytest

from fakes import make_listing, make_provider, make_request
from provider_match.models.models import MatchCandidate, Tier, Urgency
from provider_match.models.settings import ScoringWeights
from provider_match.services.profile_view import ProfileView
from provider_match.services.scoring import Scorer, round_half_up


@pytest.fixture
def scorer():
    return Scorer(ScoringWeights(), ProfileView(["Nairobi"]))


def candidate(tier=Tier.EXACT_SERVICE, listing=True, conflicts=0, **provider_fields):
    provider = make_provider("P1", **provider_fields)
    return MatchCandidate(
        provider=provider,
        listing=make_listing("P1") if listing else None,
        tier=tier,
        conflict_count=conflicts,
    )


class TestScorer:
    """Test cases for the provider match score"""

    def test_exact_listing_example(self, scorer):
        card = scorer.score(candidate(rating=4.8), make_request())

        assert card.breakdown["tierBase"] == 50
        assert card.breakdown["rating"] == pytest.approx(24.0)
        assert card.breakdown["reviews"] == 0
        assert card.breakdown["jobs"] == 0
        assert card.breakdown["location"] == 10
        assert card.breakdown["budget"] == 0
        assert card.total == 84

    def test_component_caps(self, scorer):
        card = scorer.score(candidate(rating=5.0, review_count=500, completed_jobs=1000), make_request())

        assert card.breakdown["rating"] == 25
        assert card.breakdown["reviews"] == 15
        assert card.breakdown["jobs"] == 20

    def test_partial_reviews_and_jobs(self, scorer):
        card = scorer.score(candidate(review_count=10, completed_jobs=15), make_request())

        assert card.breakdown["reviews"] == pytest.approx(7.5)
        assert card.breakdown["jobs"] == pytest.approx(15.0)

    def test_region_wide_location(self, scorer):
        assert scorer.score(candidate(service_areas=["Nairobi"]), make_request()).breakdown["location"] == 5
        assert scorer.score(candidate(service_areas=[]), make_request()).breakdown["location"] == 5
        assert scorer.score(candidate(service_areas=["Westlands"]), make_request()).breakdown["location"] == 0

    def test_budget_uses_listing_price(self, scorer):
        request = make_request(budget={"min": 2000, "max": 5000})

        assert scorer.score(candidate(), request).breakdown["budget"] == 15
        assert scorer.score(candidate(), make_request(budget={"max": 1000})).breakdown["budget"] == 0

    def test_budget_falls_back_to_hourly_rate(self, scorer):
        request = make_request(budget={"max": 1500})

        assert scorer.score(candidate(listing=False, hourly_rate=1200), request).breakdown["budget"] == 10
        assert scorer.score(candidate(listing=False), request).breakdown["budget"] == 0

    def test_sub_service_bonus(self, scorer):
        card = scorer.score(candidate(), make_request(selected_sub_service="repair"))

        assert card.breakdown["subService"] == 30

    @pytest.mark.parametrize("conflicts,penalty", [(0, 0), (1, 2), (3, 6), (5, 10), (12, 10)])
    def test_conflict_penalty_is_capped(self, scorer, conflicts, penalty):
        card = scorer.score(candidate(conflicts=conflicts), make_request())

        assert card.breakdown["conflictPenalty"] == -penalty

    def test_rating_is_monotonic(self, scorer):
        totals = [scorer.score(candidate(rating=r), make_request()).total for r in (0, 1, 2.5, 3.9, 4.4, 5)]

        assert totals == sorted(totals)

    def test_urgency_dampening_order(self, scorer):
        unrounded = {
            u: scorer.score(candidate(rating=4.5, conflicts=2), make_request(urgency=u)).breakdown["unrounded"]
            for u in Urgency
        }

        assert unrounded[Urgency.EMERGENCY] <= unrounded[Urgency.URGENT] <= unrounded[Urgency.NORMAL]

    def test_total_never_negative(self):
        weights = ScoringWeights(conflict_penalty=100, conflict_penalty_cap=1000)
        scorer = Scorer(weights, ProfileView(["Nairobi"]))

        card = scorer.score(candidate(tier=Tier.LOCATION_EXPANDED, conflicts=3, rating=0), make_request())

        assert card.breakdown["unrounded"] < 0
        assert card.total == 0

    def test_weights_reject_inverted_urgency_factors(self):
        with pytest.raises(ValueError):
            ScoringWeights(urgency_factors={Urgency.NORMAL: 0.8, Urgency.URGENT: 0.9, Urgency.EMERGENCY: 1.0})


@pytest.mark.parametrize("value,expected", [(2.5, 3), (3.5, 4), (84.49, 84), (0.0, 0), (-0.5, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
