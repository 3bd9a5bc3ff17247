from fakes import make_listing, make_provider
from provider_match.models.models import MatchCandidate, ScoreCard, Tier
from provider_match.models.settings import DEFAULT_TIER_PRIORITIES
from provider_match.services.ranking import merge


def scored(provider_id, tier, total, listing=None):
    candidate = MatchCandidate(provider=make_provider(provider_id), listing=listing, tier=tier)
    return candidate, ScoreCard(total=total, breakdown={})


class TestMerge:
    """Dedup and deterministic ranking across tiers"""

    def test_higher_priority_tier_wins_listing_and_records_all_tiers(self):
        listing = make_listing("P1")
        results = merge([
            (Tier.EXACT_SERVICE, [scored("P1", Tier.EXACT_SERVICE, 80, listing)]),
            (Tier.SKILL_BASED, [scored("P1", Tier.SKILL_BASED, 60)]),
        ], DEFAULT_TIER_PRIORITIES)

        assert len(results) == 1
        result = results[0]
        assert result.tier == Tier.EXACT_SERVICE
        assert result.listing == listing
        assert result.tiers_matched == [Tier.EXACT_SERVICE, Tier.SKILL_BASED]
        assert result.final_score == 180

    def test_final_score_is_best_over_tiers(self):
        results = merge([
            (Tier.EXACT_SERVICE, [scored("P1", Tier.EXACT_SERVICE, 10, make_listing("P1"))]),
            (Tier.SKILL_BASED, [scored("P1", Tier.SKILL_BASED, 90)]),
        ], DEFAULT_TIER_PRIORITIES)

        assert results[0].final_score == 170
        assert results[0].tier == Tier.EXACT_SERVICE
        assert results[0].score.total == 90
        assert results[0].scored_tier == Tier.SKILL_BASED

    def test_score_card_follows_final_score_when_better_tier_arrives_later(self):
        priorities = {**DEFAULT_TIER_PRIORITIES, Tier.SKILL_BASED: 95}
        results = merge([
            (Tier.SKILL_BASED, [scored("P1", Tier.SKILL_BASED, 70)]),
            (Tier.EXACT_SERVICE, [scored("P1", Tier.EXACT_SERVICE, 40, make_listing("P1"))]),
        ], priorities)

        result = results[0]
        assert result.tier == Tier.EXACT_SERVICE
        assert result.listing is not None
        assert result.final_score == 165
        assert result.score.total == 70
        assert result.scored_tier == Tier.SKILL_BASED
        assert result.final_score == priorities[result.scored_tier] + result.score.total

    def test_lower_tier_seen_first_is_replaced(self):
        results = merge([
            (Tier.DYNAMIC_SYNTHESIS, [scored("P1", Tier.DYNAMIC_SYNTHESIS, 40, make_listing("P1", title="Auto"))]),
            (Tier.SKILL_BASED, [scored("P1", Tier.SKILL_BASED, 30)]),
        ], DEFAULT_TIER_PRIORITIES)

        assert results[0].tier == Tier.SKILL_BASED
        assert results[0].listing is None
        assert results[0].tiers_matched == [Tier.DYNAMIC_SYNTHESIS, Tier.SKILL_BASED]

    def test_no_duplicates_and_descending_order(self):
        results = merge([
            (Tier.EXACT_SERVICE, [scored("P1", Tier.EXACT_SERVICE, 50), scored("P2", Tier.EXACT_SERVICE, 70)]),
            (Tier.SKILL_BASED, [scored("P3", Tier.SKILL_BASED, 99), scored("P2", Tier.SKILL_BASED, 10)]),
            (Tier.LOCATION_EXPANDED, [scored("P3", Tier.LOCATION_EXPANDED, 99)]),
        ], DEFAULT_TIER_PRIORITIES)

        ids = [r.provider_id for r in results]
        assert ids == ["P3", "P2", "P1"]
        assert len(ids) == len(set(ids))
        assert [r.final_score for r in results] == [179, 170, 150]

    def test_ties_keep_first_seen_order(self):
        results = merge([
            (Tier.SKILL_BASED, [scored("P2", Tier.SKILL_BASED, 40), scored("P1", Tier.SKILL_BASED, 40)]),
            (Tier.FUZZY_CATEGORY, [scored("P3", Tier.FUZZY_CATEGORY, 60)]),
        ], DEFAULT_TIER_PRIORITIES)

        assert [r.provider_id for r in results] == ["P2", "P1", "P3"]

    def test_empty(self):
        assert merge([], DEFAULT_TIER_PRIORITIES) == []
