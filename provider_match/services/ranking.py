from typing import Dict, List, Mapping, Sequence, Tuple

from provider_match.models.models import MatchCandidate, MatchResult, ScoreCard, Tier


def merge(
    scored_by_tier: Sequence[Tuple[Tier, Sequence[Tuple[MatchCandidate, ScoreCard]]]],
    tier_priorities: Mapping[Tier, float],
) -> List[MatchResult]:
    """Dedup candidates by provider id across tiers and rank them.

    `scored_by_tier` is in discovery order. The listing and tier of the
    highest-priority tier are kept, every matched tier is recorded and
    finalScore is the best tierPriority + score over all tiers. The score
    card kept is the one behind finalScore. Ties keep first-seen order.
    """
    merged: Dict[str, MatchResult] = {}

    for tier, scored in scored_by_tier:
        priority = tier_priorities[tier]
        for candidate, card in scored:
            provider_id = candidate.provider.provider_id
            final = priority + card.total
            current = merged.get(provider_id)

            if current is None:
                merged[provider_id] = MatchResult(
                    provider=candidate.provider,
                    listing=candidate.listing,
                    tier=tier,
                    final_score=final,
                    score=card,
                    scored_tier=tier,
                    tiers_matched=[tier],
                    conflict_count=candidate.conflict_count,
                    suggested_service_title=candidate.suggested_service_title,
                    is_new_service=candidate.is_new_service,
                    discovery_index=len(merged),
                )
                continue

            current.tiers_matched.append(tier)
            if tier < current.tier:
                current.tier = tier
                current.listing = candidate.listing
                current.suggested_service_title = candidate.suggested_service_title
                current.is_new_service = candidate.is_new_service
            if final > current.final_score:
                current.final_score = final
                current.score = card
                current.scored_tier = tier

    return sorted(merged.values(), key=lambda r: (-r.final_score, r.discovery_index))
