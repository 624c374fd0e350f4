"""Offline partner analysis: deterministic, catalog-based, no backend needed.

Used when the generative backend is over quota, returns unusable output or
times out, and when a caller asks for demo mode explicitly.  The result depends
only on the project input.
"""
from __future__ import annotations

import logging

from ecosync.schemas import PARTNER_COUNT, AnalysisResult, PartnerCandidate, ProjectInput
from ecosync.utils import round_half_up

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

CATALOG: dict[str, PartnerCandidate] = {
    "lending": PartnerCandidate(
        name="Aave",
        type="DeFi Protocol",
        description="Decentralized lending protocol with over $6B in total value locked "
                    "across multiple blockchain networks.",
        reasoning="Strong alignment for DeFi integration opportunities. Their lending "
                  "infrastructure could complement your project's financial mechanisms "
                  "and provide liquidity solutions.",
        match_score=89, mission_score=85, technical_score=92, strategic_score=90,
        community="450K+ Discord", tvl="$6.2B",
    ),
    "oracle": PartnerCandidate(
        name="Chainlink",
        type="Infrastructure",
        description="Decentralized oracle network providing real-world data to smart "
                    "contracts across multiple blockchains.",
        reasoning="Essential infrastructure for reliable price feeds and external data "
                  "integration. Their oracle services are critical for DeFi applications "
                  "requiring accurate market data.",
        match_score=82, mission_score=78, technical_score=88, strategic_score=80,
        community="280K+ Twitter", tvl="Secures $75B+",
    ),
    "marketplace": PartnerCandidate(
        name="OpenSea",
        type="NFT Platform",
        description="Leading NFT marketplace enabling users to buy, sell, and discover "
                    "unique digital items across multiple blockchains.",
        reasoning="Perfect partnership for NFT distribution and marketplace integration. Their "
                  "established user base and infrastructure could accelerate your "
                  "platform's adoption.",
        match_score=87, mission_score=90, technical_score=84, strategic_score=88,
        community="1.2M+ Discord", tvl="$24B+ Volume",
    ),
    "governance": PartnerCandidate(
        name="Snapshot",
        type="DAO Tooling",
        description="Decentralized voting platform used by major DAOs for governance "
                    "decisions and community polling.",
        reasoning="Ideal for implementing robust governance mechanisms. Their proven voting "
                  "infrastructure and DAO expertise align perfectly with your governance "
                  "requirements.",
        match_score=91, mission_score=95, technical_score=86, strategic_score=92,
        community="80K+ Users", tvl="Powers 15K+ DAOs",
    ),
    "scaling": PartnerCandidate(
        name="Polygon",
        type="Infrastructure",
        description="Ethereum scaling solution providing faster and cheaper transactions "
                    "for decentralized applications.",
        reasoning="Excellent technical fit for reducing transaction costs and improving user "
                  "experience. Their ecosystem support and developer tools could accelerate "
                  "your development timeline.",
        match_score=85, mission_score=82, technical_score=89, strategic_score=84,
        community="180K+ Discord", tvl="$1.2B+ TVL",
    ),
    "grants": PartnerCandidate(
        name="Gitcoin",
        type="Funding Platform",
        description="Web3 funding platform connecting projects with contributors through "
                    "grants and bounties for public goods.",
        reasoning="Strategic funding opportunity through their grants program. Their focus on "
                  "public goods and Web3 innovation aligns with your project's mission and "
                  "growth needs.",
        match_score=78, mission_score=85, technical_score=70, strategic_score=82,
        community="65K+ Twitter", tvl="$50M+ Distributed",
    ),
    "indexing": PartnerCandidate(
        name="The Graph",
        type="Infrastructure",
        description="Decentralized indexing protocol that lets applications query "
                    "blockchain data through open subgraphs.",
        reasoning="Reliable on-chain data access without running your own indexers. A "
                  "published subgraph also makes your project visible to other builders "
                  "in their ecosystem.",
        match_score=80, mission_score=76, technical_score=87, strategic_score=81,
        community="120K+ Twitter", tvl="Indexes 40+ chains",
    ),
    "storage": PartnerCandidate(
        name="Filecoin",
        type="Storage Protocol",
        description="Decentralized storage network for persistent, verifiable storage "
                    "of application data and media.",
        reasoning="Durable storage for off-chain assets and metadata. Their ecosystem "
                  "grants and accelerator programs support early-stage builders.",
        match_score=76, mission_score=80, technical_score=83, strategic_score=74,
        community="100K+ Discord", tvl="20+ EiB Capacity",
    ),
    "identity": PartnerCandidate(
        name="ENS",
        type="Identity Protocol",
        description="Ethereum Name Service, mapping human-readable names to wallet "
                    "addresses, content hashes and profile metadata.",
        reasoning="Human-readable identity lowers onboarding friction for your users. "
                  "ENS integration is widely recognized and signals ecosystem alignment.",
        match_score=74, mission_score=79, technical_score=77, strategic_score=75,
        community="150K+ Twitter", tvl="2M+ Names",
    ),
}

# (category tags that trigger the rule, archetype keys) in selection order; None = always
SELECTION_RULES: tuple[tuple[frozenset[str] | None, tuple[str, ...]], ...] = (
    (frozenset({"defi"}), ("lending", "oracle")),
    (frozenset({"nft/gaming", "social/creator"}), ("marketplace",)),
    (frozenset({"dao/governance"}), ("governance",)),
    (None, ("scaling", "grants")),
)

# Top-up order when the rules above yield fewer than PARTNER_COUNT entries
RESERVE_KEYS: tuple[str, ...] = ("indexing", "storage", "identity")

SUMMARY_TEMPLATE = (
    "Based on the analysis of {name}, we've identified {count} strategic partnership "
    "opportunities that align with your {categories} focus. The partners show strong "
    "technical compatibility with your {stage} stage project and complement your "
    "{funding_stage} funding requirements. Key opportunities include infrastructure "
    "partnerships for technical scaling, marketplace integrations for user acquisition, "
    "and funding platform connections for financial growth. The average match score of "
    "{average}% indicates high potential for successful collaborations. We recommend "
    "prioritizing discussions with the highest-scoring partners and focusing on technical "
    "integration possibilities to accelerate your development timeline."
)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def _normalize_tags(categories: list[str]) -> set[str]:
    return {c.strip().lower() for c in categories}


def select_partners(categories: list[str]) -> list[PartnerCandidate]:
    """Pick exactly PARTNER_COUNT catalog entries for the given category tags.

    Category-matched entries come first, then the universal ones; the list is
    truncated to PARTNER_COUNT and topped up from RESERVE_KEYS if short.
    """
    tags = _normalize_tags(categories)
    keys: list[str] = []
    for triggers, rule_keys in SELECTION_RULES:
        if triggers is None or tags & triggers:
            keys.extend(rule_keys)
    if len(keys) < PARTNER_COUNT:
        keys.extend(RESERVE_KEYS[:PARTNER_COUNT - len(keys)])
    return [CATALOG[k] for k in keys[:PARTNER_COUNT]]


def build_summary(project: ProjectInput, partners: list[PartnerCandidate]) -> str:
    average = round_half_up(sum(p.match_score for p in partners) / len(partners))
    return SUMMARY_TEMPLATE.format(
        name=project.name,
        count=len(partners),
        categories=", ".join(project.categories),
        stage=project.stage,
        funding_stage=project.funding_stage,
        average=average,
    )


def analyze_offline(project: ProjectInput) -> AnalysisResult:
    """Build a catalog-derived AnalysisResult flagged ``is_demo``. Never raises."""
    partners = select_partners(project.categories)
    log.debug("Offline analysis for %s: %s", project.name, [p.name for p in partners])
    return AnalysisResult(
        summary=build_summary(project, partners),
        partners=partners,
        is_demo=True,
    )
