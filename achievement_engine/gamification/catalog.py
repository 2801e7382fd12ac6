"""
Achievement Catalog

Validates achievement definitions when they are loaded, so a malformed
definition (unknown criteria type, missing or non-positive threshold,
duplicate slug) is rejected before it ever reaches evaluation.

Also ships the default catalog for the platform:
- Tax preparers (filing volume, speed, quality, earnings)
- Affiliates & referrers (referrals, links, conversion)
- Contests
- Universal engagement (login streaks, messages, signup)
"""

import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from achievement_engine.exceptions import CatalogValidationError
from achievement_engine.models.achievement import AchievementDefinition

logger = logging.getLogger(__name__)

PREPARER = ["TAX_PREPARER"]
REFERRERS = ["AFFILIATE", "REFERRER"]
CONTESTANTS = ["AFFILIATE", "REFERRER", "TAX_PREPARER"]
EVERYONE = ["TAX_PREPARER", "AFFILIATE", "REFERRER", "CLIENT"]


def parse_definition(raw: Mapping[str, Any]) -> AchievementDefinition:
    """
    Validate one raw definition (camelCase or snake_case keys)

    A definition without an id uses its slug as id.

    Raises:
        CatalogValidationError: if the definition is malformed
    """
    data = dict(raw)
    if "id" not in data and "slug" in data:
        data["id"] = data["slug"]

    try:
        return AchievementDefinition.model_validate(data)
    except PydanticValidationError as e:
        slug = data.get("slug")
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise CatalogValidationError(
            message=f"Invalid achievement definition '{slug}': {'; '.join(errors)}",
            slug=slug,
            errors=errors,
            operation="parse_definition",
        )


def load_catalog(raw_definitions: Iterable[Mapping[str, Any]]) -> list[AchievementDefinition]:
    """
    Validate a whole catalog

    Every definition is checked before anything is returned; all problems
    are reported together.

    Returns:
        Definitions in catalog order

    Raises:
        CatalogValidationError: if any definition is malformed or a slug/id repeats
    """
    definitions: list[AchievementDefinition] = []
    problems: list[str] = []
    seen_slugs: set[str] = set()
    seen_ids: set[str] = set()

    for raw in raw_definitions:
        try:
            definition = parse_definition(raw)
        except CatalogValidationError as e:
            problems.extend(f"{e.slug}: {err}" for err in e.errors)
            continue

        if definition.slug in seen_slugs:
            problems.append(f"{definition.slug}: duplicate slug")
            continue
        if definition.id in seen_ids:
            problems.append(f"{definition.slug}: duplicate id '{definition.id}'")
            continue

        seen_slugs.add(definition.slug)
        seen_ids.add(definition.id)
        definitions.append(definition)

    if problems:
        raise CatalogValidationError(
            message=f"Achievement catalog has {len(problems)} problem(s)",
            errors=problems,
            operation="load_catalog",
        )

    logger.info(f"Loaded achievement catalog with {len(definitions)} definitions")
    return definitions


DEFAULT_ACHIEVEMENTS: list[dict[str, Any]] = [
    # Tax preparer milestones
    {"slug": "first_client", "title": "First Steps", "description": "File your first client's tax return",
     "category": "MILESTONE", "icon": "Sparkles", "rarity": "COMMON", "points": 10, "targetRoles": PREPARER,
     "criteria": {"type": "client_count", "threshold": 1}, "badgeColor": "#10B981", "sortOrder": 1},
    {"slug": "tax_pro_certified", "title": "Certified Professional",
     "description": "Complete your preparer profile with license and credentials",
     "category": "MILESTONE", "icon": "Award", "rarity": "COMMON", "points": 15, "targetRoles": PREPARER,
     "criteria": {"type": "profile_complete", "fields": ["licenseNo", "companyName"]},
     "badgeColor": "#3B82F6", "sortOrder": 2},

    # Tax preparer performance
    {"slug": "speed_demon", "title": "Speed Demon", "description": "File a tax return in under 2 hours",
     "category": "PERFORMANCE", "icon": "Zap", "rarity": "RARE", "points": 25, "targetRoles": PREPARER,
     "criteria": {"type": "filing_speed", "maxHours": 2}, "badgeColor": "#F59E0B", "sortOrder": 10},
    {"slug": "early_bird", "title": "Early Bird", "description": "File a return 30+ days before the deadline",
     "category": "PERFORMANCE", "icon": "Sunrise", "rarity": "COMMON", "points": 20, "targetRoles": PREPARER,
     "criteria": {"type": "early_filing", "daysBefore": 30}, "badgeColor": "#FBBF24", "sortOrder": 11},
    {"slug": "lightning_round", "title": "Lightning Round", "description": "File 5 returns in one day",
     "category": "PERFORMANCE", "icon": "Bolt", "rarity": "LEGENDARY", "points": 100, "targetRoles": PREPARER,
     "criteria": {"type": "returns_per_day", "count": 5}, "badgeColor": "#8B5CF6", "sortOrder": 12},

    # Tax preparer volume
    {"slug": "perfect_ten", "title": "Perfect 10", "description": "File 10 tax returns",
     "category": "VOLUME", "icon": "Target", "rarity": "RARE", "points": 50, "targetRoles": PREPARER,
     "criteria": {"type": "client_count", "threshold": 10}, "badgeColor": "#06B6D4", "sortOrder": 20},
    {"slug": "half_century", "title": "Half Century", "description": "File 50 tax returns",
     "category": "VOLUME", "icon": "TrendingUp", "rarity": "EPIC", "points": 150, "targetRoles": PREPARER,
     "criteria": {"type": "client_count", "threshold": 50}, "badgeColor": "#EC4899", "sortOrder": 21},
    {"slug": "century_club", "title": "Century Club", "description": "File 100 tax returns",
     "category": "VOLUME", "icon": "Crown", "rarity": "LEGENDARY", "points": 300, "targetRoles": PREPARER,
     "criteria": {"type": "client_count", "threshold": 100}, "badgeColor": "#A855F7", "sortOrder": 22},
    {"slug": "people_person", "title": "People Person", "description": "Manage 25+ active clients",
     "category": "VOLUME", "icon": "Users", "rarity": "EPIC", "points": 75, "targetRoles": PREPARER,
     "criteria": {"type": "active_clients", "threshold": 25}, "badgeColor": "#14B8A6", "sortOrder": 23},
    {"slug": "document_master", "title": "Document Master", "description": "Process 100+ documents",
     "category": "VOLUME", "icon": "FileCheck", "rarity": "RARE", "points": 50, "targetRoles": PREPARER,
     "criteria": {"type": "documents_processed", "threshold": 100}, "badgeColor": "#0EA5E9", "sortOrder": 24},

    # Tax preparer quality
    {"slug": "five_star_service", "title": "5-Star Service", "description": "Achieve 5.0 client satisfaction rating",
     "category": "QUALITY", "icon": "Star", "rarity": "LEGENDARY", "points": 150, "targetRoles": PREPARER,
     "criteria": {"type": "satisfaction_rating", "threshold": 5.0}, "badgeColor": "#EAB308", "sortOrder": 30},
    {"slug": "highly_rated", "title": "Highly Rated", "description": "Maintain 4.5+ star rating with 10+ reviews",
     "category": "QUALITY", "icon": "ThumbsUp", "rarity": "EPIC", "points": 75, "targetRoles": PREPARER,
     "criteria": {"type": "rating_with_reviews", "rating": 4.5, "reviews": 10},
     "badgeColor": "#F97316", "sortOrder": 31},
    {"slug": "zero_errors", "title": "Perfectionist", "description": "File 20 returns with zero corrections needed",
     "category": "QUALITY", "icon": "CheckCircle", "rarity": "EPIC", "points": 100, "targetRoles": PREPARER,
     "criteria": {"type": "error_free_returns", "threshold": 20}, "badgeColor": "#22C55E", "sortOrder": 32},

    # Tax preparer streaks
    {"slug": "hot_streak", "title": "Hot Streak", "description": "File returns for 7 consecutive days",
     "category": "STREAK", "icon": "Flame", "rarity": "RARE", "points": 60, "targetRoles": PREPARER,
     "criteria": {"type": "filing_streak", "days": 7}, "badgeColor": "#EF4444", "sortOrder": 40},
    {"slug": "on_fire", "title": "On Fire", "description": "File returns for 14 consecutive days",
     "category": "STREAK", "icon": "Flame", "rarity": "EPIC", "points": 120, "targetRoles": PREPARER,
     "criteria": {"type": "filing_streak", "days": 14}, "badgeColor": "#DC2626", "sortOrder": 41},

    # Tax preparer earnings
    {"slug": "first_paycheck", "title": "First Paycheck", "description": "Earn your first $100 in commissions",
     "category": "MILESTONE", "icon": "DollarSign", "rarity": "COMMON", "points": 15, "targetRoles": PREPARER,
     "criteria": {"type": "earnings", "threshold": 100}, "badgeColor": "#10B981", "sortOrder": 50},
    {"slug": "big_earner", "title": "Big Earner", "description": "Earn $5,000 in commissions",
     "category": "VOLUME", "icon": "Wallet", "rarity": "EPIC", "points": 100, "targetRoles": PREPARER,
     "criteria": {"type": "earnings", "threshold": 5000}, "badgeColor": "#16A34A", "sortOrder": 51},
    {"slug": "top_earner", "title": "Top Earner", "description": "Earn $10,000 in commissions",
     "category": "VOLUME", "icon": "Trophy", "rarity": "LEGENDARY", "points": 200, "targetRoles": PREPARER,
     "criteria": {"type": "earnings", "threshold": 10000}, "badgeColor": "#FCD34D", "sortOrder": 52},

    # Affiliate & referrer milestones
    {"slug": "first_referral", "title": "First Referral", "description": "Get your first referral signup",
     "category": "MILESTONE", "icon": "UserPlus", "rarity": "COMMON", "points": 10, "targetRoles": REFERRERS,
     "criteria": {"type": "referral_count", "threshold": 1}, "badgeColor": "#10B981", "sortOrder": 100},
    {"slug": "link_creator", "title": "Link Creator", "description": "Create your first tracking link",
     "category": "MILESTONE", "icon": "Link", "rarity": "COMMON", "points": 10, "targetRoles": REFERRERS,
     "criteria": {"type": "links_created", "threshold": 1}, "badgeColor": "#3B82F6", "sortOrder": 101},

    # Affiliate & referrer volume
    {"slug": "growth_hacker", "title": "Growth Hacker", "description": "Get 10 referrals",
     "category": "VOLUME", "icon": "TrendingUp", "rarity": "RARE", "points": 50, "targetRoles": REFERRERS,
     "criteria": {"type": "referral_count", "threshold": 10}, "badgeColor": "#06B6D4", "sortOrder": 110},
    {"slug": "influencer", "title": "Influencer", "description": "Get 50 referrals",
     "category": "VOLUME", "icon": "Users", "rarity": "EPIC", "points": 150, "targetRoles": REFERRERS,
     "criteria": {"type": "referral_count", "threshold": 50}, "badgeColor": "#EC4899", "sortOrder": 111},
    {"slug": "legend", "title": "Legend", "description": "Get 100 referrals",
     "category": "VOLUME", "icon": "Crown", "rarity": "LEGENDARY", "points": 300, "targetRoles": REFERRERS,
     "criteria": {"type": "referral_count", "threshold": 100}, "badgeColor": "#A855F7", "sortOrder": 112},
    {"slug": "material_master", "title": "Material Master", "description": "Share 20+ marketing materials",
     "category": "ENGAGEMENT", "icon": "Image", "rarity": "RARE", "points": 40, "targetRoles": REFERRERS,
     "criteria": {"type": "materials_shared", "threshold": 20}, "badgeColor": "#8B5CF6", "sortOrder": 113},
    {"slug": "link_builder", "title": "Link Builder", "description": "Create 10 custom tracking links",
     "category": "ENGAGEMENT", "icon": "Link2", "rarity": "COMMON", "points": 25, "targetRoles": REFERRERS,
     "criteria": {"type": "links_created", "threshold": 10}, "badgeColor": "#0EA5E9", "sortOrder": 114},

    # Affiliate & referrer performance
    {"slug": "conversion_king", "title": "Conversion King",
     "description": "Achieve 25%+ conversion rate (with 20+ referrals)",
     "category": "PERFORMANCE", "icon": "TrendingUp", "rarity": "EPIC", "points": 100, "targetRoles": REFERRERS,
     "criteria": {"type": "conversion_rate", "threshold": 0.25, "minReferrals": 20},
     "badgeColor": "#F59E0B", "sortOrder": 120},
    {"slug": "social_butterfly", "title": "Social Butterfly", "description": "Use 5 different marketing channels",
     "category": "ENGAGEMENT", "icon": "Share2", "rarity": "COMMON", "points": 30, "targetRoles": REFERRERS,
     "criteria": {"type": "marketing_channels", "count": 5}, "badgeColor": "#14B8A6", "sortOrder": 121},

    # Contests
    {"slug": "contest_winner", "title": "Contest Winner", "description": "Win a monthly referral contest",
     "category": "COMMUNITY", "icon": "Trophy", "rarity": "LEGENDARY", "points": 200, "targetRoles": CONTESTANTS,
     "criteria": {"type": "contest_winner", "position": 1}, "badgeColor": "#FCD34D", "sortOrder": 130},
    {"slug": "podium_finish", "title": "Podium Finish", "description": "Finish in top 3 of a contest",
     "category": "COMMUNITY", "icon": "Medal", "rarity": "EPIC", "points": 100, "targetRoles": CONTESTANTS,
     "criteria": {"type": "contest_winner", "position": 3}, "badgeColor": "#C0C0C0", "sortOrder": 131},
    {"slug": "top_ten", "title": "Top 10", "description": "Finish in top 10 of a contest",
     "category": "COMMUNITY", "icon": "Award", "rarity": "RARE", "points": 50, "targetRoles": CONTESTANTS,
     "criteria": {"type": "contest_winner", "position": 10}, "badgeColor": "#CD7F32", "sortOrder": 132},

    # Universal engagement
    {"slug": "dedicated", "title": "Dedicated", "description": "Log in for 7 consecutive days",
     "category": "STREAK", "icon": "Calendar", "rarity": "COMMON", "points": 30, "targetRoles": EVERYONE,
     "criteria": {"type": "login_streak", "days": 7}, "badgeColor": "#3B82F6", "sortOrder": 200},
    {"slug": "committed", "title": "Committed", "description": "Log in for 14 consecutive days",
     "category": "STREAK", "icon": "Calendar", "rarity": "RARE", "points": 60, "targetRoles": EVERYONE,
     "criteria": {"type": "login_streak", "days": 14}, "badgeColor": "#2563EB", "sortOrder": 201},
    {"slug": "unstoppable", "title": "Unstoppable", "description": "Log in for 30 consecutive days",
     "category": "STREAK", "icon": "Flame", "rarity": "EPIC", "points": 120, "targetRoles": EVERYONE,
     "criteria": {"type": "login_streak", "days": 30}, "badgeColor": "#EF4444", "sortOrder": 202},
    {"slug": "morning_person", "title": "Morning Person", "description": "Log in before 8 AM",
     "category": "ENGAGEMENT", "icon": "Coffee", "rarity": "COMMON", "points": 15, "targetRoles": EVERYONE,
     "criteria": {"type": "early_login", "hour": 8}, "badgeColor": "#FCD34D", "sortOrder": 203},
    {"slug": "night_owl", "title": "Night Owl", "description": "Log in after 10 PM",
     "category": "ENGAGEMENT", "icon": "Moon", "rarity": "COMMON", "points": 15, "targetRoles": EVERYONE,
     "criteria": {"type": "late_login", "hour": 22}, "badgeColor": "#6366F1", "sortOrder": 204},
    {"slug": "communicator", "title": "Communicator", "description": "Send 50 messages",
     "category": "ENGAGEMENT", "icon": "MessageSquare", "rarity": "COMMON", "points": 20, "targetRoles": EVERYONE,
     "criteria": {"type": "messages_sent", "threshold": 50}, "badgeColor": "#14B8A6", "sortOrder": 205},
    {"slug": "super_communicator", "title": "Super Communicator", "description": "Send 200 messages",
     "category": "ENGAGEMENT", "icon": "MessageCircle", "rarity": "RARE", "points": 50, "targetRoles": EVERYONE,
     "criteria": {"type": "messages_sent", "threshold": 200}, "badgeColor": "#0D9488", "sortOrder": 206},

    # Special
    {"slug": "tax_season_warrior", "title": "Tax Season Warrior",
     "description": "File 20+ returns during peak tax season (March-April)",
     "category": "SPECIAL", "icon": "Swords", "rarity": "EPIC", "points": 150, "targetRoles": PREPARER,
     "criteria": {"type": "seasonal_filing", "season": "peak", "threshold": 20},
     "badgeColor": "#DC2626", "sortOrder": 300},
    {"slug": "early_adopter", "title": "Early Adopter", "description": "Join Tax Genius Pro during beta launch",
     "category": "SPECIAL", "icon": "Rocket", "rarity": "LEGENDARY", "points": 250, "targetRoles": EVERYONE,
     "criteria": {"type": "signup_date", "before": "2025-12-31"}, "badgeColor": "#9333EA", "sortOrder": 301},
]


def default_catalog() -> list[AchievementDefinition]:
    """The validated default catalog"""
    return load_catalog(DEFAULT_ACHIEVEMENTS)
