# plan_features.py
"""Entitlement matrix for each subscription tier.

The table is built once at import time and exposed read-only. Every field of
:class:`Entitlements` declares its kind (integer, limit, boolean or ordered
level) so availability checks and the monotonicity validation can be
exhaustive over kinds instead of guessing from the runtime value.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Union

PERMISSION_MATRIX_VERSION = "2026.1"


class PlanTier(IntEnum):
    FREE = 0
    START = 1
    PLUS = 2
    PRO = 3
    PREMIUM = 4

    @property
    def code(self) -> str:
        """Value persisted on the account row."""
        return self.name.lower()

    @property
    def label(self) -> str:
        return self.name.capitalize()


def resolve_tier(code: Any) -> PlanTier:
    """Map a stored plan code to a tier. Unknown or empty codes fall back to FREE."""
    if isinstance(code, PlanTier):
        return code
    try:
        return PlanTier[str(code or "").strip().upper()]
    except KeyError:
        return PlanTier.FREE


class _Unlimited:
    """Sentinel limit that compares greater than every integer."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNLIMITED"

    def __reduce__(self):
        return (_Unlimited, ())

    def __lt__(self, other):
        if isinstance(other, (_Unlimited, int)):
            return False
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, _Unlimited):
            return True
        if isinstance(other, int):
            return False
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, _Unlimited):
            return False
        if isinstance(other, int):
            return True
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, (_Unlimited, int)):
            return True
        return NotImplemented


UNLIMITED = _Unlimited()
Limit = Union[int, _Unlimited]


class Level(str, Enum):
    """String enum whose members are ordered by declaration."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank >= other.rank


class ProfileLevel(Level):
    BASIC = "basic"
    STANDARD = "standard"
    ADVANCED = "advanced"
    SEO = "seo"


class SocialDisplayLevel(Level):
    MINIMAL = "minimal"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    PROFILE_LINK = "profile_link"
    WEBSITE = "website"


class TagSelectionMode(Level):
    MANUAL = "manual"
    BULK = "bulk"
    DRIVE = "drive"


class ZipSizeTier(Level):
    NONE = "none"
    STANDARD = "standard"
    LARGE = "large"
    HIGH_RES = "high_res"


class PrivacyLevel(Level):
    PUBLIC = "public"
    PRIVATE = "private"
    PASSWORD = "password"
    EXPIRATION = "expiration"


class CustomizationLevel(Level):
    DEFAULT = "default"
    COLORS = "colors"
    FULL = "full"


class FeatureKind(str, Enum):
    INTEGER = "integer"
    LIMIT = "limit"  # integer or UNLIMITED
    BOOLEAN = "boolean"
    LEVEL = "level"


def _feature(kind: FeatureKind, group: str):
    return field(metadata={"kind": kind, "group": group})


@dataclass(frozen=True)
class Entitlements:
    # management
    photo_credits: int = _feature(FeatureKind.INTEGER, "management")
    max_galleries: Limit = _feature(FeatureKind.LIMIT, "management")
    max_photos_per_gallery: int = _feature(FeatureKind.INTEGER, "management")
    team_members: Limit = _feature(FeatureKind.LIMIT, "management")
    # public profile
    profile_level: ProfileLevel = _feature(FeatureKind.LEVEL, "profile")
    profile_carousel_limit: int = _feature(FeatureKind.INTEGER, "profile")
    profile_list_limit: Limit = _feature(FeatureKind.LIMIT, "profile")
    remove_branding: bool = _feature(FeatureKind.BOOLEAN, "profile")
    # lead capture
    can_capture_leads: bool = _feature(FeatureKind.BOOLEAN, "leads")
    can_export_leads: bool = _feature(FeatureKind.BOOLEAN, "leads")
    can_custom_whatsapp: bool = _feature(FeatureKind.BOOLEAN, "leads")
    # gallery experience
    social_display_level: SocialDisplayLevel = _feature(FeatureKind.LEVEL, "gallery")
    can_favorite: bool = _feature(FeatureKind.BOOLEAN, "gallery")
    can_download_favorite_selection: bool = _feature(FeatureKind.BOOLEAN, "gallery")
    can_show_slideshow: bool = _feature(FeatureKind.BOOLEAN, "gallery")
    max_grid_columns: int = _feature(FeatureKind.INTEGER, "gallery")
    max_tags: int = _feature(FeatureKind.INTEGER, "gallery")
    tag_selection_mode: TagSelectionMode = _feature(FeatureKind.LEVEL, "gallery")
    # delivery
    zip_size_tier: ZipSizeTier = _feature(FeatureKind.LEVEL, "delivery")
    zip_size_limit_bytes: int = _feature(FeatureKind.INTEGER, "delivery")
    max_external_links: int = _feature(FeatureKind.INTEGER, "delivery")
    can_custom_link_label: bool = _feature(FeatureKind.BOOLEAN, "delivery")
    keep_original_filenames: bool = _feature(FeatureKind.BOOLEAN, "delivery")
    # security, design and data
    privacy_level: PrivacyLevel = _feature(FeatureKind.LEVEL, "security")
    customization_level: CustomizationLevel = _feature(FeatureKind.LEVEL, "design")
    can_custom_categories: bool = _feature(FeatureKind.BOOLEAN, "design")
    can_access_stats: bool = _feature(FeatureKind.BOOLEAN, "data")

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not _matches_kind(f.metadata["kind"], value):
                raise TypeError(
                    f"Entitlement {f.name!r} has value {value!r} that is not a "
                    f"{f.metadata['kind'].value}"
                )


FEATURE_KINDS: Mapping[str, FeatureKind] = MappingProxyType(
    {f.name: f.metadata["kind"] for f in fields(Entitlements)}
)
FEATURE_GROUPS: Mapping[str, str] = MappingProxyType(
    {f.name: f.metadata["group"] for f in fields(Entitlements)}
)


def _matches_kind(kind: FeatureKind, value: Any) -> bool:
    if kind is FeatureKind.BOOLEAN:
        return isinstance(value, bool)
    if kind is FeatureKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool) and value >= 0
    if kind is FeatureKind.LIMIT:
        return value is UNLIMITED or (
            isinstance(value, int) and not isinstance(value, bool) and value >= 0
        )
    if kind is FeatureKind.LEVEL:
        return isinstance(value, Level)
    raise ValueError(f"Unhandled feature kind: {kind!r}")


def _not_decreasing(kind: FeatureKind, lower: Any, higher: Any) -> bool:
    if kind is FeatureKind.BOOLEAN:
        return higher or not lower
    if kind in (FeatureKind.INTEGER, FeatureKind.LIMIT, FeatureKind.LEVEL):
        return higher >= lower
    raise ValueError(f"Unhandled feature kind: {kind!r}")


def monotonic_violations(table: Mapping[PlanTier, Entitlements]) -> List[str]:
    """Describe every entitlement that gets worse when moving up one tier."""
    problems: List[str] = []
    tiers = sorted(table)
    for lower, higher in zip(tiers, tiers[1:]):
        for key, kind in FEATURE_KINDS.items():
            a = getattr(table[lower], key)
            b = getattr(table[higher], key)
            if not _not_decreasing(kind, a, b):
                problems.append(f"{key}: {lower.name}={a!r} > {higher.name}={b!r}")
    return problems


class PermissionMatrix:
    """Immutable tier -> entitlements table with lookup helpers.

    Construct alternate matrices (e.g. in tests) instead of mutating the
    default one; construction validates completeness and monotonicity.
    """

    def __init__(self, version: str, table: Mapping[PlanTier, Entitlements]):
        missing = [t.name for t in PlanTier if t not in table]
        if missing:
            raise ValueError(f"Permission matrix {version} is missing tiers: {missing}")
        problems = monotonic_violations(table)
        if problems:
            raise ValueError(
                f"Permission matrix {version} is not monotonic: " + "; ".join(problems)
            )
        self.version = version
        self.table: Mapping[PlanTier, Entitlements] = MappingProxyType(dict(table))

    def entitlements(self, tier: PlanTier) -> Entitlements:
        return self.table[resolve_tier(tier)]

    def is_feature_available(self, entitlements: Entitlements, feature_key: str) -> bool:
        kind = FEATURE_KINDS[feature_key]
        value = getattr(entitlements, feature_key)
        if kind is FeatureKind.BOOLEAN:
            return value is True
        if kind is FeatureKind.INTEGER:
            return value > 0
        if kind is FeatureKind.LIMIT:
            return value is UNLIMITED or value > 0
        if kind is FeatureKind.LEVEL:
            return value != getattr(self.table[PlanTier.FREE], feature_key)
        raise ValueError(f"Unhandled feature kind: {kind!r}")

    def next_tier_with_feature(self, from_tier: PlanTier, feature_key: str) -> PlanTier:
        """First tier above ``from_tier`` offering the feature; the top tier otherwise.

        Used for upsell copy only, so there is no "not found" outcome.
        """
        if feature_key not in FEATURE_KINDS:
            raise KeyError(feature_key)
        start = resolve_tier(from_tier)
        for tier in PlanTier:
            if tier > start and self.is_feature_available(self.table[tier], feature_key):
                return tier
        return max(PlanTier)

    def minimum_tier_for(self, feature_key: str) -> PlanTier:
        if feature_key not in FEATURE_KINDS:
            raise KeyError(feature_key)
        for tier in PlanTier:
            if self.is_feature_available(self.table[tier], feature_key):
                return tier
        return max(PlanTier)


_MB = 1024 * 1024

# Feature matrix for each plan
PERMISSION_MATRIX = PermissionMatrix(
    PERMISSION_MATRIX_VERSION,
    {
        PlanTier.FREE: Entitlements(
            photo_credits=500,
            max_galleries=2,
            max_photos_per_gallery=200,
            team_members=0,
            profile_level=ProfileLevel.BASIC,
            profile_carousel_limit=0,
            profile_list_limit=1,
            remove_branding=False,
            can_capture_leads=False,
            can_export_leads=False,
            can_custom_whatsapp=False,
            social_display_level=SocialDisplayLevel.MINIMAL,
            can_favorite=False,
            can_download_favorite_selection=False,
            can_show_slideshow=False,
            max_grid_columns=3,
            max_tags=0,
            tag_selection_mode=TagSelectionMode.MANUAL,
            zip_size_tier=ZipSizeTier.NONE,
            zip_size_limit_bytes=0,
            max_external_links=0,
            can_custom_link_label=False,
            keep_original_filenames=False,
            privacy_level=PrivacyLevel.PUBLIC,
            customization_level=CustomizationLevel.DEFAULT,
            can_custom_categories=False,
            can_access_stats=False,
        ),
        PlanTier.START: Entitlements(
            photo_credits=5_000,
            max_galleries=10,
            max_photos_per_gallery=600,
            team_members=1,
            profile_level=ProfileLevel.STANDARD,
            profile_carousel_limit=1,
            profile_list_limit=10,
            remove_branding=False,
            can_capture_leads=False,
            can_export_leads=False,
            can_custom_whatsapp=False,
            social_display_level=SocialDisplayLevel.WHATSAPP,
            can_favorite=True,
            can_download_favorite_selection=False,
            can_show_slideshow=False,
            max_grid_columns=4,
            max_tags=0,
            tag_selection_mode=TagSelectionMode.MANUAL,
            zip_size_tier=ZipSizeTier.STANDARD,
            zip_size_limit_bytes=2 * _MB,
            max_external_links=1,
            can_custom_link_label=False,
            keep_original_filenames=False,
            privacy_level=PrivacyLevel.PRIVATE,
            customization_level=CustomizationLevel.DEFAULT,
            can_custom_categories=False,
            can_access_stats=True,
        ),
        PlanTier.PLUS: Entitlements(
            photo_credits=15_000,
            max_galleries=25,
            max_photos_per_gallery=1_000,
            team_members=3,
            profile_level=ProfileLevel.STANDARD,
            profile_carousel_limit=1,
            profile_list_limit=20,
            remove_branding=False,
            can_capture_leads=True,
            can_export_leads=True,
            can_custom_whatsapp=False,
            social_display_level=SocialDisplayLevel.INSTAGRAM,
            can_favorite=True,
            can_download_favorite_selection=True,
            can_show_slideshow=True,
            max_grid_columns=5,
            max_tags=5,
            tag_selection_mode=TagSelectionMode.MANUAL,
            zip_size_tier=ZipSizeTier.STANDARD,
            zip_size_limit_bytes=3 * _MB,
            max_external_links=2,
            can_custom_link_label=True,
            keep_original_filenames=False,
            privacy_level=PrivacyLevel.PRIVATE,
            customization_level=CustomizationLevel.COLORS,
            can_custom_categories=True,
            can_access_stats=True,
        ),
        PlanTier.PRO: Entitlements(
            photo_credits=40_000,
            max_galleries=50,
            max_photos_per_gallery=2_000,
            team_members=5,
            profile_level=ProfileLevel.ADVANCED,
            profile_carousel_limit=3,
            profile_list_limit=UNLIMITED,
            remove_branding=False,
            can_capture_leads=True,
            can_export_leads=True,
            can_custom_whatsapp=True,
            social_display_level=SocialDisplayLevel.PROFILE_LINK,
            can_favorite=True,
            can_download_favorite_selection=True,
            can_show_slideshow=True,
            max_grid_columns=6,
            max_tags=10,
            tag_selection_mode=TagSelectionMode.BULK,
            zip_size_tier=ZipSizeTier.LARGE,
            zip_size_limit_bytes=5 * _MB,
            max_external_links=5,
            can_custom_link_label=True,
            keep_original_filenames=True,
            privacy_level=PrivacyLevel.PASSWORD,
            customization_level=CustomizationLevel.COLORS,
            can_custom_categories=True,
            can_access_stats=True,
        ),
        PlanTier.PREMIUM: Entitlements(
            photo_credits=100_000,
            max_galleries=UNLIMITED,
            max_photos_per_gallery=2_000,
            team_members=UNLIMITED,
            profile_level=ProfileLevel.SEO,
            profile_carousel_limit=5,
            profile_list_limit=UNLIMITED,
            remove_branding=True,
            can_capture_leads=True,
            can_export_leads=True,
            can_custom_whatsapp=True,
            social_display_level=SocialDisplayLevel.WEBSITE,
            can_favorite=True,
            can_download_favorite_selection=True,
            can_show_slideshow=True,
            max_grid_columns=8,
            max_tags=20,
            tag_selection_mode=TagSelectionMode.DRIVE,
            zip_size_tier=ZipSizeTier.HIGH_RES,
            zip_size_limit_bytes=10 * _MB,
            max_external_links=10,
            can_custom_link_label=True,
            keep_original_filenames=True,
            privacy_level=PrivacyLevel.EXPIRATION,
            customization_level=CustomizationLevel.FULL,
            can_custom_categories=True,
            can_access_stats=True,
        ),
    },
)

PERMISSIONS_BY_PLAN: Mapping[PlanTier, Entitlements] = PERMISSION_MATRIX.table


def entitlements(tier: PlanTier) -> Entitlements:
    return PERMISSION_MATRIX.entitlements(tier)


def is_feature_available(ents: Entitlements, feature_key: str) -> bool:
    return PERMISSION_MATRIX.is_feature_available(ents, feature_key)


def next_tier_with_feature(from_tier: PlanTier, feature_key: str) -> PlanTier:
    return PERMISSION_MATRIX.next_tier_with_feature(from_tier, feature_key)


def has_feature(account, feature: str) -> bool:
    tier = resolve_tier(getattr(account, "PlanKey", None))
    return is_feature_available(entitlements(tier), feature)


def get_limit(tier: PlanTier, feature_key: str) -> Limit:
    if FEATURE_KINDS[feature_key] not in (FeatureKind.INTEGER, FeatureKind.LIMIT):
        raise KeyError(f"{feature_key} is not a numeric entitlement")
    return getattr(entitlements(tier), feature_key)


def privacy_allows(tier: PlanTier, level: PrivacyLevel) -> bool:
    return entitlements(tier).privacy_level >= level


def customization_allows(tier: PlanTier, level: CustomizationLevel) -> bool:
    return entitlements(tier).customization_level >= level


def can_add_photos_to_gallery(tier: PlanTier, photos_in_gallery: int, new_photos: int = 0) -> bool:
    return photos_in_gallery + new_photos <= entitlements(tier).max_photos_per_gallery


def can_upload_file(tier: PlanTier, file_size_bytes: int) -> bool:
    return file_size_bytes <= entitlements(tier).zip_size_limit_bytes


def serialize_value(value: Any) -> Any:
    if value is UNLIMITED:
        return "unlimited"
    if isinstance(value, Level):
        return value.value
    return value


def plan_summary(tier: PlanTier) -> Dict[str, Any]:
    """JSON-friendly view of a tier's entitlements, grouped like the pricing page."""
    tier = resolve_tier(tier)
    ents = entitlements(tier)
    groups: Dict[str, Dict[str, Any]] = {}
    for key, group in FEATURE_GROUPS.items():
        groups.setdefault(group, {})[key] = serialize_value(getattr(ents, key))
    return {
        "code": tier.code,
        "name": tier.label,
        "rank": int(tier),
        "version": PERMISSION_MATRIX.version,
        "features": groups,
    }
