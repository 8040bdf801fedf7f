"""
Shipping Fee Calculator — region table lookup.

    shipping_fee("Tokyo", buyer_pays_required=True)   # 700
    shipping_fee("東京都", buyer_pays_required=True)   # 700
    shipping_fee("Tokyo", buyer_pays_required=False)  # 0
    shipping_fee(None, buyer_pays_required=True)      # 0, no address yet

The fee depends only on the destination and on whether *any* item ships
at the buyer's expense, never on line order or on earlier requests.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from checkout.config import Settings
from checkout.domain import ProductSnapshot


DEFAULT_FEE = 800

_DEFAULT_FEES: dict[str, int] = {
    # Hokkaido
    "hokkaido": 1200,
    # Tohoku
    "aomori": 900, "iwate": 900, "miyagi": 900, "akita": 900, "yamagata": 900, "fukushima": 900,
    # Kanto
    "ibaraki": 700, "tochigi": 700, "gunma": 700, "saitama": 700,
    "chiba": 700, "tokyo": 700, "kanagawa": 700, "yamanashi": 700,
    # Koshinetsu, Hokuriku
    "niigata": 800, "nagano": 800, "toyama": 800, "ishikawa": 800, "fukui": 800,
    # Tokai
    "gifu": 600, "shizuoka": 600, "mie": 600, "aichi": 500,
    # Kinki
    "shiga": 700, "kyoto": 700, "osaka": 700, "hyogo": 700, "nara": 700, "wakayama": 700,
    # Chugoku
    "tottori": 900, "shimane": 900, "okayama": 900, "hiroshima": 900, "yamaguchi": 900,
    # Shikoku
    "tokushima": 1000, "kagawa": 1000, "ehime": 1000, "kochi": 1000,
    # Kyushu
    "fukuoka": 1100, "saga": 1100, "nagasaki": 1100, "kumamoto": 1100,
    "oita": 1100, "miyazaki": 1100, "kagoshima": 1100,
    # Okinawa
    "okinawa": 1500,
}

_KANJI_NAMES: dict[str, str] = {
    "北海道": "hokkaido",
    "青森": "aomori", "岩手": "iwate", "宮城": "miyagi", "秋田": "akita", "山形": "yamagata", "福島": "fukushima",
    "茨城": "ibaraki", "栃木": "tochigi", "群馬": "gunma", "埼玉": "saitama",
    "千葉": "chiba", "東京": "tokyo", "神奈川": "kanagawa", "山梨": "yamanashi",
    "新潟": "niigata", "長野": "nagano", "富山": "toyama", "石川": "ishikawa", "福井": "fukui",
    "岐阜": "gifu", "静岡": "shizuoka", "三重": "mie", "愛知": "aichi",
    "滋賀": "shiga", "京都": "kyoto", "大阪": "osaka", "兵庫": "hyogo", "奈良": "nara", "和歌山": "wakayama",
    "鳥取": "tottori", "島根": "shimane", "岡山": "okayama", "広島": "hiroshima", "山口": "yamaguchi",
    "徳島": "tokushima", "香川": "kagawa", "愛媛": "ehime", "高知": "kochi",
    "福岡": "fukuoka", "佐賀": "saga", "長崎": "nagasaki", "熊本": "kumamoto",
    "大分": "oita", "宮崎": "miyazaki", "鹿児島": "kagoshima",
    "沖縄": "okinawa",
}

_ROMAN_SUFFIXES = (" prefecture", "-ken", "-fu", "-to", " ken", " fu", " to")


def normalize_region(region: str) -> str:
    """'東京都', 'Tokyo-to', ' TOKYO ' → 'tokyo'. Unknown names pass through lowercased."""
    name = region.strip()
    if name in _KANJI_NAMES:
        return _KANJI_NAMES[name]
    if name[-1:] in ("都", "府", "県") and name[:-1] in _KANJI_NAMES:
        return _KANJI_NAMES[name[:-1]]

    name = name.casefold()
    for suffix in _ROMAN_SUFFIXES:
        if name.endswith(suffix):
            return name.removesuffix(suffix).strip()
    return name


# ═══════════════════════════════════════════════════════════════════════════════
# Fee Table
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FeeTable:
    """
    Region → fee, with an explicit default for unlisted regions.

    Note: keys are normalized on construction, use FeeTable.of().
    """

    fees: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    default: int = DEFAULT_FEE

    @classmethod
    def of(cls, fees: Mapping[str, int], default: int = DEFAULT_FEE) -> "FeeTable":
        for region, fee in fees.items():
            if fee < 0:
                raise ValueError(f"Negative fee for {region}: {fee}")
        if default < 0:
            raise ValueError(f"Negative default fee: {default}")
        normalized = {normalize_region(region): fee for region, fee in fees.items()}
        return cls(fees=MappingProxyType(normalized), default=default)

    @classmethod
    def standard(cls) -> "FeeTable":
        return cls.of(_DEFAULT_FEES, DEFAULT_FEE)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeeTable":
        return cls.standard().with_overrides(
            settings.shipping_fee_overrides,
            default=settings.shipping_default_fee,
        )

    def with_overrides(self, overrides: Mapping[str, int], *, default: int | None = None) -> "FeeTable":
        return FeeTable.of(
            {**self.fees, **overrides},
            self.default if default is None else default,
        )

    def lookup(self, region: str) -> int:
        return self.fees.get(normalize_region(region), self.default)


# ═══════════════════════════════════════════════════════════════════════════════
# Calculator
# ═══════════════════════════════════════════════════════════════════════════════


def buyer_pays_required(products: Iterable[ProductSnapshot]) -> bool:
    """Any item shipped at the buyer's expense makes the whole order buyer-paid."""
    return any(product.buyer_pays_shipping for product in products)


def shipping_fee(region: str | None, buyer_pays_required: bool, table: FeeTable | None = None) -> int:
    if not buyer_pays_required:
        return 0
    if region is None or not region.strip():
        return 0
    return (table or STANDARD_FEE_TABLE).lookup(region)


STANDARD_FEE_TABLE = FeeTable.standard()


__all__ = (
    "DEFAULT_FEE",
    "FeeTable",
    "STANDARD_FEE_TABLE",
    "normalize_region",
    "buyer_pays_required",
    "shipping_fee",
)
