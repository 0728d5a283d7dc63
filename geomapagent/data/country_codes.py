"""Static country name -> code table used as the resolver's second lookup.

Keys are matched exactly, then lower-cased. Values are ISO 3166-1 alpha-3
codes, except the supranational "EU" entries, which the boundary index
rejects with a decompose-into-members suggestion.
"""

from __future__ import annotations

from typing import Dict, Optional

_COMMON_ALIASES: Dict[str, str] = {
    # East Asia
    "台灣": "TWN", "臺灣": "TWN", "Taiwan": "TWN",
    "中國": "CHN", "China": "CHN",
    "日本": "JPN", "Japan": "JPN",
    "韓國": "KOR", "South Korea": "KOR", "Korea": "KOR",
    "菲律賓": "PHL", "Philippines": "PHL",
    "越南": "VNM", "Vietnam": "VNM", "Viet Nam": "VNM",
    "泰國": "THA", "Thailand": "THA",
    "印尼": "IDN", "Indonesia": "IDN",
    # Americas
    "美國": "USA", "United States": "USA", "US": "USA",
    "加拿大": "CAN", "Canada": "CAN",
    "墨西哥": "MEX", "Mexico": "MEX",
    "巴西": "BRA", "Brazil": "BRA",
    "阿根廷": "ARG", "Argentina": "ARG",
    # Europe
    "英國": "GBR", "United Kingdom": "GBR", "UK": "GBR",
    "烏克蘭": "UKR", "Ukraine": "UKR",
    "德國": "DEU", "Germany": "DEU",
    "法國": "FRA", "France": "FRA",
    "義大利": "ITA", "Italy": "ITA",
    "西班牙": "ESP", "Spain": "ESP",
    "俄羅斯": "RUS", "Russia": "RUS", "Russian Federation": "RUS",
    "波蘭": "POL", "Poland": "POL",
    # Caucasus
    "亞塞拜然": "AZE", "Azerbaijan": "AZE", "阿塞拜疆": "AZE",
    "亞美尼亞": "ARM", "Armenia": "ARM",
    "喬治亞": "GEO", "Georgia": "GEO", "格鲁吉亚": "GEO", "格魯吉亞": "GEO",
    # Middle East
    "土耳其": "TUR", "Turkey": "TUR",
    "伊朗": "IRN", "Iran": "IRN", "Islamic Republic of Iran": "IRN",
    "伊拉克": "IRQ", "Iraq": "IRQ",
    "沙烏地阿拉伯": "SAU", "沙特阿拉伯": "SAU", "Saudi Arabia": "SAU",
    "以色列": "ISR", "Israel": "ISR",
    "約旦": "JOR", "Jordan": "JOR",
    "黎巴嫩": "LBN", "Lebanon": "LBN",
    "敘利亞": "SYR", "Syria": "SYR",
    "葉門": "YEM", "Yemen": "YEM",
    "阿聯酋": "ARE", "United Arab Emirates": "ARE", "UAE": "ARE",
    "埃及": "EGY", "Egypt": "EGY",
    # Supranational (not a country; rejected downstream)
    "歐洲": "EU", "歐盟": "EU", "歐洲聯盟": "EU",
    "European Union": "EU",
    # South and Central Asia
    "印度": "IND", "India": "IND",
    "巴基斯坦": "PAK", "Pakistan": "PAK",
    "阿富汗": "AFG", "Afghanistan": "AFG",
    "哈薩克": "KAZ", "Kazakhstan": "KAZ", "哈薩克斯坦": "KAZ",
    "烏茲別克": "UZB", "Uzbekistan": "UZB", "烏茲別克斯坦": "UZB",
    # Oceania and Africa
    "澳洲": "AUS", "Australia": "AUS",
    "南非": "ZAF", "South Africa": "ZAF",
}

# Built once: exact keys plus their lower-cased forms
COUNTRY_NAME_TO_CODE: Dict[str, str] = {}
for _name, _code in _COMMON_ALIASES.items():
    COUNTRY_NAME_TO_CODE[_name] = _code
    COUNTRY_NAME_TO_CODE.setdefault(_name.lower(), _code)


def lookup_country_code(name: str) -> Optional[str]:
    """Look up a code for a country name.

    Args:
        name: Country name in English or Chinese.

    Returns:
        Code string (usually alpha-3), or None if the name is unknown.
    """
    if not name:
        return None
    key = name.strip()
    return COUNTRY_NAME_TO_CODE.get(key) or COUNTRY_NAME_TO_CODE.get(key.lower())
