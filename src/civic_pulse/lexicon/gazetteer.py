"""
地名词典
地区名称 / 城市名称 -> 规范地区名

查找顺序很重要：先长后短（"Far North" 必须排在 "North" 之前）。
"""

from typing import Dict


# 地区别名 -> 规范地区名（按匹配优先级排序）
REGION_ALIASES: Dict[str, str] = {
    "far north": "Far North",
    "extrême-nord": "Far North",
    "northwest": "Northwest",
    "north-west": "Northwest",
    "nord-ouest": "Northwest",
    "southwest": "Southwest",
    "south-west": "Southwest",
    "sud-ouest": "Southwest",
    "littoral": "Littoral",
    "adamawa": "Adamawa",
    "adamaoua": "Adamawa",
    "centre": "Centre",
    "north": "North",
    "south": "South",
    "east": "East",
    "west": "West",
}

# 城市 -> 所属地区
CITY_REGIONS: Dict[str, str] = {
    "yaoundé": "Centre",
    "yaounde": "Centre",
    "douala": "Littoral",
    "bamenda": "Northwest",
    "bafoussam": "West",
    "garoua": "North",
    "maroua": "Far North",
    "ngaoundéré": "Adamawa",
    "ngaoundere": "Adamawa",
    "bertoua": "East",
    "ebolowa": "South",
    "kribi": "South",
    "limbe": "Southwest",
    "buea": "Southwest",
    "kumba": "Southwest",
    "foumban": "West",
    "dschang": "West",
}
