"""
词库模块
静态、带版本号的词典集合：情感词、情绪标记、话题关键词、威胁词、地名词典、方言标记
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from . import keywords, gazetteer
from .keywords import LEXICON_VERSION


@dataclass
class Lexicon:
    """
    词库快照

    字段说明:
    - version: 词库版本号
    - positive_words / negative_words: 情感词 -> 权重
    - emotion_markers: 情绪标签 -> 触发短语
    - sarcasm_markers: 讽刺标记
    - topic_keywords: 话题类别 -> 关键词
    - crisis_keywords: 地区 -> 危机线索
    - threat_keywords: 威胁指标词
    - dialect_markers: 皮钦语标记
    - french_function_words / french_markers: 法语识别
    - region_aliases: 地区别名 -> 规范地区名
    - city_regions: 城市 -> 地区
    """
    version: str = LEXICON_VERSION
    positive_words: Dict[str, float] = field(default_factory=dict)
    negative_words: Dict[str, float] = field(default_factory=dict)
    emotion_markers: Dict[str, List[str]] = field(default_factory=dict)
    sarcasm_markers: List[str] = field(default_factory=list)
    topic_keywords: Dict[str, List[str]] = field(default_factory=dict)
    crisis_keywords: Dict[str, List[str]] = field(default_factory=dict)
    threat_keywords: List[str] = field(default_factory=list)
    dialect_markers: List[str] = field(default_factory=list)
    french_function_words: List[str] = field(default_factory=list)
    french_markers: List[str] = field(default_factory=list)
    region_aliases: Dict[str, str] = field(default_factory=dict)
    city_regions: Dict[str, str] = field(default_factory=dict)


def default_lexicon() -> Lexicon:
    """内置默认词库（深拷贝，调用方可以放心修改）"""
    return Lexicon(
        version=LEXICON_VERSION,
        positive_words=copy.deepcopy(keywords.POSITIVE_WORDS),
        negative_words=copy.deepcopy(keywords.NEGATIVE_WORDS),
        emotion_markers=copy.deepcopy(keywords.EMOTION_MARKERS),
        sarcasm_markers=list(keywords.SARCASM_MARKERS),
        topic_keywords=copy.deepcopy(keywords.TOPIC_KEYWORDS),
        crisis_keywords=copy.deepcopy(keywords.CRISIS_KEYWORDS),
        threat_keywords=list(keywords.THREAT_KEYWORDS),
        dialect_markers=list(keywords.DIALECT_MARKERS),
        french_function_words=list(keywords.FRENCH_FUNCTION_WORDS),
        french_markers=list(keywords.FRENCH_MARKERS),
        region_aliases=dict(gazetteer.REGION_ALIASES),
        city_regions=dict(gazetteer.CITY_REGIONS),
    )


def _merge_list(base: List[str], extra: List[str]) -> List[str]:
    merged = list(base)
    for item in extra:
        item = item.lower()
        if item not in merged:
            merged.append(item)
    return merged


def merge_overrides(lexicon: Lexicon, overrides: dict) -> Lexicon:
    """
    合并词库覆盖配置

    规则：
    - 列表字段：追加新词（去重）
    - 字典字段：value 为列表时按 key 追加，否则直接覆盖
    - version：直接替换
    - 未知字段：忽略并记录警告
    """
    merged = copy.deepcopy(lexicon)

    for key, value in overrides.items():
        if key == "version":
            merged.version = str(value)
            continue

        if not hasattr(merged, key):
            logging.warning(f"⚠️ 忽略未知的词库字段: {key}")
            continue

        current = getattr(merged, key)
        if isinstance(current, list):
            setattr(merged, key, _merge_list(current, value))
        elif isinstance(current, dict):
            for sub_key, sub_value in value.items():
                if isinstance(sub_value, list):
                    current[sub_key] = _merge_list(current.get(sub_key, []), sub_value)
                else:
                    current[sub_key.lower()] = sub_value

    return merged


def load_lexicon(path: Optional[str] = None) -> Lexicon:
    """
    加载词库

    Args:
        path: JSON 覆盖文件路径（None 则只使用内置词库）

    Returns:
        Lexicon 实例
    """
    lexicon = default_lexicon()
    if not path:
        return lexicon

    with open(path, "r", encoding="utf-8") as f:
        overrides = json.load(f)

    lexicon = merge_overrides(lexicon, overrides)
    logging.info(f"📚 已加载词库覆盖: {path} (version={lexicon.version})")
    return lexicon


__all__ = ["Lexicon", "LEXICON_VERSION", "default_lexicon", "load_lexicon", "merge_overrides"]
