"""
规则分类器（兜底通道）

基于词库的确定性打分：无网络 I/O、延迟可预期、永远可用。

流程：
1. 语言识别（方言标记 -> 法语功能词 -> 默认英语）
2. 情感打分（加权求和 / 饱和常数，截断到 [-1, 1]）
3. 情绪标签、话题类别
4. 威胁词计数 -> 威胁等级（0 none / 1 medium / 2 high / >=3 critical）
5. 话题标签、@提及提取
6. 地区解析（地区名优先，其次城市 -> 地区）
"""

import re
from functools import lru_cache
from typing import Optional, List, Dict, Tuple

from civic_pulse.lexicon import Lexicon, default_lexicon
from .models import ClassificationResult, Polarity, ThreatLevel


# ================= 常量 =================

RULE_CONFIDENCE = 0.7           # 规则通道没有校准信号，固定使用保守置信度
SCORE_SATURATION = 3.0          # 情感分饱和常数
POLARITY_THRESHOLD = 0.1        # |score| 超过该值才判定为正面/负面
DIALECT_MARKER_THRESHOLD = 1    # 命中几个方言标记判为皮钦语
FRENCH_WORD_THRESHOLD = 2       # 命中几个法语功能词判为法语

LANGUAGE_PRIMARY = "en"
LANGUAGE_DIALECT = "pidgin"
LANGUAGE_SECONDARY = "fr"

HASHTAG_PATTERN = re.compile(r"#(\w+)")
MENTION_PATTERN = re.compile(r"@(\w+)")


@lru_cache(maxsize=4096)
def _phrase_pattern(phrase: str) -> re.Pattern:
    """整词匹配（短语两端不能紧邻字母数字）"""
    return re.compile(r"(?<!\w)" + re.escape(phrase.lower()) + r"(?!\w)")


def count_phrase(text: str, phrase: str) -> int:
    """统计短语在（已小写的）文本中的出现次数"""
    return len(_phrase_pattern(phrase).findall(text))


def find_phrase(text: str, phrase: str) -> int:
    """返回短语首次出现的位置，未出现返回 -1"""
    match = _phrase_pattern(phrase).search(text)
    return match.start() if match else -1


def threat_level_from_count(hits: int) -> ThreatLevel:
    """
    威胁词命中数 -> 威胁等级

    比 AI 通道更粗、更保守：规则通道是安全网。
    """
    if hits <= 0:
        return ThreatLevel.NONE
    if hits == 1:
        return ThreatLevel.MEDIUM
    if hits == 2:
        return ThreatLevel.HIGH
    return ThreatLevel.CRITICAL


def polarity_from_score(score: float) -> Polarity:
    if score > POLARITY_THRESHOLD:
        return Polarity.POSITIVE
    if score < -POLARITY_THRESHOLD:
        return Polarity.NEGATIVE
    return Polarity.NEUTRAL


class RuleBasedClassifier:
    """规则分类器"""

    def __init__(self, lexicon: Optional[Lexicon] = None,
                 dialect_threshold: int = DIALECT_MARKER_THRESHOLD,
                 french_threshold: int = FRENCH_WORD_THRESHOLD):
        self.lexicon = lexicon or default_lexicon()
        self.dialect_threshold = dialect_threshold
        self.french_threshold = french_threshold

    # ==================== 主入口 ====================

    def classify(self, text: str) -> ClassificationResult:
        """对文本进行规则分类（不会抛出异常，空文本返回中性结果）"""
        text = text or ""
        lower = text.lower()

        score, sentiment_terms = self.score_sentiment(lower)

        emotions = self.detect_emotions(lower)
        if self.has_sarcasm(lower):
            score = -score
            if "sarcasm" not in emotions:
                emotions.append("sarcasm")

        categories = self.detect_categories(lower)
        for category in self.detect_crisis(lower):
            if category not in categories:
                categories.append(category)
            if "fear" not in emotions:
                emotions.append("fear")

        threat_hits = self.count_threats(lower)

        return ClassificationResult(
            polarity=polarity_from_score(score),
            score=score,
            emotions=emotions,
            confidence=RULE_CONFIDENCE,
            language=self.detect_language(lower),
            categories=categories,
            keywords=self.extract_keywords(lower, sentiment_terms),
            hashtags=HASHTAG_PATTERN.findall(text),
            mentions=MENTION_PATTERN.findall(text),
            region=self.resolve_region(lower),
            threat_level=threat_level_from_count(threat_hits),
        )

    # ==================== 各步骤 ====================

    def detect_language(self, lower: str) -> str:
        """方言标记优先，其次法语，默认英语"""
        dialect_hits = sum(1 for m in self.lexicon.dialect_markers if count_phrase(lower, m))
        if dialect_hits >= self.dialect_threshold:
            return LANGUAGE_DIALECT

        if any(count_phrase(lower, m) for m in self.lexicon.french_markers):
            return LANGUAGE_SECONDARY

        french_hits = sum(count_phrase(lower, w) for w in self.lexicon.french_function_words)
        if french_hits >= self.french_threshold:
            return LANGUAGE_SECONDARY

        return LANGUAGE_PRIMARY

    def score_sentiment(self, lower: str) -> Tuple[float, List[str]]:
        """
        情感打分

        Returns:
            (score, 命中的情感词)
        """
        total = 0.0
        terms = []

        for word, weight in self.lexicon.positive_words.items():
            hits = count_phrase(lower, word)
            if hits:
                total += hits * weight
                terms.append(word)

        for word, weight in self.lexicon.negative_words.items():
            hits = count_phrase(lower, word)
            if hits:
                total -= hits * weight
                terms.append(word)

        score = max(-1.0, min(1.0, total / SCORE_SATURATION))
        return score, terms

    def has_sarcasm(self, lower: str) -> bool:
        return any(count_phrase(lower, m) for m in self.lexicon.sarcasm_markers)

    def detect_emotions(self, lower: str) -> List[str]:
        """每个情绪桶只要命中一个短语就打标签，可同时出现多个情绪"""
        return [
            emotion for emotion, markers in self.lexicon.emotion_markers.items()
            if any(count_phrase(lower, m) for m in markers)
        ]

    def detect_categories(self, lower: str) -> List[str]:
        return [
            category for category, words in self.lexicon.topic_keywords.items()
            if any(count_phrase(lower, w) for w in words)
        ]

    def detect_crisis(self, lower: str) -> List[str]:
        """地区危机线索，命中返回 ["security"]"""
        for cues in self.lexicon.crisis_keywords.values():
            if any(count_phrase(lower, c) for c in cues):
                return ["security"]
        return []

    def count_threats(self, lower: str) -> int:
        """威胁词出现总次数"""
        return sum(count_phrase(lower, w) for w in self.lexicon.threat_keywords)

    def resolve_region(self, lower: str) -> Optional[str]:
        """地区名优先，其次城市；按词典顺序第一个命中的为准"""
        for alias, region in self.lexicon.region_aliases.items():
            if count_phrase(lower, alias):
                return region

        for city, region in self.lexicon.city_regions.items():
            if count_phrase(lower, city):
                return region

        return None

    def extract_keywords(self, lower: str, sentiment_terms: List[str]) -> List[str]:
        """命中的词库词汇，按首次出现位置排序并去重"""
        candidates = list(sentiment_terms)
        candidates.extend(self.lexicon.threat_keywords)
        for words in self.lexicon.topic_keywords.values():
            candidates.extend(words)
        for markers in self.lexicon.emotion_markers.values():
            candidates.extend(markers)

        positions: Dict[str, int] = {}
        for term in candidates:
            if term in positions:
                continue
            pos = find_phrase(lower, term)
            if pos >= 0:
                positions[term] = pos

        return sorted(positions, key=lambda t: (positions[t], t))
