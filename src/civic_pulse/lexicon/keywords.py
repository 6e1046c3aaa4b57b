"""
情感 / 话题 / 威胁词库

纯数据模块，不包含任何逻辑。
匹配时统一小写、按词边界匹配，因此词形变化需要逐一列出（attack / attacks / attacked）。

覆盖三种语言变体：
1. 英语（主语言）
2. 法语（第二官方语言）
3. 喀麦隆皮钦语（地区方言，非正式表达）
"""

from typing import Dict, List


LEXICON_VERSION = "2025.10"


# ============================================================================
# 情感极性词库（词 -> 权重）
# ============================================================================

POSITIVE_WORDS: Dict[str, float] = {
    # 英语
    "good": 0.5,
    "great": 0.5,
    "excellent": 0.5,
    "amazing": 0.5,
    "wonderful": 0.5,
    "love": 0.5,
    "happy": 0.5,
    "proud": 0.5,
    "peace": 0.5,
    "peaceful": 0.5,
    "progress": 0.5,
    "thank you": 0.5,
    "congratulations": 0.5,
    "success": 0.5,
    # 法语
    "bien": 0.5,
    "merci": 0.5,
    "bravo": 0.5,
    "fier": 0.5,
    "fière": 0.5,
    "heureux": 0.5,
    # 皮钦语
    "e sweet": 0.5,
    "na correct": 0.5,
}

NEGATIVE_WORDS: Dict[str, float] = {
    # 英语
    "bad": 0.5,
    "terrible": 0.5,
    "awful": 0.5,
    "hate": 0.5,
    "angry": 0.5,
    "sad": 0.5,
    "frustrated": 0.5,
    "disappointed": 0.5,
    "corrupt": 0.5,
    "shame": 0.5,
    "disgrace": 0.5,
    "useless": 0.5,
    # 暴力词汇权重更高
    "attack": 1.0,
    "destroy": 1.0,
    "kill": 1.0,
    "riot": 1.0,
    "violence": 1.0,
    # 法语
    "mauvais": 0.5,
    "colère": 0.5,
    "triste": 0.5,
    "honte": 0.5,
    "fâché": 0.5,
    # 皮钦语
    "vex": 0.5,
    "wahala": 0.5,
    "dat na wash": 0.5,
}


# ============================================================================
# 情绪标签（标签 -> 触发短语）
# ============================================================================

EMOTION_MARKERS: Dict[str, List[str]] = {
    "anger": ["angry", "furious", "mad", "vex", "outraged", "rage", "colère", "fâché"],
    "joy": ["happy", "glad", "excited", "joy", "wonderful", "celebrate", "heureux", "e sweet"],
    "fear": ["afraid", "scared", "worried", "fear", "terrified", "peur"],
    "sadness": ["sad", "mourn", "grief", "heartbroken", "triste"],
    "pride": ["proud", "pride", "honored", "fier", "fière"],
    "hope": ["hope", "hopeful", "optimistic", "faith", "espoir"],
    "frustration": ["frustrated", "fed up", "tired of", "disappointed", "marre"],
}

# 讽刺标记：命中时情感分取反，并打上 sarcasm 标签
SARCASM_MARKERS: List[str] = [
    "yeah right",
    "as if",
    "oh great",
    "thanks for nothing",
    "just what we needed",
]


# ============================================================================
# 话题分类（类别 -> 关键词）
# ============================================================================

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "election": [
        "election", "elections", "vote", "voting", "ballot", "candidate", "campaign",
        "élection", "élections", "scrutin",
        # 政党
        "rdpc", "cpdm", "mrc", "sdf", "pcrn",
    ],
    "governance": [
        "government", "minister", "ministry", "parliament", "senate", "governor", "policy",
        "gouvernement", "ministre",
        # 现任官员
        "paul biya", "biya", "dion ngute",
    ],
    "security": [
        "security", "police", "army", "military", "soldiers", "gendarmes",
        "separatist", "separatists", "armed", "sécurité",
    ],
    "economy": [
        "economy", "economic", "prices", "inflation", "jobs", "unemployment",
        "salary", "taxes", "fuel", "économie", "prix", "chômage",
    ],
    "youth": ["youth", "young people", "students", "jeunes", "jeunesse"],
    "infrastructure": [
        "road", "roads", "bridge", "electricity", "power cut", "blackout",
        "water supply", "hospital", "eneo", "électricité",
    ],
    "corruption": ["corruption", "bribe", "bribery", "embezzlement", "détournement"],
    "education": ["school", "schools", "teachers", "education", "exams", "école", "enseignants"],
}

# 地区危机线索：命中时追加 security 类别和 fear 情绪
CRISIS_KEYWORDS: Dict[str, List[str]] = {
    "Northwest": ["anglophone crisis", "ambazonia", "amba boys"],
    "Southwest": ["anglophone crisis", "ambazonia"],
    "Far North": ["boko haram"],
    "East": ["car rebels"],
}


# ============================================================================
# 威胁指标（暴力 / 动乱 / 冲突词汇）
# ============================================================================

THREAT_KEYWORDS: List[str] = [
    "attack", "attacks", "attacked",
    "destroy", "destroyed",
    "riot", "riots", "rioting",
    "kill", "killed", "killing",
    "burn", "burned",
    "bomb", "bombing",
    "shoot", "shooting", "gunfire",
    "massacre",
    "violence", "violent",
    "uprising",
    "clashes",
    "weapons",
    "machete",
    "kidnap", "kidnapping",
    # 法语
    "attaque", "émeute", "tuer", "guerre",
]


# ============================================================================
# 语言识别
# ============================================================================

# 皮钦语（非正式方言）标记
DIALECT_MARKERS: List[str] = [
    "how far", "how body", "wetin", "na so", "true talk", "sotay",
    "na correct", "no be so", "wey lie", "dat na wash", "abeg", "wahala", "dem go",
]

# 法语高频功能词
FRENCH_FUNCTION_WORDS: List[str] = [
    "le", "la", "les", "un", "une", "des", "et", "ou", "mais", "donc",
    "car", "ni", "ce", "cette", "ces", "mon", "ma", "mes",
]

# 法语俚语 / 政治用语（命中任意一个即判为法语）
FRENCH_MARKERS: List[str] = [
    "wesh", "franchement", "carrément", "les politiciens", "le gouvernement",
]
