"""
词库加载与覆盖合并测试
"""

import json
import pytest

from civic_pulse.lexicon import (
    LEXICON_VERSION, default_lexicon, load_lexicon, merge_overrides
)
from civic_pulse.lexicon.gazetteer import REGION_ALIASES


class TestDefaultLexicon:
    """测试内置词库"""

    def test_version(self):
        assert default_lexicon().version == LEXICON_VERSION

    def test_returns_independent_copies(self):
        """修改一个实例不影响下一次获取"""
        first = default_lexicon()
        first.threat_keywords.append("zzz")
        first.topic_keywords["election"].append("zzz")

        second = default_lexicon()
        assert "zzz" not in second.threat_keywords
        assert "zzz" not in second.topic_keywords["election"]

    def test_far_north_checked_before_north(self):
        aliases = list(REGION_ALIASES)
        assert aliases.index("far north") < aliases.index("north")

    def test_violent_words_weigh_more(self):
        lexicon = default_lexicon()
        assert lexicon.negative_words["attack"] > lexicon.negative_words["bad"]


class TestMergeOverrides:
    """测试覆盖合并"""

    def test_list_fields_are_extended_without_duplicates(self):
        merged = merge_overrides(default_lexicon(), {"threat_keywords": ["Ambush", "attack"]})
        assert "ambush" in merged.threat_keywords
        assert merged.threat_keywords.count("attack") == 1

    def test_dict_of_lists_appends_per_key(self):
        merged = merge_overrides(default_lexicon(), {"topic_keywords": {"health": ["cholera"]}})
        assert merged.topic_keywords["health"] == ["cholera"]
        assert "election" in merged.topic_keywords

    def test_scalar_dict_values_overwrite(self):
        merged = merge_overrides(default_lexicon(), {
            "negative_words": {"Scandal": 0.8},
            "city_regions": {"mamfe": "Southwest"},
        })
        assert merged.negative_words["scandal"] == 0.8
        assert merged.city_regions["mamfe"] == "Southwest"

    def test_version_replaced(self):
        assert merge_overrides(default_lexicon(), {"version": "2026.01"}).version == "2026.01"

    def test_unknown_field_ignored(self):
        base = default_lexicon()
        merged = merge_overrides(base, {"no_such_field": ["x"]})
        assert merged == base

    def test_original_untouched(self):
        base = default_lexicon()
        merge_overrides(base, {"threat_keywords": ["ambush"]})
        assert "ambush" not in base.threat_keywords


class TestLoadLexicon:
    """测试从文件加载"""

    def test_no_path_returns_default(self):
        assert load_lexicon(None) == default_lexicon()

    def test_load_from_json(self, tmp_path):
        path = tmp_path / "lexicon.json"
        path.write_text(json.dumps({"version": "test", "dialect_markers": ["chop"]}), encoding="utf-8")

        lexicon = load_lexicon(str(path))
        assert lexicon.version == "test"
        assert "chop" in lexicon.dialect_markers

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_lexicon(str(tmp_path / "missing.json"))
