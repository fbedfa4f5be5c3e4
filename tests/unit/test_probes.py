"""Unit tests for the probes module."""
import re

from key_recovery.message_source import DictMessageSource
from key_recovery.probes import StageContext, build_word_regex


class RecordingMessageSource(DictMessageSource):
    """DictMessageSource that remembers every key it was asked about."""

    def __init__(self, mapping):
        super().__init__(mapping)
        self.asked = []

    def message_for(self, key):
        self.asked.append(key)
        return super().message_for(key)


def _max_probed_number(source, base):
    pattern = re.compile(re.escape(base) + r'(\d+)$')
    return max(int(m.group(1)) for m in map(pattern.match, source.asked) if m)


class TestTryKey:
    def test_case_fallbacks(self, make_probe_set):
        probes = make_probe_set({"PLAY": "Play", "quit": "Quit"})
        assert probes.try_key("Play")
        assert probes.try_key("Quit")
        assert "PLAY" in probes.table
        assert "quit" in probes.table

    def test_miss(self, make_probe_set):
        probes = make_probe_set({"PLAY": "Play"})
        assert not probes.try_key("Options")
        assert not probes.try_key("")
        assert len(probes.table) == 0

    def test_empty_message_counts_as_missing(self, make_probe_set):
        probes = make_probe_set({"Untranslated": ""})
        assert not probes.try_key("Untranslated")

    def test_suffix_with_separator(self, make_probe_set):
        probes = make_probe_set({"Menu_Title": "Menu"}, punctuation=['_'])
        assert probes.try_key_suffix("Menu", "Title")
        assert probes.successful_suffixes == {"Title"}

    def test_prefix_with_separator(self, make_probe_set):
        probes = make_probe_set({"Dialog.Shop": "Shop"}, punctuation=['.', '_'])
        assert probes.try_key_prefix("Dialog", "Shop")
        assert probes.successful_prefixes == {"Dialog"}

    def test_separator_only_between_suffixes(self, make_probe_set):
        probes = make_probe_set({"Item_Name_2": "Two", "_Item_Name2": "Other"}, punctuation=['_'])
        assert probes.try_key_suffixes("Item", "_Name", "2")
        assert probes.table.keys() == ["Item_Name_2"]


class TestNumericSuffix:
    def test_widens_while_most_of_range_exists(self, make_probe_set):
        source = RecordingMessageSource({f"Item{i}": f"Item number {i}" for i in range(1, 48)})
        probes = make_probe_set({}, source=source)

        probes.try_num_suffix("Item")

        assert len(probes.table) == 47
        assert _max_probed_number(source, "Item") == 63

    def test_detects_zero_padding(self, make_probe_set):
        probes = make_probe_set({f"Item{i:02d}": f"Item {i}" for i in range(1, 13)})
        probes.try_num_suffix("Item")
        assert sorted(probes.table.keys()) == [f"Item{i:02d}" for i in range(1, 13)]

    def test_known_magnitude_starts_at_zero(self, make_probe_set):
        probes = make_probe_set({f"Level{i}": f"Level {i}" for i in range(6)})
        probes.numeric_strip_task(("Level", 0))
        assert len(probes.table) == 6

    def test_no_first_entry_means_no_range(self, make_probe_set):
        source = RecordingMessageSource({"Item5": "Five"})
        probes = make_probe_set({}, source=source)
        probes.try_num_suffix("Item")
        assert len(probes.table) == 0
        assert "Item5" not in source.asked

    def test_placeholder_tokens(self, make_probe_set):
        probes = make_probe_set({"Item1": "One", "ItemN": "Many"})
        probes.try_num_suffix("Item")
        assert "ItemN" in probes.table


class TestTasks:
    def test_word_task(self, make_probe_set):
        probes = make_probe_set({"Menu_Play": "Play"})
        probes.context = StageContext(word_regex=build_word_regex({'_'}, '', False))
        probes.word_task("Press Menu_Play to start")
        assert probes.table.keys() == ["Menu_Play"]

    def test_word_task_skips_strings_without_common_prefix(self, make_probe_set):
        source = RecordingMessageSource({"Menu_Play": "Play"})
        probes = make_probe_set({}, source=source)
        probes.context = StageContext(
            common_to_all_prefix="Menu_",
            word_regex=build_word_regex({'_'}, "Menu_", False)
        )
        probes.word_task("Options screen")
        assert source.asked == []
        probes.word_task("Go to Menu_Play")
        assert "Menu_Play" in probes.table

    def test_affix_task(self, make_probe_set):
        probes = make_probe_set(
            {"Shop_Title": "Shop", "Dialog_Shop": "Shop dialog"},
            punctuation=['_'], prefixes=["Dialog"], suffixes=["Title"]
        )
        probes.affix_task("Shop")
        assert sorted(probes.table.keys()) == ["Dialog_Shop", "Shop_Title"]
        assert probes.successful_prefixes == {"Dialog"}

    def test_cancelled_tasks_do_nothing(self, make_probe_set):
        probes = make_probe_set({"Play": "Play", "Shop_Title": "Shop"}, punctuation=['_'], suffixes=["Title"])
        probes.cancel.set()
        probes.direct_task("Play")
        probes.affix_task("Shop")
        probes.numeric_strip_task(("Item", 0))
        assert len(probes.table) == 0

    def test_admitted_keys_map_to_their_source_message(self, make_probe_set):
        mapping = {"Shop_Title": "Shop", "Shop_Title_1": "Shop 1", "Shop_Title_2": "Shop 2", "SHOP": "Caps"}
        probes = make_probe_set(mapping, punctuation=['_'], suffixes=["Title"])
        for item in ("Shop", "Shop_Title"):
            probes.affix_task(item)
        probes.direct_task("shop")
        for key, message in probes.table.snapshot().items():
            assert mapping[key] == message
        assert len(probes.table) == 4


class TestWordRegex:
    def test_prefix_is_escaped(self):
        regex = build_word_regex({'.'}, "ui.", False)
        assert regex.findall("see ui.menu.play and uixmenu") == ["ui.menu.play"]

    def test_whitespace_keys_use_word_boundaries(self):
        regex = build_word_regex({' '}, '', True)
        assert regex.pattern.startswith('\\b')
