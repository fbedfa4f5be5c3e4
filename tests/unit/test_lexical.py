import unittest

from key_recovery.lexical import (
    find_common_affixes,
    find_common_prefix,
    format_number,
    has_whitespace,
    remove_chars,
    split_multichar,
    strip_numeric_suffix,
    trim_punctuation,
)


class TestSplitting(unittest.TestCase):
    def test_split_on_any_separator(self):
        self.assertEqual(split_multichar("Menu_Main.Title", {'_', '.'}), ["Menu", "Main", "Title"])

    def test_split_drops_empty_parts_by_default(self):
        self.assertEqual(split_multichar("a_b__c", {'_'}), ["a", "b", "c"])
        self.assertEqual(split_multichar("a_b__c", {'_'}, allow_empty=True), ["a", "b", "", "c"])

    def test_split_maxsplit_keeps_remainder(self):
        self.assertEqual(split_multichar("a_b__c", {'_'}, maxsplit=2), ["a", "b__c"])

    def test_split_without_separators(self):
        self.assertEqual(split_multichar("Play", {'_'}), ["Play"])
        self.assertEqual(split_multichar("", {'_'}), [])


class TestCleanup(unittest.TestCase):
    def test_trim_punctuation_strips_one_of_each(self):
        self.assertEqual(trim_punctuation("_Title_", ['_']), "Title")
        self.assertEqual(trim_punctuation("__x__", ['_']), "_x_")
        self.assertEqual(trim_punctuation("_Menu.", ['.', '_']), "Menu")

    def test_remove_chars_and_whitespace(self):
        self.assertEqual(remove_chars("Quit!", {'!', '?'}), "Quit")
        self.assertTrue(has_whitespace("Main Menu"))
        self.assertFalse(has_whitespace("Main_Menu"))


class TestCommonPrefix(unittest.TestCase):
    def test_shared_prefix(self):
        self.assertEqual(find_common_prefix(["Menu_Play", "Menu_Quit"]), "Menu_")

    def test_empty_input(self):
        self.assertEqual(find_common_prefix([]), "")
        self.assertEqual(find_common_prefix(["", "abc"]), "abc")

    def test_prefix_is_capped(self):
        long_key = "x" * 300
        self.assertEqual(len(find_common_prefix([long_key, long_key + "y"])), 100)


class TestCommonAffixes(unittest.TestCase):
    def test_dialog_corpus(self):
        prefixes, suffixes = find_common_affixes(
            ["Dialog_Title", "Dialog_Body", "Dialog_Footer", "Menu_Title"], {'_'}, threshold=2
        )
        self.assertEqual(prefixes, ["Dialog_", "Dialog"])
        self.assertEqual(suffixes, ["_Title", "Title"])

    def test_repeated_parts_and_separator_runs(self):
        prefixes, suffixes = find_common_affixes(["Menu__Menu.Title"], {'_', '.'}, threshold=1)
        self.assertEqual(prefixes, ["Menu__Menu.", "Menu__Menu", "Menu__", "Menu"])
        self.assertEqual(suffixes, ["__Menu.Title", "Menu.Title", ".Title", "Title"])

    def test_threshold_counts_strings(self):
        corpus = ["Menu_Play", "Menu_Quit"]
        self.assertEqual(find_common_affixes(corpus, {'_'}, threshold=3), ([], []))
        self.assertEqual(find_common_affixes(corpus, {'_'}, threshold=2), (["Menu_", "Menu"], []))

    def test_numbered_suffix_registers_stripped_form(self):
        _, suffixes = find_common_affixes(["Big_Item1", "Big_Item2", "Small_Item3"], {'_'}, threshold=3)
        self.assertEqual(suffixes, ["_Item", "Item"])

    def test_empty_strings_ignored(self):
        self.assertEqual(find_common_affixes(["", ""], {'_'}, threshold=1), ([], []))


class TestNumbers(unittest.TestCase):
    def test_strip_numeric_suffix(self):
        self.assertEqual(strip_numeric_suffix("Item007"), ("Item", 2))
        self.assertEqual(strip_numeric_suffix("Item12"), ("Item", 0))
        self.assertEqual(strip_numeric_suffix("Item10"), ("Item", 0))

    def test_strip_numeric_suffix_nothing_to_strip(self):
        self.assertEqual(strip_numeric_suffix("Item"), ("Item", None))
        self.assertEqual(strip_numeric_suffix("12"), ("12", None))
        self.assertEqual(strip_numeric_suffix("7"), ("7", None))

    def test_format_number(self):
        self.assertEqual(format_number(7, 0), "7")
        self.assertEqual(format_number(7, 2), "007")
        self.assertEqual(format_number(12, 1), "12")


if __name__ == '__main__':
    unittest.main()
