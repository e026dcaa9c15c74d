import unittest

from around.content_filter import DEFAULT_DENY_LIST, ContentFilter


class ContentFilterTests(unittest.TestCase):
    def setUp(self):
        self.content_filter = ContentFilter()

    def test_deny_listed_word_is_filtered(self):
        self.assertTrue(self.content_filter.is_filtered("what the fuck"))

    def test_clean_text_passes(self):
        self.assertFalse(self.content_filter.is_filtered("hello world"))

    def test_every_default_word_matches_anywhere(self):
        for word in DEFAULT_DENY_LIST:
            self.assertTrue(self.content_filter.is_filtered(f"prefix{word}suffix"))

    def test_substring_inside_longer_word_matches(self):
        self.assertTrue(self.content_filter.is_filtered("first class seats"))

    def test_match_is_case_sensitive(self):
        self.assertFalse(self.content_filter.is_filtered("WHAT THE FUCK"))
        self.assertFalse(self.content_filter.is_filtered("Dick Grayson"))

    def test_empty_text_passes(self):
        self.assertFalse(self.content_filter.is_filtered(""))

    def test_custom_deny_list(self):
        content_filter = ContentFilter(deny_list=("spam",))
        self.assertTrue(content_filter.is_filtered("buy spam now"))
        self.assertFalse(content_filter.is_filtered("what the fuck"))


if __name__ == "__main__":
    unittest.main()
