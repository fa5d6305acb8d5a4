from __future__ import annotations

import unittest

from gmapack import whitelist


class WhitelistTests(unittest.TestCase):
    def test_classify_accepts_lua(self):
        self.assertEqual(whitelist.classify("lua/init.lua"), "lua/init.lua")
        self.assertTrue(whitelist.accepts("lua/init.lua"))

    def test_classify_rejects_unknown(self):
        self.assertIsNone(whitelist.classify("evil/payload.exe"))
        self.assertFalse(whitelist.accepts("evil/payload.exe"))

    def test_classify_is_case_insensitive(self):
        self.assertEqual(whitelist.classify("Lua/Init.LUA"), "Lua/Init.LUA")

    def test_star_spans_directories(self):
        self.assertTrue(whitelist.accepts("lua/autorun/server/init.lua"))
        self.assertTrue(whitelist.accepts("gamemodes/sandbox/backgrounds/one.jpg"))

    def test_question_mark_matches_one_character(self):
        pattern = whitelist.compile_wildcard("maps/gm_?.bsp")
        self.assertIsNotNone(pattern.fullmatch("maps/gm_a.bsp"))
        self.assertIsNone(pattern.fullmatch("maps/gm_ab.bsp"))

    def test_other_characters_are_literal(self):
        # '.' in the wildcard must not match any character
        self.assertFalse(whitelist.accepts("lua/initxlua"))
        self.assertFalse(whitelist.accepts("lua/init.lua.bak"))

    def test_match_is_anchored(self):
        self.assertFalse(whitelist.accepts("addon/lua/init.lua"))

    def test_first_pattern_wins(self):
        self.assertEqual(whitelist.match_pattern("maps/preview.png"), "maps/*.png")
        self.assertEqual(whitelist.match_pattern("materials/a/b.png"), "materials/*.png")
        self.assertEqual(whitelist.match_pattern("gamemodes/x/info.txt"), "gamemodes/*.txt")

    def test_backslashes_are_accepted(self):
        self.assertTrue(whitelist.accepts("models\\props\\crate.mdl"))
        # the caller's spelling comes back unchanged
        self.assertEqual(whitelist.classify("models\\props\\crate.mdl"), "models\\props\\crate.mdl")

    def test_locate_strips_leading_directories(self):
        self.assertEqual(
            whitelist.locate("/home/me/addons/crate/models/props/crate.mdl"),
            "models/props/crate.mdl",
        )
        self.assertEqual(whitelist.locate("C:\\work\\addon\\lua\\autorun\\a.lua"), "lua/autorun/a.lua")
        self.assertEqual(whitelist.locate("/srv/materials/maps/a.png"), "materials/maps/a.png")
        self.assertIsNone(whitelist.locate("/tmp/readme.md"))

    def test_ignored_paths(self):
        self.assertTrue(whitelist.is_ignored("addon.json"))
        self.assertTrue(whitelist.is_ignored("materials/Thumbs.db"))
        self.assertTrue(whitelist.is_ignored("desktop.ini"))
        self.assertFalse(whitelist.is_ignored("lua/init.lua"))

    def test_categories_are_a_copy(self):
        cats = whitelist.categories()
        self.assertIn("Maps", cats)
        self.assertIn("*.mdl", cats["Models"])
        cats["Maps"] = ()
        self.assertNotEqual(whitelist.categories()["Maps"], ())


if __name__ == "__main__":
    unittest.main()
