import unittest

from pydantic import ValidationError

from callbridge.config.settings import DEFAULT_FAREWELL_PHRASES, BridgeSettings


class TestBridgeSettings(unittest.TestCase):

    def test_defaults(self):
        settings = BridgeSettings.from_env({})
        self.assertIsNone(settings.openai_api_key)
        self.assertEqual(settings.audio_format, "g711_ulaw")
        self.assertEqual(settings.turn_detection, "server_vad")
        self.assertFalse(settings.manual_turns)
        self.assertTrue(settings.greeting_enabled)
        self.assertEqual(settings.inactivity_timeout, 20.0)
        self.assertEqual(settings.hangup_grace_period, 3.5)
        self.assertEqual(settings.farewell_phrases, DEFAULT_FAREWELL_PHRASES)
        self.assertIsNone(settings.webhook_url)

    def test_from_env(self):
        settings = BridgeSettings.from_env({
            "OPENAI_API_KEY": "sk-test",
            "VOICE": "shimmer",
            "TURN_DETECTION": "Manual",
            "GREETING_ENABLED": "false",
            "INACTIVITY_TIMEOUT": "5",
            "FAREWELL_PHRASES": "goodbye, see you ,",
            "WEBHOOK_URL": "https://hooks.example.com/x",
        })
        self.assertEqual(settings.openai_api_key, "sk-test")
        self.assertEqual(settings.voice, "shimmer")
        self.assertTrue(settings.manual_turns)
        self.assertFalse(settings.greeting_enabled)
        self.assertEqual(settings.inactivity_timeout, 5.0)
        self.assertEqual(settings.farewell_phrases, ["goodbye", "see you"])
        self.assertEqual(settings.webhook_url, "https://hooks.example.com/x")

    def test_log_level(self):
        self.assertEqual(BridgeSettings.from_env({}).log_level, "INFO")
        self.assertEqual(BridgeSettings.from_env({"LOG_LEVEL": " debug "}).log_level, "DEBUG")
        with self.assertRaises(ValidationError):
            BridgeSettings.from_env({"LOG_LEVEL": "verbose"})

    def test_empty_values_use_defaults(self):
        settings = BridgeSettings.from_env({"WEBHOOK_URL": "", "VOICE": ""})
        self.assertIsNone(settings.webhook_url)
        self.assertEqual(settings.voice, "alloy")

    def test_invalid_number(self):
        with self.assertRaises(ValidationError):
            BridgeSettings.from_env({"INACTIVITY_TIMEOUT": "soon"})

    def test_non_positive_timeout(self):
        with self.assertRaises(ValidationError):
            BridgeSettings(inactivity_timeout=0)

    def test_invalid_audio_format(self):
        with self.assertRaises(ValidationError):
            BridgeSettings(audio_format="mp3")

    def test_invalid_turn_detection(self):
        with self.assertRaises(ValidationError):
            BridgeSettings(turn_detection="semantic")

    def test_empty_farewell_phrases(self):
        with self.assertRaises(ValidationError):
            BridgeSettings(farewell_phrases=" , ")


if __name__ == "__main__":
    unittest.main()
