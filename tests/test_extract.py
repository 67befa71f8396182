"""Tests for non-streaming response extraction."""

import unittest

from gigachat_client.errors import ApiError, NoReplyError
from gigachat_client.extract import (
    MissingReply,
    extract_reply,
    parse_error_envelope,
)


class TestExtractReply(unittest.TestCase):

    def test_selects_terminal_assistant_choice(self) -> None:
        body = {
            "choices": [
                {"finish_reason": "length",
                 "message": {"role": "assistant", "content": "trunc"}},
                {"finish_reason": "stop",
                 "message": {"role": "assistant", "content": "final answer"}},
            ],
        }
        self.assertEqual(extract_reply(body), "final answer")

    def test_first_qualifying_choice_wins(self) -> None:
        body = {
            "choices": [
                {"finish_reason": "stop",
                 "message": {"role": "user", "content": "echo"}},
                {"finish_reason": "stop",
                 "message": {"role": "assistant", "content": "one"}},
                {"finish_reason": "stop",
                 "message": {"role": "assistant", "content": "two"}},
            ],
        }
        self.assertEqual(extract_reply(body), "one")

    def test_no_terminal_choice_returns_none(self) -> None:
        body = {"choices": [{"finish_reason": "length",
                             "message": {"role": "assistant", "content": "x"}}]}
        self.assertIsNone(extract_reply(body))
        self.assertIsNone(extract_reply({}))

    def test_no_terminal_choice_can_raise(self) -> None:
        with self.assertRaises(NoReplyError):
            extract_reply({"choices": []}, missing=MissingReply.RAISE)

    def test_non_object_message_skipped(self) -> None:
        body = {
            "choices": [
                {"finish_reason": "stop", "message": "x"},
                {"finish_reason": "stop",
                 "message": {"role": "assistant", "content": "real"}},
            ],
        }
        self.assertEqual(extract_reply(body), "real")
        self.assertIsNone(extract_reply({"choices": "nope"}))

    def test_non_object_body_raises_api_error(self) -> None:
        with self.assertRaises(ApiError):
            extract_reply(["not", "an", "object"])

    def test_error_envelope_raises_api_error(self) -> None:
        body = {"error": {"status": 401, "message": "bad token"}}
        with self.assertRaises(ApiError) as ctx:
            extract_reply(body)
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.message, "bad token")


class TestParseErrorEnvelope(unittest.TestCase):

    def test_absent(self) -> None:
        self.assertIsNone(parse_error_envelope({"choices": []}))
        self.assertIsNone(parse_error_envelope(["not", "a", "dict"]))

    def test_string_error(self) -> None:
        envelope = parse_error_envelope({"error": "overloaded"})
        self.assertIsNone(envelope.status)
        self.assertEqual(envelope.message, "overloaded")

    def test_string_status_coerced(self) -> None:
        envelope = parse_error_envelope({"error": {"status": "429", "message": "slow down"}})
        self.assertEqual(envelope.status, 429)


if __name__ == "__main__":
    unittest.main()
