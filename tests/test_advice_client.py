import os
import sys
import unittest
from unittest import mock

import requests

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from advice_client import SYSTEM_PROMPT, AdviceClient


def _response(body=None, status: int = 200, json_error: bool = False):
    resp = mock.Mock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    else:
        resp.raise_for_status.return_value = None
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = body
    return resp


class AdviceClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = AdviceClient("http://advice.test/chat", "secret", timeout=5)

    def test_returns_first_choice_content(self) -> None:
        body = {"choices": [{"message": {"content": "Monday: legs"}}]}
        with mock.patch("advice_client.requests.post", return_value=_response(body)) as post:
            self.assertEqual(self.client.complete("history"), "Monday: legs")
        args, kwargs = post.call_args
        self.assertEqual(args[0], "http://advice.test/chat")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(kwargs["timeout"], 5)
        messages = kwargs["json"]["messages"]
        self.assertEqual(messages[0], {"role": "system", "content": SYSTEM_PROMPT})
        self.assertEqual(messages[1], {"role": "user", "content": "history"})
        self.assertEqual(kwargs["json"]["model"], "mistral-medium")

    def test_failures_return_none(self) -> None:
        cases = [
            _response(status=500),
            _response(json_error=True),
            _response({"choices": []}),
            _response({"choices": [{"message": None}]}),
            _response(["unexpected"]),
        ]
        for resp in cases:
            with mock.patch("advice_client.requests.post", return_value=resp):
                self.assertIsNone(self.client.complete("history"))

    def test_network_error_returns_none(self) -> None:
        with mock.patch(
            "advice_client.requests.post", side_effect=requests.Timeout("slow")
        ):
            self.assertIsNone(self.client.complete("history"))

    def test_missing_key_skips_request(self) -> None:
        client = AdviceClient("http://advice.test/chat", "")
        with mock.patch("advice_client.requests.post") as post:
            self.assertIsNone(client.complete("history"))
        post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
