"""
Tests for the web search and language model adapters.

The HTTP session and the OpenAI client are replaced by fakes; only the
mapping between their payloads and our types is checked.
"""

import json
import unittest
from types import SimpleNamespace

import requests

from gpaplanner.errors import LLMError, SearchError
from gpaplanner.llm import LLMClient
from gpaplanner.search import SEARCH_URL, WebSearch


class FakeHTTPResponse:
    def __init__(self, payload, status: int = 200) -> None:
        self.payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response: FakeHTTPResponse) -> None:
        self.response = response
        self.requests: list[tuple[str, dict]] = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        return self.response


class FlakySession:
    """Answers with a 503 for the first `failures` requests."""

    def __init__(self, failures: int, payload) -> None:
        self.failures = failures
        self.payload = payload
        self.calls = 0

    def get(self, url, params=None, timeout=None):
        self.calls += 1
        if self.calls <= self.failures:
            return FakeHTTPResponse({}, status=503)
        return FakeHTTPResponse(self.payload)


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def message(content=None, tool_calls=None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))])


def tool_call(call_id: str, name: str, arguments: str):
    fn = SimpleNamespace(name=name, arguments=arguments)
    return SimpleNamespace(
        id=call_id,
        function=fn,
        model_dump=lambda: {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}},
    )


class FakeCompletions:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self.responses.pop(0)


def fake_client(*responses):
    completions = FakeCompletions(*responses)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class TestWebSearch(unittest.IsolatedAsyncioTestCase):
    async def test_not_configured(self) -> None:
        search = WebSearch(None, None)
        self.assertFalse(search.configured)
        with self.assertRaises(SearchError):
            await search.search("CS 1301 professors")

    async def test_results_are_mapped(self) -> None:
        payload = {
            "items": [
                {"title": "CS 1301 | Critique", "snippet": "Jane Doe 3.8", "link": "https://example.edu/a"},
                {"title": "No snippet", "link": "https://example.edu/b"},
                "garbage",
            ]
        }
        session = FakeSession(FakeHTTPResponse(payload))
        search = WebSearch("key", "cx", session=session)

        results = await search.search("CS 1301 professors", num_results=20)

        self.assertEqual([r.name for r in results], ["CS 1301 | Critique", "No snippet"])
        self.assertEqual(results[1].snippet, "")
        url, params = session.requests[0]
        self.assertEqual(url, SEARCH_URL)
        self.assertEqual(params["num"], 10)
        self.assertEqual(params["q"], "CS 1301 professors")

    async def test_no_items(self) -> None:
        search = WebSearch("key", "cx", session=FakeSession(FakeHTTPResponse({})))
        self.assertEqual(await search.search("nothing"), [])

    async def test_http_error(self) -> None:
        sleep = FakeSleep()
        session = FakeSession(FakeHTTPResponse({}, status=429))
        search = WebSearch("key", "cx", session=session, sleep=sleep)
        with self.assertRaises(SearchError):
            await search.search("CS 1301")
        self.assertEqual(len(session.requests), 3)
        self.assertEqual(sleep.delays, [1.0, 2.0])

    async def test_transient_errors_are_retried(self) -> None:
        sleep = FakeSleep()
        session = FlakySession(2, {"items": [{"title": "CS 1301", "snippet": "", "link": "https://example.edu"}]})
        search = WebSearch("key", "cx", session=session, max_retries=3, base_delay=0.5, sleep=sleep)

        results = await search.search("CS 1301")

        self.assertEqual([r.name for r in results], ["CS 1301"])
        self.assertEqual(session.calls, 3)
        self.assertEqual(sleep.delays, [0.5, 1.0])

    async def test_not_configured_is_not_retried(self) -> None:
        sleep = FakeSleep()
        with self.assertRaises(SearchError):
            await WebSearch("key", None, sleep=sleep).search("CS 1301")
        self.assertEqual(sleep.delays, [])


class TestLLMClient(unittest.IsolatedAsyncioTestCase):
    async def test_not_configured(self) -> None:
        llm = LLMClient(None)
        with self.assertRaises(LLMError):
            await llm.complete("system", "user")

    async def test_complete(self) -> None:
        client, completions = fake_client(message("**SEMESTER_MARKER:FALL 2026**"))
        reply = await LLMClient(None, model="gpt-test", client=client).complete("sys", "plan")

        self.assertEqual(reply.text, "**SEMESTER_MARKER:FALL 2026**")
        self.assertEqual(completions.calls[0]["model"], "gpt-test")
        self.assertEqual(completions.calls[0]["messages"][1], {"role": "user", "content": "plan"})

    async def test_complete_json_asks_for_json_object(self) -> None:
        client, completions = fake_client(message('{"professors": []}'))
        text = await LLMClient(None, client=client).complete_json("sys", "who teaches CS 1301")

        self.assertEqual(text, '{"professors": []}')
        self.assertEqual(completions.calls[0]["response_format"], {"type": "json_object"})
        self.assertEqual(completions.calls[0]["temperature"], 0)

    async def test_tool_round_trip(self) -> None:
        client, completions = fake_client(
            message(tool_calls=[tool_call("call_1", "get_professor_data", '{"course": "CS 1301"}')]),
            message("final schedule"),
        )
        seen = []

        async def handler(name, arguments):
            seen.append((name, arguments))
            return {"course": "CS 1301", "professors": []}

        reply = await LLMClient(None, client=client).complete_with_tools("sys", "plan", [{"type": "function"}], handler)

        self.assertEqual(reply.text, "final schedule")
        self.assertEqual(seen, [("get_professor_data", {"course": "CS 1301"})])
        tool_message = completions.calls[1]["messages"][-1]
        self.assertEqual(tool_message["role"], "tool")
        self.assertEqual(tool_message["tool_call_id"], "call_1")
        self.assertEqual(json.loads(tool_message["content"])["course"], "CS 1301")

    async def test_tool_rounds_are_bounded(self) -> None:
        looping = [message(tool_calls=[tool_call(f"c{i}", "get_professor_data", "not json")]) for i in range(2)]
        client, completions = fake_client(*looping, message("gave up on tools"))

        async def handler(name, arguments):
            self.assertEqual(arguments, {})
            return {}

        reply = await LLMClient(None, client=client).complete_with_tools("sys", "plan", [], handler, max_rounds=2)

        self.assertEqual(reply.text, "gave up on tools")
        self.assertEqual(len(completions.calls), 3)
        self.assertEqual(completions.calls[-1]["tool_choice"], "none")


if __name__ == "__main__":
    unittest.main()
