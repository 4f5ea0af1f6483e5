"""Tests for envelope dispatch and the bridge method table.

Runs the dispatcher directly on raw message text, without a socket.
"""

import json
from typing import Any

import pytest

from scrollback.bridge import BridgeMethods, Dispatcher, METHOD_ALIASES
from scrollback.engine import ScrapeEngine
from scrollback.session import SessionSlot
from tests.utils import FakeHostPage, Msg, RecordingSleep, chat_page


def sample_page(**kwargs: Any) -> FakeHostPage:
    return FakeHostPage(
        [
            chat_page(
                [
                    Msg("out_1", "morning", timestamp="08:00, 03/03/2024", author="Me"),
                    Msg("in_1", "hi there", outgoing=False, timestamp="08:01, 03/03/2024", author="Bob"),
                ],
                chat_name="Bob Smith",
                chats=["Bob Smith", "Family Group", "Work"],
            )
        ],
        **kwargs,
    )


@pytest.fixture
def page() -> FakeHostPage:
    return sample_page()


@pytest.fixture
def methods(page: FakeHostPage, recording_sleep: RecordingSleep) -> BridgeMethods:
    engine = ScrapeEngine(page, sleep=recording_sleep)
    return BridgeMethods(engine, SessionSlot(engine))


@pytest.fixture
def dispatcher(methods: BridgeMethods) -> Dispatcher:
    return Dispatcher(methods.table())


async def call(dispatcher: Dispatcher, payload: Any) -> dict[str, Any] | None:
    return await dispatcher.dispatch(json.dumps(payload))


class TestEnvelopes:
    @pytest.mark.asyncio
    async def test_status(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher, {"id": "1", "method": "status", "params": {}}
        )

        assert response == {
            "id": "1",
            "result": {"connected": True, "contextOpen": True},
        }

    @pytest.mark.asyncio
    async def test_status_without_open_chat(
        self, recording_sleep: RecordingSleep
    ) -> None:
        engine = ScrapeEngine(
            sample_page(has_container=False), sleep=recording_sleep
        )
        dispatcher = Dispatcher(BridgeMethods(engine, SessionSlot(engine)).table())

        response = await call(dispatcher, {"id": 7, "method": "status"})

        assert response == {
            "id": 7,
            "result": {"connected": True, "contextOpen": False},
        }

    @pytest.mark.asyncio
    async def test_open_item_not_found(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher,
            {"id": "2", "method": "openItem", "params": {"name": "zzz-does-not-exist"}},
        )

        assert response is not None
        assert response["id"] == "2"
        assert "result" not in response
        assert "zzz-does-not-exist" in response["error"]["message"]
        assert response["error"]["message"].endswith(
            "(visible: Bob Smith, Family Group, Work)"
        )
        assert response["error"]["code"] == -32000

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher: Dispatcher) -> None:
        response = await call(dispatcher, {"id": "3", "method": "fly"})

        assert response == {
            "id": "3",
            "error": {"code": -32601, "message": "unknown method"},
        }

    @pytest.mark.asyncio
    async def test_malformed_json_dropped(self, dispatcher: Dispatcher) -> None:
        assert await dispatcher.dispatch("{not json") is None

    @pytest.mark.asyncio
    async def test_envelope_without_id_dropped(self, dispatcher: Dispatcher) -> None:
        assert await call(dispatcher, {"method": "status"}) is None
        assert await call(dispatcher, ["status"]) is None

    @pytest.mark.asyncio
    async def test_envelope_without_method(self, dispatcher: Dispatcher) -> None:
        response = await call(dispatcher, {"id": "4", "params": {}})

        assert response is not None
        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_invalid_params(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher, {"id": "5", "method": "scrollUp", "params": {"count": "many"}}
        )

        assert response is not None
        assert response["error"]["code"] == -32602
        assert "count" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_handler_exception(self) -> None:
        async def broken(params: dict[str, Any]) -> Any:
            raise RuntimeError("boom")

        dispatcher = Dispatcher({"broken": broken})

        response = await call(dispatcher, {"id": "6", "method": "broken"})

        assert response == {"id": "6", "error": {"code": -32000, "message": "boom"}}

    @pytest.mark.asyncio
    async def test_page_error_becomes_envelope(
        self, recording_sleep: RecordingSleep
    ) -> None:
        engine = ScrapeEngine(sample_page(failing=["search"]), sleep=recording_sleep)
        dispatcher = Dispatcher(BridgeMethods(engine, SessionSlot(engine)).table())

        response = await call(
            dispatcher, {"id": "8", "method": "searchItems", "params": {"query": "x"}}
        )

        assert response is not None
        assert "search" in response["error"]["message"]


class TestMethods:
    @pytest.mark.asyncio
    async def test_list_items(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher, {"id": "1", "method": "listItems", "params": {"limit": 2}}
        )

        assert response is not None
        result = response["result"]
        assert result["total"] == 2
        assert [c["name"] for c in result["chats"]] == ["Bob Smith", "Family Group"]

    @pytest.mark.asyncio
    async def test_open_item_partial_match(
        self, dispatcher: Dispatcher, page: FakeHostPage
    ) -> None:
        response = await call(
            dispatcher, {"id": "1", "method": "openItem", "params": {"name": "family"}}
        )

        assert response is not None
        assert response["result"] == {"success": True, "openedChat": "Family Group"}
        assert page.opened == ["Family Group"]

    @pytest.mark.asyncio
    async def test_search_and_clear(
        self, dispatcher: Dispatcher, page: FakeHostPage
    ) -> None:
        await call(
            dispatcher, {"id": "1", "method": "searchItems", "params": {"query": "Bob"}}
        )
        response = await call(dispatcher, {"id": "2", "method": "clearSearch"})

        assert page.searches == ["Bob"]
        assert page.cleared == 1
        assert response == {"id": "2", "result": {"success": True}}

    @pytest.mark.asyncio
    async def test_get_current_item(self, dispatcher: Dispatcher) -> None:
        response = await call(dispatcher, {"id": "1", "method": "getCurrentItem"})

        assert response == {"id": "1", "result": {"name": "Bob Smith"}}

    @pytest.mark.asyncio
    async def test_get_current_item_fallback(
        self, recording_sleep: RecordingSleep
    ) -> None:
        page = FakeHostPage([chat_page([], chat_name=None)])
        engine = ScrapeEngine(page, sleep=recording_sleep)
        dispatcher = Dispatcher(BridgeMethods(engine, SessionSlot(engine)).table())

        response = await call(dispatcher, {"id": "1", "method": "getCurrentItem"})

        assert response == {"id": "1", "result": {"name": "unknown-chat"}}

    @pytest.mark.asyncio
    async def test_read_records_filtered(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher,
            {"id": "1", "method": "readRecords", "params": {"filter": "them"}},
        )

        assert response is not None
        result = response["result"]
        assert result["total"] == 1
        assert result["chatName"] == "Bob Smith"
        message = result["messages"][0]
        assert message["id"] == "in_1"
        assert message["isOutgoing"] is False
        assert message["author"] == "Bob"
        assert message["hasMedia"] is False

    @pytest.mark.asyncio
    async def test_scroll_up_and_down(self, recording_sleep: RecordingSleep) -> None:
        page = sample_page(scroll_position=1, max_scroll=4)
        engine = ScrapeEngine(page, sleep=recording_sleep)
        dispatcher = Dispatcher(BridgeMethods(engine, SessionSlot(engine)).table())

        up = await call(dispatcher, {"id": "1", "method": "scrollUp", "params": {"count": 3}})
        down = await call(dispatcher, {"id": "2", "method": "scrollDown"})

        assert up == {"id": "1", "result": {"scrolled": 1, "reachedTop": True}}
        assert down == {"id": "2", "result": {"scrolled": 4}}

    @pytest.mark.asyncio
    async def test_scrape(self, dispatcher: Dispatcher) -> None:
        response = await call(
            dispatcher,
            {
                "id": "1",
                "method": "scrape",
                "params": {"scrollLimit": 2, "filter": "me", "minLength": 0},
            },
        )

        assert response is not None
        result = response["result"]
        assert result["total"] == 1
        assert result["scrollsPerformed"] == 2
        assert result["messages"][0]["text"] == "morning"

    @pytest.mark.asyncio
    async def test_scrape_status_and_stop(self, dispatcher: Dispatcher) -> None:
        status = await call(dispatcher, {"id": "1", "method": "getScrapeStatus"})
        stop = await call(dispatcher, {"id": "2", "method": "stopScrape"})

        assert status is not None
        assert status["result"]["done"] is True
        assert stop == {"id": "2", "result": {"success": False}}

    @pytest.mark.asyncio
    async def test_legacy_aliases(self, methods: BridgeMethods) -> None:
        table = methods.table()

        for alias, target in METHOD_ALIASES.items():
            assert table[alias] == table[target]

        dispatcher = Dispatcher(table)
        response = await call(dispatcher, {"id": "9", "method": "getCurrentChat"})
        assert response == {"id": "9", "result": {"name": "Bob Smith"}}
