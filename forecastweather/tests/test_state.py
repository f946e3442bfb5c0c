"""Tests for ApplicationState and StateStream."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from forecastweather.core.state import ApplicationState, StateStream
from forecastweather.tests.fakes import make_place


class TestApplicationState:
    def test_initial_state(self) -> None:
        state = ApplicationState()

        assert state.is_loading is False
        assert state.current_place is None
        assert state.forecast is None
        assert state.error_message is None
        assert state.favorites == []
        assert state.search_query == ""
        assert state.is_location_available is False

    def test_location_available_needs_permission_and_service(self) -> None:
        assert ApplicationState(is_location_permission_granted=True).is_location_available is False
        assert (
            ApplicationState(
                is_location_permission_granted=True, is_location_enabled=True
            ).is_location_available
            is True
        )

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            ApplicationState().is_loading = True  # type: ignore[misc]


class TestStateStream:
    def test_update_replaces_value(self) -> None:
        stream = StateStream()
        before = stream.value
        after = stream.update(is_loading=True, current_place=make_place("Oslo"))

        assert stream.value is after
        assert after.is_loading is True
        assert before.is_loading is False
        assert before.current_place is None

    async def test_subscriber_gets_current_then_changes(self) -> None:
        stream = StateStream(ApplicationState(search_query="os"))
        sub = stream.subscribe()
        try:
            first = await anext(sub)
            assert first.search_query == "os"

            stream.update(search_query="osl")
            stream.update(search_query="oslo")
            assert (await anext(sub)).search_query == "osl"
            assert (await anext(sub)).search_query == "oslo"
        finally:
            await sub.aclose()

    async def test_each_subscriber_sees_every_change(self) -> None:
        stream = StateStream()
        a, b = stream.subscribe(), stream.subscribe()
        try:
            await anext(a)
            await anext(b)
            stream.update(is_searching=True)

            got_a = await asyncio.wait_for(anext(a), 1.0)
            got_b = await asyncio.wait_for(anext(b), 1.0)
            assert got_a.is_searching is got_b.is_searching is True
        finally:
            await a.aclose()
            await b.aclose()

    async def test_closed_subscriber_is_dropped(self) -> None:
        stream = StateStream()
        sub = stream.subscribe()
        await anext(sub)
        await sub.aclose()

        stream.update(is_loading=True)
        assert stream._subscribers == set()
