"""
Shared fixtures: record factories and a deterministic fake LLM client
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from teampulse.models.schemas.unified import (
    Author,
    ChannelRef,
    Organizer,
    Participant,
    ServiceType,
    UnifiedMeeting,
    UnifiedMessage,
)

# A Monday
BASE_TIME = datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)


class FakeLLMClient:
    """Returns canned responses (or raises canned errors) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[dict] = []

    async def complete(self, system_prompt, user_prompt, temperature, max_tokens):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def make_message():
    counter = {"n": 0}

    def factory(
        service: ServiceType = ServiceType.SLACK,
        user_id: str = "U1",
        name: str = "Alice",
        at: Optional[datetime] = None,
        content: str = "hello team",
        channel_id: Optional[str] = "C1",
        **extra,
    ) -> UnifiedMessage:
        counter["n"] += 1
        return UnifiedMessage(
            id=f"m{counter['n']}",
            service=service,
            timestamp=at or BASE_TIME,
            author=Author(id=user_id, name=name),
            content=content,
            channel=ChannelRef(id=channel_id, name=f"#{channel_id}") if channel_id else None,
            **extra,
        )

    return factory


@pytest.fixture
def make_meeting():
    counter = {"n": 0}

    def factory(
        service: ServiceType = ServiceType.TEAMS,
        organizer_id: str = "U1",
        participants: Optional[List[str]] = None,
        start: Optional[datetime] = None,
        minutes: int = 30,
        title: str = "Weekly sync",
    ) -> UnifiedMeeting:
        counter["n"] += 1
        start = start or BASE_TIME
        people = participants if participants is not None else ["U2", "U3"]
        return UnifiedMeeting(
            id=f"mt{counter['n']}",
            service=service,
            title=title,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            duration=minutes,
            participants=[Participant(id=p, name=p) for p in people],
            organizer=Organizer(id=organizer_id, name=organizer_id),
        )

    return factory


@pytest.fixture
def fake_llm():
    return FakeLLMClient
