#!/usr/bin/python3

import msgspec
import pytest
from qualitymuncher.models import messages as msgtypes
from qualitymuncher.output import BaseMessageHandler


class RecordingHandler(BaseMessageHandler):
    messages: list[msgtypes.BaseMessage] = msgspec.field(default_factory=list)

    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        self.messages.append(msg)

    def of_type(self, msgtype: type) -> list:
        return [msg for msg in self.messages if isinstance(msg, msgtype)]


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()
