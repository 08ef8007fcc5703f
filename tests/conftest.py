from unittest.mock import MagicMock

import pytest

from tool_chain.chain import ChainController
from tool_chain.config import Settings
from tool_chain.invoker import ToolInvoker
from tool_chain.planner import Planner
from tool_chain.synthesizer import Synthesizer
from tool_chain.tools import build_registry


@pytest.fixture
def llm():
    """Scripted language model: set `llm.complete.side_effect` to a list of replies."""
    return MagicMock()


@pytest.fixture
def search_client():
    client = MagicMock()
    client.search.return_value = [{"title": "Result 1", "body": "Body 1", "href": "http://1.com"}]
    return client


@pytest.fixture
def registry(llm, search_client):
    return build_registry(llm, Settings(), search_client=search_client)


@pytest.fixture
def observer():
    return MagicMock()


@pytest.fixture
def controller(llm, registry, observer):
    return ChainController(
        planner=Planner(llm, registry),
        invoker=ToolInvoker(registry),
        synthesizer=Synthesizer(llm, observer=observer),
        observer=observer,
    )
