import asyncio
import os
import time
from types import SimpleNamespace

# Settings are loaded at import time and require an API key.
os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("ENV", "prod")

import pytest

from ahad.src.core.knowledge_store import KnowledgeStore
from ahad.src.core.models import FileContext
from ahad.src.core.rag_engine import RAGOrchestrator
from ahad.src.core.session_registry import SessionRegistry


class DummyLLM:
    def __init__(self, reply="Stub answer", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts = []
        self.active = 0
        self.peak = 0

    async def ainvoke(self, messages, **kwargs):
        self.prompts.append(messages[0].content)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.reply)


class DummyVectorStore:
    def __init__(self, hits=None, error=None, delay=0.0):
        self.hits = list(hits or [])
        self.error = error
        self.delay = delay
        self.added = []
        self.queries = []

    def similarity_search(self, query_text, limit=2):
        self.queries.append((query_text, limit))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.hits[:limit]

    def add_documents(self, texts, metadatas):
        self.added.append((list(texts), list(metadatas)))
        return len(texts)


class DummySentiment:
    def __init__(self, score=0.0, error=None):
        self.score = score
        self.error = error
        self.calls = []

    def polarity(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.score


def make_file(filename="notes.txt", text="The quarterly revenue grew by 12 percent", mimetype="text/plain", size=2048):
    return FileContext.from_upload(filename, mimetype, size, text)


@pytest.fixture
def llm():
    return DummyLLM()


@pytest.fixture
def sentiment():
    return DummySentiment()


@pytest.fixture
def orchestrator(llm, sentiment):
    return RAGOrchestrator(llm=llm, knowledge=KnowledgeStore(), sessions=SessionRegistry(), sentiment_analyzer=sentiment)
