"""
Pytest fixtures for the payroll agent tests.

Required settings are provided through the environment BEFORE any ``src``
import, and every collaborator that would reach the network (Gemini,
MongoDB, the knowledge base) is replaced with an in-memory fake.
"""

import os

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/?serverSelectionTimeoutMS=100")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")

from typing import Any, Callable, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from src.agents.agent_registry import AgentRegistry  # noqa: E402
from src.agents.orchestrator.orchestrator import AgentOrchestrator  # noqa: E402
from src.agents.relevance_analyzer import RelevanceAnalyzer  # noqa: E402
from src.agents.response_aggregator import ResponseAggregator  # noqa: E402
from src.models.agent import AgentType  # noqa: E402
from src.models.conversation import Message  # noqa: E402
from src.services.llm_service import LLMReply  # noqa: E402


# =============================================================================
# FAKES
# =============================================================================


class FakeLLM:
    """
    Scripted stand-in for LLMService.

    chat() answers from ``chat_replies`` in order (str, LLMReply or an
    exception to raise), then from ``chat_handler`` if set, then with
    ``default_text``. generate_json() / generate_text() return the
    configured replies or raise the configured exceptions.
    """

    def __init__(
        self,
        chat_replies: Optional[List[Any]] = None,
        chat_handler: Optional[Callable[[str, List[Message]], Any]] = None,
        json_reply: Any = None,
        text_reply: Any = "Synthesized answer",
        default_text: str = "Default agent answer",
    ):
        self.chat_replies = list(chat_replies or [])
        self.chat_handler = chat_handler
        self.json_reply = json_reply
        self.text_reply = text_reply
        self.default_text = default_text

        self.chat_calls: List[Dict[str, Any]] = []
        self.json_calls: List[Dict[str, Any]] = []
        self.text_calls: List[Dict[str, Any]] = []
        self.embed_calls: List[str] = []

    @staticmethod
    def _resolve(reply: Any) -> LLMReply:
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, LLMReply):
            return reply
        return LLMReply(text=str(reply))

    async def chat(self, system_prompt, messages, model=None, temperature=0.2, max_tokens=2000, tools=None):
        self.chat_calls.append({
            "system_prompt": system_prompt,
            "messages": [m.model_copy() for m in messages],
            "temperature": temperature,
            "tools": tools,
        })
        if self.chat_replies:
            return self._resolve(self.chat_replies.pop(0))
        if self.chat_handler is not None:
            return self._resolve(self.chat_handler(system_prompt, messages))
        return LLMReply(text=self.default_text)

    async def generate_json(self, prompt, system_prompt=None, model_name=None, temperature=0.1, max_tokens=1500):
        self.json_calls.append({"prompt": prompt, "system_prompt": system_prompt, "temperature": temperature})
        if isinstance(self.json_reply, BaseException):
            raise self.json_reply
        if self.json_reply is None:
            raise ValueError("LLM returned invalid JSON")
        return self.json_reply

    async def generate_text(self, prompt, system_prompt=None, model_name=None, temperature=0.7, max_tokens=2048):
        self.text_calls.append({"prompt": prompt, "system_prompt": system_prompt})
        if isinstance(self.text_reply, BaseException):
            raise self.text_reply
        return self.text_reply

    async def embed(self, text):
        self.embed_calls.append(text)
        return [0.1, 0.2, 0.3]


class InMemoryConversationStore:
    """Conversation store keeping records in a dict"""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.fail_load = False
        self.fail_save = False
        self.load_calls: List[str] = []
        self._counter = 0

    async def load(self, conversation_id: str) -> Optional[List[Message]]:
        self.load_calls.append(conversation_id)
        if self.fail_load:
            raise ConnectionError("store unreachable")
        record = self.records.get(conversation_id)
        if record is None:
            return None
        return [m.model_copy() for m in record["messages"]]

    async def create(self, owner_id, messages, metadata=None, company_id=None, agent_type=None) -> str:
        if self.fail_save:
            raise ConnectionError("store unreachable")
        self._counter += 1
        conversation_id = f"conv-{self._counter}"
        self.records[conversation_id] = {
            "owner_id": owner_id,
            "company_id": company_id,
            "agent_type": agent_type,
            "metadata": metadata or {},
            "messages": [m.model_copy() for m in messages],
        }
        return conversation_id

    async def update(self, conversation_id, messages) -> bool:
        if self.fail_save:
            raise ConnectionError("store unreachable")
        if conversation_id not in self.records:
            return False
        self.records[conversation_id]["messages"] = [m.model_copy() for m in messages]
        return True

    def seed(self, messages: List[Message], conversation_id: str = "existing-1") -> str:
        self.records[conversation_id] = {
            "owner_id": "user-1",
            "company_id": None,
            "agent_type": "tax",
            "metadata": {},
            "messages": [m.model_copy() for m in messages],
        }
        return conversation_id


class FakeKnowledge:
    """Knowledge retrieval collaborator returning fixed snippets"""

    def __init__(self, snippets: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.snippets = snippets or []
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str) -> List[str]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.snippets)


def relevance_reply(**scores: int) -> Dict[str, Any]:
    """Analysis JSON as the model would return it; unspecified agents score 0"""
    return {
        "analysis": "Query broken down",
        "agent_relevance": {
            agent_type.value: {"score": scores.get(agent_type.value, 0), "reason": f"{agent_type.value} reason"}
            for agent_type in AgentType
        },
        "plan": "Consult the relevant agents",
    }


def reply_by_agent(answers: Dict[str, Any]) -> Callable[[str, List[Message]], Any]:
    """chat_handler answering per agent, keyed by display name found in the system prompt"""
    def handler(system_prompt: str, messages: List[Message]) -> Any:
        for display_name, answer in answers.items():
            if display_name in system_prompt:
                return answer
        return "Unrouted answer"
    return handler


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def knowledge():
    return FakeKnowledge()


@pytest.fixture
def registry():
    return AgentRegistry(model="test-model", max_tokens=500, use_knowledge_base=False)


@pytest.fixture
def make_orchestrator(store, registry):
    """Build an orchestrator around a FakeLLM, the in-memory store and no knowledge base"""
    def build(llm: FakeLLM, **kwargs) -> AgentOrchestrator:
        return AgentOrchestrator(
            llm=llm,
            store=kwargs.get("store", store),
            knowledge=kwargs.get("knowledge"),
            registry=kwargs.get("registry", registry),
            analyzer=RelevanceAnalyzer(llm, cutoff=0.7, max_fanout=3),
            aggregator=ResponseAggregator(llm),
        )
    return build
