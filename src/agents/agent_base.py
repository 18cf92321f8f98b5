"""
Agent Unit - One role-specific conversational agent

Holds a fixed system prompt, a model configuration and its own message log.
Answers one user message at a time, optionally running tools requested by
the model, and persists the log through the conversation store.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from src.models.agent import AgentConfig, AgentType
from src.models.conversation import Message, ToolInvocation
from src.services.llm_service import LLMService, ToolCall

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I encountered an error while processing your request. Please try again later."


class AgentAnswer(BaseModel):
    """Outcome of one turn"""

    text: str
    succeeded: bool = True
    error: Optional[str] = None


class AgentUnit:
    """
    Conversational agent with its own history

    Instances are created per request; nothing is cached between requests.
    Use ``await AgentUnit.create(...)`` so that stored history is loaded
    before the first turn.

    Example:
        agent = await AgentUnit.create(config, llm=llm, store=store)
        text = await agent.answer("What is the FICA rate?")
    """

    def __init__(
        self,
        config: AgentConfig,
        llm: LLMService,
        store: Optional[Any] = None,
        knowledge: Optional[Any] = None,
        agent_type: Optional[AgentType] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize agent

        Args:
            config: Model, prompt, tool and memory configuration
            llm: Model client handle
            store: Conversation store (load/create/update), optional
            knowledge: Knowledge retrieval collaborator with ``search(query)``, optional
            agent_type: Catalog type this agent plays
            name: Display name used in logs and stored records
        """
        self.agent_type = agent_type
        self.name = name or (agent_type.value if agent_type else "agent")

        self.model = config.model
        self.temperature = config.temperature
        self.max_tokens = config.max_tokens
        self.system_prompt = config.system_prompt
        self.tools = list(config.tools)
        self.memory = config.memory
        self.use_knowledge_base = config.use_knowledge_base

        self.conversation_id = config.conversation_id
        self.user_id = config.user_id
        self.company_id = config.company_id

        self._llm = llm
        self._store = store
        self._knowledge = knowledge

        self.messages: List[Message] = [Message(role="system", content=self.system_prompt)]

    @classmethod
    async def create(
        cls,
        config: AgentConfig,
        llm: LLMService,
        store: Optional[Any] = None,
        knowledge: Optional[Any] = None,
        agent_type: Optional[AgentType] = None,
        name: Optional[str] = None,
        history: Optional[List[Message]] = None,
    ) -> "AgentUnit":
        """
        Build an agent and load its history

        Args:
            history: Prior turns to start from instead of loading from the store

        Returns:
            Ready-to-use agent. Never raises on load failure.
        """
        agent = cls(config, llm, store=store, knowledge=knowledge, agent_type=agent_type, name=name)

        if history:
            agent.messages.extend(m.model_copy() for m in history if m.role != "system")
        elif agent.memory and agent.conversation_id:
            await agent._load_conversation(agent.conversation_id)

        return agent

    async def _load_conversation(self, conversation_id: str) -> None:
        """
        Load stored history for a conversation

        A missing record or an unreachable store leaves a fresh history and
        drops the id, so the next save creates a new conversation.
        """
        if self._store is None:
            logger.warning(f"{self.name}: no conversation store configured, starting fresh")
            self.conversation_id = None
            return

        try:
            stored = await self._store.load(conversation_id)
        except Exception as e:
            logger.error(f"{self.name}: failed to load conversation {conversation_id}: {e}", exc_info=True)
            self.conversation_id = None
            return

        if stored is None:
            logger.warning(f"{self.name}: conversation {conversation_id} not found, starting fresh")
            self.conversation_id = None
            return

        self.messages = [self.messages[0]] + [m for m in stored if m.role != "system"]
        logger.info(f"{self.name}: loaded {len(self.messages) - 1} messages for conversation {conversation_id}")

    async def _save_conversation(self) -> None:
        """Persist the message log (without the system message); errors are logged only"""
        if not self.memory or self._store is None:
            return

        stored = self.messages[1:]

        try:
            if not self.conversation_id:
                self.conversation_id = await self._store.create(
                    owner_id=self.user_id,
                    messages=stored,
                    metadata={"model": self.model, "temperature": self.temperature},
                    company_id=self.company_id,
                    agent_type=self.agent_type.value if self.agent_type else self.name,
                )
                logger.info(f"{self.name}: created conversation {self.conversation_id}")
            else:
                await self._store.update(self.conversation_id, stored)
                logger.debug(f"{self.name}: updated conversation {self.conversation_id}")
        except Exception as e:
            logger.error(f"{self.name}: failed to save conversation: {e}", exc_info=True)

    async def _get_relevant_context(self, query: str) -> Optional[str]:
        """Best-effort knowledge lookup; failures yield no context"""
        if not self.use_knowledge_base or self._knowledge is None:
            return None

        try:
            snippets = await self._knowledge.search(query)
        except Exception as e:
            logger.warning(f"{self.name}: knowledge retrieval failed, continuing without context: {e}")
            return None

        if not snippets:
            return None

        return "\n\n".join(snippets)

    async def _handle_tool_calls(self, tool_calls: List[ToolCall]) -> List[Dict[str, Any]]:
        """
        Execute tool calls requested by the model

        Args:
            tool_calls: Calls from the model reply

        Returns:
            One result dict per call, in call order

        Raises:
            Exception: If a tool handler fails
        """
        tools_by_name = {tool.name: tool for tool in self.tools}
        results = []

        for call in tool_calls:
            tool = tools_by_name.get(call.name)
            if tool is None:
                logger.warning(f"{self.name}: model requested unknown tool {call.name}")
                results.append({"error": "Tool not found"})
                continue

            logger.info(f"{self.name}: executing tool {call.name}")
            result = await tool.invoke(call.arguments)
            results.append(result if isinstance(result, dict) else {"result": result})

        return results

    async def respond(self, user_text: str) -> AgentAnswer:
        """
        Answer one user message and report whether it succeeded

        Never raises; on failure the log is rolled back to its pre-turn
        state and a safe fallback text is returned.

        Args:
            user_text: The user's message

        Returns:
            AgentAnswer with text, success flag and error description
        """
        checkpoint = len(self.messages)
        self.messages.append(Message(role="user", content=user_text))

        try:
            system_prompt = self.system_prompt
            context = await self._get_relevant_context(user_text)
            if context:
                system_prompt += f"\n\nAdditional context that may be helpful for answering the query:\n{context}"

            reply = await self._llm.chat(
                system_prompt=system_prompt,
                messages=self.messages[1:],
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                tools=self.tools or None,
            )

            if reply.tool_calls:
                results = await self._handle_tool_calls(reply.tool_calls)

                for call in reply.tool_calls:
                    self.messages.append(Message(
                        role="assistant",
                        tool_call=ToolInvocation(name=call.name, arguments=call.arguments),
                    ))
                for call, result in zip(reply.tool_calls, results):
                    self.messages.append(Message(
                        role="tool",
                        name=call.name,
                        content=json.dumps(result, default=str),
                    ))

                # Follow-up call to turn tool results into an answer
                reply = await self._llm.chat(
                    system_prompt=system_prompt,
                    messages=self.messages[1:],
                    model=self.model,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
                if not reply.text:
                    raise ValueError("Model returned no answer after tool results")

            text = reply.text
            self.messages.append(Message(role="assistant", content=text))

        except Exception as e:
            logger.error(f"{self.name}: error answering message: {e}", exc_info=True)
            del self.messages[checkpoint:]
            return AgentAnswer(text=FALLBACK_RESPONSE, succeeded=False, error=str(e) or type(e).__name__)

        if self.memory:
            await self._save_conversation()

        return AgentAnswer(text=text)

    async def answer(self, user_text: str) -> str:
        """
        Answer one user message

        Args:
            user_text: The user's message

        Returns:
            The assistant's reply, or a safe fallback text on failure
        """
        return (await self.respond(user_text)).text

    def reset(self) -> None:
        """Drop history back to the system message and forget the conversation id"""
        self.messages = [Message(role="system", content=self.system_prompt)]
        self.conversation_id = None
