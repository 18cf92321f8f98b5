"""
Agent Registry - Manages available agents

Maps each agent type to its prompt, temperature and tools, and builds
configured Agent Units on demand
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.agents import prompts
from src.agents.agent_base import AgentUnit
from src.agents.tools import AgentTool, build_compliance_tools, build_tax_tools
from src.config.settings import Settings
from src.models.agent import AgentConfig, AgentDescriptor, AgentType, get_descriptor
from src.models.conversation import Message
from src.services.llm_service import LLMService

logger = logging.getLogger(__name__)


class AgentSpec(BaseModel):
    """Everything needed to build one kind of agent"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    descriptor: AgentDescriptor
    system_prompt: str
    temperature: float = 0.2
    tools_factory: Optional[Callable[[], List[AgentTool]]] = Field(
        None, description="Returns fresh tool instances for a new agent"
    )


def default_specs() -> Dict[AgentType, AgentSpec]:
    """Specs for the built-in payroll agents"""
    return {
        AgentType.TAX: AgentSpec(
            descriptor=get_descriptor(AgentType.TAX),
            system_prompt=prompts.TAX_PROMPT,
            temperature=0.1,
            tools_factory=build_tax_tools,
        ),
        AgentType.COMPLIANCE: AgentSpec(
            descriptor=get_descriptor(AgentType.COMPLIANCE),
            system_prompt=prompts.COMPLIANCE_PROMPT,
            temperature=0.1,
            tools_factory=build_compliance_tools,
        ),
        AgentType.RESEARCH: AgentSpec(
            descriptor=get_descriptor(AgentType.RESEARCH),
            system_prompt=prompts.RESEARCH_PROMPT,
            temperature=0.3,
        ),
        AgentType.DATA: AgentSpec(
            descriptor=get_descriptor(AgentType.DATA),
            system_prompt=prompts.DATA_PROMPT,
            temperature=0.2,
        ),
        AgentType.REASONING: AgentSpec(
            descriptor=get_descriptor(AgentType.REASONING),
            system_prompt=prompts.REASONING_PROMPT,
            temperature=0.2,
        ),
    }


class AgentRegistry:
    """
    Registry for the specialized agents

    Holds one spec per agent type and builds fresh Agent Units per request
    """

    def __init__(
        self,
        specs: Optional[Dict[AgentType, AgentSpec]] = None,
        model: str = "gemini-2.5-flash",
        max_tokens: int = 2000,
        use_knowledge_base: bool = True,
    ):
        """
        Initialize agent registry

        Args:
            specs: Agent specs by type (built-in agents if not provided)
            model: Model every agent uses
            max_tokens: Answer length limit for every agent
            use_knowledge_base: Whether agents enrich prompts with retrieved context
        """
        self.specs: Dict[AgentType, AgentSpec] = specs if specs is not None else default_specs()
        self.model = model
        self.max_tokens = max_tokens
        self.use_knowledge_base = use_knowledge_base

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentRegistry":
        return cls(
            model=settings.google_model,
            max_tokens=settings.llm_max_response_tokens,
            use_knowledge_base=settings.enable_knowledge_base,
        )

    def register(self, spec: AgentSpec) -> None:
        """
        Register (or replace) the spec for an agent type

        Args:
            spec: Agent spec
        """
        self.specs[spec.descriptor.type] = spec

    def get_spec(self, agent_type: AgentType) -> AgentSpec:
        """
        Get the spec for an agent type

        Raises:
            ValueError: If no agent of that type is registered
        """
        spec = self.specs.get(agent_type)
        if spec is None:
            raise ValueError(f"Unknown agent type: {agent_type}")
        return spec

    def list_agents(self) -> List[AgentDescriptor]:
        """Descriptors of registered agents in catalog order"""
        return [self.specs[t].descriptor for t in sorted(self.specs, key=lambda t: t.catalog_index)]

    async def build(
        self,
        agent_type: AgentType,
        llm: LLMService,
        store: Optional[Any] = None,
        knowledge: Optional[Any] = None,
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        company_id: Optional[str] = None,
        memory: bool = True,
        history: Optional[List[Message]] = None,
    ) -> AgentUnit:
        """
        Build a ready-to-use agent of the given type

        Args:
            agent_type: Agent to build
            llm: Model client handle
            store: Conversation store
            knowledge: Knowledge retrieval collaborator
            conversation_id: Conversation to continue (loaded when memory is on)
            user_id: Conversation owner
            company_id: Owner's company
            memory: Load and persist history through the store
            history: Prior turns to seed instead of loading

        Returns:
            AgentUnit with history loaded

        Raises:
            ValueError: If the agent type is not registered
        """
        spec = self.get_spec(agent_type)
        tools = spec.tools_factory() if spec.tools_factory else []

        config = AgentConfig(
            model=self.model,
            temperature=spec.temperature,
            max_tokens=self.max_tokens,
            system_prompt=spec.system_prompt,
            tools=tools,
            memory=memory,
            use_knowledge_base=self.use_knowledge_base,
            conversation_id=conversation_id,
            user_id=user_id,
            company_id=company_id,
        )

        logger.debug(f"Building {agent_type.value} agent (memory={memory}, tools={len(tools)})")

        return await AgentUnit.create(
            config,
            llm=llm,
            store=store,
            knowledge=knowledge,
            agent_type=agent_type,
            name=spec.descriptor.display_name,
            history=history,
        )
