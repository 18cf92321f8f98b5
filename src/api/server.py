"""
FastAPI server for the payroll agent API

Provides REST endpoints for the UI to query single agents, run
multi-agent queries and list the agent catalog
"""

import logging
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware.request_logger import request_log_middleware
from src.config.settings import get_settings
from src.models.agent import AgentType, get_descriptor
from src.models.orchestration import AgentContribution, AggregatedResponse, ReasoningStep

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# Request/Response Models
class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _require_query(value: str) -> str:
    if not value.strip():
        raise ValueError("Query is required")
    return value.strip()


QueryText = Annotated[str, AfterValidator(_require_query)]


class QueryRequest(ApiModel):
    """Request to a single agent (auto-routed unless agentType is given)"""
    query: QueryText
    conversation_id: Optional[str] = None
    agent_type: Optional[AgentType] = None


class MultiQueryRequest(ApiModel):
    """Request routed through relevance analysis"""
    query: QueryText
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    conversation_id: Optional[str] = None


class ContributionOut(ApiModel):
    """One agent's part of an answer"""
    agent_type: AgentType
    agent_name: str
    response: str
    confidence: Optional[float] = None
    error: Optional[str] = None
    reasoning: List[ReasoningStep] = Field(default_factory=list)

    @classmethod
    def from_contribution(cls, contribution: AgentContribution) -> "ContributionOut":
        return cls(
            agent_type=contribution.agent_type,
            agent_name=contribution.agent_name,
            response=contribution.raw_response,
            confidence=contribution.confidence,
            error=contribution.error,
            reasoning=contribution.reasoning_steps,
        )


class QueryResponse(ApiModel):
    """Single agent answer"""
    response: str
    agent_type: AgentType
    agent_name: str
    conversation_id: Optional[str] = None
    contributions: List[ContributionOut] = Field(default_factory=list)


class MultiQueryResponse(ApiModel):
    """Multi-agent answer with routing details"""
    response: str
    agent_contributions: List[ContributionOut] = Field(default_factory=list)
    analysis: Dict[str, Any]
    metadata: Dict[str, Any]
    conversation_id: Optional[str] = None


class AgentOut(BaseModel):
    type: AgentType
    name: str
    description: str


class AgentListResponse(BaseModel):
    agents: List[AgentOut]


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime
    version: str
    agents_available: int


# Global orchestrator instance (will be set on startup)
_orchestrator = None


def set_orchestrator(orchestrator):
    """Set the global orchestrator instance"""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator():
    """Get the global orchestrator instance"""
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return _orchestrator


def to_query_response(result: AggregatedResponse) -> QueryResponse:
    """Shape an aggregated answer for the single-agent endpoint"""
    primary = result.primary
    agent_type = primary.agent_type if primary else result.plan.chosen_agents[0]

    return QueryResponse(
        response=result.final_text,
        agent_type=agent_type,
        agent_name=get_descriptor(agent_type).display_name,
        conversation_id=result.conversation_id,
        contributions=[ContributionOut.from_contribution(c) for c in result.contributions],
    )


def to_multi_query_response(result: AggregatedResponse) -> MultiQueryResponse:
    """Shape an aggregated answer for the multi-agent endpoint"""
    plan = result.plan

    analysis = {
        "analysis": plan.analysis_narrative,
        "agent_relevance": {
            agent_type.value: {"score": relevance.score, "reason": relevance.reason}
            for agent_type, relevance in sorted(plan.per_agent.items(), key=lambda kv: kv[0].catalog_index)
        },
        "plan": plan.plan_narrative,
    }

    return MultiQueryResponse(
        response=result.final_text,
        agent_contributions=[ContributionOut.from_contribution(c) for c in result.contributions],
        analysis=analysis,
        metadata={
            "relevantAgents": [t.value for t in plan.chosen_agents],
            "fallback": plan.fallback,
            "degraded": result.degraded,
        },
        conversation_id=result.conversation_id,
    )


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        if error.get("type") == "missing" and field == "query":
            message = "Query is required"
        messages.append(message if field == "query" or not field else f"{field}: {message}")
    return "; ".join(messages) or "Invalid request"


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="Payroll Agent API",
        description="Multi-agent payroll assistant: tax, compliance, research, data and reasoning agents",
        version=API_VERSION,
    )

    # Startup event: Initialize orchestrator
    @app.on_event("startup")
    async def startup_event():
        """Initialize orchestrator on application startup"""
        from src.agents import AgentOrchestrator

        logger.info("🎭 Initializing orchestrator...")

        orchestrator = AgentOrchestrator.from_settings(settings)

        try:
            await orchestrator.store.ensure_indexes()
        except Exception as e:
            logger.warning(f"Could not ensure conversation indexes: {e}")

        set_orchestrator(orchestrator)

        logger.info(f"✅ Orchestrator initialized with {len(orchestrator.list_agents())} agents")

    @app.on_event("shutdown")
    async def shutdown_event():
        from src.workers.db_worker.mongo_client import MongoDBClient

        await MongoDBClient.close()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    app.middleware("http")(request_log_middleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.error(f"Internal error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to process query"})

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Service status and number of available agents"""
        try:
            agents_available = len(get_orchestrator().list_agents())
        except HTTPException:
            agents_available = 0

        return HealthResponse(
            status="healthy" if agents_available > 0 else "degraded",
            timestamp=datetime.utcnow(),
            version=API_VERSION,
            agents_available=agents_available,
        )

    @app.get("/api/agents", response_model=AgentListResponse, tags=["Agents"])
    async def list_agents():
        """Static agent catalog"""
        orchestrator = get_orchestrator()
        return AgentListResponse(agents=[
            AgentOut(type=d.type, name=d.display_name, description=d.capability_description)
            for d in orchestrator.list_agents()
        ])

    @app.post("/api/agent/query", response_model=QueryResponse, tags=["Agents"])
    async def agent_query(request: QueryRequest):
        """
        Answer a query with one agent

        The agent is chosen by relevance analysis unless agentType is given.
        A fully degraded answer is still returned with status 200.
        """
        orchestrator = get_orchestrator()

        result = await orchestrator.process_query(
            request.query,
            conversation_id=request.conversation_id,
            agent_type=request.agent_type,
        )
        return to_query_response(result)

    @app.post("/api/agent/multi-query", response_model=MultiQueryResponse, tags=["Agents"])
    async def multi_agent_query(request: MultiQueryRequest):
        """
        Answer a query with every relevant agent

        Returns the combined answer, each agent's contribution and the
        relevance analysis used for routing.
        """
        orchestrator = get_orchestrator()

        result = await orchestrator.process_query(
            request.query,
            conversation_id=request.conversation_id,
            user_id=request.user_id,
            company_id=request.company_id,
        )
        return to_multi_query_response(result)

    return app
