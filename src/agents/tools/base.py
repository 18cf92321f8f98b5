"""
Agent Tool - A named capability the model may call

Wraps a handler with the declaration the model sees
"""

import inspect
from typing import Any, Callable, Dict

from google.genai import types
from pydantic import BaseModel, ConfigDict, Field


class AgentTool(BaseModel):
    """Tool definition plus its handler"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Function name exposed to the model")
    description: str = Field(..., description="What the function does")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "OBJECT", "properties": {}},
        description="Parameter schema in genai Schema form",
    )
    handler: Callable[..., Any]

    def to_declaration(self) -> types.FunctionDeclaration:
        """Build the function declaration sent to the model"""
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=types.Schema.model_validate(self.parameters),
        )

    async def invoke(self, arguments: Dict[str, Any]) -> Any:
        """
        Run the handler with model-supplied arguments

        Args:
            arguments: Keyword arguments chosen by the model

        Returns:
            Handler result (awaited if the handler is async)
        """
        result = self.handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result
